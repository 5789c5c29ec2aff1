import json
from datetime import datetime

import pytest

from bitacora_app.engine import CommandInterpreter

FIXED_NOW = datetime(2026, 3, 15, 9, 30, 0, 123456)


class FakeLLM:
    """Replays canned answers; exceptions in the queue are raised instead."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def complete(self, system, prompt, temperature=0.0, max_tokens=1000):
        self.calls.append({
            'system': system,
            'prompt': prompt,
            'temperature': temperature,
            'max_tokens': max_tokens,
        })
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if not isinstance(response, str):
            response = json.dumps(response)
        return response


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def interpreter(fake_llm, clock):
    return CommandInterpreter(llm=fake_llm, clock=clock)


@pytest.fixture
def run(interpreter):
    """Apply a model answer (dict/list or raw string) and return the report."""
    def _run(document, meeting=False):
        raw = document if isinstance(document, str) else json.dumps(document)
        return interpreter.execute(raw, meeting=meeting)
    return _run
