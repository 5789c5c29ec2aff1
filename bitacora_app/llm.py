# bitacora_app/llm.py
import logging

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base class for failures talking to the language model."""


class LLMConfigurationError(LLMError):
    pass


class LLMRateLimited(LLMError):
    pass


class LLMHTTPError(LLMError):
    def __init__(self, status_code, reason):
        super().__init__(f"{status_code} - {reason}")
        self.status_code = status_code
        self.reason = reason


class LLMConnectionError(LLMError):
    pass


class ChatCompletionClient:
    """
    Minimal client for an OpenAI-compatible chat completions endpoint.

    One request per call, no retries. Defaults come from Django settings.
    """

    def __init__(self, api_key=None, api_url=None, model=None, timeout=None, session=None):
        self.api_key = api_key if api_key is not None else settings.LLM_API_KEY
        self.api_url = api_url or settings.LLM_API_URL
        self.model = model or settings.LLM_MODEL
        self.timeout = timeout or settings.LLM_TIMEOUT
        self.session = session or requests.Session()

    def complete(self, system, prompt, temperature=0.0, max_tokens=1000):
        if not self.api_key:
            raise LLMConfigurationError("no API key configured (set LLM_API_KEY)")

        payload = {
            "model": self.model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        logger.info("Calling %s (model=%s, max_tokens=%s)", self.api_url, self.model, max_tokens)
        try:
            resp = self.session.post(self.api_url, headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise LLMConnectionError(str(e)) from e

        if resp.status_code == 429:
            raise LLMRateLimited(resp.reason or "Too Many Requests")
        if not resp.ok:
            raise LLMHTTPError(resp.status_code, resp.reason)

        try:
            result = resp.json()
            content = result["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMConnectionError(f"unexpected response body: {e}") from e
        return (content or "").strip()
