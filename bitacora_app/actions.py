# bitacora_app/actions.py
"""
Decoding of the language model's JSON into actions and field patches.

The model answers with a single action object or an array of them::

    {
      "accion": "crear|actualizar|eliminar",
      "tipo": "proyecto|tarea",
      "nombre": "identifies the project/task to update or delete",
      "proyecto": {...},   # project payload
      "tarea": {...}       # task payload
    }

Payloads are decoded into patches holding only the fields the model actually
sent, so updates never touch fields it did not mention.
"""
import json
from dataclasses import dataclass, field
from typing import Optional

from rest_framework import serializers

CREATE = 'create'
UPDATE = 'update'
DELETE = 'delete'
PROJECT = 'project'
TASK = 'task'

VERBS = {
    'crear': CREATE, 'create': CREATE,
    'actualizar': UPDATE, 'update': UPDATE,
    'eliminar': DELETE, 'delete': DELETE,
}
KINDS = {
    'proyecto': PROJECT, 'project': PROJECT,
    'tarea': TASK, 'task': TASK,
}

NULL_STRINGS = ('', 'null', 'none')


class MalformedResponse(Exception):
    """The model's answer could not be decoded as a JSON object or array."""

    def __init__(self, message, raw_text):
        super().__init__(message)
        self.raw_text = raw_text


class InvalidPayload(Exception):
    """A single action's payload carried values that could not be decoded."""


# --- payload serializers ---

class NullableDateTimeField(serializers.DateTimeField):
    """Accepts ISO timestamps; the strings "null" and "" decode to None."""

    def __init__(self, **kwargs):
        kwargs.setdefault('allow_null', True)
        kwargs.setdefault('required', False)
        super().__init__(**kwargs)

    def to_internal_value(self, value):
        if isinstance(value, str) and value.strip().lower() in NULL_STRINGS:
            return None
        return super().to_internal_value(value)


def _text(source):
    return serializers.CharField(source=source, required=False, allow_null=True, allow_blank=True)


class ProjectPayloadSerializer(serializers.Serializer):
    nombre = _text('name')
    descripcion = _text('description')
    fechaInicio = NullableDateTimeField(source='start_date')
    fechaFin = NullableDateTimeField(source='end_date')
    tareas = serializers.ListField(
        source='tasks', child=serializers.DictField(), required=False, allow_null=True
    )
    # duracionHoras and fechaCreacion are derived/immutable and never read.


class TaskPayloadSerializer(serializers.Serializer):
    titulo = _text('title')
    descripcion = _text('description')
    estado = _text('status')
    fechaInicio = NullableDateTimeField(source='start_date')
    fechaFin = NullableDateTimeField(source='end_date')
    duracionHoras = serializers.FloatField(source='duration_hours', required=False, allow_null=True)
    observaciones = _text('observations')


# --- patches ---

ABSENT = object()


@dataclass
class TaskPatch:
    fields: dict = field(default_factory=dict)
    project_ref: object = ABSENT  # ABSENT, None (detach) or a project name

    def has(self, name):
        return name in self.fields

    def get(self, name, default=None):
        return self.fields.get(name, default)


@dataclass
class ProjectPatch:
    fields: dict = field(default_factory=dict)
    tasks: list = field(default_factory=list)

    def has(self, name):
        return name in self.fields

    def get(self, name, default=None):
        return self.fields.get(name, default)


def _validated(serializer_class, payload):
    serializer = serializer_class(data=payload, partial=True)
    if not serializer.is_valid():
        raise InvalidPayload(_describe_errors(serializer.errors))
    return dict(serializer.validated_data)


def _describe_errors(errors):
    parts = []
    for name, messages in errors.items():
        if isinstance(messages, (list, tuple)):
            messages = "; ".join(str(m) for m in messages)
        parts.append(f"{name}: {messages}")
    return ", ".join(parts)


def _project_reference(payload):
    if 'proyecto' not in payload:
        return ABSENT
    value = payload['proyecto']
    if value is None:
        return None
    if isinstance(value, dict):
        name = value.get('nombre', value.get('name'))
        if isinstance(name, str) and name.strip():
            return name.strip()
    # Anything else carries no usable reference.
    return ABSENT


def decode_task_patch(payload):
    payload = payload or {}
    patch = TaskPatch(fields=_validated(TaskPayloadSerializer, payload))
    patch.project_ref = _project_reference(payload)
    return patch


def decode_project_patch(payload):
    payload = payload or {}
    fields = _validated(ProjectPayloadSerializer, payload)
    nested = fields.pop('tasks', None) or []
    return ProjectPatch(fields=fields, tasks=[decode_task_patch(item) for item in nested])


# --- actions ---

def clean_text(value):
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


@dataclass
class Action:
    verb: Optional[str]
    kind: Optional[str]
    key: Optional[str] = None
    payload: Optional[dict] = None

    @classmethod
    def from_mapping(cls, data):
        if not isinstance(data, dict):
            return cls(verb=None, kind=None)
        verb = VERBS.get(str(data.get('accion') or '').strip().lower())
        kind = KINDS.get(str(data.get('tipo') or '').strip().lower())
        if kind == TASK:
            key = clean_text(data.get('titulo')) or clean_text(data.get('nombre'))
            payload = data.get('tarea')
        else:
            key = clean_text(data.get('nombre')) or clean_text(data.get('titulo'))
            payload = data.get('proyecto')
        if not isinstance(payload, dict):
            payload = None
        return cls(verb=verb, kind=kind, key=key, payload=payload)

    @property
    def recognized(self):
        return self.verb is not None and self.kind is not None

    def project_patch(self):
        return decode_project_patch(self.payload)

    def task_patch(self):
        return decode_task_patch(self.payload)


def parse_document(text):
    """
    Decode ``text`` into a list of actions.

    Returns ``(actions, is_batch)``; ``is_batch`` is True when the document
    was a JSON array. Raises MalformedResponse when the text is not JSON or
    its top level is neither an object nor an array.
    """
    try:
        document = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedResponse(str(e), text) from e
    if isinstance(document, dict):
        return [Action.from_mapping(document)], False
    if isinstance(document, list):
        return [Action.from_mapping(item) for item in document], True
    raise MalformedResponse(
        f"expected a JSON object or array, got {type(document).__name__}", text
    )
