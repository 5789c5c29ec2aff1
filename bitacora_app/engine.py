# bitacora_app/engine.py
"""
Natural-language command interpretation.

A message is classified as a single command or a meeting transcript, sent to
the language model, and the JSON it answers with is applied to the stored
projects and tasks. The outcome is always a human-readable report; nothing
raises past ``CommandInterpreter.interpret``.
"""
import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from . import store
from .actions import (
    CREATE, PROJECT,
    InvalidPayload, MalformedResponse, clean_text, parse_document,
)
from .classifier import is_meeting_transcript
from .cleanup import format_timestamp, normalize_dates, unwrap_response
from .llm import (
    ChatCompletionClient, LLMConfigurationError, LLMError, LLMHTTPError, LLMRateLimited,
)
from .models import Project, Task
from .prompts import command_messages, meeting_messages
from .reporting import Report, warning

logger = logging.getLogger(__name__)

PROJECT_FIELDS = ('description', 'start_date', 'end_date')
TASK_FIELDS = ('description', 'start_date', 'end_date', 'observations')


def changed_fields(instance, fields, names):
    """Fields from ``names`` present in ``fields`` whose value differs from ``instance``."""
    return {
        name: fields[name]
        for name in names
        if name in fields and fields[name] != getattr(instance, name)
    }


def apply_changes(instance, changes):
    for name, value in changes.items():
        setattr(instance, name, value)


def _same_status(a, b):
    return (a or '').strip().lower() == (b or '').strip().lower()


class CommandInterpreter:
    """
    Turns free-form text into project/task mutations.

    ``llm`` needs a ``complete(system, prompt, temperature=..., max_tokens=...)``
    method; ``clock`` returns the current datetime.
    """

    def __init__(self, llm=None, clock=None):
        self.llm = llm if llm is not None else ChatCompletionClient()
        self.clock = clock or timezone.now

    def interpret(self, message):
        if not message or not message.strip():
            return warning("Empty message, nothing to do.")
        try:
            meeting = is_meeting_transcript(message)
            logger.info("Interpreting %s (%d chars)", "meeting transcript" if meeting else "command", len(message))
            raw = self._ask(message, meeting)
            return self.execute(raw, meeting=meeting)
        except LLMRateLimited:
            return warning("Language model usage limit exceeded. Please wait and try again later.")
        except LLMHTTPError as e:
            return warning(f"Language model API error: {e.status_code} - {e.reason}")
        except LLMConfigurationError as e:
            return warning(f"Language model is not configured: {e}")
        except LLMError as e:
            return warning(f"Connection error with the language model: {e}")
        except Exception as e:
            logger.exception("Unexpected failure interpreting message")
            return warning(f"Unexpected error while processing the message: {e}")

    def _ask(self, message, meeting):
        now = format_timestamp(self.clock())
        if meeting:
            system, prompt = meeting_messages(message, now)
            return self.llm.complete(system, prompt, temperature=0.1, max_tokens=2000)
        system, prompt = command_messages(message, now)
        return self.llm.complete(system, prompt, temperature=0.0, max_tokens=1000)

    def execute(self, raw, meeting=False):
        """Apply a raw model answer and return the report text."""
        text = normalize_dates(unwrap_response(raw), self.clock())
        try:
            actions, is_batch = parse_document(text)
        except MalformedResponse as e:
            logger.warning("Model answer is not valid JSON: %s", e)
            return warning(f"Could not process JSON: {e}\nReceived JSON:\n{e.raw_text}")

        report = Report()
        batch_cache = {}
        if is_batch:
            # Project creations first so later task references can resolve to them.
            creations = [a for a in actions if a.verb == CREATE and a.kind == PROJECT]
            others = [a for a in actions if not (a.verb == CREATE and a.kind == PROJECT)]
            actions = creations + others
        for action in actions:
            self._run(action, report, batch_cache)
        return report.render_meeting() if meeting else report.render()

    def _run(self, action, report, batch_cache):
        if not action.recognized:
            report.warning("Unrecognized action or type.")
            return
        handler = getattr(self, f"_{action.verb}_{action.kind}")
        try:
            with transaction.atomic():
                handler(action, report, batch_cache)
        except InvalidPayload as e:
            logger.warning("Rejected %s %s: %s", action.verb, action.kind, e)
            report.warning(f"Invalid {action.kind} data: {e}")
        except DatabaseError as e:
            logger.exception("Storage failure applying %s %s", action.verb, action.kind)
            report.warning(f"Could not apply {action.verb} {action.kind}: {e}")

    # --- projects ---

    def _create_project(self, action, report, batch_cache):
        patch = action.project_patch()
        name = clean_text(patch.get('name')) or action.key
        if not name:
            report.warning("Project name is required.")
            return
        if store.project_name_taken(name):
            report.warning(f"A project named {name} already exists.")
            return

        project = Project(name=name)
        apply_changes(project, {f: patch.get(f) for f in PROJECT_FIELDS if patch.has(f)})
        store.save_project(project)
        batch_cache[store.name_key(project.name)] = project
        report.projects_created += 1

        nested = []
        for task_patch in patch.tasks:
            title = clean_text(task_patch.get('title'))
            if not title:
                report.warning(f"Task without title skipped in project {name}.")
                continue
            task = self._insert_task(title, task_patch, project, report, announce=False)
            if task is not None:
                nested.append(task)

        line = f"Project created: {project.name}"
        if nested:
            line += f" with {len(nested)} tasks"
        report.success(line)
        if project.description:
            report.detail("📝", project.description)

    def _update_project(self, action, report, batch_cache):
        if not action.key:
            report.warning("Project name is required to update.")
            return
        project = store.find_project_by_name(action.key)
        if project is None:
            report.warning(f"Project not found: {action.key}")
            return
        if action.payload is None:
            report.warning("No data provided to update the project.")
            return

        patch = action.project_patch()
        changes = {}
        new_name = clean_text(patch.get('name'))
        if new_name and new_name != project.name:
            if store.project_name_taken(new_name, exclude_id=project.pk):
                report.warning(f"Another project is already named {new_name}.")
                return
            changes['name'] = new_name
        changes.update(changed_fields(project, patch.fields, PROJECT_FIELDS))

        if not changes:
            report.info(f"No changes made to project: {project.name}")
            return
        renamed = batch_cache.pop(store.name_key(project.name), None) is not None
        apply_changes(project, changes)
        store.save_project(project)
        if renamed:
            batch_cache[store.name_key(project.name)] = project
        report.success(f"Project updated: {project.name}")

    def _delete_project(self, action, report, batch_cache):
        if not action.key:
            report.warning("Project name is required to delete.")
            return
        project = store.find_project_by_name(action.key)
        if project is None:
            report.warning(f"Project not found: {action.key}")
            return
        store.delete_project(project)
        batch_cache.pop(store.name_key(project.name), None)
        report.success(f"Project deleted: {action.key}")

    # --- tasks ---

    def _create_task(self, action, report, batch_cache):
        patch = action.task_patch()
        title = clean_text(patch.get('title')) or action.key
        if not title:
            report.warning("Task title is required.")
            return
        project = None
        if isinstance(patch.project_ref, str):
            project = store.resolve_project(patch.project_ref, batch_cache)
            if project is None:
                logger.info("Project %r not found, task %r left without project", patch.project_ref, title)
        self._insert_task(title, patch, project, report)

    def _insert_task(self, title, patch, project, report, announce=True):
        scope = project.pk if project is not None else None
        if store.task_title_taken(title, scope):
            message = f"A task titled {title} already exists"
            if project is not None:
                message += f" in project {project.name}"
            report.warning(message + ".")
            return None

        task = Task(title=title, project=project)
        fields = {f: patch.get(f) for f in TASK_FIELDS if patch.has(f)}
        if patch.get('status') is not None:
            fields['status'] = patch.get('status')
        if patch.get('duration_hours') is not None:
            fields['duration_hours'] = patch.get('duration_hours')
        apply_changes(task, fields)
        store.save_task(task)
        report.tasks_created += 1

        if announce:
            where = f" in project {project.name}" if project is not None else " (no project)"
            report.success(f"Task created: {task.title}{where}")
            if task.observations:
                report.detail("👤", task.observations)
        return task

    def _update_task(self, action, report, batch_cache):
        if not action.key:
            report.warning("Task name/title is required to update.")
            return
        task = store.find_task_by_title(action.key)
        if task is None:
            report.warning(f"Task not found: {action.key}")
            return
        if action.payload is None:
            report.warning("No data provided to update the task.")
            return

        patch = action.task_patch()
        changes = {}
        target = task.project

        if patch.project_ref is None:
            if task.project_id is not None:
                changes['project'] = target = None
        elif isinstance(patch.project_ref, str):
            resolved = store.resolve_project(patch.project_ref, batch_cache)
            if resolved is None:
                logger.info("Project %r not found, task %r keeps its project", patch.project_ref, task.title)
            elif resolved.pk != task.project_id:
                changes['project'] = target = resolved

        title = task.title
        new_title = clean_text(patch.get('title'))
        if new_title and new_title != task.title:
            changes['title'] = title = new_title

        if 'title' in changes or 'project' in changes:
            scope = target.pk if target is not None else None
            if store.task_title_taken(title, scope, exclude_id=task.pk):
                message = f"Another task is already titled {title}"
                if target is not None:
                    message += f" in project {target.name}"
                report.warning(message + ".")
                return

        status = patch.get('status')
        if status is not None and not _same_status(status, task.status):
            changes['status'] = status
        hours = patch.get('duration_hours')
        if hours is not None and hours != task.duration_hours:
            changes['duration_hours'] = hours
        changes.update(changed_fields(task, patch.fields, TASK_FIELDS))
        if changes.get('start_date', task.start_date) is not None and changes.get('end_date', task.end_date) is not None:
            # Dated tasks take their duration from the range.
            changes.pop('duration_hours', None)

        if not changes:
            report.info(f"No changes made to task: {task.title}")
            return
        previous_project_id = task.project_id
        apply_changes(task, changes)
        store.save_task(task, previous_project_id=previous_project_id)
        report.success(f"Task updated: {task.title}")

    def _delete_task(self, action, report, batch_cache):
        if not action.key:
            report.warning("Task name/title is required to delete.")
            return
        task = store.find_task_by_title(action.key)
        if task is None:
            report.warning(f"Task not found: {action.key}")
            return
        store.delete_task(task)
        report.success(f"Task deleted: {action.key}")


def interpret(message, llm=None, clock=None):
    return CommandInterpreter(llm=llm, clock=clock).interpret(message)
