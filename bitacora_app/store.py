"""
Storage access for projects and tasks.

Name and title lookups scan the collection and compare case-insensitively in
Python, so accented names ("Reunión" / "REUNIÓN") match on every database
backend. Task writes and deletions reconcile the owning project's duration
in the same transaction.
"""
import logging

from django.db import transaction

from .duration import reconcile_project
from .models import Project, Task

logger = logging.getLogger(__name__)


def name_key(value):
    """Normalised form used to compare names and titles and to key the batch cache."""
    return value.strip().lower() if value is not None else None


def same_text(a, b):
    if a is None or b is None:
        return False
    return name_key(a) == name_key(b)


# --- lookups ---

def find_all_projects():
    return list(Project.objects.all())


def find_all_tasks():
    return list(Task.objects.select_related('project').all())


def find_project_by_id(project_id):
    return Project.objects.filter(pk=project_id).first()


def find_task_by_id(task_id):
    return Task.objects.select_related('project').filter(pk=task_id).first()


def find_project_by_name(name):
    for project in Project.objects.order_by('id'):
        if same_text(project.name, name):
            return project
    return None


def find_task_by_title(title):
    for task in Task.objects.select_related('project').order_by('id'):
        if same_text(task.title, title):
            return task
    return None


def resolve_project(name, batch_cache=None):
    """
    Resolve a project reference by name.

    Projects created earlier in the same batch are checked first, then the
    stored collection. Returns None when nothing matches.
    """
    if not name or not name.strip():
        return None
    if batch_cache:
        cached = batch_cache.get(name_key(name))
        if cached is not None:
            return cached
    return find_project_by_name(name)


# --- duplicate guard ---

def project_name_taken(name, exclude_id=None):
    return any(
        same_text(project.name, name) and project.pk != exclude_id
        for project in Project.objects.all()
    )


def task_title_taken(title, project_id, exclude_id=None):
    """True when another task with ``title`` lives in the same project scope (None = ownerless)."""
    return any(
        same_text(task.title, title) and task.pk != exclude_id
        for task in Task.objects.filter(project_id=project_id)
    )


# --- writes ---

def save_project(project):
    project.save()
    return project


def delete_project(project):
    # Tasks are removed by the cascade.
    logger.info("Deleting project %s (%s)", project.pk, project.name)
    project.delete()


def save_task(task, previous_project_id=None):
    """
    Persist ``task`` and reconcile the durations of the owners involved.

    ``previous_project_id`` is the owner before this change, so a task moved
    between projects updates both aggregates.
    """
    with transaction.atomic():
        task.save()
        owner_ids = {task.project_id, previous_project_id} - {None}
        for project in Project.objects.filter(pk__in=owner_ids):
            reconcile_project(project)
    return task


def delete_task(task):
    owner_id = task.project_id
    with transaction.atomic():
        task.delete()
        if owner_id is not None:
            project = Project.objects.filter(pk=owner_id).first()
            if project is not None:
                reconcile_project(project)
