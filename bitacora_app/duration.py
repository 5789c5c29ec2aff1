"""Derived duration rules for projects and tasks.

A task's hours come from its own date range when it has one. A project's
hours come, in order of priority, from its own date range, from the sum of
its tasks' known hours, or are unknown (``None``).
"""
import logging

logger = logging.getLogger(__name__)


def hours_between(start, end):
    """Return ``end - start`` in fractional hours, or None if either is missing."""
    if start is None or end is None:
        return None
    return (end - start).total_seconds() / 3600.0


def aggregate_duration(start, end, task_hours):
    own = hours_between(start, end)
    if own is not None:
        return own
    known = [hours for hours in task_hours if hours is not None]
    if not known:
        return None
    return float(sum(known))


def reconcile_project(project):
    """
    Recompute and persist ``project.duration_hours`` from the stored tasks.

    Only writes when the value actually changed. Returns the new value.
    """
    hours = aggregate_duration(project.start_date, project.end_date, project.task_durations())
    if hours != project.duration_hours:
        logger.debug("Project %s duration %s -> %s", project.pk, project.duration_hours, hours)
        project.save(update_fields=['duration_hours'])
    return project.duration_hours
