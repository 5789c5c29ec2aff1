# bitacora_app/models.py
from django.db import models

from .duration import aggregate_duration, hours_between


class Project(models.Model):
    name = models.CharField(max_length=200)
    description = models.TextField(null=True, blank=True)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    duration_hours = models.FloatField(null=True, blank=True, editable=False)  # Derived, see save()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return self.name

    def task_durations(self):
        """Non-null durations of the tasks currently stored under this project."""
        if self.pk is None:
            return []
        return list(
            Task.objects.filter(project_id=self.pk, duration_hours__isnull=False)
            .values_list('duration_hours', flat=True)
        )

    def save(self, *args, **kwargs):
        # The stored duration is always recomputed; callers cannot override it.
        self.duration_hours = aggregate_duration(self.start_date, self.end_date, self.task_durations())
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'duration_hours' not in update_fields:
            kwargs['update_fields'] = list(update_fields) + ['duration_hours']
        super().save(*args, **kwargs)


class Task(models.Model):
    title = models.CharField(max_length=300)
    description = models.TextField(null=True, blank=True)
    status = models.CharField(max_length=50, null=True, blank=True)  # pending, in progress, completed...
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    duration_hours = models.FloatField(null=True, blank=True)
    observations = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    project = models.ForeignKey(
        Project, on_delete=models.CASCADE, null=True, blank=True, related_name='tasks'
    )

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        # Both dates present: the date range wins over any supplied duration.
        hours = hours_between(self.start_date, self.end_date)
        if hours is not None:
            self.duration_hours = hours
        super().save(*args, **kwargs)
