SUCCESS = "✅"
WARNING = "⚠️"
INFO = "ℹ️"

COMPLETED_STATUSES = ("completada", "completed")


class Report:
    """Human-readable account of what an interpretation run did."""

    def __init__(self):
        self.lines = []
        self.projects_created = 0
        self.tasks_created = 0

    def success(self, message):
        self.lines.append(f"{SUCCESS} {message}")

    def warning(self, message):
        self.lines.append(f"{WARNING} {message}")

    def info(self, message):
        self.lines.append(f"{INFO} {message}")

    def detail(self, icon, message):
        self.lines.append(f"   {icon} {message}")

    def render(self):
        if not self.lines:
            return f"{INFO} No actions found in the model answer."
        return "\n".join(self.lines)

    def render_meeting(self):
        body = self.render()
        parts = ["📋 **Meeting analysis complete:**", ""]
        if body:
            parts.append(body)
        parts.append("")
        parts.append(
            f"📊 **Summary:** {self.projects_created} projects and "
            f"{self.tasks_created} tasks processed from the meeting."
        )
        parts.append("")
        parts.append("💡 **Tip:** Review the created tasks and adjust owners or dates if needed.")
        return "\n".join(parts)


def warning(message):
    return f"{WARNING} {message}"


def is_completed(status):
    return bool(status) and status.strip().lower() in COMPLETED_STATUSES


def project_progress(project):
    """Summary row for the projects report: hours, task counts and progress."""
    tasks = list(project.tasks.all())
    completed = sum(1 for task in tasks if is_completed(task.status))
    return {
        'id': project.pk,
        'name': project.name,
        'total_hours': project.duration_hours,
        'total_tasks': len(tasks),
        'completed_tasks': completed,
        'progress': (completed * 100.0 / len(tasks)) if tasks else 0.0,
    }
