from rest_framework import serializers

from . import store
from .models import Project, Task


class TaskSerializer(serializers.ModelSerializer):
    project = serializers.PrimaryKeyRelatedField(
        queryset=Project.objects.all(),
        allow_null=True,
        required=False
    )

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'description', 'status', 'start_date', 'end_date',
            'duration_hours', 'observations', 'project', 'created_at',
        ]
        read_only_fields = ['created_at']

    def validate(self, attrs):
        # Title uniqueness is scoped to the (possibly new) owning project.
        instance = self.instance
        title = attrs.get('title', instance.title if instance else None)
        if 'project' in attrs:
            project = attrs['project']
        else:
            project = instance.project if instance else None
        project_id = project.pk if project is not None else None
        exclude_id = instance.pk if instance else None
        if title and store.task_title_taken(title, project_id, exclude_id=exclude_id):
            raise serializers.ValidationError(
                {'title': f"A task titled {title} already exists in this project scope."}
            )
        return attrs


class ProjectSerializer(serializers.ModelSerializer):
    tasks = TaskSerializer(many=True, read_only=True)

    class Meta:
        model = Project
        fields = [
            'id', 'name', 'description', 'start_date', 'end_date',
            'duration_hours', 'created_at', 'tasks',
        ]
        read_only_fields = ['duration_hours', 'created_at']

    def validate_name(self, value):
        exclude_id = self.instance.pk if self.instance else None
        if store.project_name_taken(value, exclude_id=exclude_id):
            raise serializers.ValidationError(f"A project named {value} already exists.")
        return value


class ChatRequestSerializer(serializers.Serializer):
    message = serializers.CharField(allow_blank=True, trim_whitespace=False)
