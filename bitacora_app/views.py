# bitacora_app/views.py
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from . import store
from .engine import CommandInterpreter
from .models import Project, Task
from .reporting import project_progress
from .serializers import ChatRequestSerializer, ProjectSerializer, TaskSerializer

logger = logging.getLogger(__name__)


def _not_found(model, pk):
    return Response({'errors': [f"{model.__name__} {pk} does not exist"]}, status=status.HTTP_404_NOT_FOUND)


class ProjectListView(APIView):
    """List all projects with their tasks, or create a new project."""

    def get(self, request):
        projects = Project.objects.prefetch_related('tasks')
        return Response(ProjectSerializer(projects, many=True).data)

    def post(self, request):
        serializer = ProjectSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'errors': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
        project = store.save_project(Project(**serializer.validated_data))
        return Response(ProjectSerializer(project).data, status=status.HTTP_201_CREATED)


class ProjectDetailView(APIView):
    """
    Retrieve, update or delete a single project.

    PUT and PATCH both apply partial updates: fields missing from the body are
    left untouched. The project duration is recomputed on every save.
    """

    def get(self, request, pk):
        project = store.find_project_by_id(pk)
        if project is None:
            return _not_found(Project, pk)
        return Response(ProjectSerializer(project).data)

    def put(self, request, pk):
        project = store.find_project_by_id(pk)
        if project is None:
            return _not_found(Project, pk)
        serializer = ProjectSerializer(project, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response({'errors': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
        for name, value in serializer.validated_data.items():
            setattr(project, name, value)
        store.save_project(project)
        return Response(ProjectSerializer(project).data)

    patch = put

    def delete(self, request, pk):
        project = store.find_project_by_id(pk)
        if project is None:
            return _not_found(Project, pk)
        store.delete_project(project)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TaskListView(APIView):
    def get(self, request):
        return Response(TaskSerializer(store.find_all_tasks(), many=True).data)

    def post(self, request):
        serializer = TaskSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'errors': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
        task = store.save_task(Task(**serializer.validated_data))
        return Response(TaskSerializer(task).data, status=status.HTTP_201_CREATED)


class TaskDetailView(APIView):
    """
    Retrieve, update or delete a single task.

    The owning project is only replaced when the body carries a ``project``
    key; ``null`` detaches the task. Both the old and the new owner get their
    durations reconciled.
    """

    def get(self, request, pk):
        task = store.find_task_by_id(pk)
        if task is None:
            return _not_found(Task, pk)
        return Response(TaskSerializer(task).data)

    def put(self, request, pk):
        task = store.find_task_by_id(pk)
        if task is None:
            return _not_found(Task, pk)
        serializer = TaskSerializer(task, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response({'errors': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
        previous_project_id = task.project_id
        for name, value in serializer.validated_data.items():
            setattr(task, name, value)
        store.save_task(task, previous_project_id=previous_project_id)
        return Response(TaskSerializer(task).data)

    patch = put

    def delete(self, request, pk):
        task = store.find_task_by_id(pk)
        if task is None:
            return _not_found(Task, pk)
        store.delete_task(task)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ProjectReportView(APIView):
    """Hours, task counts and completion percentage per project."""

    def get(self, request):
        projects = Project.objects.prefetch_related('tasks')
        return Response([project_progress(project) for project in projects])


class ChatView(APIView):
    """
    Interpret a natural-language instruction or meeting transcript.

    Request Body:
        {"message": "create a task called Design in project Alpha"}

    Returns:
        {"response": "<report>"} with HTTP 200, whatever the outcome of the
        interpretation; HTTP 400 only when ``message`` is missing.
    """

    def get_interpreter(self):
        return CommandInterpreter()

    def post(self, request):
        serializer = ChatRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'errors': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
        report = self.get_interpreter().interpret(serializer.validated_data['message'])
        return Response({'response': report}, status=status.HTTP_200_OK)
