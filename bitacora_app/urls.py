# bitacora_app/urls.py
from django.urls import path
from .views import (
    ChatView, ProjectDetailView, ProjectListView, ProjectReportView, TaskDetailView, TaskListView,
)

urlpatterns = [
    path('projects/', ProjectListView.as_view(), name='project-list'),
    path('projects/<int:pk>/', ProjectDetailView.as_view(), name='project-detail'),
    path('tasks/', TaskListView.as_view(), name='task-list'),
    path('tasks/<int:pk>/', TaskDetailView.as_view(), name='task-detail'),
    path('reports/projects/', ProjectReportView.as_view(), name='project-report'),
    path('chat/', ChatView.as_view(), name='chat'),
]
