# bitacora/urls.py
from django.urls import include, path

urlpatterns = [
    path('api/', include('bitacora_app.urls')),
]
