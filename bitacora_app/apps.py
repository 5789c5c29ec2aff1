from django.apps import AppConfig


class BitacoraAppConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'bitacora_app'
    verbose_name = 'Bitácora'
