from django.apps import AppConfig


class TtbConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.ttb'
    label = 'ttb'
