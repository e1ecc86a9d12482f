from django.apps import AppConfig


class DatasyncDataConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "datasync_data"
    verbose_name = "Datasync Data"
