import sys
from pathlib import Path

from datasync_api.config import AppSettings

SYNC_ROOT = Path(__file__).resolve().parent

if str(SYNC_ROOT) not in sys.path:
    sys.path.insert(0, str(SYNC_ROOT))

_app_settings = AppSettings.from_environment()

SECRET_KEY = _app_settings.django.secret_key
DEBUG = _app_settings.debug
USE_TZ = True
TIME_ZONE = "UTC"
ALLOWED_HOSTS: list[str] = []

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "datasync_data.apps.DatasyncDataConfig",
]

MIDDLEWARE: list[str] = []
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

_database: dict[str, object] = {
    "ENGINE": _app_settings.django.db_engine,
    "NAME": _app_settings.django.db_name,
}
if _app_settings.django.db_engine != "django.db.backends.sqlite3":
    _database.update(
        {
            "HOST": _app_settings.django.db_host,
            "PORT": _app_settings.django.db_port,
            "USER": _app_settings.django.db_user,
            "PASSWORD": _app_settings.django.db_password,
        }
    )
elif not Path(str(_app_settings.django.db_name)).is_absolute():
    _database["NAME"] = str(Path.cwd() / str(_app_settings.django.db_name))

DATABASES = {"default": _database}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "stderr": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["stderr"],
        "level": "DEBUG" if DEBUG else "INFO",
    },
    "loggers": {
        "django.db.backends": {"level": "INFO"},
        "urllib3": {"level": "WARNING"},
    },
}
