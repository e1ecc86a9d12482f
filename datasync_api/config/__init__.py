from datasync_api.config.base import ENVIRONMENT_OPTIONS, AppSettings
from datasync_api.config.serializable import Serializable

__all__ = ["AppSettings", "ENVIRONMENT_OPTIONS", "Serializable"]
