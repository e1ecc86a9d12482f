from datasync_api.config.sections.django import Django
from datasync_api.config.sections.source import Source
from datasync_api.config.sections.sync import Sync

__all__ = ["Django", "Source", "Sync"]
