from django.core.management.commands.flush import Command as FlushCommand

from datasync_api.config import AppSettings
from datasync_api.checkpoint import FileCheckpointStore
from datasync_data.stores import build_checkpoint_store


class Command(FlushCommand):
    help = (
        "Removes all synced data from the database and clears the target's checkpoint "
        "so the next sync starts a full pass."
    )

    def add_arguments(self, parser) -> None:  # type: ignore[no-untyped-def]
        super().add_arguments(parser)
        parser.add_argument("--target", default=None, help="Sync target identifier.")

    def handle(self, *args, **options) -> None:
        super().handle(**options)

        # Database checkpoints went with the flush; file checkpoints live outside it.
        app_settings = AppSettings.from_environment()
        checkpoint_store = build_checkpoint_store(app_settings.sync.checkpoint_backend)
        if isinstance(checkpoint_store, FileCheckpointStore):
            checkpoint_store.clear(options.get("target") or app_settings.sync.target)
