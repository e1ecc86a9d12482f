import json
import logging
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType

from django.core.management.base import BaseCommand, CommandError

from datasync_api.checkpoint import MemoryCheckpointStore
from datasync_api.client import SourceClient
from datasync_api.config import AppSettings
from datasync_api.errors import ConfigurationError, StoreError
from datasync_api.normalizer import Normalizer
from datasync_api.orchestrator import SyncOrchestrator
from datasync_api.retry import RetryPolicy
from datasync_api.sink import MemorySinkWriter
from datasync_data.stores import (
    DjangoSinkWriter,
    SyncStatusReporter,
    build_checkpoint_store,
)

logger = logging.getLogger(__name__)

STOP_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class Command(BaseCommand):
    help = "Pull changed records from the source and apply them to the local database"

    def add_arguments(self, parser) -> None:  # type: ignore[no-untyped-def]
        parser.add_argument(
            "--target",
            default=None,
            help="Sync target identifier. Defaults to SYNC_TARGET.",
        )
        parser.add_argument(
            "--max-pages",
            type=int,
            default=None,
            help="Stop after this many committed pages; the next run resumes from the checkpoint.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Fetch and reconcile without writing records or committing checkpoints.",
        )
        parser.add_argument("--config-file", default=None, help="Path to a TOML config file.")
        parser.add_argument("--env-file", default=None, help="Path to a .env file.")

    def load_settings(self, options: dict[str, object]) -> AppSettings:
        try:
            app_settings = AppSettings.from_environment(
                config_file=options.get("config_file") or None,  # type: ignore[arg-type]
                env_file=options.get("env_file") or None,  # type: ignore[arg-type]
            )
            app_settings.require_source()
        except ConfigurationError as error:
            raise CommandError(str(error)) from error
        return app_settings

    def build_orchestrator(
        self,
        app_settings: AppSettings,
        client: SourceClient,
        target_id: str,
        *,
        dry_run: bool,
        max_pages: int | None,
    ) -> SyncOrchestrator:
        checkpoint_store = build_checkpoint_store(app_settings.sync.checkpoint_backend)
        if dry_run:
            try:
                seed = checkpoint_store.load(target_id)
            except StoreError as error:
                raise CommandError(str(error)) from error
            checkpoint_store = MemoryCheckpointStore(seed=seed)
            sink = MemorySinkWriter()
            progress_callback = None
        else:
            sink = DjangoSinkWriter(target_id)
            progress_callback = SyncStatusReporter(target_id)

        source = app_settings.source
        return SyncOrchestrator(
            client,
            sink,
            checkpoint_store,
            target_id=target_id,
            normalizer=Normalizer(
                id_field=source.id_field,
                updated_at_field=source.updated_at_field,
                deleted_field=source.deleted_field,
            ),
            retry_policy=RetryPolicy(
                max_attempts=app_settings.sync.max_attempts,
                initial_delay=app_settings.sync.initial_delay,
                max_delay=app_settings.sync.max_delay,
            ),
            apply_deletes=app_settings.sync.apply_deletes,
            max_pages=max_pages if max_pages is not None else app_settings.sync.max_pages,
            progress_callback=progress_callback,
        )

    @contextmanager
    def stop_on_signal(self, orchestrator: SyncOrchestrator) -> Iterator[None]:
        def handle_signal(signum: int, _frame: FrameType | None) -> None:
            logger.warning("Received %s", signal.Signals(signum).name)
            orchestrator.request_stop()

        previous_handlers = {sig: signal.signal(sig, handle_signal) for sig in STOP_SIGNALS}
        try:
            yield
        finally:
            for sig, handler in previous_handlers.items():
                signal.signal(sig, handler)

    def handle(self, *args, **options) -> None:
        _ = args
        app_settings = self.load_settings(options)
        target_id = options.get("target") or app_settings.sync.target
        dry_run = bool(options.get("dry_run"))

        client = SourceClient(app_settings.source)
        try:
            orchestrator = self.build_orchestrator(
                app_settings,
                client,
                target_id,
                dry_run=dry_run,
                max_pages=options.get("max_pages"),
            )
            with self.stop_on_signal(orchestrator):
                run = orchestrator.run()
        finally:
            if logger.isEnabledFor(logging.DEBUG):
                client.display_api_call_stats()
            client.close()

        summary = run.to_dict()
        summary["dry_run"] = dry_run
        self.stdout.write(json.dumps(summary, sort_keys=True, separators=(",", ":")))

        if not run.succeeded:
            self.stderr.write(f"Sync of {target_id} failed: {type(run.error).__name__}: {run.error}")
            raise SystemExit(1)
