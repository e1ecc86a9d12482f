import json
from datetime import datetime
from typing import Any

from django.core.management.base import BaseCommand, CommandError
from django.utils.timezone import now

from datasync_api.config import AppSettings
from datasync_api.errors import ConfigurationError, StoreError
from datasync_data.models import SyncStatus
from datasync_data.stores import build_checkpoint_store


class Command(BaseCommand):
    help = "Emit sync status and checkpoint for a target as single-line JSON"

    def add_arguments(self, parser) -> None:  # type: ignore[no-untyped-def]
        parser.add_argument("--target", default=None, help="Sync target identifier.")
        parser.add_argument(
            "--stale-threshold-seconds",
            type=int,
            default=0,
            help="Mark running sync stale when last heartbeat is older than this threshold.",
        )
        parser.add_argument(
            "--fail-on-stale",
            action="store_true",
            help="Exit with status code 2 when the running sync is stale.",
        )

    @staticmethod
    def _isoformat(value: datetime | None) -> str | None:
        if value is None:
            return None
        return value.isoformat()

    def _checkpoint_payload(self, app_settings: AppSettings, target_id: str) -> dict[str, Any] | None:
        try:
            checkpoint = build_checkpoint_store(app_settings.sync.checkpoint_backend).load(target_id)
        except StoreError as error:
            raise CommandError(str(error)) from error
        if checkpoint is None:
            return None
        return checkpoint.to_dict()

    def _build_payload(self, target_id: str, stale_threshold_seconds: int) -> dict[str, Any]:
        status_row = SyncStatus.objects.filter(target_id=target_id).first()
        current_time = now()
        if status_row is None:
            return {
                "target_id": target_id,
                "status": "unknown",
                "run_id": None,
                "cursor": None,
                "pages_processed": 0,
                "records_processed": 0,
                "records_failed": 0,
                "run_started_at": None,
                "run_finished_at": None,
                "last_heartbeat": None,
                "last_error": None,
                "run_age_seconds": None,
                "heartbeat_age_seconds": None,
                "is_stale": False,
                "updated_at": None,
            }

        run_age_seconds: int | None = None
        if status_row.run_started_at is not None:
            run_end = (
                current_time
                if status_row.status == "running"
                else (status_row.run_finished_at or current_time)
            )
            run_age_seconds = max(0, int((run_end - status_row.run_started_at).total_seconds()))

        heartbeat_age_seconds: int | None = None
        if status_row.last_heartbeat is not None:
            heartbeat_age_seconds = max(
                0, int((current_time - status_row.last_heartbeat).total_seconds())
            )

        is_stale = bool(
            status_row.status == "running"
            and heartbeat_age_seconds is not None
            and 0 < stale_threshold_seconds < heartbeat_age_seconds
        )

        return {
            "target_id": target_id,
            "status": status_row.status,
            "run_id": status_row.run_id,
            "cursor": status_row.cursor,
            "pages_processed": status_row.pages_processed,
            "records_processed": status_row.records_processed,
            "records_failed": status_row.records_failed,
            "run_started_at": self._isoformat(status_row.run_started_at),
            "run_finished_at": self._isoformat(status_row.run_finished_at),
            "last_heartbeat": self._isoformat(status_row.last_heartbeat),
            "last_error": status_row.last_error,
            "run_age_seconds": run_age_seconds,
            "heartbeat_age_seconds": heartbeat_age_seconds,
            "is_stale": is_stale,
            "updated_at": self._isoformat(status_row.updated_at),
        }

    def handle(self, *args, **options) -> None:
        _ = args
        try:
            app_settings = AppSettings.from_environment()
        except ConfigurationError as error:
            raise CommandError(str(error)) from error
        target_id = options.get("target") or app_settings.sync.target
        stale_threshold_seconds = max(0, int(options["stale_threshold_seconds"]))
        fail_on_stale = bool(options["fail_on_stale"])

        payload = self._build_payload(target_id, stale_threshold_seconds)
        payload["checkpoint"] = self._checkpoint_payload(app_settings, target_id)
        self.stdout.write(json.dumps(payload, sort_keys=True, separators=(",", ":")))

        if fail_on_stale and payload.get("is_stale"):
            raise SystemExit(2)
