from django.db import models


class SyncStatus(models.Model):
    target_id = models.CharField(max_length=128, unique=True)
    run_id = models.CharField(max_length=64, null=True)
    status = models.CharField(max_length=20, default="idle")
    cursor = models.TextField(null=True)
    pages_processed = models.IntegerField(default=0)
    records_processed = models.BigIntegerField(default=0)
    records_failed = models.BigIntegerField(default=0)
    run_started_at = models.DateTimeField(null=True)
    run_finished_at = models.DateTimeField(null=True)
    last_heartbeat = models.DateTimeField(null=True)
    last_error = models.TextField(null=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Sync Status"
        verbose_name_plural = "Sync Status"
