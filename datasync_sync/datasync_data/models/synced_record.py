from django.db import models


class SyncedRecord(models.Model):
    target_id = models.CharField(max_length=128)
    record_id = models.CharField(max_length=255)
    payload = models.JSONField(default=dict)
    content_hash = models.CharField(max_length=64)
    source_updated_at = models.DateTimeField(null=True)
    synced_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["target_id", "record_id"], name="unique_synced_record"
            )
        ]
