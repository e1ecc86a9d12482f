from django.db import models

from datasync_api.checkpoint import Checkpoint as CheckpointValue


class Checkpoint(models.Model):
    target_id = models.CharField(max_length=128, unique=True)
    cursor = models.TextField(null=True)
    run_id = models.CharField(max_length=64)
    committed_at = models.DateTimeField()
    watermark = models.DateTimeField(null=True)
    cycle_started_at = models.DateTimeField(null=True)

    class Meta:
        verbose_name = "Checkpoint"

    def to_value(self) -> CheckpointValue:
        return CheckpointValue(
            target_id=self.target_id,
            cursor=self.cursor,
            run_id=self.run_id,
            committed_at=self.committed_at,
            watermark=self.watermark,
            cycle_started_at=self.cycle_started_at,
        )
