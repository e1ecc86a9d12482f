from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies: list[tuple[str, str]] = []

    operations = [
        migrations.CreateModel(
            name="Checkpoint",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("target_id", models.CharField(max_length=128, unique=True)),
                ("cursor", models.TextField(null=True)),
                ("run_id", models.CharField(max_length=64)),
                ("committed_at", models.DateTimeField()),
                ("watermark", models.DateTimeField(null=True)),
                ("cycle_started_at", models.DateTimeField(null=True)),
            ],
            options={
                "verbose_name": "Checkpoint",
            },
        ),
        migrations.CreateModel(
            name="SyncedRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("target_id", models.CharField(max_length=128)),
                ("record_id", models.CharField(max_length=255)),
                ("payload", models.JSONField(default=dict)),
                ("content_hash", models.CharField(max_length=64)),
                ("source_updated_at", models.DateTimeField(null=True)),
                ("synced_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.AddConstraint(
            model_name="syncedrecord",
            constraint=models.UniqueConstraint(
                fields=("target_id", "record_id"), name="unique_synced_record"
            ),
        ),
        migrations.CreateModel(
            name="SyncStatus",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("target_id", models.CharField(max_length=128, unique=True)),
                ("run_id", models.CharField(max_length=64, null=True)),
                ("status", models.CharField(default="idle", max_length=20)),
                ("cursor", models.TextField(null=True)),
                ("pages_processed", models.IntegerField(default=0)),
                ("records_processed", models.BigIntegerField(default=0)),
                ("records_failed", models.BigIntegerField(default=0)),
                ("run_started_at", models.DateTimeField(null=True)),
                ("run_finished_at", models.DateTimeField(null=True)),
                ("last_heartbeat", models.DateTimeField(null=True)),
                ("last_error", models.TextField(null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Sync Status",
                "verbose_name_plural": "Sync Status",
            },
        ),
    ]
