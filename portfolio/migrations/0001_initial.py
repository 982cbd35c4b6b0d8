# portfolio/migrations/0001_initial.py
from django.db import migrations, models
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="RequestLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("path", models.CharField(max_length=255)),
                ("method", models.CharField(max_length=16)),
                ("payload", models.TextField()),
                ("requester_id", models.CharField(blank=True, max_length=128, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "request_log",
                "ordering": ("created_at", "id"),
                "indexes": [
                    models.Index(fields=["created_at"], name="request_log_created_idx"),
                    models.Index(fields=["requester_id", "created_at"], name="request_log_req_created_idx"),
                ],
            },
        ),
    ]
