"""
timeline/migrations/0001_initial.py

Initial migration: TimelineEvent and StatusChangeCount tables.
"""

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("organizations", "0001_initial"),
        ("statuses", "0001_initial"),
        ("candidates", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="TimelineEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "event_type",
                    models.CharField(
                        choices=[("status_change", "Status Change"), ("note", "Note")],
                        db_index=True,
                        max_length=20,
                    ),
                ),
                (
                    "pipeline",
                    models.CharField(
                        blank=True,
                        choices=[("recruitment", "Recruitment"), ("bgv", "Background Verification")],
                        default="",
                        max_length=20,
                    ),
                ),
                ("previous_state", models.JSONField(blank=True, null=True)),
                ("new_state", models.JSONField(blank=True, null=True)),
                ("event_data", models.JSONField(blank=True, default=dict)),
                ("event_description", models.TextField(blank=True, default="")),
                ("created_by_name", models.CharField(max_length=150)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="timeline_events",
                        to="organizations.organization",
                    ),
                ),
                (
                    "candidate",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="timeline_events",
                        to="candidates.candidate",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="timeline_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Timeline Event",
                "verbose_name_plural": "Timeline Events",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["candidate", "created_at"], name="timeline_candidate_created"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StatusChangeCount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "candidate",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_change_counts",
                        to="candidates.candidate",
                    ),
                ),
                (
                    "main_status",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to="statuses.statusdefinition",
                    ),
                ),
                (
                    "sub_status",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to="statuses.statusdefinition",
                    ),
                ),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Status Change Count",
                "verbose_name_plural": "Status Change Counts",
                "unique_together": {("candidate", "main_status", "sub_status")},
            },
        ),
    ]
