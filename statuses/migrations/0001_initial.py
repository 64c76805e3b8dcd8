"""
statuses/migrations/0001_initial.py

Initial migration: StatusDefinition and StatusTransitionRule tables.
"""

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("organizations", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="StatusDefinition",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "pipeline",
                    models.CharField(
                        choices=[("recruitment", "Recruitment"), ("bgv", "Background Verification")],
                        db_index=True,
                        default="recruitment",
                        max_length=20,
                    ),
                ),
                ("type", models.CharField(choices=[("main", "Main"), ("sub", "Sub")], max_length=10)),
                ("code", models.SlugField(max_length=100)),
                ("name", models.CharField(max_length=150)),
                ("description", models.TextField(blank=True, default="")),
                ("display_order", models.PositiveIntegerField(default=0)),
                ("color", models.CharField(blank=True, default="", max_length=20)),
                (
                    "interaction",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("interview-schedule", "Interview Schedule"),
                            ("interview-feedback", "Interview Feedback"),
                            ("reschedule", "Reschedule"),
                            ("joining", "Joining"),
                            ("reject", "Reject"),
                            ("actual-ctc", "Actual CTC"),
                            ("none", "None"),
                        ],
                        default="",
                        max_length=30,
                    ),
                ),
                ("terminal", models.BooleanField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="statuses",
                        to="organizations.organization",
                    ),
                ),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sub_statuses",
                        to="statuses.statusdefinition",
                    ),
                ),
            ],
            options={
                "verbose_name": "Status Definition",
                "verbose_name_plural": "Status Definitions",
                "ordering": ["pipeline", "display_order", "name"],
            },
        ),
        migrations.CreateModel(
            name="StatusTransitionRule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="transition_rules",
                        to="organizations.organization",
                    ),
                ),
                (
                    "from_status",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="outgoing_rules",
                        to="statuses.statusdefinition",
                    ),
                ),
                (
                    "to_status",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="incoming_rules",
                        to="statuses.statusdefinition",
                    ),
                ),
            ],
            options={
                "verbose_name": "Status Transition Rule",
                "verbose_name_plural": "Status Transition Rules",
                "unique_together": {("from_status", "to_status")},
            },
        ),
        migrations.AddConstraint(
            model_name="statusdefinition",
            constraint=models.UniqueConstraint(
                fields=("organization", "pipeline", "code"),
                name="unique_status_code_per_pipeline",
            ),
        ),
        migrations.AddConstraint(
            model_name="statusdefinition",
            constraint=models.UniqueConstraint(
                fields=("organization", "pipeline", "type", "parent", "name"),
                name="unique_status_name_per_parent",
            ),
        ),
        migrations.AddConstraint(
            model_name="statusdefinition",
            constraint=models.UniqueConstraint(
                condition=models.Q(("type", "main")),
                fields=("organization", "pipeline", "name"),
                name="unique_main_status_name",
            ),
        ),
    ]
