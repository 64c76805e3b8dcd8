"""
timeline/migrations/0002_protect_timeline_history.py

Timeline events block deletion of their candidate and organization.
"""

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("timeline", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="timelineevent",
            name="organization",
            field=models.ForeignKey(
                on_delete=django.db.models.deletion.PROTECT,
                related_name="timeline_events",
                to="organizations.organization",
            ),
        ),
        migrations.AlterField(
            model_name="timelineevent",
            name="candidate",
            field=models.ForeignKey(
                on_delete=django.db.models.deletion.PROTECT,
                related_name="timeline_events",
                to="candidates.candidate",
            ),
        ),
    ]
