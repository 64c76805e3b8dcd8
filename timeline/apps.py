"""
timeline/apps.py

AppConfig for the timeline app.
"""

from django.apps import AppConfig


class TimelineConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "timeline"
    verbose_name = "Candidate Timeline"
