"""
pipeline/apps.py

AppConfig for the pipeline app (transition executor, no models).
"""

from django.apps import AppConfig


class PipelineConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "pipeline"
    verbose_name = "Candidate Pipeline"
