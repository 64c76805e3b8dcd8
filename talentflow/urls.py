"""
talentflow/urls.py

Root URL configuration. The pipeline engine is an in-process library;
only the Django admin is routed.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    # ── Admin ──────────────────────────────────────────────────────────────────
    path("admin/", admin.site.urls),
]
