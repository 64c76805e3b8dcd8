"""
scheduler/management/commands/run_scheduler.py

Django management command that starts the APScheduler background scheduler
with the pipeline audit job.

Usage:
    python manage.py run_scheduler

The command blocks until interrupted (Ctrl+C / SIGTERM). In production, run it
as a long-lived process alongside the web server:

    web:       gunicorn talentflow.wsgi
    scheduler: python manage.py run_scheduler

Jobs are persisted in the database via DjangoJobStore, so execution history is
available in Django admin and restarts pick up existing job definitions.
"""

import time
import logging

from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from django.conf import settings
from django.core.management.base import BaseCommand
from django_apscheduler.jobstores import DjangoJobStore

from scheduler.jobs import audit_status_pointers

logger = logging.getLogger(__name__)


def build_scheduler() -> BackgroundScheduler:
    tz = ZoneInfo(settings.APSCHEDULER_TIMEZONE)

    scheduler = BackgroundScheduler(timezone=tz)
    scheduler.add_jobstore(DjangoJobStore(), "default")

    # replace_existing=True: update the definition on each restart
    # max_instances=1: prevent concurrent runs of the same job
    # coalesce=True: if multiple runs were missed, execute once
    scheduler.add_job(
        audit_status_pointers,
        trigger=IntervalTrigger(minutes=settings.TIMELINE_AUDIT_MINUTES, timezone=tz),
        id="audit_status_pointers",
        name="Audit Status Pointers Against Timeline",
        jobstore="default",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=300,
    )
    return scheduler


class Command(BaseCommand):
    help = (
        "Start the APScheduler background scheduler. "
        "Runs the status pointer / timeline audit. Blocks until interrupted."
    )

    def handle(self, *args, **options):
        scheduler = build_scheduler()

        self.stdout.write(self.style.SUCCESS(
            f"Starting scheduler (timezone={settings.APSCHEDULER_TIMEZONE})"
        ))

        scheduler.start()
        for job in scheduler.get_jobs():
            self.stdout.write(
                f"  • {job.id:<30} next run: {job.next_run_time}"
            )
        self.stdout.write(self.style.SUCCESS(
            "Scheduler running. Press Ctrl+C to stop."
        ))
        logger.info("Scheduler started with %s job(s)", len(scheduler.get_jobs()))

        try:
            while True:
                time.sleep(5)
        except (KeyboardInterrupt, SystemExit):
            self.stdout.write(self.style.WARNING("Shutting down scheduler…"))
            scheduler.shutdown(wait=True)
            self.stdout.write(self.style.SUCCESS("Scheduler stopped."))
