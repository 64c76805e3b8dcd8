"""
scheduler/jobs.py

Background job definitions for the candidate pipeline.
Registered and started by: scheduler/management/commands/run_scheduler.py

  audit_status_pointers   every TIMELINE_AUDIT_MINUTES (default 60)

Each function is decorated with @close_old_connections from django-apscheduler so
that Django DB connections opened in APScheduler's worker threads are always
returned to the pool (or closed) after each run.
"""

import logging

from django_apscheduler.util import close_old_connections

from candidates.models import Candidate
from organizations.models import Organization
from pipeline.services import find_broken_chains, find_pointer_drift

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Job: audit_status_pointers
# ─────────────────────────────────────────────────────────────────────────────

@close_old_connections
def audit_status_pointers() -> dict[str, int]:
    """
    Compare every candidate's status pointers with the timeline, per organization.

    Reports (never repairs):
      - pointer drift: pointer differs from the latest status_change event
      - broken chains: consecutive events whose states do not link up

    Repair is manual via pipeline.services.rebuild_status_pointer.
    Returns the run totals.
    """
    totals = {"organizations": 0, "drift": 0, "broken_links": 0}

    for organization in Organization.objects.all():
        totals["organizations"] += 1
        drift = find_pointer_drift(organization)
        totals["drift"] += len(drift)

        for candidate in Candidate.objects.filter(organization=organization).only("pk"):
            links = find_broken_chains(candidate)
            if links:
                logger.warning(
                    "audit_status_pointers: candidate=%s has %s broken timeline link(s): events %s",
                    candidate.pk,
                    len(links),
                    [link.event_id for link in links],
                )
            totals["broken_links"] += len(links)

    if totals["drift"] or totals["broken_links"]:
        logger.warning("audit_status_pointers: %s", totals)
    else:
        logger.info("audit_status_pointers: %s organization(s) consistent", totals["organizations"])
    return totals
