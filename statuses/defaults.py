"""
statuses/defaults.py

Default status catalogs and the idempotent seeding service behind
`python manage.py seed_statuses`.

Each main stage is a dict with its sub statuses as (code, name, color)
tuples; an empty sub color inherits the main color. display_order follows
list position.
"""

import logging

from django.db import transaction

from statuses.models import StatusDefinition

logger = logging.getLogger(__name__)

RED = "#ef4444"
GREEN = "#10b981"

RECRUITMENT_DEFAULTS = [
    {
        "code": "new",
        "name": "New",
        "color": "#3b82f6",
        "subs": [
            ("new_application", "New Application", ""),
        ],
    },
    {
        "code": "processed",
        "name": "Processed",
        "color": "#f59e0b",
        "subs": [
            ("process_internal", "Processed (Internal)", ""),
            ("process_client", "Processed (Client)", ""),
            ("duplicate_internal", "Duplicate (Internal)", ""),
            ("duplicate_client", "Duplicate (Client)", ""),
            ("reject_processed", "Reject", RED),
            ("candidate_dropped", "Candidate Dropped", RED),
        ],
    },
    {
        "code": "interview",
        "name": "Interview",
        "color": "#8b5cf6",
        "subs": [
            ("technical_assessment", "Technical Assessment", ""),
            ("reschedule_technical_assessment", "Reschedule Technical Assessment", ""),
            ("technical_assessment_selected", "Technical Assessment Selected", GREEN),
            ("technical_assessment_rejected", "Technical Assessment Rejected", RED),
            ("l1", "L1", ""),
            ("reschedule_l1", "Reschedule L1", ""),
            ("l1_selected", "L1 Selected", GREEN),
            ("l1_rejected", "L1 Rejected", RED),
            ("l2", "L2", ""),
            ("reschedule_l2", "Reschedule L2", ""),
            ("l2_selected", "L2 Selected", GREEN),
            ("l2_rejected", "L2 Rejected", RED),
            ("l3", "L3", ""),
            ("reschedule_l3", "Reschedule L3", ""),
            ("l3_selected", "L3 Selected", GREEN),
            ("l3_rejected", "L3 Rejected", RED),
            ("end_client_round", "End Client Round", ""),
            ("reschedule_end_client_round", "Reschedule End Client Round", ""),
        ],
    },
    {
        "code": "offered",
        "name": "Offered",
        "color": GREEN,
        "subs": [
            ("offer_issued", "Offer Issued", ""),
            ("on_hold", "On Hold", "#f59e0b"),
            ("offer_declined", "Offer Declined", RED),
        ],
    },
    {
        "code": "joined",
        "name": "Joined",
        "color": "#6366f1",
        "subs": [
            ("joined_status", "Joined", ""),
            ("no_show", "No Show", RED),
        ],
    },
]

BGV_DEFAULTS = [
    {
        "code": "initiated",
        "name": "Initiated",
        "color": "#64748b",
        "subs": [
            ("verification_initiated", "Verification Initiated", ""),
            ("documents_requested", "Documents Requested", ""),
        ],
    },
    {
        "code": "in_progress",
        "name": "In Progress",
        "color": "#3b82f6",
        "subs": [
            ("verification_started", "Verification Started", ""),
            ("address_verification", "Address Verification", ""),
            ("education_verification", "Education Verification", ""),
            ("employment_verification", "Employment Verification", ""),
            ("criminal_record_verification", "Criminal Record Verification", ""),
            ("reference_check", "Reference Check", ""),
        ],
    },
    {
        "code": "on_hold",
        "name": "On Hold",
        "color": "#f59e0b",
        "subs": [
            ("awaiting_documents", "Awaiting Documents", ""),
            ("candidate_unreachable", "Candidate Unreachable", ""),
        ],
    },
    {
        "code": "completed",
        "name": "Completed",
        "color": GREEN,
        "subs": [
            ("all_checks_clear", "All Checks Clear", ""),
            ("minor_discrepancy", "Minor Discrepancy", "#f59e0b"),
            ("major_discrepancy", "Major Discrepancy", RED),
        ],
    },
    {
        "code": "closed",
        "name": "Closed",
        "color": "#6b7280",
        "subs": [
            ("verification_not_required", "Verification Not Required", ""),
            ("candidate_withdrawn", "Candidate Withdrawn", ""),
        ],
    },
]

DEFAULT_CATALOGS = {
    StatusDefinition.Pipeline.RECRUITMENT: RECRUITMENT_DEFAULTS,
    StatusDefinition.Pipeline.BGV: BGV_DEFAULTS,
}


def _upsert(organization, pipeline, code, *, force: bool, **fields) -> tuple[StatusDefinition, str]:
    lookup = {"organization": organization, "pipeline": pipeline, "code": code}
    if force:
        status, created = StatusDefinition.objects.update_or_create(**lookup, defaults=fields)
        return status, "created" if created else "updated"
    status, created = StatusDefinition.objects.get_or_create(**lookup, defaults=fields)
    return status, "created" if created else "skipped"


def seed_default_statuses(organization, pipelines=None, force: bool = False) -> dict[str, int]:
    """
    Create the default catalog(s) for an organization. Safe to run repeatedly:
    rows are keyed on (organization, pipeline, code) and existing rows are left
    alone unless force=True, which overwrites their name, color and order.

    Returns {"created": n, "updated": n, "skipped": n}.
    """
    pipelines = pipelines or list(DEFAULT_CATALOGS)
    summary = {"created": 0, "updated": 0, "skipped": 0}

    with transaction.atomic():
        for pipeline in pipelines:
            for main_order, main_def in enumerate(DEFAULT_CATALOGS[pipeline], start=1):
                main, outcome = _upsert(
                    organization,
                    pipeline,
                    main_def["code"],
                    force=force,
                    name=main_def["name"],
                    type=StatusDefinition.Type.MAIN,
                    parent=None,
                    color=main_def["color"],
                    display_order=main_order,
                )
                summary[outcome] += 1

                for sub_order, (code, name, color) in enumerate(main_def["subs"], start=1):
                    _, outcome = _upsert(
                        organization,
                        pipeline,
                        code,
                        force=force,
                        name=name,
                        type=StatusDefinition.Type.SUB,
                        parent=main,
                        color=color,
                        display_order=sub_order,
                    )
                    summary[outcome] += 1

    logger.info(
        "Seeded default statuses org=%s pipelines=%s %s",
        organization.pk, [str(p) for p in pipelines], summary,
    )
    return summary
