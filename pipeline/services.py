"""
pipeline/services.py

Reconciliation between candidate status pointers and the timeline.

The timeline is the source of truth: a pointer is a projection of the latest
status_change event for its pipeline. These services detect where the two
disagree and rebuild a pointer from the log.

Public services:
  find_pointer_drift(organization)                  → [PointerDrift]
  find_broken_chains(candidate, pipeline=None)      → [BrokenLink]
  rebuild_status_pointer(candidate, pipeline, actor) → StatusPointer
"""

import logging
from dataclasses import dataclass

from django.db import transaction
from django.db.models import OuterRef, Subquery

from candidates.models import Candidate
from candidates.services import (
    POINTER_FIELDS,
    get_candidate,
    read_pointer,
    update_status_pointer,
)
from statuses.models import StatusDefinition
from talentflow.errors import NotFound
from timeline.models import TimelineEvent
from timeline.services import latest_status_event

logger = logging.getLogger(__name__)

Pipeline = StatusDefinition.Pipeline


@dataclass(frozen=True)
class PointerDrift:
    candidate_id: int
    pipeline: str
    pointer: tuple[int | None, int | None]
    expected: tuple[int | None, int | None]
    event_id: int | None


@dataclass(frozen=True)
class BrokenLink:
    """Two consecutive status events whose states do not chain."""

    pipeline: str
    previous_event_id: int
    event_id: int
    expected: tuple[int | None, int | None]
    found: tuple[int | None, int | None]


def _state_ids(state: dict | None) -> tuple[int | None, int | None]:
    if not state:
        return (None, None)
    return (state.get("main_status_id"), state.get("sub_status_id"))


# ── Detection ──────────────────────────────────────────────────────────────────

def find_pointer_drift(organization) -> list[PointerDrift]:
    """
    Candidates whose pointer differs from the new_state of their latest
    status_change event, for both pipelines. A candidate with neither a
    pointer nor events is consistent.
    """
    drift = []
    for pipeline, (main_field, sub_field) in POINTER_FIELDS.items():
        latest_event = (
            TimelineEvent.objects
            .filter(
                candidate=OuterRef("pk"),
                event_type=TimelineEvent.EventType.STATUS_CHANGE,
                pipeline=pipeline,
            )
            .order_by("-created_at", "-id")
            .values("id")[:1]
        )
        rows = list(
            Candidate.objects
            .filter(organization=organization)
            .annotate(_latest_event_id=Subquery(latest_event))
            .values("pk", f"{main_field}_id", f"{sub_field}_id", "_latest_event_id")
        )
        event_ids = [r["_latest_event_id"] for r in rows if r["_latest_event_id"]]
        states = dict(
            TimelineEvent.objects.filter(pk__in=event_ids).values_list("pk", "new_state")
        )

        for row in rows:
            pointer = (row[f"{main_field}_id"], row[f"{sub_field}_id"])
            event_id = row["_latest_event_id"]
            expected = _state_ids(states.get(event_id))
            if pointer != expected:
                drift.append(PointerDrift(
                    candidate_id=row["pk"],
                    pipeline=pipeline,
                    pointer=pointer,
                    expected=expected,
                    event_id=event_id,
                ))

    if drift:
        logger.warning(
            "Pointer drift detected: org=%s candidates=%s",
            organization.pk, sorted({d.candidate_id for d in drift}),
        )
    return drift


def find_broken_chains(candidate, pipeline: str | None = None) -> list[BrokenLink]:
    """
    Consecutive status_change events where previous_state does not match the
    prior event's new_state. Interleaved concurrent writers leave this shape.
    """
    qs = TimelineEvent.objects.filter(
        candidate=candidate,
        event_type=TimelineEvent.EventType.STATUS_CHANGE,
    )
    if pipeline:
        qs = qs.filter(pipeline=pipeline)

    last_by_pipeline: dict[str, TimelineEvent] = {}
    broken = []
    for event in qs.order_by("created_at", "id"):
        prior = last_by_pipeline.get(event.pipeline)
        if prior is not None:
            expected = _state_ids(prior.new_state)
            found = _state_ids(event.previous_state)
            if expected != found:
                broken.append(BrokenLink(
                    pipeline=event.pipeline,
                    previous_event_id=prior.pk,
                    event_id=event.pk,
                    expected=expected,
                    found=found,
                ))
        last_by_pipeline[event.pipeline] = event
    return broken


# ── Repair ─────────────────────────────────────────────────────────────────────

def rebuild_status_pointer(candidate, pipeline: str = Pipeline.RECRUITMENT, actor=None):
    """
    Re-derive the candidate's pointer for one pipeline from its latest
    status_change event. Clears the pointer when there are no events.

    Raises NotFound if the event references statuses that no longer exist.
    """
    organization = candidate.organization

    with transaction.atomic():
        locked = get_candidate(candidate.pk, organization=organization, for_update=True)
        before = read_pointer(locked, pipeline)
        event = latest_status_event(locked, pipeline)
        main_id, sub_id = _state_ids(event.new_state if event else None)

        label = ""
        if sub_id is not None:
            statuses = {
                s.pk: s for s in StatusDefinition.objects.filter(
                    organization=organization, pk__in=[main_id, sub_id]
                )
            }
            if main_id not in statuses or sub_id not in statuses:
                raise NotFound(
                    f"Timeline event {event.pk} references statuses that no longer exist."
                )
            label = statuses[main_id].name

        pointer = update_status_pointer(
            locked.pk,
            organization=organization,
            main_status_id=main_id,
            sub_status_id=sub_id,
            status_label=label,
            actor=actor,
            pipeline=pipeline,
        )

    if (before.main_status_id, before.sub_status_id) != (main_id, sub_id):
        logger.warning(
            "Rebuilt %s pointer for candidate=%s: %s → %s (event=%s)",
            pipeline, candidate.pk,
            (before.main_status_id, before.sub_status_id), (main_id, sub_id),
            event.pk if event else None,
        )
    return pointer
