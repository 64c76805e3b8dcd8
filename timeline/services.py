"""
timeline/services.py

TimelineStore — append-only candidate event log.

Public services:
  status_snapshot(main, sub)                  → dict | None
  describe_status_change(previous, new)       → str
  append_event(...)                           → TimelineEvent
  append_status_change(...)                   → TimelineEvent
  add_note(candidate, text, actor=None)       → TimelineEvent
  list_for_candidate(candidate_id, organization=...) → [TimelineEvent] oldest first
  latest_status_event(candidate, pipeline)    → TimelineEvent | None
  increment_status_count(...)                 → None
"""

import logging

from django.core.exceptions import ValidationError
from django.db.models import F
from django.utils import timezone

from talentflow.constants import NOTE_MAX_LENGTH, STATUS_UPDATED_ACTION, SYSTEM_ACTOR_NAME
from timeline.models import StatusChangeCount, TimelineEvent

logger = logging.getLogger(__name__)

EventType = TimelineEvent.EventType


# ── Snapshots & descriptions ───────────────────────────────────────────────────

def actor_display_name(actor) -> str:
    """Full name, then username, then "System" for transitions without a user."""
    if actor is None or not getattr(actor, "pk", None):
        return SYSTEM_ACTOR_NAME
    full_name = actor.get_full_name() if hasattr(actor, "get_full_name") else ""
    return full_name or actor.get_username()


def status_snapshot(main_status, sub_status) -> dict | None:
    """Denormalised copy of a pointer; None when there is no sub status."""
    if sub_status is None:
        return None
    return {
        "main_status_id": main_status.pk if main_status else None,
        "sub_status_id": sub_status.pk,
        "main_status_name": main_status.name if main_status else None,
        "sub_status_name": sub_status.name,
    }


def describe_status_change(previous_state: dict | None, new_state: dict) -> str:
    new_name = new_state["sub_status_name"]
    if not previous_state:
        return f'Status set to "{new_name}".'
    return f'Status changed from "{previous_state["sub_status_name"]}" to "{new_name}".'


# ── Writes ─────────────────────────────────────────────────────────────────────

def append_event(
    *,
    organization,
    candidate,
    event_type: str,
    actor=None,
    pipeline: str = "",
    previous_state: dict | None = None,
    new_state: dict | None = None,
    event_data: dict | None = None,
    event_description: str = "",
) -> TimelineEvent:
    return TimelineEvent.objects.create(
        organization=organization,
        candidate=candidate,
        event_type=event_type,
        pipeline=pipeline,
        previous_state=previous_state,
        new_state=new_state,
        event_data=event_data or {},
        event_description=event_description,
        created_by=actor if getattr(actor, "pk", None) else None,
        created_by_name=actor_display_name(actor),
    )


def append_status_change(
    *,
    organization,
    candidate,
    pipeline: str,
    previous_state: dict | None,
    new_state: dict,
    event_data: dict | None = None,
    actor=None,
) -> TimelineEvent:
    data = {"action": STATUS_UPDATED_ACTION}
    data.update(event_data or {})
    event = append_event(
        organization=organization,
        candidate=candidate,
        event_type=EventType.STATUS_CHANGE,
        actor=actor,
        pipeline=pipeline,
        previous_state=previous_state,
        new_state=new_state,
        event_data=data,
        event_description=describe_status_change(previous_state, new_state),
    )
    logger.debug("Timeline status_change appended: candidate=%s event=%s", candidate.pk, event.pk)
    return event


def add_note(candidate, text: str, actor=None) -> TimelineEvent:
    """Append a free-text note. Notes are immutable like every other event."""
    text = (text or "").strip()
    if not text:
        raise ValidationError("Note text cannot be empty.")
    if len(text) > NOTE_MAX_LENGTH:
        raise ValidationError(f"Note text cannot exceed {NOTE_MAX_LENGTH} characters.")
    return append_event(
        organization=candidate.organization,
        candidate=candidate,
        event_type=EventType.NOTE,
        actor=actor,
        event_data={"text": text},
        event_description="Note added.",
    )


def increment_status_count(candidate, main_status_id, sub_status_id, actor=None) -> None:
    counter, created = StatusChangeCount.objects.get_or_create(
        candidate=candidate,
        main_status_id=main_status_id,
        sub_status_id=sub_status_id,
        defaults={
            "actor": actor if getattr(actor, "pk", None) else None,
            "count": 1,
        },
    )
    if not created:
        StatusChangeCount.objects.filter(pk=counter.pk).update(
            count=F("count") + 1,
            updated_at=timezone.now(),
        )


# ── Reads ──────────────────────────────────────────────────────────────────────

def list_for_candidate(candidate_id, *, organization, event_type: str | None = None) -> list[TimelineEvent]:
    """Candidate events in creation order (oldest first)."""
    qs = TimelineEvent.objects.filter(
        candidate_id=candidate_id,
        organization=organization,
    ).select_related("created_by")
    if event_type:
        qs = qs.filter(event_type=event_type)
    return list(qs.order_by("created_at", "id"))


def latest_status_event(candidate, pipeline: str) -> TimelineEvent | None:
    return (
        TimelineEvent.objects.filter(
            candidate=candidate,
            event_type=EventType.STATUS_CHANGE,
            pipeline=pipeline,
        )
        .order_by("-created_at", "-id")
        .first()
    )
