"""
pipeline/interactions.py

Contract between the transition classifier and the dialog that collects
extra data before a status change.

The dialog field set is closed (InteractionField); each InteractionType
requires a fixed subset of it. The collected payload is validated and
normalised here and stored as TimelineEvent.event_data.
"""

from datetime import date, datetime

from django.db import models
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from statuses.classifier import InteractionType
from talentflow.errors import InvalidInteractionData


class InteractionField(models.TextChoices):
    DATE = "date", "Date"
    DATETIME = "datetime", "Date & Time"
    REASON = "reason", "Reason"
    FEEDBACK = "feedback", "Feedback"
    BILLING_REASON = "billing_reason", "Billing Reason"

REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    InteractionType.INTERVIEW_SCHEDULE: (InteractionField.DATETIME,),
    InteractionType.RESCHEDULE: (InteractionField.DATETIME,),
    InteractionType.INTERVIEW_FEEDBACK: (InteractionField.FEEDBACK,),
    InteractionType.JOINING: (InteractionField.DATE,),
    InteractionType.REJECT: (InteractionField.REASON,),
    InteractionType.ACTUAL_CTC: (InteractionField.DATE, InteractionField.BILLING_REASON),
    InteractionType.NONE: (),
}


def required_fields(interaction) -> tuple[str, ...]:
    return REQUIRED_FIELDS[InteractionType(interaction)]


# ── Normalisation ──────────────────────────────────────────────────────────────

def _normalise_date(value) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    parsed = parse_date(value) if isinstance(value, str) else None
    if parsed is None:
        raise InvalidInteractionData(f"'date' must be an ISO date (YYYY-MM-DD), got {value!r}.")
    return parsed.isoformat()


def _normalise_datetime(value) -> str:
    parsed = value if isinstance(value, datetime) else None
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value.strip())
        except ValueError:
            parsed = None
    if parsed is None:
        raise InvalidInteractionData(f"'datetime' must be an ISO datetime, got {value!r}.")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed.isoformat()


def _normalise_text(name: str, value) -> str:
    if not isinstance(value, str):
        raise InvalidInteractionData(f"'{name}' must be text.")
    return value.strip()


def _normalise(name: str, value):
    if name == InteractionField.DATE:
        return _normalise_date(value)
    if name == InteractionField.DATETIME:
        return _normalise_datetime(value)
    return _normalise_text(name, value)


def build_event_data(interaction, payload: dict | None, required: tuple[str, ...] | None = None) -> dict:
    """
    Validate the dialog payload for an interaction and return the event data.

    Unknown fields and missing/blank required fields raise
    InvalidInteractionData. Optional fields from the closed set are kept.
    required overrides the interaction's default required fields.
    """
    interaction = InteractionType(interaction)
    payload = dict(payload or {})

    unknown = sorted(map(str, set(payload) - set(InteractionField.values)))
    if unknown:
        raise InvalidInteractionData(f"Unexpected fields: {', '.join(unknown)}.")

    data = {"interaction": interaction.value}
    for name, value in payload.items():
        if value is None or value == "":
            continue
        data[name] = _normalise(name, value)

    if required is None:
        required = REQUIRED_FIELDS[interaction]
    missing = [name for name in required if not data.get(name)]
    if missing:
        raise InvalidInteractionData(
            f"Missing required fields for {interaction.value}: {', '.join(missing)}."
        )
    return data
