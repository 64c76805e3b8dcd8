"""
statuses/classifier.py

Pure classification of candidate status transitions.

Public functions (no I/O, never raise):
  requires_special_interaction(old_sub_name, new_sub_name) → bool
  get_required_interaction_type(old_sub_name, new_sub_name) → InteractionType
  get_interview_round_name(status_name)                     → str
  get_round_name_from_result(status_name)                   → str | None
  is_terminal_status(status_name)                           → bool

Classification is keyword based over display names. StatusCatalog applies it
once per status at load time and keys the result by status id, so callers
holding a status id should prefer StatusCatalog.interaction_for().
"""

from django.db import models


class InteractionType(models.TextChoices):
    INTERVIEW_SCHEDULE = "interview-schedule", "Interview Schedule"
    INTERVIEW_FEEDBACK = "interview-feedback", "Interview Feedback"
    RESCHEDULE = "reschedule", "Reschedule"
    JOINING = "joining", "Joining"
    REJECT = "reject", "Reject"
    ACTUAL_CTC = "actual-ctc", "Actual CTC"
    NONE = "none", "None"


# ── Category tables ────────────────────────────────────────────────────────────

RESCHEDULE_PREFIX = "Reschedule "

# Interview rounds, in pipeline order. Also the closed set searched by
# get_round_name_from_result().
ROUND_STAGE_LABELS = (
    "Technical Assessment",
    "L1",
    "L2",
    "L3",
    "End Client Round",
)

INTERVIEW_SCHEDULED_LABELS = frozenset({
    "Interview Scheduled",
    "Client Interview Scheduled",
})

OUTCOME_MARKERS = ("Selected", "Rejected")

JOINING_LABELS = frozenset({"Joined", "Offer Issued", "Offer Made"})

REJECT_MARKER = "Reject"
DROP_OUT_LABEL = "Candidate Dropped"

CLIENT_PROCESSED_LABEL = "Processed (Client)"

TERMINAL_MARKERS = ("Reject", "No Show")
TERMINAL_LABELS = frozenset({"Offer Declined", "Offer Rejected", DROP_OUT_LABEL})

DEFAULT_ROUND_NAME = "Interview"


# ── Helpers ────────────────────────────────────────────────────────────────────

def _is_reschedule(name: str) -> bool:
    return name.startswith(RESCHEDULE_PREFIX)


def _is_scheduling(name: str) -> bool:
    return name in ROUND_STAGE_LABELS or name in INTERVIEW_SCHEDULED_LABELS


def _is_outcome(name: str) -> bool:
    return any(marker in name for marker in OUTCOME_MARKERS)


# ── Public API ─────────────────────────────────────────────────────────────────

def requires_special_interaction(old_sub_name: str | None, new_sub_name: str | None) -> bool:
    """
    True when moving to new_sub_name must collect extra data before the
    status change is applied.

    Matches five categories: scheduling labels, Selected/Rejected outcomes,
    "Reschedule " names, joining/offer labels and the client-processed label.
    old_sub_name is accepted for call-site symmetry and does not affect the result.
    """
    name = new_sub_name or ""
    return (
        _is_scheduling(name)
        or _is_outcome(name)
        or _is_reschedule(name)
        or name in JOINING_LABELS
        or name == CLIENT_PROCESSED_LABEL
    )


def get_required_interaction_type(
    old_sub_name: str | None, new_sub_name: str | None
) -> InteractionType:
    """
    Return the side-interaction required by a move to new_sub_name.

    First match wins:
      1. "Reschedule X"                      → RESCHEDULE
      2. round-stage / interview-scheduled   → INTERVIEW_SCHEDULE
      3. contains "Selected" or "Rejected"   → INTERVIEW_FEEDBACK
      4. Joined / Offer Issued / Offer Made  → JOINING
      5. contains "Reject" or drop-out label → REJECT
      6. client-processed label              → ACTUAL_CTC
      7. anything else                       → NONE
    """
    name = new_sub_name or ""
    if _is_reschedule(name):
        return InteractionType.RESCHEDULE
    if _is_scheduling(name):
        return InteractionType.INTERVIEW_SCHEDULE
    if _is_outcome(name):
        return InteractionType.INTERVIEW_FEEDBACK
    if name in JOINING_LABELS:
        return InteractionType.JOINING
    if REJECT_MARKER in name or name == DROP_OUT_LABEL:
        return InteractionType.REJECT
    if name == CLIENT_PROCESSED_LABEL:
        return InteractionType.ACTUAL_CTC
    return InteractionType.NONE


def get_interview_round_name(status_name: str | None) -> str:
    """
    Canonical round label for a scheduling status or its "Reschedule X" variant.
    Display-only: anything unrecognised maps to "Interview".
    """
    name = status_name or ""
    if _is_reschedule(name):
        name = name[len(RESCHEDULE_PREFIX):]
    if name in ROUND_STAGE_LABELS:
        return name
    return DEFAULT_ROUND_NAME


def get_round_name_from_result(status_name: str | None) -> str | None:
    """
    Extract the round embedded in an outcome name, e.g. "L1 - Selected" → "L1".
    Plain substring containment over ROUND_STAGE_LABELS; None when no round
    name appears.
    """
    name = status_name or ""
    for round_name in ROUND_STAGE_LABELS:
        if round_name in name:
            return round_name
    return None


def is_terminal_status(status_name: str | None) -> bool:
    """True when no further pipeline progression is expected after this status."""
    name = status_name or ""
    if not name:
        return False
    return name in TERMINAL_LABELS or any(marker in name for marker in TERMINAL_MARKERS)
