"""
pipeline/transitions.py

TransitionExecutor — the only code path that moves a candidate between
statuses.

Public API:
  prepare_transition(candidate_id, new_sub_status_id, organization=...) → TransitionPlan
  apply_transition(candidate_id, new_sub_status_id, actor, organization=...) → TransitionResult
  reschedule_interview(candidate_id, reschedule_status_id, actor, organization=...) → TransitionResult

apply_transition updates the candidate's pointer and appends the timeline
event inside one transaction: either both are written or neither is. Domain
and store failures come back as TransitionResult values, never as exceptions.
"""

import logging
from dataclasses import dataclass

from django.db import DatabaseError, transaction

from candidates.services import get_candidate, read_pointer, update_status_pointer
from pipeline.interactions import build_event_data, required_fields
from statuses.bgv import allowed_bgv_targets
from statuses.catalog import StatusCatalog
from statuses.classifier import (
    InteractionType,
    get_interview_round_name,
    get_round_name_from_result,
)
from statuses.models import StatusDefinition, StatusTransitionRule
from talentflow.errors import (
    ErrorCode,
    InvalidStatus,
    NotFound,
    PartialWriteFailure,
    TerminalStateViolation,
    TransitionError,
    TransitionNotAllowed,
)
from timeline.models import TimelineEvent
from timeline.services import append_status_change, increment_status_count, status_snapshot

logger = logging.getLogger(__name__)

Pipeline = StatusDefinition.Pipeline


@dataclass(frozen=True)
class TransitionPlan:
    """What a caller must collect before applying a transition."""

    current: StatusDefinition | None
    target: StatusDefinition
    interaction: InteractionType
    required_fields: tuple[str, ...]
    round_name: str | None
    is_terminal: bool

    @property
    def requires_interaction(self) -> bool:
        return bool(self.required_fields)


@dataclass(frozen=True)
class TransitionResult:
    ok: bool
    code: ErrorCode | None = None
    message: str = ""
    event: TimelineEvent | None = None
    interaction: InteractionType = InteractionType.NONE
    retryable: bool = False

    @classmethod
    def succeeded(cls, event: TimelineEvent, interaction: InteractionType) -> "TransitionResult":
        return cls(ok=True, message=event.event_description, event=event, interaction=interaction)

    @classmethod
    def failed(cls, error: TransitionError) -> "TransitionResult":
        return cls(ok=False, code=error.code, message=error.message, retryable=error.retryable)


# ── Resolution & rules ─────────────────────────────────────────────────────────

def _resolve_target(catalog: StatusCatalog, status_id) -> tuple[StatusDefinition, StatusDefinition]:
    target = catalog.get_by_id(status_id)
    if target is None:
        raise NotFound(f"Status {status_id!r} does not exist.")
    if not target.is_sub:
        raise InvalidStatus(f'"{target.name}" is a main status; candidates move between sub statuses.')
    main = catalog.parent_of(target)
    if main is None:
        raise NotFound(f'Main status of "{target.name}" does not exist.')
    return target, main


def _resolve_current(catalog: StatusCatalog, pointer) -> tuple[StatusDefinition | None, StatusDefinition | None]:
    if pointer.is_empty:
        return None, None
    current = catalog.get_by_id(pointer.sub_status_id)
    if current is None:
        raise NotFound(f"Current status {pointer.sub_status_id!r} does not exist.")
    current_main = catalog.get_by_id(pointer.main_status_id) or catalog.parent_of(current)
    return current_main, current


def _round_name(interaction: InteractionType, status_name: str) -> str | None:
    if interaction in (InteractionType.INTERVIEW_SCHEDULE, InteractionType.RESCHEDULE):
        return get_interview_round_name(status_name)
    if interaction == InteractionType.INTERVIEW_FEEDBACK:
        return get_round_name_from_result(status_name)
    return None


def _required_fields(interaction: InteractionType, round_name: str | None) -> tuple[str, ...]:
    # Feedback is only collected for a named round; "Offer Rejected" is a bare update
    if interaction == InteractionType.INTERVIEW_FEEDBACK and round_name is None:
        return ()
    return required_fields(interaction)


def _is_allowed_by_rules(organization, catalog, current_main, current, target) -> bool:
    if target.pipeline == Pipeline.BGV:
        tree = catalog.tree(Pipeline.BGV)
        allowed = allowed_bgv_targets(tree, current_main, current)
        return any(s.pk == target.pk for s in allowed)
    if current is None:
        return True
    return StatusTransitionRule.objects.filter(
        organization=organization,
        from_status=current,
        to_status=target,
    ).exists()


def _check_transition_allowed(organization, catalog, current_main, current, target) -> None:
    if current is not None and current.pk == target.pk:
        return

    if (
        current is not None
        and catalog.is_terminal(current)
        and organization.enforces_terminal_statuses
    ):
        raise TerminalStateViolation(
            f'"{current.name}" is a terminal status; no further transitions are allowed.'
        )

    if organization.enforces_transition_rules and not _is_allowed_by_rules(
        organization, catalog, current_main, current, target
    ):
        source = f'"{current.name}"' if current else "no status"
        raise TransitionNotAllowed(f'Moving from {source} to "{target.name}" is not allowed.')


# ── Public API ─────────────────────────────────────────────────────────────────

def prepare_transition(
    candidate_id,
    new_sub_status_id,
    *,
    organization,
    catalog: StatusCatalog | None = None,
) -> TransitionPlan:
    """
    Classify a requested transition without writing anything.

    Raises NotFound / InvalidStatus for unknown candidates or statuses.
    """
    catalog = catalog or StatusCatalog.load(organization)
    target, _ = _resolve_target(catalog, new_sub_status_id)
    candidate = get_candidate(candidate_id, organization=organization)
    _, current = _resolve_current(catalog, read_pointer(candidate, target.pipeline))

    interaction = catalog.interaction_for(target)
    round_name = _round_name(interaction, target.name)
    return TransitionPlan(
        current=current,
        target=target,
        interaction=interaction,
        required_fields=_required_fields(interaction, round_name),
        round_name=round_name,
        is_terminal=catalog.is_terminal(target),
    )


def _apply_transition(
    candidate_id,
    new_sub_status_id,
    actor,
    *,
    organization,
    event_data,
    context,
    force,
    catalog,
) -> tuple[TimelineEvent, InteractionType]:
    catalog = catalog or StatusCatalog.load(organization)
    target, target_main = _resolve_target(catalog, new_sub_status_id)
    interaction = catalog.interaction_for(target)

    if event_data is None:
        data = {"interaction": interaction.value}
    else:
        required = _required_fields(interaction, _round_name(interaction, target.name))
        data = build_event_data(interaction, event_data, required=required)
    if context:
        data.update(context)

    with transaction.atomic():
        candidate = get_candidate(candidate_id, organization=organization, for_update=True)
        pointer = read_pointer(candidate, target.pipeline)
        current_main, current = _resolve_current(catalog, pointer)

        if force:
            if current is not None and current.pk != target.pk:
                data["forced"] = True
        else:
            _check_transition_allowed(organization, catalog, current_main, current, target)

        update_status_pointer(
            candidate.pk,
            organization=organization,
            main_status_id=target_main.pk,
            sub_status_id=target.pk,
            status_label=target_main.name,
            actor=actor,
            pipeline=target.pipeline,
            expected_version=pointer.version,
        )
        event = append_status_change(
            organization=organization,
            candidate=candidate,
            pipeline=target.pipeline,
            previous_state=status_snapshot(current_main, current),
            new_state=status_snapshot(target_main, target),
            event_data=data,
            actor=actor,
        )
        increment_status_count(candidate, target_main.pk, target.pk, actor)

    logger.info(
        "Candidate %s (%s): %s [interaction=%s]",
        candidate.pk, target.pipeline, event.event_description, interaction.value,
    )
    return event, interaction


def apply_transition(
    candidate_id,
    new_sub_status_id,
    actor=None,
    *,
    organization,
    event_data: dict | None = None,
    context: dict | None = None,
    force: bool = False,
    catalog: StatusCatalog | None = None,
) -> TransitionResult:
    """
    Move a candidate to new_sub_status_id and record the change on the timeline.

    Steps (one transaction, candidate row locked):
      1. Load the candidate's current pointer for the target's pipeline.
      2. Resolve current and target statuses from the catalog (NotFound if missing).
      3. Derive the new main status from the target's parent.
      4. Reject leaving a terminal status, and moves outside the transition
         table when the organization enforces one (skipped with force=True).
      5. Write the pointer (version checked), append the timeline event and
         bump the status counter.

    event_data is the dialog payload for the target's interaction type and is
    validated when given; context is merged into the event data verbatim.
    Re-applying the current status is allowed and still produces an event.
    """
    try:
        event, interaction = _apply_transition(
            candidate_id,
            new_sub_status_id,
            actor,
            organization=organization,
            event_data=event_data,
            context=context,
            force=force,
            catalog=catalog,
        )
    except TransitionError as exc:
        logger.warning(
            "Transition rejected: candidate=%s target=%s code=%s: %s",
            candidate_id, new_sub_status_id, exc.code.value, exc.message,
        )
        return TransitionResult.failed(exc)
    except DatabaseError as exc:
        logger.exception(
            "Transition write failed: candidate=%s target=%s", candidate_id, new_sub_status_id,
        )
        return TransitionResult.failed(
            PartialWriteFailure("Status change could not be saved; nothing was changed.", original_error=exc)
        )
    return TransitionResult.succeeded(event, interaction)


def reschedule_interview(
    candidate_id,
    reschedule_status_id,
    actor=None,
    *,
    organization,
    event_data: dict | None = None,
    catalog: StatusCatalog | None = None,
) -> TransitionResult:
    """
    Apply a "Reschedule X" request: the candidate lands back on the scheduled
    round status X, and the event records which reschedule status was used.
    """
    catalog = catalog or StatusCatalog.load(organization)
    requested = catalog.get_by_id(reschedule_status_id)
    if requested is None:
        return TransitionResult.failed(NotFound(f"Status {reschedule_status_id!r} does not exist."))
    if catalog.interaction_for(requested) != InteractionType.RESCHEDULE:
        return TransitionResult.failed(
            InvalidStatus(f'"{requested.name}" is not a reschedule status.')
        )

    target = catalog.resolve_reschedule_target(requested)
    if target is None:
        round_name = get_interview_round_name(requested.name)
        return TransitionResult.failed(
            NotFound(f'No "{round_name}" status to return to after "{requested.name}".')
        )

    return apply_transition(
        candidate_id,
        target.pk,
        actor,
        organization=organization,
        event_data=event_data,
        context={
            "rescheduled": True,
            "reschedule_status_id": requested.pk,
            "reschedule_status_name": requested.name,
        },
        catalog=catalog,
    )
