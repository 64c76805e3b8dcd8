"""
statuses/catalog.py

StatusCatalog — read-only, per-organization view of the status hierarchy.

Loaded once per organization scope (one query). Classification of every
sub status is computed at load time and keyed by status id, so transition
handling never depends on re-reading display names:

  interaction_for(status) → InteractionType
  is_terminal(status)     → bool

Pinned values on StatusDefinition (interaction / terminal) take precedence
over the name-derived classification.
"""

import logging

from statuses.bgv import is_terminal_bgv_status
from statuses.classifier import (
    InteractionType,
    get_interview_round_name,
    get_required_interaction_type,
    is_terminal_status,
)
from statuses.models import StatusDefinition
from statuses.tree import MainStatusNode, build_status_tree

logger = logging.getLogger(__name__)

Pipeline = StatusDefinition.Pipeline


def _status_key(value):
    """Accept a StatusDefinition, an int id or a numeric string."""
    value = getattr(value, "pk", value)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class StatusCatalog:
    def __init__(self, organization, statuses):
        self.organization = organization
        self._statuses = sorted(
            statuses,
            key=lambda s: (s.pipeline, s.display_order, s.name, s.pk),
        )
        self._by_id = {s.pk: s for s in self._statuses}
        self._interactions: dict[int, InteractionType] = {}
        self._terminal: dict[int, bool] = {}

        for status in self._statuses:
            if status.is_sub:
                self._interactions[status.pk] = self._classify_interaction(status)
                self._terminal[status.pk] = self._classify_terminal(status)

    @classmethod
    def load(cls, organization, pipeline: str | None = None) -> "StatusCatalog":
        qs = StatusDefinition.objects.filter(organization=organization).select_related("parent")
        if pipeline:
            qs = qs.filter(pipeline=pipeline)
        catalog = cls(organization, list(qs))
        logger.debug(
            "Loaded status catalog org=%s pipeline=%s statuses=%d",
            getattr(organization, "pk", organization), pipeline or "*", len(catalog),
        )
        return catalog

    def __len__(self) -> int:
        return len(self._statuses)

    # ── Classification (load time) ────────────────────────────────────────────

    @staticmethod
    def _classify_interaction(status: StatusDefinition) -> InteractionType:
        if status.interaction:
            return InteractionType(status.interaction)
        return get_required_interaction_type(None, status.name)

    @staticmethod
    def _classify_terminal(status: StatusDefinition) -> bool:
        if status.terminal is not None:
            return status.terminal
        if status.pipeline == Pipeline.BGV:
            return is_terminal_bgv_status(status.code)
        return is_terminal_status(status.name)

    # ── Lookups ───────────────────────────────────────────────────────────────

    def list_statuses(self, pipeline: str | None = None) -> list[StatusDefinition]:
        if pipeline is None:
            return list(self._statuses)
        return [s for s in self._statuses if s.pipeline == pipeline]

    def get_by_id(self, status_id) -> StatusDefinition | None:
        return self._by_id.get(_status_key(status_id))

    def get_by_code(self, code: str, pipeline: str = Pipeline.RECRUITMENT) -> StatusDefinition | None:
        for status in self._statuses:
            if status.pipeline == pipeline and status.code == code:
                return status
        return None

    def get_by_name(self, name: str, pipeline: str = Pipeline.RECRUITMENT) -> StatusDefinition | None:
        """First sub status with this exact name in the pipeline."""
        for status in self._statuses:
            if status.pipeline == pipeline and status.is_sub and status.name == name:
                return status
        return None

    def tree(self, pipeline: str = Pipeline.RECRUITMENT) -> list[MainStatusNode]:
        return build_status_tree(self.list_statuses(pipeline))

    def parent_of(self, status) -> StatusDefinition | None:
        status = self.get_by_id(status)
        if status is None or status.parent_id is None:
            return None
        return self._by_id.get(status.parent_id)

    # ── Classification lookups ────────────────────────────────────────────────

    def interaction_for(self, status) -> InteractionType:
        return self._interactions.get(_status_key(status), InteractionType.NONE)

    def is_terminal(self, status) -> bool:
        return self._terminal.get(_status_key(status), False)

    def interaction_map(self) -> dict[int, InteractionType]:
        return dict(self._interactions)

    def resolve_reschedule_target(self, status) -> StatusDefinition | None:
        """
        For a "Reschedule X" sub status, the sub status named X in the same
        pipeline. None for non-reschedule statuses or when X does not exist.
        """
        status = self.get_by_id(status)
        if status is None or self.interaction_for(status) != InteractionType.RESCHEDULE:
            return None
        round_name = get_interview_round_name(status.name)
        target = self.get_by_name(round_name, pipeline=status.pipeline)
        if target is None or target.pk == status.pk:
            return None
        return target
