"""
candidates/services.py

CandidateStore — read and write a candidate's status pointers.

Public services:
  get_candidate(candidate_id, organization=..., for_update=False) → Candidate
  read_pointer(candidate, pipeline)                              → StatusPointer
  get_status_pointer(candidate_id, organization=..., pipeline=...) → StatusPointer
  update_status_pointer(candidate_id, organization=..., ...)     → StatusPointer

Every call takes the organization explicitly; a candidate id from another
organization is reported as not found.
"""

import logging
from dataclasses import dataclass

from django.db.models import F
from django.utils import timezone

from candidates.models import Candidate
from statuses.models import StatusDefinition
from talentflow.errors import NotFound, StalePointer

logger = logging.getLogger(__name__)

Pipeline = StatusDefinition.Pipeline

# pipeline → (main pointer field, sub pointer field)
POINTER_FIELDS = {
    Pipeline.RECRUITMENT: ("main_status", "sub_status"),
    Pipeline.BGV: ("bgv_main_status", "bgv_sub_status"),
}


@dataclass(frozen=True)
class StatusPointer:
    main_status_id: int | None
    sub_status_id: int | None
    version: int = 0

    @property
    def is_empty(self) -> bool:
        return self.sub_status_id is None


def get_candidate(candidate_id, *, organization, for_update: bool = False) -> Candidate:
    qs = Candidate.objects.filter(organization=organization)
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=candidate_id)
    except (Candidate.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Candidate {candidate_id!r} does not exist.")


def read_pointer(candidate: Candidate, pipeline: str = Pipeline.RECRUITMENT) -> StatusPointer:
    main_field, sub_field = POINTER_FIELDS[pipeline]
    return StatusPointer(
        main_status_id=getattr(candidate, f"{main_field}_id"),
        sub_status_id=getattr(candidate, f"{sub_field}_id"),
        version=candidate.status_version,
    )


def get_status_pointer(candidate_id, *, organization, pipeline: str = Pipeline.RECRUITMENT) -> StatusPointer:
    return read_pointer(get_candidate(candidate_id, organization=organization), pipeline)


def update_status_pointer(
    candidate_id,
    *,
    organization,
    main_status_id,
    sub_status_id,
    status_label: str | None = None,
    actor=None,
    pipeline: str = Pipeline.RECRUITMENT,
    expected_version: int | None = None,
) -> StatusPointer:
    """
    Point the candidate at (main_status_id, sub_status_id) for one pipeline.

    status_label is only stored for the recruitment pipeline. When
    expected_version is given the write only succeeds if no other writer
    bumped status_version since it was read; otherwise StalePointer is raised.
    """
    main_field, sub_field = POINTER_FIELDS[pipeline]
    updates = {
        f"{main_field}_id": main_status_id,
        f"{sub_field}_id": sub_status_id,
        "updated_by": actor if getattr(actor, "pk", None) else None,
        "updated_at": timezone.now(),
        "status_version": F("status_version") + 1,
    }
    if pipeline == Pipeline.RECRUITMENT and status_label is not None:
        updates["status_label"] = status_label

    qs = Candidate.objects.filter(pk=candidate_id, organization=organization)
    if expected_version is not None:
        qs = qs.filter(status_version=expected_version)

    if qs.update(**updates) == 0:
        if expected_version is not None and Candidate.objects.filter(
            pk=candidate_id, organization=organization
        ).exists():
            logger.warning(
                "Stale status pointer: candidate=%s expected_version=%s",
                candidate_id, expected_version,
            )
            raise StalePointer(
                f"Candidate {candidate_id} was updated concurrently; reload and retry."
            )
        raise NotFound(f"Candidate {candidate_id!r} does not exist.")

    return get_status_pointer(candidate_id, organization=organization, pipeline=pipeline)
