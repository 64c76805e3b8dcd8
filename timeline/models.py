from django.conf import settings
from django.db import models
from django.utils import timezone

from statuses.models import StatusDefinition
from talentflow.errors import ImmutableEventError


class TimelineEventQuerySet(models.QuerySet):
    """Bulk writes are refused; rows are only ever inserted."""

    def update(self, **kwargs):
        raise ImmutableEventError("Timeline events cannot be updated.")

    def delete(self):
        raise ImmutableEventError("Timeline events cannot be deleted.")


class TimelineEvent(models.Model):
    """
    Append-only audit record of one candidate event.

    status_change events carry before/after snapshots of the pointer with the
    status names copied in, so history stays readable after a status is
    renamed or deleted. Rows are insert-only: instance and queryset writes
    raise ImmutableEventError, and candidates or organizations with history
    cannot be deleted.
    """

    class EventType(models.TextChoices):
        STATUS_CHANGE = "status_change", "Status Change"
        NOTE = "note", "Note"

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.PROTECT,
        related_name="timeline_events",
    )
    candidate = models.ForeignKey(
        "candidates.Candidate",
        on_delete=models.PROTECT,
        related_name="timeline_events",
    )
    event_type = models.CharField(max_length=20, choices=EventType.choices, db_index=True)
    # Blank for events that are not tied to a pipeline (notes)
    pipeline = models.CharField(
        max_length=20,
        choices=StatusDefinition.Pipeline.choices,
        blank=True,
        default="",
    )

    # {"main_status_id", "sub_status_id", "main_status_name", "sub_status_name"}
    # previous_state is null when the candidate had no status yet.
    previous_state = models.JSONField(null=True, blank=True)
    new_state = models.JSONField(null=True, blank=True)
    event_data = models.JSONField(default=dict, blank=True)
    event_description = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="timeline_events",
    )
    created_by_name = models.CharField(max_length=150)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    objects = TimelineEventQuerySet.as_manager()

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name = "Timeline Event"
        verbose_name_plural = "Timeline Events"
        indexes = [
            models.Index(fields=["candidate", "created_at"], name="timeline_candidate_created"),
        ]

    def __str__(self) -> str:
        return f"Candidate#{self.candidate_id} {self.event_type}: {self.event_description}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableEventError(f"Timeline event {self.pk} is immutable.")
        kwargs.pop("force_update", None)
        kwargs["force_insert"] = True
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableEventError(f"Timeline event {self.pk} cannot be deleted.")


class StatusChangeCount(models.Model):
    """
    How many times a candidate has entered a given (main, sub) status.
    Reporting counter, incremented in the same transaction as the status change.
    """

    candidate = models.ForeignKey(
        "candidates.Candidate",
        on_delete=models.CASCADE,
        related_name="status_change_counts",
    )
    main_status = models.ForeignKey(
        StatusDefinition,
        on_delete=models.CASCADE,
        related_name="+",
    )
    sub_status = models.ForeignKey(
        StatusDefinition,
        on_delete=models.CASCADE,
        related_name="+",
    )
    # First actor who moved the candidate into this status
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Status Change Count"
        verbose_name_plural = "Status Change Counts"
        unique_together = [("candidate", "main_status", "sub_status")]

    def __str__(self) -> str:
        return f"Candidate#{self.candidate_id} {self.sub_status_id}: {self.count}"
