from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from statuses.classifier import InteractionType


class StatusDefinition(models.Model):
    """
    One node of an organization's two-level status hierarchy.

    Main statuses are pipeline stages ("Interview"); sub statuses are the
    fine-grained states inside a stage ("L1 - Selected") and always point at
    their parent main. Candidates only ever sit on a sub status.

    Read-only from the engine's point of view: administrators edit the
    catalog, StatusCatalog loads it.
    """

    class Pipeline(models.TextChoices):
        RECRUITMENT = "recruitment", "Recruitment"
        BGV = "bgv", "Background Verification"

    class Type(models.TextChoices):
        MAIN = "main", "Main"
        SUB = "sub", "Sub"

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="statuses",
    )
    pipeline = models.CharField(
        max_length=20,
        choices=Pipeline.choices,
        default=Pipeline.RECRUITMENT,
        db_index=True,
    )
    type = models.CharField(max_length=10, choices=Type.choices)
    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="sub_statuses",
    )

    # Stable identifier used by closed code sets (e.g. BGV terminal statuses)
    # and by the seed command; survives renames of the display name.
    code = models.SlugField(max_length=100)
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True, default="")
    display_order = models.PositiveIntegerField(default=0)
    color = models.CharField(max_length=20, blank=True, default="")

    # Pinned classification. Blank / null means "derive from name".
    interaction = models.CharField(
        max_length=30,
        choices=InteractionType.choices,
        blank=True,
        default="",
    )
    terminal = models.BooleanField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["pipeline", "display_order", "name"]
        verbose_name = "Status Definition"
        verbose_name_plural = "Status Definitions"
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "pipeline", "code"],
                name="unique_status_code_per_pipeline",
            ),
            models.UniqueConstraint(
                fields=["organization", "pipeline", "type", "parent", "name"],
                name="unique_status_name_per_parent",
            ),
            # NULL parents never collide in the constraint above.
            models.UniqueConstraint(
                fields=["organization", "pipeline", "name"],
                condition=Q(type="main"),
                name="unique_main_status_name",
            ),
        ]

    def __str__(self) -> str:
        if self.type == self.Type.SUB and self.parent_id:
            return f"{self.parent.name} / {self.name}"
        return self.name

    @property
    def is_main(self) -> bool:
        return self.type == self.Type.MAIN

    @property
    def is_sub(self) -> bool:
        return self.type == self.Type.SUB

    @property
    def effective_color(self) -> str:
        """Own color, otherwise the parent main's color."""
        if self.color:
            return self.color
        if self.parent_id:
            return self.parent.color
        return ""

    def clean(self):
        super().clean()
        if self.type == self.Type.MAIN:
            if self.parent_id:
                raise ValidationError({"parent": "A main status cannot have a parent."})
            return

        if not self.parent_id:
            raise ValidationError({"parent": "A sub status must reference a main status."})
        parent = self.parent
        if parent.type != self.Type.MAIN:
            raise ValidationError({"parent": "A sub status's parent must be a main status."})
        if parent.organization_id != self.organization_id or parent.pipeline != self.pipeline:
            raise ValidationError(
                {"parent": "Parent status belongs to a different organization or pipeline."}
            )


class StatusTransitionRule(models.Model):
    """
    Optional explicit transition table entry: from_status → to_status is legal.

    Only consulted when the organization enables enforce_transition_rules;
    otherwise any sub status may move to any other.
    """

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="transition_rules",
    )
    from_status = models.ForeignKey(
        StatusDefinition,
        on_delete=models.CASCADE,
        related_name="outgoing_rules",
    )
    to_status = models.ForeignKey(
        StatusDefinition,
        on_delete=models.CASCADE,
        related_name="incoming_rules",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Status Transition Rule"
        verbose_name_plural = "Status Transition Rules"
        unique_together = [("from_status", "to_status")]

    def __str__(self) -> str:
        return f"{self.from_status.name} → {self.to_status.name}"

    def clean(self):
        super().clean()
        for status in (self.from_status, self.to_status):
            if status.type != StatusDefinition.Type.SUB:
                raise ValidationError("Transition rules connect sub statuses only.")
            if status.organization_id != self.organization_id:
                raise ValidationError("Transition rule statuses must belong to the rule's organization.")
        if self.from_status.pipeline != self.to_status.pipeline:
            raise ValidationError("Transition rules cannot cross pipelines.")
