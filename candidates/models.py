from django.conf import settings
from django.db import models


class Candidate(models.Model):
    """
    A candidate in an organization's hiring pipeline.

    Holds two status pointers: the recruitment pointer (main_status /
    sub_status) and the background-verification pointer (bgv_main_status /
    bgv_sub_status). A pointer's sub status always belongs to its main status;
    pointers are written only through candidates.services.update_status_pointer,
    called by pipeline.transitions.
    """

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="candidates",
    )

    # Name fields; full_name kept alongside the parsed parts for display
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150, blank=True, default="")
    full_name = models.CharField(max_length=300)

    # Contact
    email = models.CharField(max_length=254, blank=True, default="", db_index=True)
    phone = models.CharField(max_length=50, blank=True, default="")

    # ── Recruitment pointer ───────────────────────────────────────────────────
    main_status = models.ForeignKey(
        "statuses.StatusDefinition",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    sub_status = models.ForeignKey(
        "statuses.StatusDefinition",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    # Mirrors main_status.name so lists can filter without a join
    status_label = models.CharField(max_length=150, blank=True, default="", db_index=True)

    # ── BGV pointer ───────────────────────────────────────────────────────────
    bgv_main_status = models.ForeignKey(
        "statuses.StatusDefinition",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    bgv_sub_status = models.ForeignKey(
        "statuses.StatusDefinition",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )

    # Incremented on every pointer write (optimistic concurrency)
    status_version = models.PositiveIntegerField(default=0)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Candidate"
        verbose_name_plural = "Candidates"

    def __str__(self) -> str:
        return f"{self.full_name} [{self.status_label or 'no status'}]"
