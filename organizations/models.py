"""
organizations/models.py

Tenant scope for every status catalog, candidate and timeline query.

Organization        — the tenant; passed explicitly into every catalog/store call.
OrganizationSetting — per-organization key/value store for runtime-tunable
                      pipeline behaviour.
"""

from django.conf import settings
from django.db import models


class Organization(models.Model):
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "Organization"
        verbose_name_plural = "Organizations"

    def __str__(self) -> str:
        return self.name

    # ── Pipeline switches ─────────────────────────────────────────────────────

    @property
    def enforces_terminal_statuses(self) -> bool:
        from talentflow.constants import ENFORCE_TERMINAL_STATUSES_KEY

        return OrganizationSetting.get_bool(
            self,
            ENFORCE_TERMINAL_STATUSES_KEY,
            default=settings.PIPELINE_ENFORCE_TERMINAL_STATUSES,
        )

    @property
    def enforces_transition_rules(self) -> bool:
        from talentflow.constants import ENFORCE_TRANSITION_RULES_KEY

        return OrganizationSetting.get_bool(
            self,
            ENFORCE_TRANSITION_RULES_KEY,
            default=settings.PIPELINE_ENFORCE_TRANSITION_RULES,
        )


class OrganizationSetting(models.Model):
    """
    Key/value store for runtime-configurable settings, scoped per organization.

    Known keys (talentflow/constants.py):
      enforce_terminal_statuses  — "true" / "false"
      enforce_transition_rules   — "true" / "false"
    """

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="settings",
    )
    key = models.CharField(max_length=100)
    value = models.TextField()
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Organization Setting"
        verbose_name_plural = "Organization Settings"
        unique_together = [("organization", "key")]

    def __str__(self):
        return f"{self.organization_id}:{self.key} = {self.value}"

    # ── Convenience helpers ───────────────────────────────────────────────────

    @classmethod
    def get(cls, organization, key: str, default=None) -> str | None:
        try:
            return cls.objects.get(organization=organization, key=key).value
        except cls.DoesNotExist:
            return default

    @classmethod
    def set(cls, organization, key: str, value) -> None:
        if isinstance(value, bool):
            value = "true" if value else "false"
        cls.objects.update_or_create(
            organization=organization, key=key, defaults={"value": str(value)}
        )

    @classmethod
    def get_bool(cls, organization, key: str, default: bool = True) -> bool:
        val = cls.get(organization, key)
        if val is None:
            return default
        return val.strip().lower() in ("true", "1", "yes")

    @classmethod
    def get_int(cls, organization, key: str, default: int | None = None) -> int | None:
        val = cls.get(organization, key)
        if val is None:
            return default
        try:
            return int(val)
        except (ValueError, TypeError):
            return default
