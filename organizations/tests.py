from django.test import TestCase, override_settings

from organizations.models import Organization, OrganizationSetting
from talentflow.constants import ENFORCE_TERMINAL_STATUSES_KEY, ENFORCE_TRANSITION_RULES_KEY


class OrganizationSettingTests(TestCase):
    def setUp(self):
        self.org = Organization.objects.create(name="Acme", slug="acme")

    def test_get_returns_default_when_missing(self):
        self.assertIsNone(OrganizationSetting.get(self.org, "missing"))
        self.assertEqual(OrganizationSetting.get(self.org, "missing", "x"), "x")

    def test_set_stores_bools_as_text_and_overwrites(self):
        OrganizationSetting.set(self.org, "flag", True)
        self.assertEqual(OrganizationSetting.get(self.org, "flag"), "true")

        OrganizationSetting.set(self.org, "flag", False)
        self.assertEqual(OrganizationSetting.get(self.org, "flag"), "false")
        self.assertEqual(OrganizationSetting.objects.filter(organization=self.org).count(), 1)

    def test_get_int_falls_back_on_garbage(self):
        OrganizationSetting.set(self.org, "limit", "abc")
        self.assertEqual(OrganizationSetting.get_int(self.org, "limit", 7), 7)

        OrganizationSetting.set(self.org, "limit", 12)
        self.assertEqual(OrganizationSetting.get_int(self.org, "limit", 7), 12)

    def test_settings_are_scoped_per_organization(self):
        other = Organization.objects.create(name="Other", slug="other")
        OrganizationSetting.set(self.org, "flag", "yes")

        self.assertTrue(OrganizationSetting.get_bool(self.org, "flag", default=False))
        self.assertFalse(OrganizationSetting.get_bool(other, "flag", default=False))


class PipelineSwitchTests(TestCase):
    def setUp(self):
        self.org = Organization.objects.create(name="Acme", slug="acme")

    @override_settings(PIPELINE_ENFORCE_TERMINAL_STATUSES=True, PIPELINE_ENFORCE_TRANSITION_RULES=False)
    def test_switches_default_to_project_settings(self):
        self.assertTrue(self.org.enforces_terminal_statuses)
        self.assertFalse(self.org.enforces_transition_rules)

    @override_settings(PIPELINE_ENFORCE_TERMINAL_STATUSES=True, PIPELINE_ENFORCE_TRANSITION_RULES=False)
    def test_organization_override_wins(self):
        OrganizationSetting.set(self.org, ENFORCE_TERMINAL_STATUSES_KEY, False)
        OrganizationSetting.set(self.org, ENFORCE_TRANSITION_RULES_KEY, True)

        self.assertFalse(self.org.enforces_terminal_statuses)
        self.assertTrue(self.org.enforces_transition_rules)
