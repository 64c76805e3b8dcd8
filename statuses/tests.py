from io import StringIO

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from organizations.models import Organization
from statuses.bgv import (
    BGV_STAGE_ORDER,
    VERIFICATION_STEPS,
    allowed_bgv_targets,
    is_terminal_bgv_status,
    load_status_tree,
)
from statuses.catalog import StatusCatalog
from statuses.classifier import (
    InteractionType,
    get_interview_round_name,
    get_required_interaction_type,
    get_round_name_from_result,
    is_terminal_status,
    requires_special_interaction,
)
from statuses.defaults import seed_default_statuses
from statuses.models import StatusDefinition, StatusTransitionRule
from statuses.progress import get_progress_for_status
from statuses.tree import build_status_tree

Pipeline = StatusDefinition.Pipeline


def _make_org(slug="acme") -> Organization:
    return Organization.objects.create(name=slug.title(), slug=slug)


def _make_main(org, name, *, code=None, order=0, pipeline=Pipeline.RECRUITMENT, color="") -> StatusDefinition:
    return StatusDefinition.objects.create(
        organization=org,
        pipeline=pipeline,
        type=StatusDefinition.Type.MAIN,
        code=code or name.lower().replace(" ", "_"),
        name=name,
        display_order=order,
        color=color,
    )


def _make_sub(org, parent, name, *, code=None, order=0, **extra) -> StatusDefinition:
    return StatusDefinition.objects.create(
        organization=org,
        pipeline=parent.pipeline,
        type=StatusDefinition.Type.SUB,
        parent=parent,
        code=code or name.lower().replace(" ", "_").replace("-", "").replace("__", "_"),
        name=name,
        display_order=order,
        **extra,
    )


# ── Classifier ─────────────────────────────────────────────────────────────────

class InteractionTypeTests(TestCase):
    def test_priority_order(self):
        cases = {
            "Reschedule L1": InteractionType.RESCHEDULE,
            "L1": InteractionType.INTERVIEW_SCHEDULE,
            "Technical Assessment": InteractionType.INTERVIEW_SCHEDULE,
            "Client Interview Scheduled": InteractionType.INTERVIEW_SCHEDULE,
            "L1 - Selected": InteractionType.INTERVIEW_FEEDBACK,
            "L2 Rejected": InteractionType.INTERVIEW_FEEDBACK,
            "Joined": InteractionType.JOINING,
            "Offer Issued": InteractionType.JOINING,
            "Offer Made": InteractionType.JOINING,
            "Reject": InteractionType.REJECT,
            "Candidate Dropped": InteractionType.REJECT,
            "Processed (Client)": InteractionType.ACTUAL_CTC,
            "Processed (Internal)": InteractionType.NONE,
            "Screening": InteractionType.NONE,
        }
        for name, expected in cases.items():
            with self.subTest(name=name):
                self.assertEqual(get_required_interaction_type("New Application", name), expected)

    def test_reschedule_prefix_wins_over_every_other_category(self):
        for name in ("Reschedule L2 Selected", "Reschedule Offer Issued", "Reschedule Reject"):
            with self.subTest(name=name):
                self.assertEqual(get_required_interaction_type(None, name), InteractionType.RESCHEDULE)

    def test_old_status_does_not_change_result(self):
        for old in (None, "", "L1", "Joined"):
            self.assertEqual(
                get_required_interaction_type(old, "L1 - Selected"),
                InteractionType.INTERVIEW_FEEDBACK,
            )

    def test_missing_names_degrade_to_none(self):
        self.assertEqual(get_required_interaction_type(None, None), InteractionType.NONE)
        self.assertEqual(get_required_interaction_type(None, ""), InteractionType.NONE)

    def test_requires_special_interaction_covers_five_categories(self):
        for name in ("L3", "Interview Scheduled", "L1 - Selected", "Reschedule L1", "Offer Made", "Processed (Client)"):
            with self.subTest(name=name):
                self.assertTrue(requires_special_interaction(None, name))
        for name in ("Screening", "Reject", "Candidate Dropped", "No Show", None):
            with self.subTest(name=name):
                self.assertFalse(requires_special_interaction("L1", name))


class TerminalAndRoundNameTests(TestCase):
    def test_terminal_names(self):
        for name in ("Offer Declined", "Offer Rejected", "Candidate Dropped", "Reject", "L1 Rejected", "No Show"):
            with self.subTest(name=name):
                self.assertTrue(is_terminal_status(name))
        for name in ("Screening", "Joined", "L1 - Selected", "", None):
            with self.subTest(name=name):
                self.assertFalse(is_terminal_status(name))

    def test_reschedule_and_plain_round_share_a_name(self):
        self.assertEqual(get_interview_round_name("Reschedule L2"), "L2")
        self.assertEqual(get_interview_round_name("L2"), "L2")
        self.assertEqual(get_interview_round_name("Reschedule End Client Round"), "End Client Round")

    def test_unknown_round_defaults_to_interview(self):
        self.assertEqual(get_interview_round_name("Coffee Chat"), "Interview")
        self.assertEqual(get_interview_round_name(None), "Interview")

    def test_round_name_from_result(self):
        self.assertEqual(get_round_name_from_result("L1 - Selected"), "L1")
        self.assertEqual(get_round_name_from_result("Technical Assessment Rejected"), "Technical Assessment")
        self.assertIsNone(get_round_name_from_result("Offer Declined"))
        self.assertIsNone(get_round_name_from_result(None))


# ── Models ─────────────────────────────────────────────────────────────────────

class StatusDefinitionModelTests(TestCase):
    def setUp(self):
        self.org = _make_org()
        self.main = _make_main(self.org, "Interviews", color="#8b5cf6")

    def test_sub_without_parent_is_invalid(self):
        sub = StatusDefinition(
            organization=self.org, type=StatusDefinition.Type.SUB, code="l1", name="L1",
        )
        with self.assertRaises(ValidationError):
            sub.clean()

    def test_sub_parent_must_be_main(self):
        l1 = _make_sub(self.org, self.main, "L1")
        nested = StatusDefinition(
            organization=self.org, type=StatusDefinition.Type.SUB, parent=l1, code="x", name="X",
        )
        with self.assertRaises(ValidationError):
            nested.clean()

    def test_sub_parent_must_share_pipeline(self):
        bgv_main = _make_main(self.org, "Initiated", pipeline=Pipeline.BGV)
        sub = StatusDefinition(
            organization=self.org,
            pipeline=Pipeline.RECRUITMENT,
            type=StatusDefinition.Type.SUB,
            parent=bgv_main,
            code="x",
            name="X",
        )
        with self.assertRaises(ValidationError):
            sub.clean()

    def test_main_cannot_have_parent(self):
        other = StatusDefinition(
            organization=self.org, type=StatusDefinition.Type.MAIN, parent=self.main, code="m", name="M",
        )
        with self.assertRaises(ValidationError):
            other.clean()

    def test_sub_inherits_main_color(self):
        inherited = _make_sub(self.org, self.main, "L1")
        own = _make_sub(self.org, self.main, "L1 - Rejected", color="#ef4444")

        self.assertEqual(inherited.effective_color, "#8b5cf6")
        self.assertEqual(own.effective_color, "#ef4444")

    def test_transition_rule_rejects_main_statuses(self):
        l1 = _make_sub(self.org, self.main, "L1")
        rule = StatusTransitionRule(organization=self.org, from_status=self.main, to_status=l1)
        with self.assertRaises(ValidationError):
            rule.clean()


# ── Catalog ────────────────────────────────────────────────────────────────────

class StatusCatalogTests(TestCase):
    def setUp(self):
        self.org = _make_org()
        self.main = _make_main(self.org, "Interviews", order=1)
        self.l1 = _make_sub(self.org, self.main, "L1", code="l1", order=1)
        self.selected = _make_sub(self.org, self.main, "L1 - Selected", code="l1_selected", order=2)
        self.rejected = _make_sub(self.org, self.main, "L1 - Rejected", code="l1_rejected", order=3)

    def test_classification_is_keyed_by_id(self):
        catalog = StatusCatalog.load(self.org)

        self.assertEqual(catalog.interaction_for(self.l1.pk), InteractionType.INTERVIEW_SCHEDULE)
        self.assertEqual(catalog.interaction_for(self.selected), InteractionType.INTERVIEW_FEEDBACK)
        self.assertFalse(catalog.is_terminal(self.selected))
        self.assertTrue(catalog.is_terminal(self.rejected))
        self.assertEqual(set(catalog.interaction_map()), {self.l1.pk, self.selected.pk, self.rejected.pk})

    def test_classification_survives_rename_after_load(self):
        catalog = StatusCatalog.load(self.org)
        StatusDefinition.objects.filter(pk=self.selected.pk).update(name="Passed round one")

        self.assertEqual(catalog.interaction_for(self.selected.pk), InteractionType.INTERVIEW_FEEDBACK)

    def test_pinned_values_win_over_name(self):
        pinned = _make_sub(
            self.org, self.main, "Reject", code="soft_reject",
            interaction=InteractionType.NONE, terminal=False,
        )
        catalog = StatusCatalog.load(self.org)

        self.assertEqual(catalog.interaction_for(pinned), InteractionType.NONE)
        self.assertFalse(catalog.is_terminal(pinned))

    def test_main_statuses_are_not_classified(self):
        catalog = StatusCatalog.load(self.org)
        self.assertEqual(catalog.interaction_for(self.main), InteractionType.NONE)
        self.assertFalse(catalog.is_terminal(self.main))

    def test_get_by_id_accepts_strings_and_rejects_garbage(self):
        catalog = StatusCatalog.load(self.org)

        self.assertEqual(catalog.get_by_id(str(self.l1.pk)), self.l1)
        self.assertIsNone(catalog.get_by_id("abc"))
        self.assertIsNone(catalog.get_by_id(None))
        self.assertIsNone(catalog.get_by_id(999999))

    def test_catalog_is_scoped_to_organization(self):
        other = _make_org("other")
        foreign_main = _make_main(other, "Interviews")
        foreign = _make_sub(other, foreign_main, "L1", code="l1")

        catalog = StatusCatalog.load(self.org)

        self.assertIsNone(catalog.get_by_id(foreign.pk))
        self.assertEqual(len(catalog), 4)

    def test_lookups_and_tree(self):
        catalog = StatusCatalog.load(self.org)

        self.assertEqual(catalog.get_by_code("l1_rejected"), self.rejected)
        self.assertEqual(catalog.get_by_name("L1"), self.l1)
        self.assertIsNone(catalog.get_by_name("Interviews"))
        self.assertEqual(catalog.parent_of(self.selected), self.main)
        self.assertIsNone(catalog.parent_of(self.main))

        tree = catalog.tree()
        self.assertEqual([node.name for node in tree], ["Interviews"])
        self.assertEqual([s.name for s in tree[0].subs], ["L1", "L1 - Selected", "L1 - Rejected"])

    def test_resolve_reschedule_target(self):
        reschedule = _make_sub(self.org, self.main, "Reschedule L1", code="reschedule_l1")
        catalog = StatusCatalog.load(self.org)

        self.assertEqual(catalog.resolve_reschedule_target(reschedule), self.l1)
        self.assertIsNone(catalog.resolve_reschedule_target(self.selected))

    def test_build_status_tree_drops_orphans(self):
        orphan = StatusDefinition(
            pk=424242, organization=self.org, type=StatusDefinition.Type.SUB,
            parent_id=717171, code="orphan", name="Orphan",
        )
        with self.assertLogs("statuses.tree", level="WARNING"):
            tree = build_status_tree([self.main, self.l1, orphan])

        self.assertEqual(len(tree), 1)
        self.assertEqual(tree[0].subs, [self.l1])


# ── BGV overlay ────────────────────────────────────────────────────────────────

class BgvOverlayTests(TestCase):
    def setUp(self):
        self.org = _make_org()
        seed_default_statuses(self.org, pipelines=[Pipeline.BGV])
        self.tree = load_status_tree(self.org)
        self.catalog = StatusCatalog.load(self.org, pipeline=Pipeline.BGV)

    def _sub(self, code):
        return self.catalog.get_by_code(code, pipeline=Pipeline.BGV)

    def _names(self, statuses):
        return [s.name for s in statuses]

    def test_tree_follows_display_order(self):
        self.assertEqual(tuple(node.name for node in self.tree), BGV_STAGE_ORDER)
        in_progress = self.tree[1]
        self.assertEqual(tuple(self._names(in_progress.subs)), VERIFICATION_STEPS)

    def test_terminal_set_is_code_based(self):
        self.assertTrue(is_terminal_bgv_status("all_checks_clear"))
        self.assertTrue(is_terminal_bgv_status(self._sub("candidate_withdrawn")))
        self.assertFalse(is_terminal_bgv_status("reference_check"))
        self.assertTrue(self.catalog.is_terminal(self._sub("major_discrepancy")))
        self.assertFalse(self.catalog.is_terminal(self._sub("awaiting_documents")))

    def test_no_current_status_offers_initiated_only(self):
        self.assertEqual(
            self._names(allowed_bgv_targets(self.tree)),
            ["Verification Initiated", "Documents Requested"],
        )

    def test_initiated_moves_into_first_verification_step(self):
        current = self._sub("verification_initiated")
        targets = self._names(allowed_bgv_targets(self.tree, self.catalog.parent_of(current), current))
        self.assertEqual(targets, ["Verification Initiated", "Documents Requested", "Verification Started"])

    def test_in_progress_is_forward_only_and_can_pause(self):
        current = self._sub("education_verification")
        targets = self._names(allowed_bgv_targets(self.tree, self.catalog.parent_of(current), current))

        self.assertNotIn("Address Verification", targets)
        self.assertIn("Reference Check", targets)
        self.assertIn("Awaiting Documents", targets)
        self.assertNotIn("All Checks Clear", targets)

    def test_completion_requires_reference_check(self):
        current = self._sub("reference_check")
        targets = self._names(allowed_bgv_targets(self.tree, self.catalog.parent_of(current), current))
        self.assertIn("All Checks Clear", targets)
        self.assertIn("Major Discrepancy", targets)

    def test_terminal_status_offers_nothing(self):
        current = self._sub("all_checks_clear")
        self.assertEqual(allowed_bgv_targets(self.tree, self.catalog.parent_of(current), current), [])


# ── Progress ───────────────────────────────────────────────────────────────────

class ProgressTests(TestCase):
    def setUp(self):
        self.org = _make_org()
        seed_default_statuses(self.org, pipelines=[Pipeline.RECRUITMENT])
        self.catalog = StatusCatalog.load(self.org)

    def _progress(self, code):
        return get_progress_for_status(self.catalog, self.catalog.get_by_code(code).pk)

    def test_milestones_by_stage(self):
        self.assertEqual(
            self._progress("new_application"),
            {"screening": True, "interview": False, "offer": False, "hired": False, "joined": False},
        )
        self.assertTrue(self._progress("l1")["interview"])
        self.assertFalse(self._progress("l1")["offer"])
        self.assertTrue(self._progress("offer_issued")["hired"])
        self.assertFalse(self._progress("offer_issued")["joined"])
        self.assertTrue(all(self._progress("joined_status").values()))

    def test_main_status_id_is_accepted(self):
        self.assertTrue(self._progress("interview")["interview"])

    def test_unknown_status_reports_no_progress(self):
        self.assertFalse(any(get_progress_for_status(self.catalog, 999999).values()))


# ── Defaults & seed command ────────────────────────────────────────────────────

class SeedDefaultStatusesTests(TestCase):
    def setUp(self):
        self.org = _make_org()

    def test_seed_is_idempotent(self):
        first = seed_default_statuses(self.org)
        second = seed_default_statuses(self.org)

        self.assertEqual(first, {"created": 55, "updated": 0, "skipped": 0})
        self.assertEqual(second, {"created": 0, "updated": 0, "skipped": 55})
        self.assertEqual(StatusDefinition.objects.filter(organization=self.org).count(), 55)

    def test_seeded_subs_point_at_their_main(self):
        seed_default_statuses(self.org)
        for sub in StatusDefinition.objects.filter(organization=self.org, type=StatusDefinition.Type.SUB):
            sub.clean()

    def test_custom_names_survive_unless_forced(self):
        seed_default_statuses(self.org)
        StatusDefinition.objects.filter(organization=self.org, code="l1").update(name="Round One")

        seed_default_statuses(self.org)
        self.assertTrue(StatusDefinition.objects.filter(organization=self.org, name="Round One").exists())

        summary = seed_default_statuses(self.org, force=True)
        self.assertEqual(summary["updated"], 55)
        self.assertEqual(StatusDefinition.objects.get(organization=self.org, code="l1").name, "L1")

    def test_command_seeds_single_pipeline(self):
        call_command("seed_statuses", "acme", "--pipeline", "bgv", stdout=StringIO())

        qs = StatusDefinition.objects.filter(organization=self.org)
        self.assertEqual(qs.filter(pipeline=Pipeline.BGV).count(), 20)
        self.assertFalse(qs.filter(pipeline=Pipeline.RECRUITMENT).exists())

    def test_command_requires_existing_organization(self):
        with self.assertRaises(CommandError):
            call_command("seed_statuses", "missing", stdout=StringIO())

    def test_command_can_create_organization(self):
        call_command("seed_statuses", "globex", "--create-organization", "--name", "Globex", stdout=StringIO())

        org = Organization.objects.get(slug="globex")
        self.assertEqual(org.name, "Globex")
        self.assertEqual(StatusDefinition.objects.filter(organization=org).count(), 55)
