from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase

from candidates.models import Candidate
from candidates.services import StatusPointer, get_status_pointer
from organizations.models import Organization, OrganizationSetting
from pipeline.interactions import build_event_data, required_fields
from pipeline.services import find_broken_chains, find_pointer_drift, rebuild_status_pointer
from pipeline.transitions import apply_transition, prepare_transition, reschedule_interview
from statuses.catalog import StatusCatalog
from statuses.classifier import InteractionType
from statuses.defaults import seed_default_statuses
from statuses.models import StatusDefinition, StatusTransitionRule
from talentflow.constants import ENFORCE_TERMINAL_STATUSES_KEY, ENFORCE_TRANSITION_RULES_KEY
from talentflow.errors import ErrorCode, InvalidInteractionData, NotFound
from timeline.models import StatusChangeCount, TimelineEvent
from timeline.services import append_status_change

Pipeline = StatusDefinition.Pipeline


def _make_candidate(org) -> Candidate:
    return Candidate.objects.create(
        organization=org,
        first_name="Ana",
        last_name="Pop",
        full_name="Ana Pop",
        phone="+40700000001",
        email="ana@example.com",
    )


def _make_status(org, name, code, parent=None, order=0) -> StatusDefinition:
    return StatusDefinition.objects.create(
        organization=org,
        pipeline=parent.pipeline if parent else Pipeline.RECRUITMENT,
        type=StatusDefinition.Type.SUB if parent else StatusDefinition.Type.MAIN,
        parent=parent,
        code=code,
        name=name,
        display_order=order,
    )


class TransitionTestCase(TestCase):
    """Interviews / L1, L1 - Selected, L1 - Rejected."""

    def setUp(self):
        self.org = Organization.objects.create(name="Acme", slug="acme")
        self.user = get_user_model().objects.create_user(username="recruiter", password="test-pass-123")
        self.candidate = _make_candidate(self.org)

        self.interviews = _make_status(self.org, "Interviews", "interviews")
        self.l1 = _make_status(self.org, "L1", "l1", self.interviews, 1)
        self.selected = _make_status(self.org, "L1 - Selected", "l1_selected", self.interviews, 2)
        self.rejected = _make_status(self.org, "L1 - Rejected", "l1_rejected", self.interviews, 3)

    def _apply(self, status_id, **kwargs):
        return apply_transition(self.candidate.pk, status_id, self.user, organization=self.org, **kwargs)

    def _pointer(self, pipeline=Pipeline.RECRUITMENT):
        return get_status_pointer(self.candidate.pk, organization=self.org, pipeline=pipeline)

    def _events(self):
        return list(TimelineEvent.objects.filter(candidate=self.candidate).order_by("created_at", "id"))


# ── apply_transition ───────────────────────────────────────────────────────────

class ApplyTransitionTests(TransitionTestCase):
    def test_first_status_has_no_previous_state(self):
        result = self._apply(self.l1.pk)

        self.assertTrue(result.ok)
        self.assertIsNone(result.event.previous_state)
        self.assertEqual(result.event.event_description, 'Status set to "L1".')
        self.assertEqual(result.event.new_state, {
            "main_status_id": self.interviews.pk,
            "sub_status_id": self.l1.pk,
            "main_status_name": "Interviews",
            "sub_status_name": "L1",
        })

    def test_selected_after_l1_is_feedback_and_not_terminal(self):
        self._apply(self.l1.pk)

        result = self._apply(self.selected.pk)

        catalog = StatusCatalog.load(self.org)
        self.assertTrue(result.ok)
        self.assertEqual(result.interaction, InteractionType.INTERVIEW_FEEDBACK)
        self.assertFalse(catalog.is_terminal(self.selected))
        self.assertEqual(result.event.event_description, 'Status changed from "L1" to "L1 - Selected".')
        self.assertEqual(result.event.created_by, self.user)
        self.assertEqual(
            result.event.event_data,
            {"action": "Status updated", "interaction": "interview-feedback"},
        )

    def test_pointer_follows_target_and_its_parent(self):
        result = self._apply(self.selected.pk)

        pointer = self._pointer()
        self.assertTrue(result.ok)
        self.assertEqual(pointer.sub_status_id, self.selected.pk)
        self.assertEqual(pointer.main_status_id, StatusCatalog.load(self.org).get_by_id(self.selected.pk).parent_id)
        self.candidate.refresh_from_db()
        self.assertEqual(self.candidate.status_label, "Interviews")
        self.assertEqual(self.candidate.updated_by, self.user)

    def test_reapplying_same_status_is_recorded_and_leaves_pointer(self):
        self._apply(self.l1.pk)
        before = self._pointer()

        result = self._apply(self.l1.pk)

        after = self._pointer()
        self.assertTrue(result.ok)
        self.assertEqual(len(self._events()), 2)
        self.assertEqual(result.event.previous_state, result.event.new_state)
        self.assertEqual(
            (after.main_status_id, after.sub_status_id),
            (before.main_status_id, before.sub_status_id),
        )

    def test_counter_tracks_entries_per_status(self):
        self._apply(self.l1.pk)
        self._apply(self.selected.pk)
        self._apply(self.l1.pk)

        self.assertEqual(StatusChangeCount.objects.get(candidate=self.candidate, sub_status=self.l1).count, 2)
        self.assertEqual(StatusChangeCount.objects.get(candidate=self.candidate, sub_status=self.selected).count, 1)

    def test_unknown_target_changes_nothing(self):
        self._apply(self.l1.pk)
        before = self._pointer()

        result = self._apply(999999)

        self.assertFalse(result.ok)
        self.assertEqual(result.code, ErrorCode.NOT_FOUND)
        self.assertEqual(len(self._events()), 1)
        self.assertEqual(self._pointer(), before)

    def test_unknown_target_on_fresh_candidate_writes_nothing(self):
        result = self._apply("not-an-id")

        self.assertEqual(result.code, ErrorCode.NOT_FOUND)
        self.assertEqual(self._events(), [])
        self.assertEqual(self._pointer(), StatusPointer(None, None, 0))

    def test_main_status_is_not_a_target(self):
        result = self._apply(self.interviews.pk)
        self.assertEqual(result.code, ErrorCode.INVALID_STATUS)
        self.assertEqual(self._events(), [])

    def test_unknown_candidate(self):
        result = apply_transition(999999, self.l1.pk, self.user, organization=self.org)
        self.assertEqual(result.code, ErrorCode.NOT_FOUND)
        self.assertFalse(TimelineEvent.objects.exists())

    def test_candidate_of_another_organization(self):
        other = Organization.objects.create(name="Other", slug="other")
        result = apply_transition(self.candidate.pk, self.l1.pk, self.user, organization=other)
        self.assertEqual(result.code, ErrorCode.NOT_FOUND)

    def test_status_of_another_organization(self):
        other = Organization.objects.create(name="Other", slug="other")
        main = _make_status(other, "Interviews", "interviews")
        foreign = _make_status(other, "L1", "l1", main)

        result = self._apply(foreign.pk)
        self.assertEqual(result.code, ErrorCode.NOT_FOUND)

    def test_timeline_failure_rolls_back_pointer(self):
        self._apply(self.l1.pk)
        before = self._pointer()

        with patch("pipeline.transitions.append_status_change", side_effect=DatabaseError("disk full")):
            with self.assertLogs("pipeline.transitions", level="ERROR"):
                result = self._apply(self.selected.pk)

        self.assertFalse(result.ok)
        self.assertEqual(result.code, ErrorCode.WRITE_FAILED)
        self.assertTrue(result.retryable)
        self.assertEqual(self._pointer(), before)
        self.assertEqual(len(self._events()), 1)
        self.assertFalse(StatusChangeCount.objects.filter(sub_status=self.selected).exists())

    def test_concurrent_pointer_write_is_reported_as_stale(self):
        with patch("pipeline.transitions.read_pointer", return_value=StatusPointer(None, None, version=42)):
            result = self._apply(self.l1.pk)

        self.assertEqual(result.code, ErrorCode.STALE_POINTER)
        self.assertTrue(result.retryable)
        self.assertEqual(self._events(), [])

    def test_system_actor(self):
        result = apply_transition(self.candidate.pk, self.l1.pk, organization=self.org)
        self.assertTrue(result.ok)
        self.assertEqual(result.event.created_by_name, "System")


# ── Interaction payloads ───────────────────────────────────────────────────────

class InteractionDataTests(TransitionTestCase):
    def test_schedule_payload_is_normalised(self):
        result = self._apply(self.l1.pk, event_data={"datetime": "2026-11-02T10:00:00"})

        self.assertTrue(result.ok)
        data = result.event.event_data
        self.assertEqual(data["action"], "Status updated")
        self.assertEqual(data["interaction"], "interview-schedule")
        self.assertTrue(data["datetime"].startswith("2026-11-02T10:00:00"))
        self.assertNotEqual(data["datetime"], "2026-11-02T10:00:00")

    def test_missing_required_field_rejects_transition(self):
        result = self._apply(self.selected.pk, event_data={"feedback": "   "})

        self.assertEqual(result.code, ErrorCode.INVALID_INTERACTION_DATA)
        self.assertEqual(self._events(), [])
        self.assertTrue(self._pointer().is_empty)

    def test_unknown_field_rejects_transition(self):
        result = self._apply(self.selected.pk, event_data={"feedback": "Strong", "salary": "100k"})
        self.assertEqual(result.code, ErrorCode.INVALID_INTERACTION_DATA)

    def test_required_fields_per_interaction(self):
        self.assertEqual(required_fields(InteractionType.INTERVIEW_SCHEDULE), ("datetime",))
        self.assertEqual(required_fields("actual-ctc"), ("date", "billing_reason"))
        self.assertEqual(required_fields(InteractionType.NONE), ())

    def test_build_event_data(self):
        data = build_event_data(
            InteractionType.ACTUAL_CTC,
            {"date": "2026-12-01", "billing_reason": " Full CTC ", "reason": None},
        )
        self.assertEqual(
            data,
            {"interaction": "actual-ctc", "date": "2026-12-01", "billing_reason": "Full CTC"},
        )

    def test_build_event_data_rejects_bad_dates(self):
        with self.assertRaises(InvalidInteractionData):
            build_event_data(InteractionType.JOINING, {"date": "next monday"})
        with self.assertRaises(InvalidInteractionData):
            build_event_data(InteractionType.INTERVIEW_SCHEDULE, {"datetime": "2026-13-45T99:00"})

    def test_unknown_fields_of_mixed_key_types_are_rejected(self):
        with self.assertRaises(InvalidInteractionData):
            build_event_data(InteractionType.NONE, {1: "x", "foo": "y"})

        result = self._apply(self.l1.pk, event_data={1: "x", "foo": "y", "datetime": "2026-11-02T10:00"})

        self.assertEqual(result.code, ErrorCode.INVALID_INTERACTION_DATA)
        self.assertTrue(self._pointer().is_empty)


# ── Terminal statuses & transition rules ───────────────────────────────────────

class TerminalEnforcementTests(TransitionTestCase):
    def setUp(self):
        super().setUp()
        self._apply(self.rejected.pk)

    def test_leaving_terminal_status_is_refused(self):
        result = self._apply(self.l1.pk)

        self.assertEqual(result.code, ErrorCode.TERMINAL_STATE_VIOLATION)
        self.assertEqual(len(self._events()), 1)
        self.assertEqual(self._pointer().sub_status_id, self.rejected.pk)

    def test_reapplying_terminal_status_is_allowed(self):
        self.assertTrue(self._apply(self.rejected.pk).ok)

    def test_force_overrides_and_is_recorded(self):
        result = self._apply(self.l1.pk, force=True)

        self.assertTrue(result.ok)
        self.assertTrue(result.event.event_data["forced"])
        self.assertEqual(self._pointer().sub_status_id, self.l1.pk)

    def test_organization_can_disable_enforcement(self):
        OrganizationSetting.set(self.org, ENFORCE_TERMINAL_STATUSES_KEY, False)

        result = self._apply(self.l1.pk)

        self.assertTrue(result.ok)
        self.assertNotIn("forced", result.event.event_data)


class TransitionRuleTests(TransitionTestCase):
    def setUp(self):
        super().setUp()
        OrganizationSetting.set(self.org, ENFORCE_TRANSITION_RULES_KEY, True)

    def test_rules_are_ignored_unless_enabled(self):
        OrganizationSetting.set(self.org, ENFORCE_TRANSITION_RULES_KEY, False)
        self._apply(self.l1.pk)
        self.assertTrue(self._apply(self.selected.pk).ok)

    def test_first_status_is_always_allowed(self):
        self.assertTrue(self._apply(self.l1.pk).ok)

    def test_move_without_rule_is_refused(self):
        self._apply(self.l1.pk)

        result = self._apply(self.selected.pk)

        self.assertEqual(result.code, ErrorCode.TRANSITION_NOT_ALLOWED)
        self.assertEqual(self._pointer().sub_status_id, self.l1.pk)

    def test_move_with_rule_is_allowed(self):
        self._apply(self.l1.pk)
        StatusTransitionRule.objects.create(organization=self.org, from_status=self.l1, to_status=self.selected)

        self.assertTrue(self._apply(self.selected.pk).ok)


# ── prepare_transition ─────────────────────────────────────────────────────────

class PrepareTransitionTests(TransitionTestCase):
    def test_plan_for_feedback(self):
        self._apply(self.l1.pk)

        plan = prepare_transition(self.candidate.pk, self.selected.pk, organization=self.org)

        self.assertEqual(plan.current, self.l1)
        self.assertEqual(plan.target, self.selected)
        self.assertEqual(plan.interaction, InteractionType.INTERVIEW_FEEDBACK)
        self.assertTrue(plan.requires_interaction)
        self.assertEqual(plan.required_fields, ("feedback",))
        self.assertEqual(plan.round_name, "L1")
        self.assertFalse(plan.is_terminal)

    def test_outcome_without_round_needs_no_feedback(self):
        offer = _make_status(self.org, "Offered", "offered", order=2)
        offer_rejected = _make_status(self.org, "Offer Rejected", "offer_rejected", offer, 1)

        plan = prepare_transition(self.candidate.pk, offer_rejected.pk, organization=self.org)

        self.assertEqual(plan.interaction, InteractionType.INTERVIEW_FEEDBACK)
        self.assertIsNone(plan.round_name)
        self.assertEqual(plan.required_fields, ())
        self.assertFalse(plan.requires_interaction)
        self.assertTrue(self._apply(offer_rejected.pk, event_data={}).ok)

    def test_plan_for_terminal_target(self):
        plan = prepare_transition(self.candidate.pk, self.rejected.pk, organization=self.org)
        self.assertIsNone(plan.current)
        self.assertTrue(plan.is_terminal)

    def test_plan_writes_nothing(self):
        prepare_transition(self.candidate.pk, self.l1.pk, organization=self.org)
        self.assertEqual(self._events(), [])
        self.assertTrue(self._pointer().is_empty)

    def test_unknown_target_raises(self):
        with self.assertRaises(NotFound):
            prepare_transition(self.candidate.pk, 999999, organization=self.org)


# ── Default catalog: BGV & reschedule ──────────────────────────────────────────

class DefaultCatalogTransitionTests(TestCase):
    def setUp(self):
        self.org = Organization.objects.create(name="Acme", slug="acme")
        seed_default_statuses(self.org)
        self.catalog = StatusCatalog.load(self.org)
        self.candidate = _make_candidate(self.org)

    def _status(self, code, pipeline=Pipeline.RECRUITMENT):
        return self.catalog.get_by_code(code, pipeline=pipeline)

    def _apply(self, code, pipeline=Pipeline.RECRUITMENT, **kwargs):
        return apply_transition(
            self.candidate.pk, self._status(code, pipeline).pk, organization=self.org, **kwargs
        )

    def test_bgv_pointer_moves_independently(self):
        self._apply("l1")

        result = self._apply("verification_initiated", Pipeline.BGV)

        self.candidate.refresh_from_db()
        self.assertTrue(result.ok)
        self.assertEqual(result.event.pipeline, Pipeline.BGV)
        self.assertIsNone(result.event.previous_state)
        self.assertEqual(self.candidate.bgv_sub_status, self._status("verification_initiated", Pipeline.BGV))
        self.assertEqual(self.candidate.sub_status, self._status("l1"))
        self.assertEqual(self.candidate.status_label, "Interview")

    def test_bgv_path_is_enforced_with_rules_enabled(self):
        OrganizationSetting.set(self.org, ENFORCE_TRANSITION_RULES_KEY, True)
        self._apply("verification_initiated", Pipeline.BGV)

        skipped = self._apply("reference_check", Pipeline.BGV)
        next_step = self._apply("verification_started", Pipeline.BGV)

        self.assertEqual(skipped.code, ErrorCode.TRANSITION_NOT_ALLOWED)
        self.assertTrue(next_step.ok)

    def test_bgv_terminal_status_is_final(self):
        self._apply("all_checks_clear", Pipeline.BGV)

        result = self._apply("reference_check", Pipeline.BGV)

        self.assertEqual(result.code, ErrorCode.TERMINAL_STATE_VIOLATION)

    def test_candidate_dropped_is_reject_and_terminal(self):
        result = self._apply("candidate_dropped", event_data={"reason": "Accepted another offer"})

        self.assertTrue(result.ok)
        self.assertEqual(result.interaction, InteractionType.REJECT)
        self.assertTrue(self.catalog.is_terminal(self._status("candidate_dropped")))
        self.assertEqual(result.event.event_data["reason"], "Accepted another offer")

    def test_joining_requires_date(self):
        result = self._apply("offer_issued", event_data={"feedback": "Great"})
        self.assertEqual(result.code, ErrorCode.INVALID_INTERACTION_DATA)

        result = self._apply("offer_issued", event_data={"date": "2026-12-01"})
        self.assertTrue(result.ok)
        self.assertEqual(result.event.event_data["date"], "2026-12-01")

    def test_reschedule_returns_to_round_status(self):
        self._apply("l1")
        reschedule = self._status("reschedule_l1")

        result = reschedule_interview(
            self.candidate.pk,
            reschedule.pk,
            organization=self.org,
            event_data={"datetime": "2026-11-05T14:30:00"},
        )

        self.assertTrue(result.ok)
        self.assertEqual(result.interaction, InteractionType.INTERVIEW_SCHEDULE)
        self.assertEqual(get_status_pointer(self.candidate.pk, organization=self.org).sub_status_id, self._status("l1").pk)
        data = result.event.event_data
        self.assertTrue(data["rescheduled"])
        self.assertEqual(data["reschedule_status_id"], reschedule.pk)
        self.assertEqual(data["reschedule_status_name"], "Reschedule L1")

    def test_reschedule_rejects_non_reschedule_status(self):
        result = reschedule_interview(self.candidate.pk, self._status("l1").pk, organization=self.org)
        self.assertEqual(result.code, ErrorCode.INVALID_STATUS)

    def test_reschedule_without_round_status(self):
        interview = self._status("interview")
        orphan = _make_status(self.org, "Reschedule Interview Scheduled", "reschedule_interview_scheduled", interview)

        result = reschedule_interview(self.candidate.pk, orphan.pk, organization=self.org)

        self.assertEqual(result.code, ErrorCode.NOT_FOUND)

    def test_prepare_reschedule_plan(self):
        plan = prepare_transition(self.candidate.pk, self._status("reschedule_l2").pk, organization=self.org)
        self.assertEqual(plan.interaction, InteractionType.RESCHEDULE)
        self.assertEqual(plan.round_name, "L2")
        self.assertEqual(plan.required_fields, ("datetime",))


# ── Reconciliation ─────────────────────────────────────────────────────────────

class ReconciliationTests(TransitionTestCase):
    def test_consistent_candidates_have_no_drift(self):
        self._apply(self.l1.pk)
        self._apply(self.selected.pk)
        _make_candidate(self.org)

        self.assertEqual(find_pointer_drift(self.org), [])
        self.assertEqual(find_broken_chains(self.candidate), [])

    def test_drift_is_detected_and_rebuilt_from_timeline(self):
        self._apply(self.l1.pk)
        last = self._apply(self.selected.pk).event
        Candidate.objects.filter(pk=self.candidate.pk).update(sub_status=self.rejected, status_label="Broken")

        with self.assertLogs("pipeline.services", level="WARNING"):
            drift = find_pointer_drift(self.org)

        self.assertEqual(len(drift), 1)
        self.assertEqual(drift[0].candidate_id, self.candidate.pk)
        self.assertEqual(drift[0].expected, (self.interviews.pk, self.selected.pk))
        self.assertEqual(drift[0].event_id, last.pk)

        pointer = rebuild_status_pointer(self.candidate)

        self.candidate.refresh_from_db()
        self.assertEqual(pointer.sub_status_id, self.selected.pk)
        self.assertEqual(self.candidate.status_label, "Interviews")
        self.assertEqual(find_pointer_drift(self.org), [])

    def test_pointer_without_events_is_cleared(self):
        Candidate.objects.filter(pk=self.candidate.pk).update(main_status=self.interviews, sub_status=self.l1)

        drift = find_pointer_drift(self.org)
        self.assertEqual(drift[0].event_id, None)

        pointer = rebuild_status_pointer(self.candidate)
        self.assertTrue(pointer.is_empty)

    def test_rebuild_refuses_missing_statuses(self):
        append_status_change(
            organization=self.org,
            candidate=self.candidate,
            pipeline=Pipeline.RECRUITMENT,
            previous_state=None,
            new_state={
                "main_status_id": 999998,
                "sub_status_id": 999999,
                "main_status_name": "Gone",
                "sub_status_name": "Gone",
            },
        )

        with self.assertRaises(NotFound):
            rebuild_status_pointer(self.candidate)

    def test_interleaved_events_break_the_chain(self):
        first = self._apply(self.l1.pk).event
        # A writer that read the pointer before `first` was applied.
        stray = append_status_change(
            organization=self.org,
            candidate=self.candidate,
            pipeline=Pipeline.RECRUITMENT,
            previous_state=None,
            new_state=first.new_state | {"sub_status_id": self.selected.pk, "sub_status_name": "L1 - Selected"},
        )

        links = find_broken_chains(self.candidate)

        self.assertEqual(len(links), 1)
        self.assertEqual(links[0].previous_event_id, first.pk)
        self.assertEqual(links[0].event_id, stray.pk)
        self.assertEqual(links[0].found, (None, None))
