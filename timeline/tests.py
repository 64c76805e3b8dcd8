from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import ProtectedError
from django.test import TestCase
from django.utils import timezone

from candidates.models import Candidate
from organizations.models import Organization
from statuses.models import StatusDefinition
from talentflow.constants import NOTE_MAX_LENGTH
from talentflow.errors import ImmutableEventError
from timeline.models import StatusChangeCount, TimelineEvent
from timeline.services import (
    actor_display_name,
    add_note,
    append_status_change,
    describe_status_change,
    increment_status_count,
    latest_status_event,
    list_for_candidate,
    status_snapshot,
)


def _state(sub_id, sub_name, main_id=1, main_name="Interviews") -> dict:
    return {
        "main_status_id": main_id,
        "sub_status_id": sub_id,
        "main_status_name": main_name,
        "sub_status_name": sub_name,
    }


class TimelineStoreTests(TestCase):
    def setUp(self):
        self.org = Organization.objects.create(name="Acme", slug="acme")
        self.candidate = Candidate.objects.create(
            organization=self.org, first_name="Ana", full_name="Ana Pop",
        )
        self.user = get_user_model().objects.create_user(
            username="recruiter", password="test-pass-123", first_name="Ioana", last_name="Ionescu",
        )

    def _append(self, previous, new, actor=None):
        return append_status_change(
            organization=self.org,
            candidate=self.candidate,
            pipeline=StatusDefinition.Pipeline.RECRUITMENT,
            previous_state=previous,
            new_state=new,
            event_data={"interaction": "none"},
            actor=actor,
        )

    def _append_at(self, created_at, new):
        return TimelineEvent.objects.create(
            organization=self.org,
            candidate=self.candidate,
            event_type=TimelineEvent.EventType.STATUS_CHANGE,
            pipeline=StatusDefinition.Pipeline.RECRUITMENT,
            new_state=new,
            created_by_name="System",
            created_at=created_at,
        )

    def test_descriptions(self):
        self.assertEqual(
            describe_status_change(_state(1, "L1"), _state(2, "L1 - Selected")),
            'Status changed from "L1" to "L1 - Selected".',
        )
        self.assertEqual(describe_status_change(None, _state(1, "L1")), 'Status set to "L1".')

    def test_snapshot_is_none_without_sub_status(self):
        self.assertIsNone(status_snapshot(None, None))

    def test_status_change_records_action_and_actor(self):
        event = self._append(_state(1, "L1"), _state(2, "L1 - Selected"), actor=self.user)

        self.assertEqual(event.event_type, TimelineEvent.EventType.STATUS_CHANGE)
        self.assertEqual(event.event_data, {"action": "Status updated", "interaction": "none"})
        self.assertEqual(event.created_by, self.user)
        self.assertEqual(event.created_by_name, "Ioana Ionescu")

    def test_missing_actor_is_attributed_to_system(self):
        event = self._append(None, _state(1, "L1"))
        self.assertIsNone(event.created_by)
        self.assertEqual(event.created_by_name, "System")
        self.assertEqual(actor_display_name(None), "System")

    def test_events_cannot_be_modified_or_deleted(self):
        event = self._append(None, _state(1, "L1"))

        event.event_description = "rewritten"
        with self.assertRaises(ImmutableEventError):
            event.save()
        with self.assertRaises(ImmutableEventError):
            event.delete()
        self.assertEqual(TimelineEvent.objects.get(pk=event.pk).event_description, 'Status set to "L1".')

    def test_queryset_writes_are_refused(self):
        event = self._append(None, _state(1, "L1"))

        with self.assertRaises(ImmutableEventError):
            TimelineEvent.objects.filter(pk=event.pk).update(event_description="tampered")
        with self.assertRaises(ImmutableEventError):
            TimelineEvent.objects.filter(candidate=self.candidate).delete()
        self.assertEqual(TimelineEvent.objects.get(pk=event.pk).event_description, 'Status set to "L1".')

    def test_save_with_existing_pk_does_not_overwrite(self):
        event = self._append(None, _state(1, "L1"))
        forged = TimelineEvent(
            pk=event.pk,
            organization=self.org,
            candidate=self.candidate,
            event_type=TimelineEvent.EventType.NOTE,
            event_description="overwritten",
            created_by_name="System",
        )

        with self.assertRaises(IntegrityError), transaction.atomic():
            forged.save()
        self.assertEqual(TimelineEvent.objects.get(pk=event.pk).event_description, 'Status set to "L1".')

    def test_candidate_with_history_cannot_be_deleted(self):
        self._append(None, _state(1, "L1"))

        with self.assertRaises(ProtectedError):
            self.candidate.delete()
        self.assertEqual(TimelineEvent.objects.filter(candidate=self.candidate).count(), 1)

    def test_list_is_oldest_first_and_scoped(self):
        now = timezone.now()
        later = self._append_at(now + timedelta(minutes=5), _state(2, "L2"))
        earlier = self._append_at(now, _state(1, "L1"))

        events = list_for_candidate(self.candidate.pk, organization=self.org)
        self.assertEqual([e.pk for e in events], [earlier.pk, later.pk])

        other = Organization.objects.create(name="Other", slug="other")
        self.assertEqual(list_for_candidate(self.candidate.pk, organization=other), [])

    def test_latest_status_event_ignores_notes(self):
        status_event = self._append(None, _state(1, "L1"))
        add_note(self.candidate, "Called, no answer.")

        self.assertEqual(latest_status_event(self.candidate, StatusDefinition.Pipeline.RECRUITMENT), status_event)
        self.assertIsNone(latest_status_event(self.candidate, StatusDefinition.Pipeline.BGV))


class NoteTests(TestCase):
    def setUp(self):
        self.org = Organization.objects.create(name="Acme", slug="acme")
        self.candidate = Candidate.objects.create(
            organization=self.org, first_name="Ana", full_name="Ana Pop",
        )

    def test_note_is_stripped_and_stored(self):
        note = add_note(self.candidate, "  Prefers remote work.  ")

        self.assertEqual(note.event_type, TimelineEvent.EventType.NOTE)
        self.assertEqual(note.event_data, {"text": "Prefers remote work."})
        self.assertEqual(note.pipeline, "")
        self.assertIsNone(note.new_state)

    def test_empty_or_oversized_note_is_rejected(self):
        with self.assertRaises(ValidationError):
            add_note(self.candidate, "   ")
        with self.assertRaises(ValidationError):
            add_note(self.candidate, "x" * (NOTE_MAX_LENGTH + 1))
        self.assertFalse(TimelineEvent.objects.exists())

    def test_notes_filter(self):
        add_note(self.candidate, "First")
        add_note(self.candidate, "Second")

        notes = list_for_candidate(
            self.candidate.pk, organization=self.org, event_type=TimelineEvent.EventType.NOTE,
        )
        self.assertEqual([n.event_data["text"] for n in notes], ["First", "Second"])


class StatusChangeCountTests(TestCase):
    def test_counter_increments_per_status(self):
        org = Organization.objects.create(name="Acme", slug="acme")
        candidate = Candidate.objects.create(organization=org, first_name="Ana", full_name="Ana Pop")
        main = StatusDefinition.objects.create(
            organization=org, type=StatusDefinition.Type.MAIN, code="interview", name="Interview",
        )
        sub = StatusDefinition.objects.create(
            organization=org, type=StatusDefinition.Type.SUB, parent=main, code="l1", name="L1",
        )

        increment_status_count(candidate, main.pk, sub.pk)
        increment_status_count(candidate, main.pk, sub.pk)

        self.assertEqual(StatusChangeCount.objects.get(candidate=candidate, sub_status=sub).count, 2)
