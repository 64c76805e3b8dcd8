from django.contrib.auth import get_user_model
from django.test import TestCase

from candidates.models import Candidate
from candidates.services import (
    get_candidate,
    get_status_pointer,
    read_pointer,
    update_status_pointer,
)
from organizations.models import Organization
from statuses.defaults import seed_default_statuses
from statuses.models import StatusDefinition
from talentflow.errors import NotFound, StalePointer

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


class CandidateStoreTests(TestCase):
    def setUp(self):
        self.org = Organization.objects.create(name="Acme", slug="acme")
        seed_default_statuses(self.org)
        self.candidate = _make_candidate(self.org)
        self.user = get_user_model().objects.create_user(username="recruiter", password="test-pass-123")

        statuses = StatusDefinition.objects.filter(organization=self.org)
        self.interview = statuses.get(pipeline=Pipeline.RECRUITMENT, code="interview")
        self.l1 = statuses.get(pipeline=Pipeline.RECRUITMENT, code="l1")
        self.bgv_initiated = statuses.get(pipeline=Pipeline.BGV, code="initiated")
        self.bgv_docs = statuses.get(pipeline=Pipeline.BGV, code="documents_requested")

    def test_new_candidate_has_empty_pointers(self):
        pointer = get_status_pointer(self.candidate.pk, organization=self.org)
        self.assertTrue(pointer.is_empty)
        self.assertEqual(pointer.version, 0)
        self.assertTrue(read_pointer(self.candidate, Pipeline.BGV).is_empty)

    def test_update_writes_pointer_label_and_actor(self):
        pointer = update_status_pointer(
            self.candidate.pk,
            organization=self.org,
            main_status_id=self.interview.pk,
            sub_status_id=self.l1.pk,
            status_label="Interview",
            actor=self.user,
        )

        self.candidate.refresh_from_db()
        self.assertEqual((pointer.main_status_id, pointer.sub_status_id), (self.interview.pk, self.l1.pk))
        self.assertEqual(pointer.version, 1)
        self.assertEqual(self.candidate.status_label, "Interview")
        self.assertEqual(self.candidate.updated_by, self.user)

    def test_bgv_pointer_is_independent(self):
        update_status_pointer(
            self.candidate.pk,
            organization=self.org,
            main_status_id=self.bgv_initiated.pk,
            sub_status_id=self.bgv_docs.pk,
            status_label="Initiated",
            pipeline=Pipeline.BGV,
        )

        self.candidate.refresh_from_db()
        self.assertEqual(self.candidate.bgv_sub_status, self.bgv_docs)
        self.assertIsNone(self.candidate.sub_status_id)
        self.assertEqual(self.candidate.status_label, "")

    def test_stale_version_is_rejected(self):
        update_status_pointer(
            self.candidate.pk,
            organization=self.org,
            main_status_id=self.interview.pk,
            sub_status_id=self.l1.pk,
        )

        with self.assertRaises(StalePointer):
            update_status_pointer(
                self.candidate.pk,
                organization=self.org,
                main_status_id=self.interview.pk,
                sub_status_id=self.l1.pk,
                expected_version=0,
            )

    def test_other_organization_cannot_see_candidate(self):
        other = Organization.objects.create(name="Other", slug="other")

        with self.assertRaises(NotFound):
            get_candidate(self.candidate.pk, organization=other)
        with self.assertRaises(NotFound):
            update_status_pointer(
                self.candidate.pk,
                organization=other,
                main_status_id=self.interview.pk,
                sub_status_id=self.l1.pk,
            )

    def test_unknown_or_malformed_id_is_not_found(self):
        with self.assertRaises(NotFound):
            get_candidate(999999, organization=self.org)
        with self.assertRaises(NotFound):
            get_candidate("not-a-number", organization=self.org)
