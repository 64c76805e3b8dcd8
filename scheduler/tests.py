from datetime import timedelta

from django.test import TestCase, override_settings

from candidates.models import Candidate
from organizations.models import Organization
from pipeline.transitions import apply_transition
from scheduler import jobs
from scheduler.management.commands.run_scheduler import build_scheduler
from statuses.defaults import seed_default_statuses
from statuses.models import StatusDefinition
from timeline.services import append_status_change


def _make_candidate(org) -> Candidate:
    return Candidate.objects.create(
        organization=org,
        first_name="Ana",
        last_name="Pop",
        full_name="Ana Pop",
        email="ana@example.com",
    )


class AuditStatusPointersJobTests(TestCase):
    def setUp(self):
        self.org = Organization.objects.create(name="Acme", slug="acme")
        seed_default_statuses(self.org, pipelines=[StatusDefinition.Pipeline.RECRUITMENT])
        self.l1 = StatusDefinition.objects.get(organization=self.org, code="l1")
        self.l2 = StatusDefinition.objects.get(organization=self.org, code="l2")
        self.candidate = _make_candidate(self.org)

    def test_consistent_pipeline_reports_nothing(self):
        apply_transition(self.candidate.pk, self.l1.pk, organization=self.org)
        apply_transition(self.candidate.pk, self.l2.pk, organization=self.org)

        totals = jobs.audit_status_pointers.__wrapped__()

        self.assertEqual(totals, {"organizations": 1, "drift": 0, "broken_links": 0})

    def test_drift_and_broken_links_are_reported(self):
        first = apply_transition(self.candidate.pk, self.l1.pk, organization=self.org).event
        append_status_change(
            organization=self.org,
            candidate=self.candidate,
            pipeline=StatusDefinition.Pipeline.RECRUITMENT,
            previous_state=None,
            new_state=first.new_state | {"sub_status_id": self.l2.pk, "sub_status_name": "L2"},
        )

        with self.assertLogs("scheduler.jobs", level="WARNING"):
            totals = jobs.audit_status_pointers.__wrapped__()

        self.assertEqual(totals["drift"], 1)
        self.assertEqual(totals["broken_links"], 1)

    def test_audit_never_repairs(self):
        Candidate.objects.filter(pk=self.candidate.pk).update(main_status=self.l1.parent, sub_status=self.l1)

        jobs.audit_status_pointers.__wrapped__()

        self.candidate.refresh_from_db()
        self.assertEqual(self.candidate.sub_status, self.l1)


class RunSchedulerTests(TestCase):
    @override_settings(TIMELINE_AUDIT_MINUTES=15)
    def test_audit_job_is_registered(self):
        scheduler = build_scheduler()

        jobs_by_id = {job.id: job for job in scheduler.get_jobs()}

        self.assertIn("audit_status_pointers", jobs_by_id)
        self.assertEqual(jobs_by_id["audit_status_pointers"].trigger.interval, timedelta(minutes=15))
