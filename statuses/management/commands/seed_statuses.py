"""
management/commands/seed_statuses.py

Populates the default recruitment and BGV status catalogs for one
organization. Safe to run multiple times — rows are keyed on
(organization, pipeline, code) so existing custom statuses are never
overwritten unless --force is given.

Usage:
    python manage.py seed_statuses acme
    python manage.py seed_statuses acme --pipeline bgv
    python manage.py seed_statuses acme --force   # overwrite names/colors/order
    python manage.py seed_statuses acme --create-organization --name "Acme Ltd"
"""

from django.core.management.base import BaseCommand, CommandError

from organizations.models import Organization
from statuses.defaults import seed_default_statuses
from statuses.models import StatusDefinition


class Command(BaseCommand):
    help = "Seed the default status catalogs for an organization. Safe to re-run."

    def add_arguments(self, parser):
        parser.add_argument("organization", help="Organization slug.")
        parser.add_argument(
            "--pipeline",
            choices=StatusDefinition.Pipeline.values,
            action="append",
            help="Seed only this pipeline (repeatable). Default: all pipelines.",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Overwrite name, color and display order of existing statuses.",
        )
        parser.add_argument(
            "--create-organization",
            action="store_true",
            help="Create the organization if the slug does not exist yet.",
        )
        parser.add_argument("--name", default="", help="Name used with --create-organization.")

    def handle(self, *args, **options):
        slug = options["organization"]
        try:
            organization = Organization.objects.get(slug=slug)
        except Organization.DoesNotExist:
            if not options["create_organization"]:
                raise CommandError(
                    f"Organization '{slug}' does not exist. Pass --create-organization to create it."
                )
            organization = Organization.objects.create(slug=slug, name=options["name"] or slug)
            self.stdout.write(self.style.SUCCESS(f"  Created organization: {organization}"))

        summary = seed_default_statuses(
            organization,
            pipelines=options["pipeline"],
            force=options["force"],
        )

        self.stdout.write(
            self.style.SUCCESS(
                f"\nDone. Created: {summary['created']}, Updated: {summary['updated']}, "
                f"Skipped: {summary['skipped']}"
            )
        )
