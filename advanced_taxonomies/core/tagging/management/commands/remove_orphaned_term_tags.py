"""
Remove tags whose term or tagged object no longer exists.

Deleting terms and registered owners through the ORM already removes their tags,
but tags can still be left behind by raw SQL, by bulk deletes of owners (which
skip signals), or by owners deleted before their type was registered.

It is safe to run this repeatedly. Owner types registered without a Django
model are skipped, since there's no way to tell if their owners still exist.
"""
import logging

from django.core.management.base import BaseCommand

from ... import api

log = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Remove tags pointing at deleted terms or deleted tagged objects."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report the orphaned tags, don't delete them.",
        )

    def handle(self, *args, **options):
        orphans = api.find_orphaned_term_tags()
        self.stdout.write(f"Found {len(orphans.missing_term)} tag(s) without a term.")
        self.stdout.write(f"Found {len(orphans.missing_owner)} tag(s) without a tagged object.")

        if options["dry_run"]:
            for term_tag in orphans.missing_term + orphans.missing_owner:
                self.stdout.write(f"  {term_tag}")
            return

        if not len(orphans):
            self.stdout.write("Nothing to remove.")
            return

        deleted = api.delete_orphaned_term_tags()
        log.info(f"remove_orphaned_term_tags removed {deleted} tag(s)")
        self.stdout.write(self.style.SUCCESS(f"Removed {deleted} orphaned tag(s)."))
