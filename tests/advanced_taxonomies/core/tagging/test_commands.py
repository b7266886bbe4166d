"""
Test the tagging management commands
"""
from io import StringIO

from django.core.management import call_command
from django.test.testcases import TestCase

from advanced_taxonomies.core.tagging import api
from advanced_taxonomies.core.tagging.data import OwnerRef
from advanced_taxonomies.core.tagging.models import TermTag

from .test_models import TestTermTaxonomyMixin


class TestRemoveOrphanedTermTags(TestTermTaxonomyMixin, TestCase):
    """
    Test the remove_orphaned_term_tags command
    """

    def setUp(self):
        super().setUp()
        self.kept = api.add_tag_to_object(self.user_1, self.red)
        self.orphan = api.add_tag_to_object(OwnerRef(self.user_type.owner_type, "987654"), self.blue)

    def call_command(self, *args) -> str:
        out = StringIO()
        call_command("remove_orphaned_term_tags", *args, stdout=out)
        return out.getvalue()

    def test_dry_run(self):
        output = self.call_command("--dry-run")
        assert "Found 0 tag(s) without a term." in output
        assert "Found 1 tag(s) without a tagged object." in output
        assert str(self.orphan) in output
        assert TermTag.objects.count() == 2

    def test_remove(self):
        output = self.call_command()
        assert "Removed 1 orphaned tag(s)." in output
        assert list(TermTag.objects.all()) == [self.kept]

        output = self.call_command()
        assert "Found 0 tag(s) without a tagged object." in output
        assert "Nothing to remove." in output
