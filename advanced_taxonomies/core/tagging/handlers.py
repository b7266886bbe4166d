"""
Signal handlers for taxonomy tagging.

Owner models live in other apps, which shouldn't need to know about TermTag. The
registry connects these handlers for every registered model instead.
"""
import logging

from .models import TermTag
from .registry import get_owner_type_for_model, owner_ref_for

log = logging.getLogger(__name__)


def delete_owner_tags_on_delete(sender, instance=None, **kwargs):
    """
    Delete all the tags of an owner object that was just deleted.
    """
    owner_type = get_owner_type_for_model(sender)
    deleted, _by_model = TermTag.objects.filter(owner_type=owner_type, owner_id=str(instance.pk)).delete()
    if deleted:
        log.info(f"Deleted {deleted} tag(s) of removed {owner_type}:{instance.pk}")


def link_default_terms_on_create(sender, instance=None, created=False, raw=False, **kwargs):
    """
    Tag a newly created owner object with the default terms of its owner type.

    Objects loaded from fixtures (``raw``) are left alone.
    """
    if not created or raw:
        return
    # pylint: disable=import-outside-toplevel
    from .api import link_default_terms
    term_tags = link_default_terms(owner_ref_for(instance))
    if term_tags:
        log.info(f"Tagged new {owner_ref_for(instance)} with {len(term_tags)} default term(s)")


def create_default_records(sender, **kwargs):
    """
    Create the configured default concept classes and associative relation types after migrating.
    """
    # pylint: disable=import-outside-toplevel
    from .api import ensure_default_associative_relation_types, ensure_default_concept_classes
    ensure_default_concept_classes()
    ensure_default_associative_relation_types()
