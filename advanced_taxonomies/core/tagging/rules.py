"""
Django rules-based permissions for taxonomy tagging
"""
from __future__ import annotations

from typing import Callable, Union

import django.contrib.auth.models
# typing support in rules depends on https://github.com/dfunckt/django-rules/pull/177
import rules  # type: ignore[import]
from attrs import define

from .data import OwnerRef
from .models import AssociativeRelationType, ConceptClass, Term

UserType = Union[
    django.contrib.auth.models.User, django.contrib.auth.models.AnonymousUser
]


# Global staff are taxonomy admins.
# (Superusers can already do anything)
is_taxonomy_admin: Callable[[UserType], bool] = rules.is_staff


@define
class OwnerTagPermissionItem:
    """
    Pair of term and tagged object used for permission checking.
    """

    term: Term
    owner: OwnerRef


@rules.predicate
def can_view_term(user: UserType, term: Term | None = None) -> bool:
    """
    Anyone can view terms that are shown to end users,
    but only taxonomy admins can view internal only terms.
    """
    return not term or not term.get_root().internal_only or is_taxonomy_admin(user)


@rules.predicate
def can_change_term(user: UserType, _term: Term | None = None) -> bool:
    """
    Only taxonomy admins can create, modify or delete terms.
    """
    return is_taxonomy_admin(user)


@rules.predicate
def can_change_term_single_select(user: UserType, term: Term | None = None) -> bool:
    """
    The single select flag lives on root terms, and is frozen once the taxonomy is in use.
    """
    if not is_taxonomy_admin(user):
        return False
    if term is None:
        return True
    return term.is_root and not term.is_single_select_locked()


@rules.predicate
def can_delete_concept_class(user: UserType, concept_class: ConceptClass | None = None) -> bool:
    """
    Taxonomy admins can delete concept classes, except for the default ones.
    """
    if not is_taxonomy_admin(user):
        return False
    return concept_class is None or not concept_class.is_default()


@rules.predicate
def can_delete_associative_relation_type(
    user: UserType, relation_type: AssociativeRelationType | None = None
) -> bool:
    """
    Taxonomy admins can delete relation types, except for the default ones.
    """
    if not is_taxonomy_admin(user):
        return False
    return relation_type is None or not relation_type.is_default()


@rules.predicate
def can_change_termtag_owner(_user: UserType, _owner: OwnerRef) -> bool:
    """
    Nobody can tag or untag an object without checking the permission for the tagged object.

    This rule should be defined in other apps for proper permission checking.
    """
    return False


@rules.predicate
def can_view_termtag(
    user: UserType, perm_obj: OwnerTagPermissionItem | None = None
) -> bool:
    """
    Tags are visible to anyone who can view their term.
    """
    if perm_obj is None:
        return True
    return user.has_perm("at_tagging.view_term", perm_obj.term)


@rules.predicate
def can_change_termtag(
    user: UserType, perm_obj: OwnerTagPermissionItem | None = None
) -> bool:
    """
    Checks if the user has permissions to add or remove the given term on the given object.
    """

    # The following code allows METHOD permission (PUT) for everyone
    if perm_obj is None:
        return True

    if not user.has_perm("at_tagging.view_term", perm_obj.term):
        return False

    return user.has_perm(
        "at_tagging.change_termtag_owner",
        # The obj arg expects a model instance, but we are passing an OwnerRef
        perm_obj.owner,  # type: ignore[arg-type]
    )


# Term
rules.add_perm("at_tagging.add_term", can_change_term)
rules.add_perm("at_tagging.change_term", can_change_term)
rules.add_perm("at_tagging.delete_term", can_change_term)
rules.add_perm("at_tagging.view_term", can_view_term)
rules.add_perm("at_tagging.change_term_single_select", can_change_term_single_select)

# TermTag
rules.add_perm("at_tagging.add_termtag", can_change_termtag)
rules.add_perm("at_tagging.change_termtag", can_change_termtag)
rules.add_perm("at_tagging.delete_termtag", can_change_termtag)
rules.add_perm("at_tagging.view_termtag", can_view_termtag)
rules.add_perm("at_tagging.change_termtag_owner", can_change_termtag_owner)

# Thesaurus
rules.add_perm("at_tagging.add_alternativeterm", can_change_term)
rules.add_perm("at_tagging.change_alternativeterm", can_change_term)
rules.add_perm("at_tagging.delete_alternativeterm", can_change_term)
rules.add_perm("at_tagging.view_alternativeterm", rules.always_allow)
rules.add_perm("at_tagging.add_associativerelation", can_change_term)
rules.add_perm("at_tagging.change_associativerelation", can_change_term)
rules.add_perm("at_tagging.delete_associativerelation", can_change_term)
rules.add_perm("at_tagging.view_associativerelation", rules.always_allow)
rules.add_perm("at_tagging.add_associativerelationtype", can_change_term)
rules.add_perm("at_tagging.change_associativerelationtype", can_change_term)
rules.add_perm("at_tagging.delete_associativerelationtype", can_delete_associative_relation_type)
rules.add_perm("at_tagging.view_associativerelationtype", rules.always_allow)
rules.add_perm("at_tagging.add_conceptclass", can_change_term)
rules.add_perm("at_tagging.change_conceptclass", can_change_term)
rules.add_perm("at_tagging.delete_conceptclass", can_delete_concept_class)
rules.add_perm("at_tagging.view_conceptclass", rules.always_allow)
