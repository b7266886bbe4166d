"""
Exceptions raised by the taxonomy tagging app
"""
from __future__ import annotations

import typing

from django.core.exceptions import ValidationError
from django.utils.translation import gettext as _

if typing.TYPE_CHECKING:
    from .data import TaggingValidationResult
    from .models import Term


class TaxonomyError(Exception):
    """
    Base exception for taxonomy structure errors
    """

    def __init__(self, message: str = ""):
        super().__init__()
        self.message = message

    def __str__(self):
        return str(self.message)

    def __repr__(self):
        return f"{self.__class__.__name__}({str(self)})"


class TermHierarchyError(TaxonomyError):
    """
    The requested parent would turn the taxonomy forest into a cycle
    """

    def __init__(self, term: Term, parent: Term):
        super().__init__()
        self.term = term
        self.parent = parent
        self.message = _(
            "Term '{name}' cannot be placed under '{parent}': a term cannot be its own ancestor."
        ).format(name=term.name, parent=parent.name)


class TermCycleError(TaxonomyError):
    """
    A cycle was found in the parent links while walking a tree.

    Writes going through Term.save() make this impossible, so it signals data that
    was modified behind the app's back.
    """

    def __init__(self, term_id: int | None, seen: typing.Iterable[int] = ()):
        super().__init__()
        self.term_id = term_id
        self.seen = sorted(seen)
        self.message = _(
            "Parent links of term {term_id} form a cycle (visited: {seen})."
        ).format(term_id=term_id, seen=self.seen)


class SingleSelectLockedError(TaxonomyError):
    """
    The single select flag of a type cannot change once any of its terms tags an object
    """

    def __init__(self, term: Term):
        super().__init__()
        self.term = term
        self.message = _(
            "The single select setting of '{name}' cannot be changed because terms from this"
            " taxonomy are already used to tag objects."
        ).format(name=term.name)


class UnknownOwnerTypeError(TaxonomyError):
    """
    Tagging was attempted for an owner type or relation that was never registered
    """

    def __init__(self, owner_type: str, relation: str | None = None):
        super().__init__()
        self.owner_type = owner_type
        self.relation = relation
        if relation is None:
            self.message = _("'{owner_type}' is not a registered taggable type.").format(owner_type=owner_type)
        else:
            self.message = _("'{owner_type}' has no registered tag relation '{relation}'.").format(
                owner_type=owner_type, relation=relation,
            )


class TaggingRulesError(ValidationError):
    """
    Raised when a write is refused because the proposed tags break the taxonomy rules.

    The full validation result is kept on ``result`` so callers can build their own messages.
    """

    def __init__(self, result: TaggingValidationResult):
        self.result = result
        super().__init__([ValidationError(message, code="invalid_tags") for message in result.get_messages()])
