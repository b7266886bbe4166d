"""
Data classes used by the taxonomy tagging app
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

from attrs import define, field, frozen

if TYPE_CHECKING:
    from .models import AssociativeRelation, Term, TermTag

# Renders a term inside a validation message, e.g. as a quoted name or an HTML link
TermDecorator = Callable[["Term"], str]


@frozen
class OwnerRef:
    """
    Reference to an object being tagged: the registered owner type plus the owner's ID.

    The app never loads the owner itself, that is up to whoever registered the type.
    """

    owner_type: str
    owner_id: str = field(converter=str)

    def __str__(self):
        return f"{self.owner_type}:{self.owner_id}"


@frozen
class SingleSelectViolation:
    """
    More than one term from a single select type was proposed for the same object.
    """

    type: Term
    terms: tuple[Term, ...]


@frozen
class RequiredTypesViolation:
    """
    Some proposed terms require types that are not represented among the proposed terms.

    ``required_types`` are the roots still needed; ``offending_terms`` are the terms
    whose requirements are not met.
    """

    required_types: tuple[Term, ...]
    offending_terms: tuple[Term, ...]


@frozen
class TaggingValidationResult:
    """
    Outcome of validating a set of proposed tags against the taxonomy rules.

    An invalid result is not an error; it carries everything needed to tell the user
    what to change.
    """

    single_select_violations: tuple[SingleSelectViolation, ...] = ()
    required_types_violation: Optional[RequiredTypesViolation] = None

    @property
    def is_valid(self) -> bool:
        return not self.single_select_violations and self.required_types_violation is None

    def __bool__(self):
        return self.is_valid

    def get_messages(
        self,
        term_decorator: TermDecorator | None = None,
        types_decorator: TermDecorator | None = None,
    ) -> list[str]:
        """
        Human readable descriptions of each violated rule, single select first.

        ``term_decorator`` renders proposed terms, ``types_decorator`` renders the types
        that are still required; both default to the quoted term name.
        """
        # pylint: disable=import-outside-toplevel
        from .validators import format_required_types_message, format_single_select_message

        messages = []
        if self.single_select_violations:
            messages.append(format_single_select_message(self.single_select_violations, term_decorator))
        if self.required_types_violation is not None:
            messages.append(format_required_types_message(
                self.required_types_violation,
                types_decorator=types_decorator,
                terms_decorator=term_decorator,
            ))
        return messages


@define
class OrphanedTermTags:
    """
    Assignments that point at a term or an owner which no longer exists.
    """

    missing_term: list[TermTag] = field(factory=list)
    missing_owner: list[TermTag] = field(factory=list)

    @property
    def ids(self) -> set[int]:
        return {t.pk for t in self.missing_term} | {t.pk for t in self.missing_owner}

    def __len__(self):
        return len(self.ids)


@frozen
class RelatedTerm:
    """
    A term linked to another one through an associative relation, as seen from that other term.

    ``label`` is how the relation reads from there, e.g. "has source".
    """

    label: str
    term: Term
    relation: AssociativeRelation
