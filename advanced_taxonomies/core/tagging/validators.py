"""
Tagging rules: single select exclusivity and required types.

Everything here works on Term instances that are already loaded. To avoid extra
queries, load them with ``select_related("type")`` and
``prefetch_related("required_types", "type__required_types")`` (api.validate_tags()
does this for you).
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Sequence

from django.utils.translation import gettext as _

from .data import RequiredTypesViolation, SingleSelectViolation, TaggingValidationResult, TermDecorator

if TYPE_CHECKING:
    from .models import Term


def _unique(terms: Iterable[Term]) -> list[Term]:
    """
    Drop repeated terms (same ID), keeping the first occurrence.
    """
    seen = set()
    result = []
    for term in terms:
        if term.pk not in seen:
            seen.add(term.pk)
            result.append(term)
    return result


def _type_id(term: Term) -> int | None:
    # A root that was never saved again after its insert still knows its own ID
    return term.type_id if term.type_id is not None else term.pk


def effective_required_types(term: Term) -> list[Term]:
    """
    Return the types (root terms) that must be present alongside ``term``.

    That is the term's own required types, plus the required types of its root
    unless ``required_types_inherit_root`` is off. Requirements are only
    resolved one level deep: the required types' own requirements are never
    followed, so cycles between types (X requires Y requires X) are harmless.
    """
    local = list(term.required_types.all())
    if not term.required_types_inherit_root:
        return local
    root = term.get_root()
    if root.pk == term.pk:
        return _unique(local)
    return _unique(local + list(root.required_types.all()))


class TaxonomyRulesValidator:
    """
    Validate a proposed set of tags (terms) for a single object.

    The validator doesn't care where the terms come from: the tags being submitted
    in a form, or the tags currently stored for an object. It never writes anything.
    """

    def __init__(self, terms: Iterable[Term]):
        self.terms = _unique(terms)

    @property
    def present_type_ids(self) -> set[int | None]:
        return {_type_id(term) for term in self.terms}

    def check_single_select(self) -> list[SingleSelectViolation]:
        """
        Find single select types with more than one of their terms among the proposed tags.
        """
        terms_by_type: dict[int | None, list[Term]] = {}
        for term in self.terms:
            terms_by_type.setdefault(_type_id(term), []).append(term)

        violations = []
        for terms in terms_by_type.values():
            root = terms[0].get_root()
            if root.single_select and len(terms) > 1:
                violations.append(SingleSelectViolation(type=root, terms=tuple(terms)))
        return violations

    def check_required_types(self) -> RequiredTypesViolation | None:
        """
        Find proposed tags whose required types are not represented among the proposed tags.

        Returns None when every requirement is met.
        """
        present = self.present_type_ids
        required: dict[int, Term] = {}
        offending: list[Term] = []

        for term in self.terms:
            term_required = effective_required_types(term)
            if any(required_type.pk not in present for required_type in term_required):
                offending.append(term)
                for required_type in term_required:
                    required.setdefault(required_type.pk, required_type)

        still_needed = [required_type for pk, required_type in required.items() if pk not in present]
        if not still_needed and not offending:
            return None
        return RequiredTypesViolation(required_types=tuple(still_needed), offending_terms=tuple(offending))

    def validate(self) -> TaggingValidationResult:
        return TaggingValidationResult(
            single_select_violations=tuple(self.check_single_select()),
            required_types_violation=self.check_required_types(),
        )


def quoted_name(term: Term) -> str:
    """
    Default decorator for terms in validation messages: the name in double quotes.
    """
    return f'"{term.name}"'


def join_names(names: Sequence[str], glue: str = ", ", last_glue: str = " and ") -> str:
    """
    Join names as in "a, b and c".
    """
    names = list(names)
    if len(names) < 2:
        return "".join(names)
    return glue.join(names[:-1]) + last_glue + names[-1]


def format_single_select_message(
    violations: Iterable[SingleSelectViolation],
    decorator: TermDecorator | None = None,
) -> str:
    """
    Describe single select violations, e.g. 'Please keep either "Red", or "Blue", and try again.'
    """
    decorator = decorator or quoted_name
    choices = [
        _("either {terms}").format(terms=", or ".join(decorator(term) for term in violation.terms))
        for violation in violations
    ]
    if not choices:
        return ""
    return " ".join([
        _("Some tags have been added from a single select taxonomy. Only one of the following tags can be used."),
        _("Please keep {choices}, and try again.").format(choices=", and ".join(choices)),
    ])


def format_required_types_message(
    violation: RequiredTypesViolation,
    types_decorator: TermDecorator | None = None,
    terms_decorator: TermDecorator | None = None,
) -> str:
    """
    Describe which types still need to be added, and which terms require them.
    """
    types_decorator = types_decorator or quoted_name
    terms_decorator = terms_decorator or quoted_name
    messages = []

    if violation.required_types:
        types = join_names([types_decorator(t) for t in violation.required_types])
        if len(violation.required_types) == 1:
            messages.append(_("Please also add one or more tags from the {types} taxonomy.").format(types=types))
        else:
            messages.append(
                _("Please also add one or more tags from the related {types} taxonomies.").format(types=types)
            )

    terms = join_names([terms_decorator(t) for t in violation.offending_terms])
    if len(violation.offending_terms) == 1:
        messages.append(_(
            "The required taxonomies settings of the {terms} term mean you now need to add at least one tag"
            " from related taxonomies, too."
        ).format(terms=terms))
    elif violation.offending_terms:
        messages.append(_(
            "The required taxonomies settings of the {terms} terms mean you now need to add at least one tag"
            " from related taxonomies, too."
        ).format(terms=terms))

    return " ".join(messages)
