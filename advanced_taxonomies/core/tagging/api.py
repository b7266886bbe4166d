"""
Taxonomy tagging API

Anyone using the advanced_taxonomies tagging app should use these APIs instead
of creating or modifying the models directly, since there might be other
related model changes that you may not know about.

No permissions/rules are enforced by these methods -- these must be enforced by
the caller (see rules.py).

Please look at the models/base.py file for more information about the kinds of
data stored in this app.
"""
from __future__ import annotations

import logging
from typing import Iterable, Sequence, Union

from django.db import models, transaction
from django.db.models import Max, QuerySet
from django.db.models.functions import Cast
from django.utils.translation import gettext as _

from .conf import get_setting
from .data import OrphanedTermTags, OwnerRef, RelatedTerm, TaggingValidationResult
from .exceptions import TaggingRulesError
from .models import AlternativeTerm, AssociativeRelation, AssociativeRelationType, ConceptClass, Term, TermTag
from .registry import check_relation, get_registered_owner_types, get_taggable, owner_ref_for
from .validators import TaxonomyRulesValidator

log = logging.getLogger(__name__)

# Export this as part of the API
TermDoesNotExist = Term.DoesNotExist

Owner = Union[OwnerRef, models.Model]
TermOrId = Union[Term, int]

# Fields that callers may set through create_term() / update_term()
TERM_FIELDS = frozenset([
    "name",
    "parent",
    "title",
    "title_plural",
    "url_segment",
    "description",
    "author_definition",
    "public_definition",
    "single_select",
    "internal_only",
    "required_types_inherit_root",
    "primary_concept_class",
    "sort",
])

# Fields that callers may set through add_alternative_term()
ALTERNATIVE_TERM_FIELDS = frozenset([
    "title",
    "title_plural",
    "url_segment",
    "description",
    "author_definition",
    "public_definition",
    "equivalent_type",
    "locale",
    "is_primary",
])


def _check_term_fields(fields: dict) -> None:
    unknown = set(fields) - TERM_FIELDS
    if unknown:
        raise ValueError(_("Unknown term fields: {fields}").format(fields=", ".join(sorted(unknown))))


def create_term(
    name: str,
    parent: Term | None = None,
    required_types: Iterable[Term] | None = None,
    **fields,
) -> Term:
    """
    Creates, saves, and returns a new Term with the given attributes.

    Leave ``parent`` out to create a new root term, i.e. a new taxonomy "type".
    """
    _check_term_fields(fields)
    term = Term(name=name, parent=parent, **fields)
    with transaction.atomic():
        term.full_clean()
        term.save()
        if required_types is not None:
            set_required_types(term, required_types)
    return term


def update_term(term: Term, required_types: Iterable[Term] | None = None, **fields) -> Term:
    """
    Updates the given fields of ``term`` and saves it.

    Changes to a root's flags are pushed down to the whole tree before this returns.
    """
    _check_term_fields(fields)
    for name, value in fields.items():
        setattr(term, name, value)
    with transaction.atomic():
        term.full_clean()
        term.save()
        if required_types is not None:
            set_required_types(term, required_types)
    # Ancestry may have changed
    term.__dict__.pop("depth", None)
    return term


def delete_term(term: Term) -> int:
    """
    Delete a term along with all of its descendants and every tag that uses any of them.

    Returns the number of terms deleted.
    """
    with transaction.atomic():
        term_ids = [term.pk] + term.get_descendant_ids()
        tag_count = TermTag.objects.filter(term_id__in=term_ids).count()
        _total, deleted = Term.objects.filter(pk__in=term_ids).delete()
    num_terms = deleted.get(Term._meta.label, 0)  # pylint: disable=protected-access
    log.info(f"Deleted {term} with {num_terms - 1} descendant term(s) and {tag_count} tag(s)")
    return num_terms


def get_term(term_id: int) -> Term | None:
    """
    Returns the Term with the given ID, or None.
    """
    return Term.objects.filter(pk=term_id).first()


def get_types() -> QuerySet[Term]:
    """
    Returns all root terms, i.e. the taxonomy types.
    """
    return Term.objects.filter(parent=None)


def get_terms_for_type(term: Term) -> QuerySet[Term]:
    """
    Returns all terms of the tree ``term`` belongs to, its root included.
    """
    return Term.objects.filter(type_id=term.get_root().pk)


def get_terms_by_type(type_term: TermOrId, within: TermOrId | None = None) -> QuerySet[Term]:
    """
    Returns the terms of the given type (a root term or its ID).

    With ``within``, only the terms below that term are returned.
    """
    type_id = type_term.pk if isinstance(type_term, Term) else type_term
    terms = Term.objects.filter(type_id=type_id)
    if within is not None:
        if not isinstance(within, Term):
            within = Term.objects.get(pk=within)
        terms = terms.filter(pk__in=within.get_descendant_ids())
    return terms


def get_children(term: Term) -> QuerySet[Term]:
    return term.children.all()


def get_ancestors(term: Term) -> list[Term]:
    """
    Returns the ancestors of ``term``, root first. Empty for a root.
    """
    return term.get_ancestors()


def get_descendants(term: Term) -> QuerySet[Term]:
    return term.get_descendants()


def get_root(term: Term) -> Term:
    return term.get_root()


def get_depth(term: Term) -> int:
    return term.depth


def resolve_slug_path(path: str | Sequence[str], parent: TermOrId | None = None) -> Term:
    """
    Find a term by the URL segments leading to it, e.g. "colour/red/crimson".

    The walk starts below ``parent`` (or at the roots). Each segment has to match
    a child of the term matched so far; otherwise TermDoesNotExist is raised.
    """
    if isinstance(path, str):
        segments = [segment for segment in path.split("/") if segment]
    else:
        segments = list(path)
    if not segments:
        raise TermDoesNotExist(_("An empty path doesn't lead to any term."))

    parent_id = parent.pk if isinstance(parent, Term) else parent
    *leading, last = segments
    for segment in leading:
        parent_id = _child_by_segment(parent_id, segment, segments).pk
    return _child_by_segment(parent_id, last, segments)


def _child_by_segment(parent_id: int | None, segment: str, segments: list[str]) -> Term:
    term = Term.objects.filter(parent_id=parent_id, url_segment=segment).first()
    if term is None:
        raise TermDoesNotExist(
            _("No term matches '{segment}' in path '{path}'.").format(segment=segment, path="/".join(segments))
        )
    return term


def set_required_types(term: Term, types: Iterable[Term]) -> None:
    """
    Replace the types required by ``term``. Only root terms can be required.
    """
    type_ids = {t.pk for t in types}
    roots = list(Term.objects.filter(pk__in=type_ids, parent=None))
    if len(roots) != len(type_ids):
        raise ValueError(_("Required types must be existing root terms."))
    term.required_types.set(roots)


def get_effective_required_types(term: Term) -> list[Term]:
    """
    Returns the types that must be used alongside ``term``, inheriting the root's unless disabled.
    """
    return term.get_effective_required_types()


def is_single_select_locked(term: Term) -> bool:
    """
    Whether the single select flag of ``term``'s type can no longer be changed.
    """
    return term.is_single_select_locked()


def _term_ids(terms: Iterable[TermOrId]) -> list[int]:
    return list(dict.fromkeys(t.pk if isinstance(t, Term) else int(t) for t in terms))


def _load_terms(ids: list[int]) -> list[Term]:
    """
    Load the given terms with everything the validator needs, in the given order.

    Raises TermDoesNotExist if any of them doesn't exist.
    """
    loaded = {
        term.pk: term
        for term in Term.objects.filter(pk__in=ids).select_related("type").prefetch_related(
            "required_types", "type__required_types",
        )
    }
    missing = [pk for pk in ids if pk not in loaded]
    if missing:
        raise TermDoesNotExist(_("Terms do not exist: {ids}").format(ids=missing))
    return [loaded[pk] for pk in ids]


def _load_locked_terms(ids: list[int]) -> list[Term]:
    """
    Lock the root rows of the given terms, then load the terms as _load_terms() does.

    Must run inside a transaction. Once this returns, no flag or parent link the
    validator reads can change until the transaction ends. The terms are loaded
    again after locking, until none of them has moved to a tree that isn't locked.
    """
    locked: set[int] = set()
    while True:
        loaded = _load_terms(ids)
        pending = {t.type_id for t in loaded if t.type_id is not None} - locked
        if not pending:
            return loaded
        list(Term.objects.select_for_update().filter(pk__in=pending).order_by("pk").values_list("pk"))
        locked |= pending


def _owner_ref(owner: Owner, relation: str | None) -> tuple[OwnerRef, str]:
    ref = owner_ref_for(owner)
    relation = relation or get_setting("DEFAULT_RELATION")
    check_relation(ref, relation)
    return ref, relation


def _check_new_tag_count(new_tag_count: int, ref: OwnerRef) -> None:
    """
    Checks that the object doesn't end up with more tags than allowed
    """
    max_tags = get_setting("MAX_TAGS_PER_OBJECT")
    if new_tag_count > max_tags:
        raise ValueError(
            _("Cannot add more than {max_tags} tags to ({owner}).").format(max_tags=max_tags, owner=ref)
        )


def validate_tags(terms: Iterable[TermOrId]) -> TaggingValidationResult:
    """
    Check a proposed set of tags for one object against the taxonomy rules.

    All the data is loaded up front in one transaction, then validated without
    further queries. An invalid set of tags is reported in the result, not raised.
    """
    with transaction.atomic():
        loaded = _load_terms(_term_ids(terms))
    return TaxonomyRulesValidator(loaded).validate()


def get_object_tags(owner: Owner, relation: str | None = None) -> QuerySet[TermTag]:
    """
    Returns the tags of ``owner`` for the given relation, in their sort order.
    """
    ref, relation = _owner_ref(owner, relation)
    return (
        TermTag.objects
        .filter(owner_type=ref.owner_type, owner_id=ref.owner_id, relation=relation)
        .select_related("term", "term__type")
        .order_by("sort", "id")
    )


def get_object_terms(owner: Owner, relation: str | None = None) -> list[Term]:
    return [term_tag.term for term_tag in get_object_tags(owner, relation)]


def get_displayable_object_tags(owner: Owner, relation: str | None = None) -> QuerySet[TermTag]:
    """
    Returns the tags of ``owner`` that can be shown to end users, i.e. not from internal only types.
    """
    return get_object_tags(owner, relation).filter(term__type__internal_only=False)


def get_displayable_object_terms(owner: Owner, relation: str | None = None) -> list[Term]:
    return [term_tag.term for term_tag in get_displayable_object_tags(owner, relation)]


def validate_object_tags(owner: Owner, relation: str | None = None) -> TaggingValidationResult:
    """
    Check the tags currently stored for ``owner`` against the taxonomy rules.
    """
    term_ids = list(get_object_tags(owner, relation).values_list("term_id", flat=True))
    return validate_tags(term_ids)


def add_tag_to_object(owner: Owner, term: Term, relation: str | None = None) -> TermTag:
    """
    Append ``term`` to the owner's tags. Adding a term that is already there is a no-op.

    The taxonomy rules are not checked here; use tag_object() to replace a whole
    list of tags with validation.
    """
    ref, relation = _owner_ref(owner, relation)
    with transaction.atomic():
        (term,) = _load_locked_terms(_term_ids([term]))
        object_tags = TermTag.objects.filter(owner_type=ref.owner_type, owner_id=ref.owner_id, relation=relation)
        existing = object_tags.filter(term=term).first()
        if existing:
            return existing
        _check_new_tag_count(object_tags.count() + 1, ref)
        last_sort = object_tags.aggregate(last_sort=Max("sort"))["last_sort"]
        term_tag = TermTag(
            owner_type=ref.owner_type,
            owner_id=ref.owner_id,
            relation=relation,
            term=term,
            sort=0 if last_sort is None else last_sort + 1,
        )
        term_tag.full_clean()
        term_tag.save()
    return term_tag


def remove_tag_from_object(owner: Owner, term: TermOrId, relation: str | None = None) -> bool:
    """
    Remove ``term`` from the owner's tags. Returns False if it wasn't there.
    """
    ref, relation = _owner_ref(owner, relation)
    term_id = term.pk if isinstance(term, Term) else term
    deleted, _by_model = TermTag.objects.filter(
        owner_type=ref.owner_type, owner_id=ref.owner_id, relation=relation, term_id=term_id,
    ).delete()
    return bool(deleted)


def tag_object(
    owner: Owner,
    terms: Iterable[TermOrId],
    relation: str | None = None,
    validate: bool = True,
) -> list[TermTag]:
    """
    Replaces the owner's tags for ``relation`` with the given terms, in that order.

    Preserves existing tags (updating their sort order), adds new ones, and removes
    omitted ones. With ``validate`` on, nothing is written if the new tags break
    the taxonomy rules; TaggingRulesError is raised instead, carrying the
    validation result.
    """
    ref, relation = _owner_ref(owner, relation)
    term_ids = _term_ids(terms)
    _check_new_tag_count(len(term_ids), ref)

    with transaction.atomic():
        terms = _load_locked_terms(term_ids)
        if validate:
            result = TaxonomyRulesValidator(terms).validate()
            if not result.is_valid:
                raise TaggingRulesError(result)

        object_tags = TermTag.objects.filter(owner_type=ref.owner_type, owner_id=ref.owner_id, relation=relation)
        current = {term_tag.term_id: term_tag for term_tag in object_tags}
        new_ids = {term.pk for term in terms}
        # delete any omitted existing tags first
        object_tags.exclude(term_id__in=new_ids).delete()

        for position, term in enumerate(terms):
            term_tag = current.get(term.pk)
            if term_tag is None:
                term_tag = TermTag(
                    owner_type=ref.owner_type, owner_id=ref.owner_id, relation=relation, term=term, sort=position,
                )
                term_tag.full_clean()
                term_tag.save()
            elif term_tag.sort != position:
                term_tag.sort = position
                term_tag.save(update_fields=["sort"])

    return list(get_object_tags(ref, relation))


def reorder_object_tags(owner: Owner, terms: Sequence[TermOrId], relation: str | None = None) -> list[TermTag]:
    """
    Put the owner's existing tags in the given order. ``terms`` must list exactly the current tags.
    """
    ref, relation = _owner_ref(owner, relation)
    term_ids = [t.pk if isinstance(t, Term) else t for t in terms]
    with transaction.atomic():
        current = {term_tag.term_id: term_tag for term_tag in get_object_tags(ref, relation)}
        if set(term_ids) != set(current) or len(term_ids) != len(current):
            raise ValueError(_("The new order must list each of the object's current tags exactly once."))
        for position, term_id in enumerate(term_ids):
            term_tag = current[term_id]
            if term_tag.sort != position:
                term_tag.sort = position
                term_tag.save(update_fields=["sort"])
    return list(get_object_tags(ref, relation))


def delete_object_tags(owner: Owner) -> int:
    """
    Delete all the tags of ``owner``, across all of its relations.
    """
    ref = owner_ref_for(owner)
    deleted, _by_model = TermTag.objects.filter(owner_type=ref.owner_type, owner_id=ref.owner_id).delete()
    return deleted


def get_tagged_owners(term: Term) -> set[OwnerRef]:
    """
    Returns references to all the objects tagged with ``term``.
    """
    return term.get_tagged_owners()


def get_tagged_owners_for_type(term: Term) -> set[OwnerRef]:
    """
    Returns references to all the objects tagged with any term of ``term``'s tree.

    Objects are listed once even if they use several terms of the tree, or use
    them through several relations.
    """
    rows = (
        TermTag.objects
        .filter(term__type_id=term.get_root().pk)
        .order_by()
        .values_list("owner_type", "owner_id")
        .distinct()
    )
    return {OwnerRef(owner_type, owner_id) for owner_type, owner_id in rows}


def find_orphaned_term_tags() -> OrphanedTermTags:
    """
    Find tags whose term or owner no longer exists.

    Owners are only checked for types registered with a Django model; tags of
    other owner types are left alone, as there's no way to tell if their owner
    still exists.
    """
    orphans = OrphanedTermTags()
    orphans.missing_term = list(TermTag.objects.exclude(term_id__in=Term.objects.values("pk")))

    checked_types = set()
    for entry in get_registered_owner_types():
        if entry.model is None:
            continue
        checked_types.add(entry.owner_type)
        existing_ids = entry.model._default_manager.annotate(  # pylint: disable=protected-access
            owner_key=Cast("pk", output_field=models.CharField()),
        ).values("owner_key")
        orphans.missing_owner.extend(
            TermTag.objects.filter(owner_type=entry.owner_type).exclude(owner_id__in=existing_ids)
        )

    unchecked = TermTag.objects.exclude(owner_type__in=checked_types).values_list("owner_type", flat=True)
    for owner_type in sorted(set(unchecked)):
        log.warning(f"Can't check tags of owner type {owner_type} for orphans: no model registered for it")

    return orphans


def delete_orphaned_term_tags() -> int:
    """
    Delete the tags found by find_orphaned_term_tags(). Returns how many were deleted.
    """
    orphans = find_orphaned_term_tags()
    if not orphans.ids:
        return 0
    deleted, _by_model = TermTag.objects.filter(pk__in=orphans.ids).delete()
    log.info(
        f"Deleted {deleted} orphaned tag(s): {len(orphans.missing_term)} without a term,"
        f" {len(orphans.missing_owner)} without an owner"
    )
    return deleted


def link_default_terms(owner: Owner) -> list[TermTag]:
    """
    Tag ``owner`` with the default terms registered for its owner type.

    Default terms are registered per relation as slug paths, e.g. "information-type/news".
    Paths that don't lead to a term are skipped with a warning.
    """
    ref = owner_ref_for(owner)
    term_tags = []
    for relation, paths in get_taggable(ref.owner_type).default_terms:
        for path in paths:
            try:
                term = resolve_slug_path(path)
            except TermDoesNotExist:
                log.warning(f"Default term '{path}' for {relation} of {ref.owner_type} doesn't exist")
                continue
            term_tags.append(add_tag_to_object(ref, term, relation))
    return term_tags


def _next_sort(queryset: QuerySet) -> int:
    last_sort = queryset.aggregate(last_sort=Max("sort"))["last_sort"]
    return 0 if last_sort is None else last_sort + 1


def add_alternative_term(
    term: Term,
    name: str,
    kind: str = AlternativeTerm.ALTERNATIVE,
    **fields,
) -> AlternativeTerm:
    """
    Add an alternative (or equivalent, or language) term for the preferred ``term``.

    New alternatives go after the term's existing ones.
    """
    unknown = set(fields) - ALTERNATIVE_TERM_FIELDS
    if unknown:
        raise ValueError(_("Unknown alternative term fields: {fields}").format(fields=", ".join(sorted(unknown))))
    with transaction.atomic():
        alternative = AlternativeTerm(
            preferred_term=term,
            name=name,
            kind=kind,
            sort=_next_sort(term.alternative_terms.all()),
            **fields,
        )
        alternative.full_clean()
        alternative.save()
    return alternative


def get_alternative_terms(term: Term, kind: str | None = None) -> QuerySet[AlternativeTerm]:
    """
    Returns the alternatives of ``term``, optionally only those of one kind.
    """
    alternatives = term.alternative_terms.all()
    if kind is not None:
        alternatives = alternatives.filter(kind=kind)
    return alternatives


def get_alternative_term_names(term: Term) -> list[str]:
    """
    Titles of all the alternatives of ``term``, e.g. ["AV", "Vidéo (French)"].
    """
    return [alternative.get_alt_term_title() for alternative in term.alternative_terms.all()]


def create_associative_relation_type(
    label_left: str,
    label_right: str = "",
    is_symmetric: bool = True,
) -> AssociativeRelationType:
    relation_type = AssociativeRelationType(
        label_left=label_left, label_right=label_right, is_symmetric=is_symmetric,
    )
    relation_type.full_clean()
    relation_type.save()
    return relation_type


def delete_associative_relation_type(relation_type: AssociativeRelationType) -> None:
    """
    Delete a relation type. Default types and types still in use can't be deleted.
    """
    if relation_type.is_default():
        raise ValueError(
            _("'{title}' is a default relation type and cannot be deleted.").format(title=relation_type.title)
        )
    relation_type.delete()


def add_associative_relation(
    source: Term,
    destination: Term,
    relation_type: AssociativeRelationType,
    is_inverse_relation: bool = False,
) -> AssociativeRelation:
    """
    Relate ``source`` to ``destination``. New relations go after the source's existing ones.
    """
    with transaction.atomic():
        relation = AssociativeRelation(
            source=source,
            destination=destination,
            relation_type=relation_type,
            is_inverse_relation=is_inverse_relation,
            sort=_next_sort(source.associative_relations.all()),
        )
        relation.full_clean()
        relation.save()
    return relation


def remove_associative_relation(relation: AssociativeRelation) -> None:
    relation.delete()


def get_associative_relations(term: Term) -> QuerySet[AssociativeRelation]:
    """
    Returns the relations whose source is ``term``, in their sort order.
    """
    return term.associative_relations.select_related("destination", "relation_type")


def get_related_terms(term: Term) -> list[RelatedTerm]:
    """
    Returns the terms related to ``term``, each with the label the relation reads with from ``term``.

    That is the destinations of its own relations, followed by the sources of the
    symmetric relations pointing at it.
    """
    related = [
        RelatedTerm(relation.get_label(), relation.destination, relation)
        for relation in get_associative_relations(term)
    ]
    incoming = (
        term.incoming_associative_relations
        .filter(relation_type__is_symmetric=True)
        .select_related("source", "relation_type")
    )
    related.extend(
        RelatedTerm(relation.get_label(from_destination=True), relation.source, relation)
        for relation in incoming
    )
    return related


def create_concept_class(name: str, description: str = "", sort: int = 0) -> ConceptClass:
    concept_class = ConceptClass(name=name, description=description, sort=sort)
    concept_class.full_clean()
    concept_class.save()
    return concept_class


def delete_concept_class(concept_class: ConceptClass) -> None:
    """
    Delete a concept class, unless it is one of the default ones.

    Terms that had it as their primary concept class are left without one.
    """
    if concept_class.is_default():
        raise ValueError(
            _("'{name}' is a default concept class and cannot be deleted.").format(name=concept_class.name)
        )
    concept_class.delete()


def set_other_concept_classes(term: Term, concept_classes: Iterable[ConceptClass]) -> None:
    term.other_concept_classes.set(list(concept_classes))


def get_concept_class_terms(concept_class: ConceptClass, include_others: bool = False) -> QuerySet[Term]:
    """
    Returns the terms whose primary concept class is ``concept_class``, directly or through their root.

    With ``include_others``, terms having it as one of their other concept classes are included too.
    """
    if include_others:
        return concept_class.get_all_terms()
    return concept_class.get_terms()


def ensure_default_concept_classes() -> list[ConceptClass]:
    """
    Create the concept classes of the DEFAULT_CONCEPT_CLASSES setting that don't exist yet.

    Returns the ones created.
    """
    created = []
    for name in get_setting("DEFAULT_CONCEPT_CLASSES"):
        if name and not ConceptClass.objects.filter(name=name).exists():
            created.append(create_concept_class(name))
            log.info(f"Created default concept class '{name}'")
    return created


def ensure_default_associative_relation_types() -> list[AssociativeRelationType]:
    """
    Create the relation types of the DEFAULT_ASSOCIATIVE_RELATION_TYPES setting that don't exist yet.

    A missing right label means none, a missing symmetric flag means symmetric.
    Returns the ones created.
    """
    created = []
    for entry in get_setting("DEFAULT_ASSOCIATIVE_RELATION_TYPES"):
        label_left = entry[0]
        label_right = entry[1] if len(entry) > 1 and entry[1] else ""
        is_symmetric = bool(entry[2]) if len(entry) > 2 else True
        existing = AssociativeRelationType.objects.filter(label_left=label_left, is_symmetric=is_symmetric)
        if label_right:
            existing = existing.filter(label_right=label_right)
        if existing.exists():
            continue
        created.append(create_associative_relation_type(label_left, label_right, is_symmetric))
        log.info(f"Created default associative relation type '{created[-1].title}'")
    return created
