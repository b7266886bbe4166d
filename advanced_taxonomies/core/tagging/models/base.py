"""
Taxonomy tagging base data models
"""
from __future__ import annotations

import logging
from typing import Iterator

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils.functional import cached_property
from django.utils.text import slugify
from django.utils.translation import gettext_lazy as _

from ..conf import get_setting
from ..data import OwnerRef
from ..exceptions import SingleSelectLockedError, TermCycleError, TermHierarchyError
from ..generators import DEGENERATE_SEGMENTS, generate_url_segment, pluralize
from ..validators import effective_required_types

log = logging.getLogger(__name__)


class Term(models.Model):
    """
    A single node in a forest of taxonomy trees.

    A root Term acts as the "type" of its whole tree: every Term points at its root
    through ``type``, and carries copies of the root's ``single_select`` and
    ``internal_only`` flags. Those copies are maintained on every save, so reading
    them from any node of the tree is always safe.

    Terms are used to tag arbitrary objects through TermTag.
    """

    id = models.BigAutoField(primary_key=True)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        default=None,
        on_delete=models.CASCADE,
        related_name="children",
        help_text=_("Term that lives one level up from the current term, forming a hierarchy."),
    )
    type = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        default=None,
        editable=False,
        on_delete=models.CASCADE,
        related_name="terms",
        help_text=_("Root term of this term's tree. A root term points at itself."),
    )
    name = models.CharField(
        max_length=255,
        help_text=_("Short label of the term, also used to build its URL segment."),
    )
    title = models.CharField(
        max_length=255,
        blank=True,
        help_text=_("Display name (singular). Defaults to the name."),
    )
    title_plural = models.CharField(
        max_length=255,
        blank=True,
        help_text=_("Display name (plural). Defaults to the pluralised name."),
    )
    url_segment = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text=_("Slug identifying this term among its siblings."),
    )
    description = models.TextField(blank=True)
    author_definition = models.TextField(
        blank=True,
        help_text=_("Guidance for people applying this term as a tag."),
    )
    public_definition = models.TextField(
        blank=True,
        help_text=_("Definition of the term shown to end users."),
    )
    single_select = models.BooleanField(
        default=False,
        help_text=_("Only one term of this taxonomy may be applied to an object. Read from the root term."),
    )
    internal_only = models.BooleanField(
        default=False,
        help_text=_("Terms of this taxonomy are hidden from end users. Read from the root term."),
    )
    required_types_inherit_root = models.BooleanField(
        default=True,
        help_text=_("Also require the types required by the root term."),
    )
    required_types = models.ManyToManyField(
        "self",
        symmetrical=False,
        blank=True,
        related_name="required_by",
        limit_choices_to={"parent": None},
        help_text=_("Root terms of other taxonomies which must also be used whenever this term is used."),
    )
    primary_concept_class = models.ForeignKey(
        "ConceptClass",
        null=True,
        blank=True,
        default=None,
        on_delete=models.SET_NULL,
        related_name="primary_terms",
        help_text=_("Main concept class of this term. Terms without one use their root's."),
    )
    other_concept_classes = models.ManyToManyField(
        "ConceptClass",
        blank=True,
        related_name="other_terms",
        help_text=_("Further concept classes this term belongs to."),
    )
    sort = models.IntegerField(default=0)

    class Meta:
        ordering = ["sort", "id"]
        indexes = [
            models.Index(fields=["parent", "url_segment"], name="at_term_parent_segment_idx"),
            models.Index(fields=["type", "single_select"], name="at_term_type_single_idx"),
        ]

    def __repr__(self):
        """
        Developer-facing representation of a Term.
        """
        return str(self)

    def __str__(self):
        """
        User-facing string representation of a Term.
        """
        return f"<{self.__class__.__name__}> ({self.id}) {self.name}"

    @property
    def is_root(self) -> bool:
        """
        Is this term the root ("type") of its tree?
        """
        return self.parent_id is None

    def get_next_ancestor(self) -> Term | None:
        """
        Fetch the parent of this Term.

        While doing so, preload several ancestors at the same time, so we can
        use fewer database queries than the basic approach of iterating through
        parent.parent.parent...
        """
        if self.parent_id is None:
            return None
        if not Term.parent.is_cached(self):  # pylint: disable=no-member
            self.parent = Term.objects.select_related("parent", "parent__parent").get(pk=self.parent_id)
        return self.parent

    def get_ancestors(self) -> list[Term]:
        """
        Return the ancestors of this term, root first, excluding the term itself.
        """
        ancestors: list[Term] = []
        seen = {self.pk}
        node: Term | None = self
        while node is not None and node.parent_id is not None:
            if node.parent_id in seen:
                raise TermCycleError(self.pk, (pk for pk in seen if pk is not None))
            seen.add(node.parent_id)
            node = node.get_next_ancestor()
            if node is not None:
                ancestors.insert(0, node)
        return ancestors

    def get_root(self) -> Term:
        """
        Return the root ("type") of this term's tree.
        """
        if self.parent_id is None:
            return self
        if self.type_id is not None:
            return self.type  # type: ignore[return-value]
        return self.get_ancestors()[0]

    @cached_property
    def depth(self) -> int:
        """
        How many ancestors this Term has. Zero for root terms.
        """
        return len(self.get_ancestors())

    def iter_descendant_levels(self) -> Iterator[list[int]]:
        """
        Walk the subtree below this term breadth-first, yielding the IDs of one level at a time.

        Each descendant is visited exactly once; reaching a term twice means the parent
        links contain a cycle, which raises TermCycleError instead of looping forever.
        """
        if self.pk is None:
            return
        seen = {self.pk}
        level = [self.pk]
        while level:
            children = list(
                Term.objects.filter(parent_id__in=level).order_by().values_list("pk", flat=True)
            )
            if seen.intersection(children):
                raise TermCycleError(self.pk, seen)
            seen.update(children)
            if children:
                yield children
            level = children

    def get_descendant_ids(self) -> list[int]:
        """
        IDs of every term below this one, closest levels first.
        """
        ids: list[int] = []
        for level in self.iter_descendant_levels():
            ids.extend(level)
        return ids

    def get_descendants(self) -> models.QuerySet:
        """
        Return every term below this one, at any depth.
        """
        return Term.objects.filter(pk__in=self.get_descendant_ids())

    def get_hierarchy_display(self, separator: str | None = None) -> str:
        """
        Breadcrumb of this term's names, e.g. "Colour ▸ Red ▸ Crimson".
        """
        if separator is None:
            separator = get_setting("HIERARCHY_SEPARATOR")
        return separator.join([ancestor.name for ancestor in self.get_ancestors()] + [self.name])

    def type_name_with_flag_attributes(self) -> str | None:
        """
        Name of the term's type along with its flags, e.g. "Colour (Single; Hidden)".
        """
        if self.pk is None:
            return None
        root = self.get_root()
        single = _("Single") if root.single_select else _("Multi")
        shown = _("Hidden") if root.internal_only else _("Shown")
        return f"{root.name} ({single}; {shown})"

    def get_effective_required_types(self) -> list[Term]:
        """
        The types that must be present alongside this term, see validators.effective_required_types().
        """
        return effective_required_types(self)

    def get_primary_concept_class(self):
        """
        This term's own primary concept class, or else its root's.
        """
        if self.primary_concept_class_id is not None or self.parent_id is None:
            return self.primary_concept_class
        return self.get_root().primary_concept_class

    def is_single_select_locked(self) -> bool:
        """
        Has any term of this term's tree been used to tag an object?

        Once that happens the single select flag of the tree can no longer change.
        """
        type_id = self.type_id if self.type_id is not None else self.pk
        if type_id is None:
            return False
        return TermTag.objects.filter(term__type_id=type_id).exists()

    def get_tagged_owners(self) -> set[OwnerRef]:
        """
        References to all the objects tagged with this term, through any relation.
        """
        rows = self.term_tags.order_by().values_list("owner_type", "owner_id").distinct()
        return {OwnerRef(owner_type, owner_id) for owner_type, owner_id in rows}

    def inherit_from_parent(self) -> None:
        """
        Copy the type and the type-level flags from the parent, as stored in the database.

        A saved root term is its own type.
        """
        if self.parent_id is not None:
            parent_values = Term.objects.filter(pk=self.parent_id).values(
                "type_id", "single_select", "internal_only",
            ).get()
            self.type_id = parent_values["type_id"]
            self.single_select = parent_values["single_select"]
            self.internal_only = parent_values["internal_only"]
        elif self.pk is not None:
            self.type_id = self.pk

    def propagate_to_descendants(self) -> int:
        """
        Push this term's type and type-level flags down to the whole subtree.

        Terms that already hold the right values are left alone, so running this
        again without changes is a no-op. Returns the number of terms updated.
        """
        updated = 0
        for level in self.iter_descendant_levels():
            updated += Term.objects.filter(pk__in=level).exclude(
                type_id=self.type_id,
                single_select=self.single_select,
                internal_only=self.internal_only,
            ).update(
                type_id=self.type_id,
                single_select=self.single_select,
                internal_only=self.internal_only,
            )
        if updated:
            log.info(f"Propagated type {self.type_id} flags from {self} to {updated} descendant term(s)")
        return updated

    def _url_segment_taken(self, candidate: str) -> bool:
        return Term.objects.filter(
            parent_id=self.parent_id, url_segment=candidate,
        ).exclude(pk=self.pk).exists()

    def _generate_url_segment(self) -> str:
        return generate_url_segment(
            self.url_segment or self.name,
            self._meta.model_name,
            self.pk,
            self._url_segment_taken,
        )

    def backfill_display_fields(self) -> bool:
        """
        Fill in title, title_plural and url_segment from the name where they are missing.

        Returns True if the URL segment can only be worked out once the term has an ID.
        """
        self.name = (self.name or "").strip()
        if not self.name:
            return False
        if not self.title:
            self.title = self.name
        if not self.title_plural:
            self.title_plural = pluralize(self.name)
        if self.pk is None and slugify(self.url_segment or self.name) in DEGENERATE_SEGMENTS:
            return True
        self.url_segment = self._generate_url_segment()
        return False

    def _check_parent(self) -> None:
        """
        Refuse parents that would make this term its own ancestor.
        """
        if self.parent_id is None or self.pk is None:
            return
        seen: set[int] = set()
        node_id: int | None = self.parent_id
        while node_id is not None:
            if node_id == self.pk:
                raise TermHierarchyError(self, self.parent)  # type: ignore[arg-type]
            if node_id in seen:
                raise TermCycleError(node_id, seen)
            seen.add(node_id)
            node_id = Term.objects.filter(pk=node_id).values_list("parent_id", flat=True).first()

    def _lock_trees(self) -> None:
        """
        Serialize writes per tree by locking the root rows this write touches.

        That is the tree the term is stored in and the tree of its new parent. The
        roots are read again once locked, until no other write has moved either of
        them in the meantime, so values read after this call can be trusted.
        """
        locked: set[int] = set()
        while True:
            root_ids = set()
            if self.pk is not None:
                root_ids.add(Term.objects.filter(pk=self.pk).values_list("type_id", flat=True).first())
            if self.parent_id is not None:
                root_ids.add(Term.objects.filter(pk=self.parent_id).values_list("type_id", flat=True).first())
            root_ids.discard(None)
            pending = root_ids - locked
            if not pending:
                return
            list(Term.objects.select_for_update().filter(pk__in=pending).order_by("pk").values_list("pk"))
            locked |= pending

    def _inherited_single_select(self) -> bool:
        """
        The single select flag this term will hold once saved under its current parent.
        """
        if self.parent_id is None:
            return self.single_select
        inherited = Term.objects.filter(pk=self.parent_id).values_list("single_select", flat=True).first()
        return self.single_select if inherited is None else inherited

    def _subtree_is_tagged(self) -> bool:
        return TermTag.objects.filter(term_id__in=[self.pk, *self.get_descendant_ids()]).exists()

    def _check_single_select_lock(self, single_select: bool | None = None) -> None:
        """
        Refuse to change the single select flag of terms that are already in use.

        The flag changes either when a root's own flag is flipped, or when a subtree is
        moved under a root with another flag. Either way it is refused if any term
        whose flag would change tags an object.
        """
        if self.pk is None:
            return
        if single_select is None:
            single_select = self.single_select
        stored = Term.objects.filter(pk=self.pk).values("parent_id", "single_select").first()
        if stored is None or stored["single_select"] == single_select:
            return
        if self.parent_id is None and stored["parent_id"] is None:
            used = self.is_single_select_locked()
        else:
            used = self._subtree_is_tagged()
        if used:
            raise SingleSelectLockedError(self)

    def clean(self):
        """
        Validate this term before saving
        """
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValidationError({"name": _("A term needs a name.")})
        try:
            self._check_parent()
        except TermHierarchyError as exc:
            raise ValidationError({"parent": exc.message}) from exc
        try:
            self._check_single_select_lock(self._inherited_single_select())
        except SingleSelectLockedError as exc:
            raise ValidationError({"single_select": exc.message}) from exc

    def save(self, *args, **kwargs):
        """
        Save this term and keep its whole tree consistent.

        The affected trees are locked first. The type and flags are then re-derived
        from the parent, and pushed down to every descendant afterwards, all in the
        same transaction.
        """
        with transaction.atomic():
            self._lock_trees()
            self._check_parent()
            self.inherit_from_parent()
            self._check_single_select_lock()
            segment_pending = self.backfill_display_fields()

            super().save(*args, **kwargs)

            updates = {}
            if self.parent_id is None and self.type_id != self.pk:
                # A new root only gets its ID on insert
                self.type_id = self.pk
                updates["type_id"] = self.pk
            if segment_pending:
                self.url_segment = self._generate_url_segment()
                updates["url_segment"] = self.url_segment
            if updates:
                Term.objects.filter(pk=self.pk).update(**updates)

            self.propagate_to_descendants()


class TermTag(models.Model):
    """
    Represents the association between a Term and a tagged object.

    The tagged object ("owner") is referenced by its registered owner type and its ID,
    so any kind of object can be tagged. An owner may have several named relations to
    terms (e.g. "tags" and "audiences"); ``sort`` orders the terms within one relation.
    """

    id = models.BigAutoField(primary_key=True)
    owner_type = models.CharField(
        max_length=255,
        editable=False,
        help_text=_("Registered type of the object being tagged"),
    )
    owner_id = models.CharField(
        max_length=255,
        db_index=True,
        editable=False,
        help_text=_("Identifier for the object being tagged"),
    )
    relation = models.CharField(
        max_length=100,
        default="tags",
        help_text=_("Name of the owner's tag relation this assignment belongs to"),
    )
    term = models.ForeignKey(
        Term,
        on_delete=models.CASCADE,
        related_name="term_tags",
        help_text=_("Term applied to the object"),
    )
    sort = models.IntegerField(default=0)

    class Meta:
        ordering = ["sort", "id"]
        indexes = [
            models.Index(fields=["owner_type", "owner_id", "relation"], name="at_termtag_owner_rel_idx"),
        ]
        unique_together = [
            ("owner_type", "owner_id", "relation", "term"),
        ]

    def __repr__(self):
        """
        Developer-facing representation of a TermTag.
        """
        return str(self)

    def __str__(self):
        """
        User-facing string representation of a TermTag.
        """
        return f"<{self.__class__.__name__}> {self.owner_type}:{self.owner_id} {self.relation}={self.term_id}"

    @property
    def owner_ref(self) -> OwnerRef:
        return OwnerRef(self.owner_type, self.owner_id)

    def clean(self):
        """
        Validate this TermTag.

        Note: this doesn't happen automatically on save(); call full_clean() first.
        """
        if not self.owner_type or not self.owner_id:
            raise ValidationError("A tagged object needs both an owner type and an owner ID")
        if not self.relation:
            raise ValidationError("Invalid relation - empty string")
