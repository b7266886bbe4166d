"""
Thesaurus models that enrich taxonomy terms: alternative terms, associative
relations between terms, and concept classes.
"""
from __future__ import annotations

from typing import Sequence

from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import get_language_info, to_language
from django.utils.translation import gettext_lazy as _

from ..conf import get_setting
from ..generators import generate_url_segment, pluralize
from .base import Term


class ConceptClass(models.Model):
    """
    A class of concepts (e.g. "Person", "Place", "Event") that terms belong to.

    A term belongs to its own primary concept class, or, when it has none, to the
    primary concept class of its root. It may also belong to any number of other
    concept classes.
    """

    id = models.BigAutoField(primary_key=True)
    name = models.CharField(max_length=255, unique=True)
    url_segment = models.CharField(max_length=255, blank=True, db_index=True)
    description = models.TextField(blank=True)
    sort = models.IntegerField(default=0)

    class Meta:
        ordering = ["sort", "id"]
        verbose_name_plural = "concept classes"

    def __repr__(self):
        return str(self)

    def __str__(self):
        return f"<{self.__class__.__name__}> ({self.id}) {self.name}"

    def is_default(self) -> bool:
        """
        Is this one of the concept classes listed in the DEFAULT_CONCEPT_CLASSES setting?
        """
        return self.name in get_setting("DEFAULT_CONCEPT_CLASSES")

    def get_terms(self) -> models.QuerySet[Term]:
        """
        Terms whose primary concept class is this one, directly or through their root.
        """
        return Term.objects.filter(
            models.Q(primary_concept_class=self)
            | models.Q(
                parent__isnull=False,
                primary_concept_class__isnull=True,
                type__primary_concept_class=self,
            )
        )

    def get_all_terms(self) -> models.QuerySet[Term]:
        """
        Terms of this concept class, either as their primary or as one of their other classes.
        """
        return Term.objects.filter(
            models.Q(pk__in=self.get_terms().values("pk"))
            | models.Q(pk__in=self.other_terms.values("pk"))
        )

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip()
        self.url_segment = generate_url_segment(
            self.url_segment or self.name,
            self._meta.model_name,
            self.pk,
            lambda candidate: ConceptClass.objects.filter(url_segment=candidate).exclude(pk=self.pk).exists(),
        )
        super().save(*args, **kwargs)


class AssociativeRelationType(models.Model):
    """
    A kind of relation between two terms, read left to right, e.g. "has source".

    ``label_right`` reads the relation the other way round, e.g. "is source of".
    Relations of a symmetric type are listed from both of their terms; the others
    only from their source.
    """

    id = models.BigAutoField(primary_key=True)
    label_left = models.CharField(max_length=255)
    label_right = models.CharField(max_length=255, blank=True)
    is_symmetric = models.BooleanField(default=True)

    class Meta:
        ordering = ["id"]

    def __repr__(self):
        return str(self)

    def __str__(self):
        return f"<{self.__class__.__name__}> ({self.id}) {self.title}"

    @property
    def title(self) -> str:
        if self.label_right:
            return f"{self.label_left} ⟷ {self.label_right}"
        return self.label_left

    def matches_default(self, entry: Sequence) -> bool:
        """
        Does this relation type match one entry of DEFAULT_ASSOCIATIVE_RELATION_TYPES?

        Entries are ``[label_left]``, ``[label_left, label_right]`` or
        ``[label_left, label_right, is_symmetric]``. Labels and flags left out of an
        entry, or left empty, match any value.
        """
        if self.label_left != entry[0]:
            return False
        if len(entry) > 1 and entry[1] and self.label_right != entry[1]:
            return False
        if len(entry) > 2 and bool(self.is_symmetric) != bool(entry[2]):
            return False
        return True

    def is_default(self) -> bool:
        return any(self.matches_default(entry) for entry in get_setting("DEFAULT_ASSOCIATIVE_RELATION_TYPES"))

    def clean(self):
        self.label_left = (self.label_left or "").strip()
        self.label_right = (self.label_right or "").strip()
        if not self.label_left:
            raise ValidationError({"label_left": _("A relation type needs a left label.")})


class AssociativeRelation(models.Model):
    """
    A typed, ordered link from one term (the source) to another (the destination).

    ``is_inverse_relation`` marks a relation that reads right to left, i.e. through
    the relation type's right label.
    """

    id = models.BigAutoField(primary_key=True)
    source = models.ForeignKey(
        Term,
        on_delete=models.CASCADE,
        related_name="associative_relations",
    )
    destination = models.ForeignKey(
        Term,
        on_delete=models.CASCADE,
        related_name="incoming_associative_relations",
    )
    relation_type = models.ForeignKey(
        AssociativeRelationType,
        on_delete=models.PROTECT,
        related_name="relation_instances",
    )
    is_inverse_relation = models.BooleanField(default=False)
    sort = models.IntegerField(default=0)

    class Meta:
        ordering = ["sort", "id"]

    def __repr__(self):
        return str(self)

    def __str__(self):
        return f"<{self.__class__.__name__}> {self.source_id} {self.get_label()} {self.destination_id}"

    def get_label(self, from_destination: bool = False) -> str:
        """
        How this relation reads from its source, or from its destination.

        Reading it backwards uses the relation type's right label, when it has one.
        """
        relation_type = self.relation_type
        if self.is_inverse_relation != from_destination and relation_type.label_right:
            return relation_type.label_right
        return relation_type.label_left

    def clean(self):
        if self.source_id is not None and self.source_id == self.destination_id:
            raise ValidationError({"destination": _("A term cannot be related to itself.")})


class AlternativeTerm(models.Model):
    """
    Another way of referring to a (preferred) taxonomy term.

    Plain alternative terms carry a name only. Equivalent terms also say how they
    relate to the preferred term (acronym, synonym...), and language terms name the
    preferred term in another locale.
    """

    ALTERNATIVE = "alternative"
    EQUIVALENT = "equivalent"
    LANGUAGE = "language"
    KIND_CHOICES = [
        (ALTERNATIVE, _("Alternative term")),
        (EQUIVALENT, _("Equivalent term")),
        (LANGUAGE, _("Language term")),
    ]

    EQUIVALENT_TYPES = [
        "acronym",
        "abbreviation",
        "synonym",
        "concatenation",
        "shortened version",
        "extended version",
        "regional variation",
        "lexical variation",
        "alternative spelling",
        "colloquialism",
        "slang",
        "jargon",
        "shorthand",
    ]
    DEFAULT_EQUIVALENT_TYPE = "synonym"

    id = models.BigAutoField(primary_key=True)
    preferred_term = models.ForeignKey(
        Term,
        on_delete=models.CASCADE,
        related_name="alternative_terms",
        help_text=_("Term this alternative stands for."),
    )
    kind = models.CharField(max_length=20, choices=KIND_CHOICES, default=ALTERNATIVE)
    name = models.CharField(max_length=255)
    title = models.CharField(max_length=255, blank=True)
    title_plural = models.CharField(max_length=255, blank=True)
    url_segment = models.CharField(max_length=255, blank=True, db_index=True)
    description = models.TextField(blank=True)
    author_definition = models.TextField(blank=True)
    public_definition = models.TextField(blank=True)
    equivalent_type = models.CharField(
        max_length=30,
        blank=True,
        choices=[(value, value) for value in EQUIVALENT_TYPES],
        help_text=_("How an equivalent term relates to its preferred term."),
    )
    locale = models.CharField(
        max_length=10,
        blank=True,
        help_text=_("Locale of a language term, e.g. 'mi' or 'en_NZ'."),
    )
    is_primary = models.BooleanField(
        default=False,
        help_text=_("Is this the main language term for its locale?"),
    )
    sort = models.IntegerField(default=0)

    class Meta:
        ordering = ["sort", "id"]

    def __repr__(self):
        return str(self)

    def __str__(self):
        return f"<{self.__class__.__name__}> ({self.id}) {self.get_alt_term_title()}"

    def get_language(self) -> str:
        """
        English name of the language of ``locale``, or "" if it's unknown.
        """
        if not self.locale:
            return ""
        try:
            return get_language_info(to_language(self.locale))["name"]
        except KeyError:
            return ""

    def get_alt_term_title(self) -> str:
        title = self.name or f"Alternative term ID #{self.id}"
        if self.kind == self.EQUIVALENT and self.equivalent_type:
            return f"{title} ({self.equivalent_type})"
        if self.kind == self.LANGUAGE:
            language = self.get_language()
            if language:
                return f"{title} ({language})"
        return title

    def backfill_display_fields(self) -> None:
        self.name = (self.name or "").strip()
        if self.kind == self.EQUIVALENT and not self.equivalent_type:
            self.equivalent_type = self.DEFAULT_EQUIVALENT_TYPE
        if not self.title and self.name:
            self.title = self.name
        if not self.title_plural and self.title:
            self.title_plural = pluralize(self.title)
        self.url_segment = generate_url_segment(
            self.url_segment or self.name,
            self._meta.model_name,
            self.pk,
            lambda candidate: AlternativeTerm.objects.filter(
                preferred_term_id=self.preferred_term_id, url_segment=candidate,
            ).exclude(pk=self.pk).exists(),
        )

    def clean(self):
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValidationError({"name": _("An alternative term needs a name.")})
        if self.kind != self.EQUIVALENT and self.equivalent_type:
            raise ValidationError({"equivalent_type": _("Only equivalent terms have an equivalent type.")})
        if self.kind != self.LANGUAGE and (self.locale or self.is_primary):
            raise ValidationError({"locale": _("Only language terms have a locale.")})
        if self.kind == self.LANGUAGE and not self.locale:
            raise ValidationError({"locale": _("A language term needs a locale.")})

    def save(self, *args, **kwargs):
        self.backfill_display_fields()
        super().save(*args, **kwargs)
