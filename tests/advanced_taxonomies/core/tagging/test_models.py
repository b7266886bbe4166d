"""
Test the taxonomy tagging base models
"""
from __future__ import annotations

from unittest import mock

import ddt  # type: ignore[import]
import pytest
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import override_settings
from django.test.testcases import TestCase

from advanced_taxonomies.core.tagging import api
from advanced_taxonomies.core.tagging.data import OwnerRef
from advanced_taxonomies.core.tagging.exceptions import (
    SingleSelectLockedError,
    TermCycleError,
    TermHierarchyError,
)
from advanced_taxonomies.core.tagging.models import Term, TermTag
from advanced_taxonomies.core.tagging.registry import register_taggable_model, unregister_taggable

from .utils import pretty_format_terms


def get_term(name):
    """
    Fetches and returns the term with the given name.
    """
    return Term.objects.get(name=name)


class TestTermTaxonomyMixin:
    """
    Base class that builds a few taxonomies (trees of terms) for testing:

        Colour (single select)
          Red
            Crimson
          Blue
        Audience
          Students
          Teachers
        Format (requires Audience)
          Video
          Article
        InfoType (requires Audience)
          News (doesn't inherit the root's required types)
          Guide

    The user model is registered as taggable through "tags" and "audiences".
    """

    def setUp(self):
        super().setUp()
        self.colour = api.create_term("Colour", single_select=True)
        self.red = api.create_term("Red", parent=self.colour)
        self.crimson = api.create_term("Crimson", parent=self.red)
        self.blue = api.create_term("Blue", parent=self.colour)

        self.audience = api.create_term("Audience")
        self.students = api.create_term("Students", parent=self.audience)
        self.teachers = api.create_term("Teachers", parent=self.audience)

        self.format = api.create_term("Format", required_types=[self.audience])
        self.video = api.create_term("Video", parent=self.format)
        self.article = api.create_term("Article", parent=self.format)

        self.info_type = api.create_term("InfoType", required_types=[self.audience])
        self.news = api.create_term("News", parent=self.info_type, required_types_inherit_root=False)
        self.guide = api.create_term("Guide", parent=self.info_type)

        self.user_1 = get_user_model().objects.create(username="test_user_1")
        self.user_2 = get_user_model().objects.create(username="test_user_2")

        self.user_type = register_taggable_model(get_user_model(), relations=["tags", "audiences"])
        self.addCleanup(unregister_taggable, self.user_type.owner_type)

    def user_ref(self, user) -> OwnerRef:
        return OwnerRef(self.user_type.owner_type, user.pk)


@ddt.ddt
class TestTermModel(TestTermTaxonomyMixin, TestCase):
    """
    Test the Term model: hierarchy, type propagation and display fields.
    """

    def test_str(self):
        assert str(self.red) == f"<Term> ({self.red.id}) Red"
        assert repr(self.red) == f"<Term> ({self.red.id}) Red"

    def test_root_term_is_its_own_type(self):
        self.colour.refresh_from_db()
        assert self.colour.is_root
        assert self.colour.type_id == self.colour.pk
        assert self.colour.get_root() == self.colour

    @ddt.data("red", "crimson", "blue")
    def test_type_is_the_root(self, attr):
        term = getattr(self, attr)
        term.refresh_from_db()
        assert not term.is_root
        assert term.type_id == self.colour.pk
        assert term.get_root() == self.colour
        assert term.single_select

    def test_every_term_follows_its_root(self):
        for term in Term.objects.all():
            root = Term.objects.get(pk=term.get_ancestors()[0].pk) if term.parent_id else term
            assert term.type_id == root.pk
            assert term.single_select == root.single_select
            assert term.internal_only == root.internal_only

    def test_root_flags_propagate_to_descendants(self):
        api.update_term(self.colour, internal_only=True, single_select=False)
        assert pretty_format_terms(api.get_terms_for_type(self.colour)) == [
            "Colour (Colour, internal)",
            "  Red (Colour, internal)",
            "    Crimson (Colour, internal)",
            "  Blue (Colour, internal)",
        ]

    def test_child_flags_are_overridden_by_the_root(self):
        api.update_term(self.red, single_select=False, internal_only=True)
        self.red.refresh_from_db()
        assert self.red.single_select
        assert not self.red.internal_only

    def test_propagation_skips_up_to_date_terms(self):
        self.colour.refresh_from_db()
        assert self.colour.propagate_to_descendants() == 0
        Term.objects.filter(pk=self.crimson.pk).update(internal_only=True)
        assert self.colour.propagate_to_descendants() == 1
        self.crimson.refresh_from_db()
        assert not self.crimson.internal_only

    def test_move_subtree_to_another_type(self):
        api.update_term(self.red, parent=self.format)
        self.red.refresh_from_db()
        self.crimson.refresh_from_db()
        assert self.red.type_id == self.format.pk
        assert self.crimson.type_id == self.format.pk
        assert not self.red.single_select
        assert not self.crimson.single_select
        assert api.get_depth(api.get_term(self.crimson.pk)) == 2

    def test_root_moved_under_another_tree(self):
        api.update_term(self.colour, parent=self.video)
        for name in ("Colour", "Red", "Crimson", "Blue"):
            term = get_term(name)
            assert term.type_id == self.format.pk, name
            assert not term.single_select, name

    def test_term_becomes_a_root(self):
        api.update_term(self.red, parent=None)
        self.red.refresh_from_db()
        self.crimson.refresh_from_db()
        assert self.red.is_root
        assert self.red.type_id == self.red.pk
        assert self.crimson.type_id == self.red.pk

    def test_cannot_be_its_own_ancestor(self):
        with pytest.raises(ValidationError) as exc:
            api.update_term(self.colour, parent=self.crimson)
        assert "parent" in exc.value.message_dict

        colour = api.get_term(self.colour.pk)
        colour.parent = colour
        with pytest.raises(TermHierarchyError):
            colour.save()

    def test_cycle_in_stored_parents(self):
        # Only possible by writing behind the model's back
        Term.objects.filter(pk=self.colour.pk).update(parent=self.crimson)
        red = api.get_term(self.red.pk)
        with pytest.raises(TermCycleError):
            red.get_ancestors()
        with pytest.raises(TermCycleError):
            list(red.iter_descendant_levels())
        with pytest.raises(TermCycleError):
            red.propagate_to_descendants()
        Term.objects.filter(pk=self.colour.pk).update(parent=None)

    def test_ancestors_and_descendants(self):
        crimson = api.get_term(self.crimson.pk)
        assert api.get_ancestors(crimson) == [self.colour, self.red]
        assert api.get_ancestors(self.colour) == []
        assert set(api.get_descendants(self.colour)) == {self.red, self.blue, self.crimson}
        assert list(api.get_descendants(self.crimson)) == []
        assert list(api.get_children(self.colour)) == [self.red, self.blue]
        assert api.get_root(crimson) == self.colour

    def test_descendant_levels(self):
        assert [set(level) for level in self.colour.iter_descendant_levels()] == [
            {self.red.pk, self.blue.pk},
            {self.crimson.pk},
        ]
        assert list(self.crimson.iter_descendant_levels()) == []

    def test_depth(self):
        assert api.get_depth(api.get_term(self.colour.pk)) == 0
        assert api.get_depth(api.get_term(self.red.pk)) == 1
        assert api.get_depth(api.get_term(self.crimson.pk)) == 2

    def test_hierarchy_display(self):
        crimson = api.get_term(self.crimson.pk)
        assert crimson.get_hierarchy_display() == "Colour ▸ Red ▸ Crimson"
        assert crimson.get_hierarchy_display(" / ") == "Colour / Red / Crimson"
        assert self.colour.get_hierarchy_display() == "Colour"

    @override_settings(ADVANCED_TAXONOMIES={"HIERARCHY_SEPARATOR": " > "})
    def test_hierarchy_separator_setting(self):
        assert api.get_term(self.crimson.pk).get_hierarchy_display() == "Colour > Red > Crimson"

    def test_type_name_with_flag_attributes(self):
        assert self.red.type_name_with_flag_attributes() == "Colour (Single; Shown)"
        api.update_term(self.audience, internal_only=True)
        assert api.get_term(self.students.pk).type_name_with_flag_attributes() == "Audience (Multi; Hidden)"
        assert Term(name="Unsaved").type_name_with_flag_attributes() is None

    def test_display_fields_backfilled(self):
        category = api.create_term("Category")
        assert category.title == "Category"
        assert category.title_plural == "Categories"
        assert category.url_segment == "category"

    def test_display_fields_kept(self):
        term = api.create_term("Person", title="A person", title_plural="Folks", url_segment="Some Person")
        assert term.title == "A person"
        assert term.title_plural == "Folks"
        assert term.url_segment == "some-person"

    def test_name_is_stripped(self):
        term = api.create_term("  Mauve  ", parent=self.colour)
        assert term.name == "Mauve"
        assert term.url_segment == "mauve"

    def test_empty_name(self):
        with pytest.raises(ValidationError) as exc:
            api.create_term("   ")
        assert "name" in exc.value.message_dict

    def test_url_segment_unique_among_siblings(self):
        red_2 = api.create_term("Red", parent=self.colour)
        red_3 = api.create_term("Red", parent=self.colour)
        other_red = api.create_term("Red", parent=self.format)
        assert red_2.url_segment == "red-2"
        assert red_3.url_segment == "red-3"
        assert other_red.url_segment == "red"

    def test_url_segment_kept_on_update(self):
        api.update_term(self.red, name="Scarlet")
        self.red.refresh_from_db()
        assert self.red.url_segment == "red"

    def test_rename_term(self):
        title_plural = self.blue.title_plural
        api.update_term(self.blue, name="  Azure ")
        blue = api.get_term(self.blue.pk)
        assert blue.name == "Azure"
        # Display fields filled in from the old name are kept
        assert blue.title == "Blue"
        assert blue.title_plural == title_plural
        assert blue.url_segment == "blue"
        assert api.resolve_slug_path("colour/blue") == blue

    def test_degenerate_url_segment(self):
        term = api.create_term("!!!")
        assert term.url_segment == f"term-{term.pk}"
        term.refresh_from_db()
        assert term.url_segment == f"term-{term.pk}"
        assert term.type_id == term.pk

    def test_single_select_lock(self):
        assert not self.colour.is_single_select_locked()
        assert not self.blue.is_single_select_locked()

        api.add_tag_to_object(self.user_1, self.crimson)
        assert self.colour.is_single_select_locked()
        assert self.blue.is_single_select_locked()
        assert not self.audience.is_single_select_locked()

        api.remove_tag_from_object(self.user_1, self.crimson)
        assert not self.colour.is_single_select_locked()

    def test_locked_single_select_cannot_change(self):
        api.add_tag_to_object(self.user_1, self.red)
        with pytest.raises(ValidationError) as exc:
            api.update_term(self.colour, single_select=False)
        assert "single_select" in exc.value.message_dict

        colour = api.get_term(self.colour.pk)
        colour.single_select = False
        with pytest.raises(SingleSelectLockedError):
            colour.save()

        # Other fields can still change
        api.update_term(api.get_term(self.colour.pk), description="Colours of things")

    def test_unlocked_single_select_can_change(self):
        api.add_tag_to_object(self.user_1, self.red)
        api.remove_tag_from_object(self.user_1, self.red)
        api.update_term(self.colour, single_select=False)
        self.blue.refresh_from_db()
        assert not self.blue.single_select

    def test_locked_single_select_cannot_change_by_moving_root(self):
        api.add_tag_to_object(self.user_1, self.red)
        with pytest.raises(ValidationError) as exc:
            api.update_term(api.get_term(self.colour.pk), parent=self.video)
        assert "single_select" in exc.value.message_dict

        colour = api.get_term(self.colour.pk)
        colour.parent = self.video
        with pytest.raises(SingleSelectLockedError):
            colour.save()
        for name in ("Colour", "Red", "Crimson"):
            term = get_term(name)
            assert term.type_id == self.colour.pk, name
            assert term.single_select, name

    def test_locked_single_select_cannot_change_by_moving_subtree(self):
        api.tag_object(self.user_1, [self.students, self.teachers])
        with pytest.raises(ValidationError) as exc:
            api.update_term(api.get_term(self.students.pk), parent=self.colour)
        assert "single_select" in exc.value.message_dict

        students = api.get_term(self.students.pk)
        students.parent = self.red
        with pytest.raises(SingleSelectLockedError):
            students.save()
        students.refresh_from_db()
        assert students.parent_id == self.audience.pk
        assert not students.single_select

    def test_untagged_subtree_can_move(self):
        # Other terms of the tree being used doesn't matter
        api.add_tag_to_object(self.user_1, self.blue)
        api.update_term(self.red, parent=self.format)
        self.crimson.refresh_from_db()
        assert self.crimson.type_id == self.format.pk
        assert not self.crimson.single_select

    def test_tagged_subtree_can_move_without_changing_single_select(self):
        api.tag_object(self.user_1, [self.students, self.teachers])
        api.update_term(self.students, parent=self.format)
        self.students.refresh_from_db()
        assert self.students.type_id == self.format.pk
        assert api.get_tagged_owners_for_type(self.format) == {self.user_ref(self.user_1)}

    def test_tagged_root_becomes_a_child_with_the_same_single_select(self):
        api.add_tag_to_object(self.user_1, self.students)
        api.update_term(self.audience, parent=self.video)
        for name in ("Audience", "Students", "Teachers"):
            assert get_term(name).type_id == self.format.pk, name

    def test_trees_locked_before_reading_the_parent(self):
        calls = []
        lock_trees = Term._lock_trees  # pylint: disable=protected-access
        inherit_from_parent = Term.inherit_from_parent

        def record(name, method):
            def wrapper(term):
                calls.append(name)
                return method(term)
            return wrapper

        with mock.patch.object(Term, "_lock_trees", autospec=True, side_effect=record("lock", lock_trees)):
            with mock.patch.object(
                Term, "inherit_from_parent", autospec=True, side_effect=record("inherit", inherit_from_parent),
            ):
                api.update_term(self.red, parent=self.format)
        assert calls == ["lock", "inherit"]

    def test_stale_parent_flags_are_not_inherited(self):
        colour = api.get_term(self.colour.pk)
        # Another process makes Colour multi select after we loaded it
        Term.objects.filter(type_id=self.colour.pk).update(single_select=False)
        green = api.create_term("Green", parent=colour)
        assert colour.single_select
        assert not green.single_select

    def test_delete_root_deletes_tree_and_tags(self):
        api.tag_object(self.user_1, [self.red, self.students])
        api.add_tag_to_object(self.user_2, self.crimson, relation="audiences")
        api.add_tag_to_object(self.user_2, self.video)

        assert api.delete_term(self.colour) == 4

        assert not Term.objects.filter(name__in=["Colour", "Red", "Crimson", "Blue"]).exists()
        assert api.get_object_terms(self.user_1) == [self.students]
        assert api.get_object_terms(self.user_2, relation="audiences") == []
        assert api.get_object_terms(self.user_2) == [self.video]

    def test_delete_subtree(self):
        api.add_tag_to_object(self.user_1, self.crimson)
        assert api.delete_term(self.red) == 2
        assert list(api.get_children(self.colour)) == [self.blue]
        assert not TermTag.objects.exists()

    def test_delete_required_type(self):
        assert api.delete_term(self.audience) == 3
        assert api.get_effective_required_types(self.video) == []

    def test_tagged_owners(self):
        api.add_tag_to_object(self.user_1, self.red)
        api.add_tag_to_object(self.user_1, self.red, relation="audiences")
        api.add_tag_to_object(self.user_2, self.red)
        assert self.red.get_tagged_owners() == {self.user_ref(self.user_1), self.user_ref(self.user_2)}
        assert self.blue.get_tagged_owners() == set()


class TestTermTagModel(TestTermTaxonomyMixin, TestCase):
    """
    Test the TermTag model
    """

    def test_str(self):
        term_tag = api.add_tag_to_object(self.user_1, self.red)
        assert str(term_tag) == f"<TermTag> auth.user:{self.user_1.pk} tags={self.red.pk}"
        assert term_tag.owner_ref == self.user_ref(self.user_1)

    def test_clean(self):
        term_tag = TermTag(owner_type="auth.user", owner_id="", term=self.red)
        with pytest.raises(ValidationError):
            term_tag.clean()
        term_tag = TermTag(owner_type="auth.user", owner_id="1", relation="", term=self.red)
        with pytest.raises(ValidationError):
            term_tag.clean()
