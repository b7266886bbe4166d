"""
Test the registry of taggable owner types
"""
import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test.testcases import TestCase

from advanced_taxonomies.core.tagging import api
from advanced_taxonomies.core.tagging.data import OwnerRef
from advanced_taxonomies.core.tagging.exceptions import UnknownOwnerTypeError
from advanced_taxonomies.core.tagging.models import TermTag
from advanced_taxonomies.core.tagging.registry import (
    check_relation,
    get_owner_type_for_model,
    get_registered_owner_types,
    get_taggable,
    owner_ref_for,
    register_taggable,
    register_taggable_model,
    unregister_taggable,
)


class TestRegistry(TestCase):
    """
    Test registering owner types
    """

    def setUp(self):
        super().setUp()
        self.group_type = register_taggable_model(Group, relations=["tags", "topics"], owner_type="group")
        self.addCleanup(unregister_taggable, "group")

    def test_register_model(self):
        assert self.group_type.owner_type == "group"
        assert self.group_type.model is Group
        assert self.group_type.relations == ("tags", "topics")
        assert get_taggable("group") == self.group_type
        assert self.group_type in get_registered_owner_types()
        assert get_owner_type_for_model(Group) == "group"

    def test_default_owner_type(self):
        entry = register_taggable_model(get_user_model())
        self.addCleanup(unregister_taggable, entry.owner_type)
        assert entry.owner_type == "auth.user"
        assert entry.relations == ("tags",)

    def test_register_again_replaces(self):
        register_taggable_model(Group, relations=["tags"], owner_type="group")
        assert get_taggable("group").relations == ("tags",)

    def test_register_invalid(self):
        with pytest.raises(ValueError):
            register_taggable("")
        with pytest.raises(ValueError):
            register_taggable("nothing", relations=[])

    def test_unregister(self):
        unregister_taggable("group")
        with pytest.raises(UnknownOwnerTypeError):
            get_taggable("group")
        with pytest.raises(UnknownOwnerTypeError):
            get_owner_type_for_model(Group)
        # Unregistering twice is harmless
        unregister_taggable("group")

    def test_owner_ref_for(self):
        group = Group.objects.create(name="Editors")
        assert owner_ref_for(group) == OwnerRef("group", str(group.pk))
        ref = OwnerRef("anything", 5)
        assert owner_ref_for(ref) is ref
        assert ref.owner_id == "5"
        assert str(ref) == "anything:5"

    def test_check_relation(self):
        check_relation(OwnerRef("group", "1"), "topics")
        with pytest.raises(UnknownOwnerTypeError) as exc:
            check_relation(OwnerRef("group", "1"), "audiences")
        assert exc.value.relation == "audiences"
        assert "audiences" in str(exc.value)

    def test_tags_deleted_with_owner(self):
        colour = api.create_term("Colour")
        editors = Group.objects.create(name="Editors")
        writers = Group.objects.create(name="Writers")
        api.add_tag_to_object(editors, colour)
        api.add_tag_to_object(editors, colour, relation="topics")
        api.add_tag_to_object(writers, colour)

        with self.assertLogs("advanced_taxonomies.core.tagging.handlers", level="INFO"):
            editors.delete()
        assert list(TermTag.objects.values_list("owner_id", flat=True)) == [str(writers.pk)]

    def test_default_terms(self):
        colour = api.create_term("Colour")
        red = api.create_term("Red", parent=colour)
        entry = register_taggable_model(
            Group, relations=["tags", "topics"], owner_type="group", default_terms={"topics": ["colour/red"]},
        )
        assert entry.default_terms == (("topics", ("colour/red",)),)

        editors = Group.objects.create(name="Editors")
        assert api.get_object_terms(editors, "topics") == [red]
        assert api.get_object_terms(editors) == []

        # Only new objects get the default terms
        api.remove_tag_from_object(editors, red, relation="topics")
        editors.save()
        assert api.get_object_terms(editors, "topics") == []

    def test_default_terms_unregistered(self):
        colour = api.create_term("Colour")
        register_taggable_model(Group, owner_type="group", default_terms={"tags": ["colour"]})
        unregister_taggable("group")
        Group.objects.create(name="Editors")
        assert not TermTag.objects.filter(term=colour).exists()

    def test_default_terms_need_a_registered_relation(self):
        with pytest.raises(ValueError):
            register_taggable("article", relations=["tags"], default_terms={"topics": ["colour"]})
        with pytest.raises(UnknownOwnerTypeError):
            get_taggable("article")
