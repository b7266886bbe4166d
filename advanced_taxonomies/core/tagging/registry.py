"""
Registry of the object types that can be tagged with terms.

Any kind of object can be tagged, but its type has to be registered first
(usually from the host app's ``AppConfig.ready()``)::

    register_taggable_model(Article, relations=["tags", "audiences"])

Registering a Django model also removes the model's tags whenever an instance is
deleted. Default terms can be registered too, given as slug paths per relation; new
instances of the model are tagged with them when they are first saved::

    register_taggable_model(Article, default_terms={"tags": ["information-type/news"]})
"""
from __future__ import annotations

import logging
from typing import Iterable, Mapping

from attrs import field, frozen
from django.db import models
from django.db.models.signals import post_delete, post_save

from .data import OwnerRef
from .exceptions import UnknownOwnerTypeError

log = logging.getLogger(__name__)


def _freeze_default_terms(default_terms) -> tuple[tuple[str, tuple[str, ...]], ...]:
    if isinstance(default_terms, Mapping):
        default_terms = default_terms.items()
    return tuple((relation, tuple(paths)) for relation, paths in default_terms)


@frozen
class TaggableOwnerType:
    """
    A registered owner type, with the names of the tag relations it uses.

    ``default_terms`` holds (relation, slug paths) pairs to tag new instances with.
    """

    owner_type: str
    model: type[models.Model] | None = None
    relations: tuple[str, ...] = field(default=("tags",), converter=tuple)
    default_terms: tuple[tuple[str, tuple[str, ...]], ...] = field(factory=tuple, converter=_freeze_default_terms)


# Global registry
_TAGGABLE_REGISTRY: dict[str, TaggableOwnerType] = {}


def _model_owner_type(model: type[models.Model]) -> str:
    return model._meta.label_lower  # pylint: disable=protected-access


def register_taggable(
    owner_type: str,
    model: type[models.Model] | None = None,
    relations: Iterable[str] = ("tags",),
    default_terms: Mapping[str, Iterable[str]] | None = None,
) -> TaggableOwnerType:
    """
    Register ``owner_type`` as taggable through the given relation names.

    ``default_terms`` maps relation names to the slug paths of the terms that new
    instances of ``model`` get tagged with. Registering the same owner type again
    replaces its previous entry.
    """
    if not owner_type:
        raise ValueError("owner_type can't be empty")
    entry = TaggableOwnerType(
        owner_type=owner_type, model=model, relations=relations, default_terms=default_terms or (),
    )
    if not entry.relations:
        raise ValueError(f"{owner_type} must be registered with at least one relation")
    for relation, _paths in entry.default_terms:
        if relation not in entry.relations:
            raise ValueError(f"Default terms of {owner_type} use unregistered relation {relation}")
    unregister_taggable(owner_type)
    _TAGGABLE_REGISTRY[owner_type] = entry
    if model is not None:
        # pylint: disable=import-outside-toplevel
        from .handlers import delete_owner_tags_on_delete, link_default_terms_on_create
        post_delete.connect(
            delete_owner_tags_on_delete,
            sender=model,
            dispatch_uid=f"advanced_taxonomies:{owner_type}",
        )
        if entry.default_terms:
            post_save.connect(
                link_default_terms_on_create,
                sender=model,
                dispatch_uid=f"advanced_taxonomies:{owner_type}:defaults",
            )
    log.info(f"Registered taggable type {owner_type} with relations {entry.relations}")
    return entry


def register_taggable_model(
    model: type[models.Model],
    relations: Iterable[str] = ("tags",),
    owner_type: str | None = None,
    default_terms: Mapping[str, Iterable[str]] | None = None,
) -> TaggableOwnerType:
    """
    Register a Django model as taggable. Its owner type defaults to "app_label.modelname".
    """
    return register_taggable(
        owner_type or _model_owner_type(model), model=model, relations=relations, default_terms=default_terms,
    )


def unregister_taggable(owner_type: str) -> None:
    entry = _TAGGABLE_REGISTRY.pop(owner_type, None)
    if entry is not None and entry.model is not None:
        post_delete.disconnect(sender=entry.model, dispatch_uid=f"advanced_taxonomies:{owner_type}")
        post_save.disconnect(sender=entry.model, dispatch_uid=f"advanced_taxonomies:{owner_type}:defaults")


def get_taggable(owner_type: str) -> TaggableOwnerType:
    """
    Returns the registry entry for ``owner_type``, or raises UnknownOwnerTypeError.
    """
    try:
        return _TAGGABLE_REGISTRY[owner_type]
    except KeyError as exc:
        raise UnknownOwnerTypeError(owner_type) from exc


def get_registered_owner_types() -> list[TaggableOwnerType]:
    return list(_TAGGABLE_REGISTRY.values())


def get_owner_type_for_model(model: type[models.Model]) -> str:
    """
    Returns the owner type a model instance was registered under.
    """
    for entry in _TAGGABLE_REGISTRY.values():
        if entry.model is model:
            return entry.owner_type
    raise UnknownOwnerTypeError(_model_owner_type(model))


def owner_ref_for(owner: OwnerRef | models.Model) -> OwnerRef:
    """
    Returns an OwnerRef for the given owner, which may already be one.
    """
    if isinstance(owner, OwnerRef):
        return owner
    if owner.pk is None:
        raise ValueError(f"{owner!r} must be saved before it can be tagged")
    return OwnerRef(get_owner_type_for_model(type(owner)), owner.pk)


def check_relation(owner: OwnerRef, relation: str) -> None:
    """
    Raises UnknownOwnerTypeError unless ``relation`` is registered for the owner's type.
    """
    entry = get_taggable(owner.owner_type)
    if relation not in entry.relations:
        raise UnknownOwnerTypeError(owner.owner_type, relation)
