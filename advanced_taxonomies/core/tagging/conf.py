"""
Settings for the taxonomy tagging app.

Hosts override these through an ``ADVANCED_TAXONOMIES`` dict in their Django settings, e.g.::

    ADVANCED_TAXONOMIES = {
        "HIERARCHY_SEPARATOR": " > ",
    }
"""
from __future__ import annotations

from typing import Any

from django.conf import settings

DEFAULTS: dict[str, Any] = {
    # Used between term names by Term.get_hierarchy_display()
    "HIERARCHY_SEPARATOR": " ▸ ",
    # Name of the tag relation used when callers don't pass one
    "DEFAULT_RELATION": "tags",
    # Upper bound on how many terms a single owner relation can carry
    "MAX_TAGS_PER_OBJECT": 100,
    # Concept classes created on migrate, which cannot be deleted, e.g. ["Person", "Place"]
    "DEFAULT_CONCEPT_CLASSES": [],
    # Associative relation types created on migrate, which cannot be deleted. Each entry is
    # [label_left], [label_left, label_right] or [label_left, label_right, is_symmetric]
    "DEFAULT_ASSOCIATIVE_RELATION_TYPES": [],
}


def get_setting(name: str) -> Any:
    """
    Return the configured value for ``name``, falling back to the app default.

    Settings are read on every call so that ``override_settings`` works in tests.
    """
    if name not in DEFAULTS:
        raise KeyError(f"Unknown advanced taxonomies setting: {name}")
    overrides = getattr(settings, "ADVANCED_TAXONOMIES", None) or {}
    return overrides.get(name, DEFAULTS[name])
