"""
Generators used to back-fill display fields of terms: plural titles and URL segments.
"""
from __future__ import annotations

import re
from typing import Callable

from django.utils.text import slugify

# Ordered suffix rules; the first pattern that matches wins.
PLURAL_RULES: list[tuple[str, str]] = [
    (r"(quiz)$", r"\1zes"),
    (r"^(ox)$", r"\1en"),
    (r"([m|l])ouse$", r"\1ice"),
    (r"(matr|vert|ind)ix|ex$", r"\1ices"),
    (r"(x|ch|ss|sh)$", r"\1es"),
    (r"([^aeiouy]|qu)y$", r"\1ies"),
    (r"(hive)$", r"\1s"),
    (r"(?:([^f])fe|([lr])f)$", r"\1\2ves"),
    (r"(shea|lea|loa|thie)f$", r"\1ves"),
    (r"sis$", "ses"),
    (r"([ti])um$", r"\1a"),
    (r"(tomat|potat|ech|her|vet)o$", r"\1oes"),
    (r"(bu)s$", r"\1ses"),
    (r"(alias)$", r"\1es"),
    (r"(octop)us$", r"\1i"),
    (r"(ax|test)is$", r"\1es"),
    (r"(us)$", r"\1es"),
    (r"s$", "s"),
    (r"$", "s"),
]

# Words that don't follow any of the suffix rules above
IRREGULAR_PLURALS: dict[str, str] = {
    "move": "moves",
    "foot": "feet",
    "goose": "geese",
    "sex": "sexes",
    "child": "children",
    "man": "men",
    "woman": "women",
    "tooth": "teeth",
    "person": "people",
    "valve": "valves",
}

UNCOUNTABLE_WORDS: frozenset[str] = frozenset([
    "sheep",
    "fish",
    "deer",
    "series",
    "species",
    "money",
    "rice",
    "information",
    "equipment",
])

# Candidates that are left over when a name has nothing sluggable in it
DEGENERATE_SEGMENTS = ("", "-", "-1")


def pluralize(singular: str) -> str:
    """
    Return the English plural of ``singular``.

    Uncountable words are returned unchanged, irregular words are matched on their
    ending (so "Chairman" becomes "Chairmen"), and everything else goes through
    PLURAL_RULES.
    """
    if not singular:
        return singular

    if singular.lower() in UNCOUNTABLE_WORDS:
        return singular

    for word, plural in IRREGULAR_PLURALS.items():
        match = re.search(f"{word}$", singular, re.IGNORECASE)
        if match:
            if match.group(0)[0].isupper():
                plural = plural[0].upper() + plural[1:]
            return singular[:match.start()] + plural

    for pattern, replacement in PLURAL_RULES:
        if re.search(pattern, singular, re.IGNORECASE):
            return re.sub(pattern, replacement, singular, flags=re.IGNORECASE)

    return singular


def generate_url_segment(
    raw_candidate: str,
    scope_type: str,
    scope_id: int | str | None,
    exists: Callable[[str], bool],
) -> str:
    """
    Turn ``raw_candidate`` into a URL segment that ``exists`` reports as free.

    If nothing usable is left after sanitising, "{scope_type}-{scope_id}" is used
    instead. Clashes get a "-2", "-3", ... suffix (replacing any numeric suffix the
    candidate already had).
    """
    candidate = slugify(raw_candidate or "")
    if candidate in DEGENERATE_SEGMENTS:
        candidate = slugify(f"{scope_type}-{scope_id}")

    count = 2
    while exists(candidate):
        candidate = re.sub(r"-[0-9]+$", "", candidate) + f"-{count}"
        count += 1

    return candidate
