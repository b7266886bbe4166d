"""
Useful utilities for testing taxonomy and tagging code.
"""
from __future__ import annotations


def pretty_format_terms(terms) -> list[str]:
    """
    Format terms to be more human readable, indented by depth and followed by their type.

    e.g. "  Red (Colour, single)"
    """
    pretty_results = []
    for term in terms:
        line = f"{term.depth * '  '}{term.name} ({term.get_root().name}"
        if term.single_select:
            line += ", single"
        if term.internal_only:
            line += ", internal"
        line += ")"
        pretty_results.append(line)
    return pretty_results
