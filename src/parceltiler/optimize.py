"""Reduce feature attributes to an allow-list of field names."""
from typing import Iterable, List, Optional


def optimize_properties(properties: Optional[dict], keep: Iterable[str]) -> dict:
    """Return only the allow-listed properties.

    Fields missing from ``properties`` are left out silently; fields that
    are present are kept as they are, ``None`` included. The input mapping
    is never modified.

    Parameters
    ----------
    properties : dict or None
        The feature's attributes.
    keep : iterable of str
        Field names to retain. Order and duplicates do not matter.

    Returns
    -------
    dict
        A new mapping with the retained fields.
    """
    if not properties:
        return {}
    optimized = {}
    for name in keep:
        if name in properties:
            optimized[name] = properties[name]
    return optimized


def parse_property_list(text: str) -> List[str]:
    """Split a comma-separated list of field names, dropping blanks."""
    return [name.strip() for name in text.split(",") if name.strip()]
