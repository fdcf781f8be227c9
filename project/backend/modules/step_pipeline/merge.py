"""
Deep merge with tombstone semantics.
"""

import copy
from typing import Any, Dict, Optional


def deep_merge(target: Optional[Dict[str, Any]], patch: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge a partial update into stored step data.

    For each key in patch:
        - None deletes the key (a key absent from patch is left alone)
        - a dict merges recursively into the existing dict
        - anything else, lists included, overwrites

    Neither input is mutated.

    Args:
        target: Stored data (None is treated as empty)
        patch: Partial update

    Returns:
        New merged dict
    """
    result = copy.deepcopy(target) if isinstance(target, dict) else {}

    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict):
            existing = result.get(key)
            result[key] = deep_merge(existing if isinstance(existing, dict) else {}, value)
        else:
            result[key] = copy.deepcopy(value)

    return result
