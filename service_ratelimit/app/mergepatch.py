"""
JSON merge patch (RFC 7386) helpers.

Only the difference between two snapshots of a document is sent to the
API server, so concurrent changes to unrelated fields by other actors are
left alone.
"""

import copy
from typing import Any, Dict


def create_merge_patch(original: Dict[str, Any], modified: Dict[str, Any]) -> Dict[str, Any]:
    """Build the merge patch that turns ``original`` into ``modified``.

    Keys missing from ``modified`` are emitted as ``None`` (JSON null).
    Lists and scalars are replaced whole.
    """
    if not isinstance(original, dict) or not isinstance(modified, dict):
        raise TypeError("merge patches can only be built between two objects")

    patch: Dict[str, Any] = {}
    for key in original:
        if key not in modified:
            patch[key] = None

    for key, value in modified.items():
        if key not in original:
            patch[key] = copy.deepcopy(value)
            continue

        previous = original[key]
        if isinstance(previous, dict) and isinstance(value, dict):
            nested = create_merge_patch(previous, value)
            if nested:
                patch[key] = nested
        elif previous != value:
            patch[key] = copy.deepcopy(value)

    return patch


def apply_merge_patch(target: Any, patch: Any) -> Any:
    """Apply a merge patch and return the result; ``target`` is not modified."""
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)

    result = copy.deepcopy(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = apply_merge_patch(result.get(key), value)
    return result
