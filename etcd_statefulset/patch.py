"""
JSON merge patch (RFC 7386) between a baseline and a mutated working copy.

Only fields that differ end up in the patch; keys dropped from the working
copy are sent as null so the server removes them. Lists are replaced as a
whole, which is the merge-patch semantics the API server applies.
"""
from typing import Any, Dict

from kubernetes.client import ApiClient

MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"

_serializer = ApiClient()


def to_dict(obj: Any) -> Any:
    """Serialize a kubernetes model to its wire (camelCase) form, dropping unset fields."""
    return _serializer.sanitize_for_serialization(obj)


def create_merge_patch(original: Dict[str, Any], modified: Dict[str, Any]) -> Dict[str, Any]:
    patch: Dict[str, Any] = {}
    for key in original:
        if key not in modified:
            patch[key] = None
    for key, value in modified.items():
        if key not in original:
            patch[key] = value
            continue
        old = original[key]
        if isinstance(old, dict) and isinstance(value, dict):
            nested = create_merge_patch(old, value)
            if nested:
                patch[key] = nested
        elif old != value:
            patch[key] = value
    return patch


def merge_patch_from(baseline: Any, working: Any) -> Dict[str, Any]:
    """Diff two versions of the same kubernetes object."""
    return create_merge_patch(to_dict(baseline) or {}, to_dict(working) or {})
