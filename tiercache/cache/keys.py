"""
Deterministic cache key derivation.

Turns a logical request (operation name, variables, field name,
arguments) into a namespaced SHA-256 fingerprint.  Mapping keys are
sorted at every nesting level so insertion order never changes the key.
"""

import hashlib
import json
from typing import Any, Mapping, Optional

KEY_NAMESPACE = "gql:"
ANONYMOUS_OPERATION = "anonymous"


def _canonicalize(value: Any) -> Any:
    """Return a JSON-ready copy of *value* with every mapping key-sorted."""
    if isinstance(value, Mapping):
        items = ((str(k), _canonicalize(v)) for k, v in value.items())
        return dict(sorted(items, key=lambda kv: kv[0]))
    if isinstance(value, (list, tuple)):
        return [_canonicalize(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_canonicalize(v) for v in value), key=repr)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def canonical_request(
    operation_name: Optional[str],
    variables: Optional[Mapping[str, Any]],
    field_name: str,
    args: Optional[Mapping[str, Any]],
) -> str:
    """Build the canonical string that :func:`derive_key` hashes.

    Args:
        operation_name: Operation name; empty or ``None`` means anonymous.
        variables: Operation variables.
        field_name: The field being resolved.
        args: Field arguments.

    Returns:
        Compact JSON with sorted keys.
    """
    key_data = {
        "operation": operation_name or ANONYMOUS_OPERATION,
        "variables": _canonicalize(variables or {}),
        "field": field_name,
        "args": _canonicalize(args or {}),
    }
    return json.dumps(key_data, sort_keys=True, separators=(",", ":"))


def derive_key(
    operation_name: Optional[str],
    variables: Optional[Mapping[str, Any]],
    field_name: str,
    args: Optional[Mapping[str, Any]],
) -> str:
    """Derive a stable cache key for a logical request.

    Args:
        operation_name: Operation name; empty or ``None`` means anonymous.
        variables: Operation variables.
        field_name: The field being resolved.
        args: Field arguments.

    Returns:
        ``gql:`` followed by the hex SHA-256 of the canonical request.
    """
    canonical = canonical_request(operation_name, variables, field_name, args)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{KEY_NAMESPACE}{digest}"
