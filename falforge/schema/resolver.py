"""
Resolve ``$ref`` pointers in OpenAPI component schemas.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Set

logger = logging.getLogger(__name__)

FALLBACK_SCHEMA: Dict[str, Any] = {"type": "object"}


def _schemas_index(components: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    """Accept either a full ``components`` mapping or its ``schemas`` mapping."""
    if not components:
        return {}
    schemas = components.get("schemas")
    if isinstance(schemas, Mapping):
        return schemas
    return components


def ref_key(ref: str) -> str:
    """Lookup key of a ref, e.g. ``#/components/schemas/ImageSize`` -> ``ImageSize``."""
    return ref.rstrip("/").split("/")[-1]


def has_refs(schema: Any) -> bool:
    """Whether any ``$ref`` key remains anywhere in the tree."""
    if isinstance(schema, Mapping):
        return "$ref" in schema or any(has_refs(value) for value in schema.values())
    if isinstance(schema, list):
        return any(has_refs(item) for item in schema)
    return False


def resolve_refs(schema: Any, components: Optional[Mapping[str, Any]] = None) -> Any:
    """
    Inline every ``$ref`` in a JSON-Schema-shaped value.

    A ref that is re-entered while it is still being resolved higher up the
    same chain, or whose target is missing, is replaced by a generic object
    schema and logged. The input is never mutated.

    Args:
        schema: Schema tree (dict, list or scalar)
        components: OpenAPI ``components`` mapping or its ``schemas`` mapping

    Returns:
        A new tree with no ``$ref`` keys
    """
    return _resolve(schema, _schemas_index(components), set())


def _resolve(node: Any, index: Mapping[str, Any], resolving: Set[str]) -> Any:
    if isinstance(node, list):
        return [_resolve(item, index, resolving) for item in node]

    if not isinstance(node, Mapping):
        return node

    ref = node.get("$ref")
    if isinstance(ref, str):
        key = ref_key(ref)

        if key in resolving:
            logger.warning(f"Circular reference detected: {ref}")
            target = dict(FALLBACK_SCHEMA)
        elif key not in index:
            logger.warning(f"Reference not found: {ref}")
            target = dict(FALLBACK_SCHEMA)
        else:
            resolving.add(key)
            try:
                target = _resolve(index[key], index, resolving)
            finally:
                resolving.discard(key)

        siblings = {k: v for k, v in node.items() if k != "$ref"}
        if not siblings:
            return target

        # Keys written next to the ref (description, default, title) override the target
        merged = dict(target) if isinstance(target, Mapping) else {"allOf": [target]}
        merged.update(_resolve(siblings, index, resolving))
        return merged

    return {key: _resolve(value, index, resolving) for key, value in node.items()}
