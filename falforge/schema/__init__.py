"""
Schema package: turns OpenAPI component schemas into runtime validators.
"""

from falforge.schema.resolver import has_refs, resolve_refs
from falforge.schema.compiler import SchemaValidator, compile_schema

__all__ = ["resolve_refs", "has_refs", "compile_schema", "SchemaValidator"]
