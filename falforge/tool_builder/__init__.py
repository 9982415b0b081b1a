"""
Tool Builder component.

Generate callable tool definitions from FAL model OpenAPI documents.
"""

from falforge.tool_builder.builder import ToolSynthesizer, derive_tool_name, find_input_schema_name
from falforge.tool_builder.models import ToolDefinition, ToolParameter

__all__ = ["ToolSynthesizer", "derive_tool_name", "find_input_schema_name", "ToolDefinition", "ToolParameter"]
