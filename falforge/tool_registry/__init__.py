"""
Tool Registry component.

Keep the tools generated during a session and run them on demand.
"""

from falforge.tool_registry.registry import ToolRegistry

__all__ = ["ToolRegistry"]
