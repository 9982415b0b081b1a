"""
Agent Core component.

Composition root of a session: ranking, tool generation and the tool-calling loop.
"""

from falforge.agent_core.core import FalForgeSession
from falforge.agent_core.models import AgentResponse, ToolCallRecord, ToolResult

__all__ = ["FalForgeSession", "AgentResponse", "ToolCallRecord", "ToolResult"]
