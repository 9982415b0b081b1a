"""
Data models for the Agent Core component.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ToolResult(BaseModel):
    """Outcome of a meta-tool call."""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


class ToolCallRecord(BaseModel):
    """A tool call made during an agent run, with its output."""
    tool_call_id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    output: Dict[str, Any] = Field(default_factory=dict)


class AgentResponse(BaseModel):
    """Final answer of an agent run."""
    content: str = ""
    tools: List[str] = Field(default_factory=list)
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    steps: int = 0
