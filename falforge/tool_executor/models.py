"""
Data models for the Tool Executor component.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class QueueStatus(BaseModel):
    """Queue state of a submitted generation request."""
    model_config = ConfigDict(extra="allow")

    request_id: str
    status: str = "IN_QUEUE"
    queue_position: Optional[int] = None
    status_url: Optional[str] = None
    response_url: Optional[str] = None
    cancel_url: Optional[str] = None


class MediaDescriptor(BaseModel):
    """A generated image or video."""
    type: Literal["image", "video"]
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    content_type: Optional[str] = None


class ExecutionResult(BaseModel):
    """Normalized outcome of running a generated tool."""
    status: Literal["submitted", "completed", "error"]
    endpoint_id: str
    tool_name: Optional[str] = None
    request_id: Optional[str] = None
    queue_status: Optional[QueueStatus] = None
    media: List[MediaDescriptor] = Field(default_factory=list)
    message: str = ""
    data: Optional[Dict[str, Any]] = None

    def to_output(self) -> Dict[str, Any]:
        """JSON-ready dict for tool-call outputs."""
        return self.model_dump(mode="json", exclude_none=True)
