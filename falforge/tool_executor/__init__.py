"""
Tool Executor component.

Submit generated tool input to the FAL queue API, poll jobs and collect their media.
"""

from falforge.tool_executor.executor import ExecutionAdapter, extract_media
from falforge.tool_executor.models import ExecutionResult, MediaDescriptor, QueueStatus

__all__ = ["ExecutionAdapter", "extract_media", "ExecutionResult", "MediaDescriptor", "QueueStatus"]
