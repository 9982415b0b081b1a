"""
Stream events shared by the LLM client and the agent core.

A stream is a sequence of ``text-delta`` events closed by exactly one terminal
event (``finish`` or ``error``). Readers stop at the first terminal event.
"""

import logging
from typing import Annotated, Any, AsyncIterator, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, TypeAdapter

logger = logging.getLogger(__name__)


class TextDelta(BaseModel):
    """A chunk of generated text."""
    type: Literal["text-delta"] = "text-delta"
    text_delta: str


class Finish(BaseModel):
    """Successful end of a stream."""
    type: Literal["finish"] = "finish"
    text: str = ""
    finish_reason: Optional[str] = None
    usage: Dict[str, Any] = Field(default_factory=dict)


class ErrorEvent(BaseModel):
    """Failed end of a stream."""
    type: Literal["error"] = "error"
    error: str


StreamEvent = Annotated[Union[TextDelta, Finish, ErrorEvent], Field(discriminator="type")]
TerminalEvent = Union[Finish, ErrorEvent]

stream_event_adapter = TypeAdapter(StreamEvent)


def is_terminal(event: Any) -> bool:
    """Whether the event closes its stream."""
    return isinstance(event, (Finish, ErrorEvent))


async def ensure_terminal(source: AsyncIterator[Any]) -> AsyncIterator[Any]:
    """
    Wrap a raw event source so it always ends with exactly one terminal event.

    Events after the first terminal are discarded. A source that raises ends
    with an ``ErrorEvent``; a source that runs dry ends with a ``Finish``
    carrying the accumulated text.
    """
    parts = []
    try:
        async for event in source:
            if isinstance(event, dict):
                event = stream_event_adapter.validate_python(event)
            yield event
            if is_terminal(event):
                return
            parts.append(event.text_delta)
    except Exception as e:
        logger.error(f"Stream failed: {e}")
        yield ErrorEvent(error=str(e) or e.__class__.__name__)
        return
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()

    yield Finish(text="".join(parts))


async def consume_stream(events: AsyncIterator[Any]) -> Tuple[str, TerminalEvent]:
    """
    Read a stream up to its terminal event.

    Args:
        events: Async iterator of stream events

    Returns:
        Tuple of (accumulated text, terminal event)
    """
    parts = []
    terminal: Optional[TerminalEvent] = None

    try:
        async for event in events:
            if is_terminal(event):
                terminal = event
                break
            parts.append(event.text_delta)
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()

    if terminal is None:
        terminal = ErrorEvent(error="Stream ended without a terminal event")

    return "".join(parts), terminal
