"""
OpenAI client utilities.

This module provides the text-generation capabilities the ranker and agent core
consume: JSON (structured) completions, tool-calling completions and streamed
completions expressed as stream events.
"""

from typing import Any, AsyncIterator, Dict, List, Optional
import json
import logging

from openai import AsyncOpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from falforge.config import settings
from falforge.utils.error_handling import LLMError
from falforge.utils.events import Finish, TextDelta, ensure_terminal

logger = logging.getLogger(__name__)

_client: Optional[AsyncOpenAI] = None


def get_client() -> AsyncOpenAI:
    """Return the shared async OpenAI client, creating it on first use."""
    global _client
    if _client is None:
        if not settings.openai_api_key:
            raise LLMError("OPENAI_API_KEY is not configured", component="openai_client")
        _client = AsyncOpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url)
    return _client


@retry(wait=wait_exponential(min=1, max=30), stop=stop_after_attempt(settings.max_retries), reraise=True)
async def get_json_completion(
    prompt: str,
    system_message: str = "You are a helpful AI assistant.",
    temperature: float = settings.openai_temperature,
    max_tokens: int = settings.openai_max_tokens,
    model: str = settings.openai_model,
) -> Dict:
    """
    Get a JSON completion from the OpenAI API with retry logic.

    Args:
        prompt: The user prompt
        system_message: The system message
        temperature: Controls randomness (0-1)
        max_tokens: Maximum number of tokens to generate
        model: The OpenAI model to use

    Returns:
        The generated JSON as a Python dictionary
    """
    try:
        response = await get_client().chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_message},
                {"role": "user", "content": prompt}
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"}
        )

        return json.loads(response.choices[0].message.content)
    except Exception as e:
        logger.error(f"Error calling OpenAI API for JSON completion: {e}")
        raise


async def get_tool_completion(
    messages: List[Dict[str, Any]],
    tools: Optional[List[Dict[str, Any]]] = None,
    temperature: float = settings.openai_temperature,
    model: str = settings.openai_model,
) -> Any:
    """
    Run one chat completion step with tools attached.

    Returns:
        The assistant message, which may carry ``tool_calls``
    """
    params = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
    }

    if tools:
        params["tools"] = tools
        params["tool_choice"] = "auto"

    try:
        response = await get_client().chat.completions.create(**params)
    except Exception as e:
        logger.error(f"Error calling OpenAI API with tools: {e}")
        raise LLMError(str(e), component="openai_client") from e

    return response.choices[0].message


async def _raw_stream(
    prompt: str,
    system_message: str,
    temperature: float,
    model: str,
) -> AsyncIterator[Any]:
    stream = await get_client().chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system_message},
            {"role": "user", "content": prompt}
        ],
        temperature=temperature,
        stream=True,
        stream_options={"include_usage": True},
    )

    parts = []
    finish_reason = None
    usage = {}

    async for chunk in stream:
        # Token counts arrive on the last chunk, which carries no choices
        if getattr(chunk, "usage", None) is not None:
            usage = chunk.usage.model_dump(exclude_none=True)
        if not chunk.choices:
            continue
        choice = chunk.choices[0]
        delta = choice.delta.content if choice.delta else None
        if delta:
            parts.append(delta)
            yield TextDelta(text_delta=delta)
        if choice.finish_reason:
            finish_reason = choice.finish_reason

    yield Finish(text="".join(parts), finish_reason=finish_reason, usage=usage)


def stream_completion(
    prompt: str,
    system_message: str = "You are a helpful AI assistant.",
    temperature: float = settings.openai_temperature,
    model: str = settings.openai_model,
) -> AsyncIterator[Any]:
    """
    Stream a completion as text-delta events closed by a finish or error event.

    Args:
        prompt: The user prompt
        system_message: The system message
        temperature: Controls randomness (0-1)
        model: The OpenAI model to use

    Returns:
        Async iterator of stream events
    """
    return ensure_terminal(_raw_stream(prompt, system_message, temperature, model))
