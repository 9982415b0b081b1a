"""
Error handling for falforge.

This module provides the exception hierarchy shared by the catalog, ranking,
tool generation and execution components, plus retry and logging decorators.
"""

import logging
import traceback
import functools
import time
from typing import Any, Callable, Dict, List, Type, Optional, Tuple, Union
import asyncio

logger = logging.getLogger(__name__)


class FalForgeError(Exception):
    """Base exception class for all falforge errors."""
    def __init__(self, message: str, component: str = "unknown", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.component = component
        self.details = details or {}
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for tool outputs and CLI display."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "component": self.component,
            "details": self.details
        }


class CatalogError(FalForgeError):
    """Error when querying the model catalog."""
    def __init__(self, message: str, status: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if status is not None:
            details["status"] = status
        super().__init__(message, component="catalog", details=details)
        self.status = status

    @property
    def retryable(self) -> bool:
        """Network failures, throttling and server errors are worth another attempt."""
        return self.status is None or self.status == 429 or self.status >= 500


class UpstreamError(FalForgeError):
    """Non-2xx response or failed job from the generation queue."""
    def __init__(self, status: int, status_text: str = "", endpoint_id: Optional[str] = None,
                 body: Optional[Any] = None):
        message = f"FAL API error: {status} {status_text}".strip()
        details = {"status": status, "status_text": status_text}
        if endpoint_id:
            details["endpoint_id"] = endpoint_id
        if body is not None:
            details["body"] = body
        super().__init__(message, component="tool_executor", details=details)
        self.status = status
        self.status_text = status_text
        self.endpoint_id = endpoint_id


class ToolValidationError(FalForgeError):
    """Tool input failed the compiled validator."""
    def __init__(self, errors: List[Dict[str, Any]], endpoint_id: Optional[str] = None):
        fields = ", ".join(
            ".".join(str(part) for part in error.get("loc", ())) or "<root>" for error in errors
        )
        message = f"Invalid tool input ({fields})" if fields else "Invalid tool input"
        details = {"errors": errors}
        if endpoint_id:
            details["endpoint_id"] = endpoint_id
        super().__init__(message, component="schema", details=details)
        self.errors = errors
        self.endpoint_id = endpoint_id

    @property
    def fields(self) -> List[str]:
        """Dotted paths of the failing fields."""
        return [".".join(str(part) for part in error.get("loc", ())) for error in self.errors]


class ToolNotFoundError(FalForgeError):
    """No tool has been generated for the endpoint."""
    def __init__(self, endpoint_id: str):
        super().__init__(
            f"Tool not found for endpoint: {endpoint_id}. Call generate first.",
            component="tool_registry",
            details={"endpoint_id": endpoint_id}
        )
        self.endpoint_id = endpoint_id


class ConfigurationError(FalForgeError):
    """Error related to system configuration."""
    pass


class LLMError(FalForgeError):
    """Error when interacting with OpenAI or other LLM services."""
    pass


def async_retry(
    max_tries: int = 3,
    exceptions: Union[Type[Exception], Tuple[Type[Exception], ...]] = Exception,
    delay: float = 1.0,
    backoff: float = 2.0,
    logger_obj: Optional[logging.Logger] = None,
    should_retry: Optional[Callable[[Exception], bool]] = None
) -> Callable:
    """
    Retry async function decorator with exponential backoff.

    Args:
        max_tries: Maximum number of attempts
        exceptions: Exception(s) to catch and retry on
        delay: Initial delay between retries in seconds
        backoff: Backoff multiplier
        logger_obj: Optional logger object
        should_retry: Optional predicate; caught exceptions it rejects are raised at once

    Returns:
        Decorated function
    """
    log = logger_obj or logger

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            tries = 0
            current_delay = delay

            while tries < max_tries:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    tries += 1
                    if should_retry is not None and not should_retry(e):
                        raise
                    if tries >= max_tries:
                        log.error(f"Function {func.__name__} failed after {tries} attempts. Error: {e}")
                        raise

                    log.warning(f"Attempt {tries} failed in {func.__name__}. Retrying in {current_delay} seconds. Error: {e}")
                    await asyncio.sleep(current_delay)
                    current_delay *= backoff

        return wrapper

    return decorator


def catch_and_log(
    component: str,
    exceptions: Union[Type[Exception], Tuple[Type[Exception], ...]] = Exception,
    default_return: Any = None,
    raise_error: bool = False,
    error_class: Type[FalForgeError] = FalForgeError
) -> Callable:
    """
    Decorator to catch exceptions, log them, and optionally convert to falforge errors.

    Args:
        component: Component name for logging
        exceptions: Exception(s) to catch
        default_return: Default return value if an exception is caught
        raise_error: Whether to raise a falforge error after catching
        error_class: falforge error class to use if raising

    Returns:
        Decorated function
    """
    def handle(func, e):
        stack_trace = traceback.format_exc()

        logger.error(f"Error in {func.__name__} ({component}): {e}")
        logger.debug(f"Stack trace: {stack_trace}")

        if raise_error:
            raise error_class(
                message=str(e),
                component=component,
                details={"original_error": e.__class__.__name__}
            ) from e

        return default_return

    def decorator(func):
        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except exceptions as e:
                return handle(func, e)

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except exceptions as e:
                return handle(func, e)

        # Return the appropriate wrapper based on whether the function is async
        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
