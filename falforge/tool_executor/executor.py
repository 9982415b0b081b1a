"""
Execution Adapter: submits tool input to the FAL queue API.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from falforge.config import Settings, settings as default_settings
from falforge.tool_executor.models import ExecutionResult, MediaDescriptor, QueueStatus
from falforge.utils.error_handling import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

MEDIA_KEYS = {
    "images": "image",
    "image": "image",
    "videos": "video",
    "video": "video",
}


def extract_media(data: Any) -> List[MediaDescriptor]:
    """
    Collect generated media from a completed job payload.

    Args:
        data: Result payload, e.g. ``{"images": [{"url": ..., "width": ...}]}``

    Returns:
        Media descriptors in payload order
    """
    if not isinstance(data, dict):
        return []

    media = []
    for key, media_type in MEDIA_KEYS.items():
        entries = data.get(key)
        if entries is None:
            continue
        if not isinstance(entries, list):
            entries = [entries]

        for entry in entries:
            if isinstance(entry, str):
                entry = {"url": entry}
            if not isinstance(entry, dict) or not entry.get("url"):
                continue
            media.append(MediaDescriptor(
                type=media_type,
                url=entry["url"],
                width=entry.get("width"),
                height=entry.get("height"),
                content_type=entry.get("content_type"),
            ))

    return media


class ExecutionAdapter:
    """
    Run generated tools against the queue-based FAL API.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize the Execution Adapter.

        Args:
            settings: Settings to use, defaults to the global settings
        """
        self.settings = settings or default_settings
        self.timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout_seconds)

    def _headers(self) -> Dict[str, str]:
        if not self.settings.fal_key:
            raise ConfigurationError(
                "FAL_KEY is not configured",
                component="tool_executor",
            )
        return {
            "Authorization": f"Key {self.settings.fal_key}",
            "Content-Type": "application/json",
        }

    async def _read_json(self, response: aiohttp.ClientResponse, endpoint_id: str) -> Dict[str, Any]:
        if response.status < 200 or response.status >= 300:
            body = await response.text()
            logger.error(f"FAL API error for {endpoint_id}: {response.status} {response.reason} {body[:500]}")
            raise UpstreamError(response.status, response.reason or "", endpoint_id=endpoint_id, body=body)
        payload = await response.json(content_type=None)
        return payload if isinstance(payload, dict) else {"data": payload}

    async def _submit(
        self,
        session: aiohttp.ClientSession,
        endpoint_id: str,
        url: str,
        input: Dict[str, Any],
    ) -> QueueStatus:
        logger.info(f"Submitting request to {url} for {endpoint_id}")
        async with session.post(url, json=input, headers=self._headers()) as response:
            payload = await self._read_json(response, endpoint_id)

        queue_status = QueueStatus.model_validate(payload)
        logger.info(f"Queued {endpoint_id} request {queue_status.request_id} ({queue_status.status})")
        return queue_status

    async def invoke(
        self,
        endpoint_id: str,
        base_url: str,
        post_path: str,
        input: Dict[str, Any],
        tool_name: Optional[str] = None,
    ) -> ExecutionResult:
        """
        Submit input to the queue without waiting for completion.

        Args:
            endpoint_id: Endpoint identifier
            base_url: Queue server URL
            post_path: Submit path of the endpoint
            input: Validated tool input
            tool_name: Name of the tool being run

        Returns:
            A ``submitted`` ExecutionResult carrying the queue status

        Raises:
            ConfigurationError: If no FAL key is configured
            UpstreamError: If the queue answers with a non-2xx status
        """
        self._headers()
        url = f"{base_url.rstrip('/')}{post_path}"

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            queue_status = await self._submit(session, endpoint_id, url, input)

        return ExecutionResult(
            status="submitted",
            endpoint_id=endpoint_id,
            tool_name=tool_name,
            request_id=queue_status.request_id,
            queue_status=queue_status,
            message=f"Request {queue_status.request_id} submitted to {endpoint_id}",
        )

    async def subscribe(
        self,
        endpoint_id: str,
        input: Dict[str, Any],
        base_url: Optional[str] = None,
        post_path: Optional[str] = None,
        tool_name: Optional[str] = None,
    ) -> ExecutionResult:
        """
        Submit input and wait for the job to complete.

        Args:
            endpoint_id: Endpoint identifier
            input: Validated tool input
            base_url: Queue server URL, defaults to settings
            post_path: Submit path, defaults to ``/<endpoint_id>``
            tool_name: Name of the tool being run

        Returns:
            A ``completed`` ExecutionResult with the generated media

        Raises:
            ConfigurationError: If no FAL key is configured
            UpstreamError: If a request fails, the job errors, or polling runs out
        """
        headers = self._headers()
        base_url = (base_url or self.settings.fal_queue_url).rstrip("/")
        url = f"{base_url}{post_path or '/' + endpoint_id}"

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            queue_status = await self._submit(session, endpoint_id, url, input)
            request_id = queue_status.request_id

            status_url = queue_status.status_url or f"{url}/requests/{request_id}/status"
            response_url = queue_status.response_url or f"{url}/requests/{request_id}"

            for _ in range(self.settings.queue_max_polls):
                async with session.get(status_url, params={"logs": "1"}, headers=headers) as response:
                    update = await self._read_json(response, endpoint_id)

                status = update.get("status")
                if status == "IN_PROGRESS":
                    for log in update.get("logs") or []:
                        if isinstance(log, dict) and log.get("message"):
                            logger.info(f"[{endpoint_id}] {log['message']}")
                elif status == "IN_QUEUE":
                    logger.debug(f"{endpoint_id} request {request_id} queued at {update.get('queue_position')}")

                if status == "COMPLETED":
                    if update.get("error"):
                        raise UpstreamError(500, str(update["error"]), endpoint_id=endpoint_id, body=update)
                    break
                if status in ("ERROR", "FAILED"):
                    raise UpstreamError(500, str(update.get("error") or status), endpoint_id=endpoint_id, body=update)

                await asyncio.sleep(self.settings.queue_poll_interval)
            else:
                raise UpstreamError(
                    504,
                    f"Request {request_id} did not complete after {self.settings.queue_max_polls} polls",
                    endpoint_id=endpoint_id,
                )

            async with session.get(response_url, headers=headers) as response:
                data = await self._read_json(response, endpoint_id)

        media = extract_media(data)
        logger.info(f"{endpoint_id} request {request_id} completed with {len(media)} media items")

        return ExecutionResult(
            status="completed",
            endpoint_id=endpoint_id,
            tool_name=tool_name,
            request_id=request_id,
            queue_status=queue_status.model_copy(update={"status": "COMPLETED"}),
            media=media,
            message=f"Request {request_id} completed",
            data=data,
        )
