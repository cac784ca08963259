"""Seq HTTP API client.

This module provides a small async client for the parts of the Seq
REST API the server needs: the root document, event search, the live
event stream and signal listing. It handles API key authentication
and turns HTTP failures into seq-mcp exceptions.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator

import aiohttp

from seq_mcp.exceptions import SeqApiError, TransportError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-Seq-ApiKey"

# Root document link that Seq only hands out to keys with read access
EVENTS_LINK = "EventsResources"


def mask_key(api_key: str | None) -> str:
    """Mask an API key for logging, keeping only the first/last 4 chars."""
    if api_key and len(api_key) >= 8:
        return f"{api_key[:4]}...{api_key[-4:]}"
    elif api_key:
        return f"{api_key[:2]}..."
    return "(none)"


class SeqClient:
    """HTTP client for the Seq API.

    Each call opens its own aiohttp session, so a client holds no
    sockets between calls and needs no explicit close.

    Example:
        client = SeqClient("http://localhost:5341", api_key="abc123")

        root = await client.get_root()
        events = await client.search_events("@Level = 'Error'", count=20)
        async for event in client.stream_events():
            ...
    """

    def __init__(
        self,
        server_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            server_url: Seq base URL (e.g., http://localhost:5341)
            api_key: Seq API key, sent in the X-Seq-ApiKey header
            timeout: Total timeout for request/response calls in seconds
        """
        self.server_url = server_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"SeqClient({self.server_url!r}, api_key={mask_key(self.api_key)!r})"

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers[API_KEY_HEADER] = self.api_key
        return headers

    def url(self, path: str) -> str:
        return f"{self.server_url}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Make an authenticated request and decode the JSON body.

        Args:
            method: HTTP method
            path: API path relative to the server URL (e.g., api/events)
            params: Query string parameters

        Returns:
            Decoded JSON response

        Raises:
            SeqApiError: Non-2xx response
            TransportError: Connection failure or undecodable body
            asyncio.TimeoutError: The request ran out of time
        """
        url = self.url(path)
        try:
            async with aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as session:
                async with session.request(method, url, params=params) as resp:
                    if resp.status >= 400:
                        body = await resp.text()
                        logger.debug(f"Seq API error: {resp.status} {path} - {body[:200]}")
                        raise SeqApiError(
                            f"Seq returned {resp.status} {resp.reason} for {path}",
                            status=resp.status,
                        )
                    try:
                        return await resp.json(content_type=None)
                    except (json.JSONDecodeError, ValueError) as e:
                        raise TransportError(
                            f"Seq returned an invalid JSON body for {path}", cause=e
                        ) from e
        except asyncio.TimeoutError:
            logger.warning(f"Seq API timeout: {path}")
            raise
        except aiohttp.ClientError as e:
            raise TransportError(f"Request to {url} failed: {e}", cause=e) from e

    async def get_root(self) -> dict[str, Any]:
        """Get the Seq root document (product, version and links)."""
        root = await self._request("GET", "api")
        if not isinstance(root, dict):
            raise TransportError("Seq root document is not a JSON object")
        return root

    async def search_events(
        self,
        filter: str,
        count: int = 100,
        render: bool = True,
    ) -> list[dict[str, Any]]:
        """Search stored events, newest first.

        Args:
            filter: Seq filter expression (e.g., "@Level = 'Error'")
            count: Maximum number of events to return
            render: Include the rendered message text

        Returns:
            List of event objects
        """
        params = {
            "filter": filter,
            "count": str(count),
            "render": "true" if render else "false",
        }
        events = await self._request("GET", "api/events", params=params)
        if not isinstance(events, list):
            raise TransportError("Seq event search did not return a list")
        return events[:count]

    async def list_signals(self, shared: bool = True) -> list[dict[str, Any]]:
        """List signals (saved filters).

        Args:
            shared: Only return signals shared with all users
        """
        params = {"shared": "true" if shared else "false"}
        signals = await self._request("GET", "api/signals", params=params)
        if not isinstance(signals, list):
            raise TransportError("Seq signal listing did not return a list")
        return signals

    async def stream_events(
        self,
        filter: str | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream live events over a websocket as they arrive.

        The stream never ends on its own; stop iterating (and close the
        generator) or cancel the consuming task to disconnect.

        Args:
            filter: Optional Seq filter expression

        Yields:
            Event objects
        """
        params = {"filter": filter} if filter else {}
        url = self.url("api/events/stream")
        try:
            async with aiohttp.ClientSession(headers=self.headers) as session:
                async with session.ws_connect(url, params=params) as ws:
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            try:
                                event = json.loads(msg.data)
                            except json.JSONDecodeError:
                                logger.debug(f"Skipping undecodable stream message: {msg.data[:100]}")
                                continue
                            yield event
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            raise TransportError(
                                "Seq event stream failed", cause=ws.exception()
                            )
        except aiohttp.WSServerHandshakeError as e:
            raise SeqApiError(
                f"Seq refused the event stream: {e.status} {e.message}",
                status=e.status,
                cause=e,
            ) from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Event stream from {url} failed: {e}", cause=e) from e
