"""Validated Seq connections.

SeqConnectionFactory resolves the API key for a workspace, builds a
client and proves the key works before handing the connection out.

The proof cannot rely on status codes alone: with anonymous read access
disabled, Seq answers GET /api with a 200 and a cut-down root document
for keys it does not accept. A key only counts as authenticated when
the root document carries the events link, which Seq only includes for
callers allowed to read events.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable

from seq_mcp.auth import DEFAULT_WORKSPACE, CredentialStore
from seq_mcp.client import EVENTS_LINK, SeqClient, mask_key
from seq_mcp.config import DEFAULT_SERVER_URL
from seq_mcp.exceptions import (
    AUTH_FAILED_MESSAGE,
    AuthenticationError,
    SeqApiError,
    TransportError,
)

ClientFactory = Callable[..., SeqClient]


def resolve_server_url(configured: str | None = None) -> str:
    """Pick the Seq address: SEQ_SERVER_URL, then config, then localhost."""
    return os.environ.get("SEQ_SERVER_URL") or configured or DEFAULT_SERVER_URL


@dataclass(frozen=True)
class SeqConnection:
    """A client bound to one server and one API key.

    Connections are created per tool call. A connection keeps the key it
    was built with, so it stays usable even if the credential store
    reloads a different key afterwards.
    """

    server_url: str
    workspace: str
    client: SeqClient
    api_key: str = field(repr=False)
    root: dict[str, Any] = field(default_factory=dict, repr=False)
    """Root document returned by the authentication probe."""

    @property
    def version(self) -> str | None:
        """Seq version reported by the server, if any."""
        return self.root.get("Version")


class SeqConnectionFactory:
    """Creates authenticated Seq connections.

    Example:
        factory = SeqConnectionFactory(store, server_url="http://seq:5341")
        conn = await factory.create("production")
        events = await conn.client.search_events("@Level = 'Error'")
    """

    def __init__(
        self,
        store: CredentialStore,
        server_url: str | None = None,
        timeout: float = 30.0,
        client_factory: ClientFactory = SeqClient,
        logger: logging.Logger | None = None,
    ):
        """Initialize the factory.

        Args:
            store: Credential store used to resolve API keys.
            server_url: Configured Seq URL; SEQ_SERVER_URL overrides it.
            timeout: Request timeout for clients this factory builds.
            client_factory: Builds the client (server_url, api_key, timeout=...).
            logger: Optional logger; defaults to this module's logger.
        """
        self._store = store
        self._timeout = timeout
        self._client_factory = client_factory
        self._logger = logger or logging.getLogger(__name__)
        self.server_url = resolve_server_url(server_url)

        self._logger.info(f"SeqConnectionFactory initialized with URL: {self.server_url}")

    @property
    def store(self) -> CredentialStore:
        return self._store

    async def create(self, workspace: str | None = None) -> SeqConnection:
        """Create a probed connection for a workspace.

        Args:
            workspace: Workspace name (defaults to "default").

        Returns:
            A connection whose key has been accepted by Seq.

        Raises:
            ConfigurationError: No API key for the workspace.
            AuthenticationError: Seq rejected the key or it cannot read events.
            TransportError: Seq could not be reached or answered unexpectedly.
        """
        name = workspace or DEFAULT_WORKSPACE
        api_key = self._store.get_api_key(name)

        self._logger.info(
            f"Creating Seq connection to {self.server_url} "
            f"for workspace '{name}' with API key: {mask_key(api_key)}"
        )

        client = self._client_factory(self.server_url, api_key, timeout=self._timeout)
        root = await self.probe(client)

        return SeqConnection(
            server_url=self.server_url,
            workspace=name,
            client=client,
            api_key=api_key,
            root=root,
        )

    async def probe(self, client: SeqClient) -> dict[str, Any]:
        """Check that the client's key can read events.

        Returns:
            The root document.

        Raises:
            AuthenticationError: 401/403, or the events link is missing.
            TransportError: Any other failure.
        """
        try:
            root = await client.get_root()
        except SeqApiError as e:
            if e.is_auth_failure:
                self._logger.warning(
                    f"Seq rejected API key {mask_key(client.api_key)}: {e.status}"
                )
                raise AuthenticationError(AUTH_FAILED_MESSAGE, cause=e) from e
            raise
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Timed out connecting to Seq at {self.server_url}", cause=e
            ) from e

        links = root.get("Links")
        if not isinstance(links, dict) or EVENTS_LINK not in links:
            self._logger.warning(
                f"API key {mask_key(client.api_key)} lacks read permission "
                f"(no {EVENTS_LINK} link in root document)"
            )
            raise AuthenticationError(AUTH_FAILED_MESSAGE)

        return root
