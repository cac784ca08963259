"""Seq MCP Server.

This module implements an MCP server that exposes read-only Seq queries
as tools, so MCP clients can search structured logs, watch live events
and browse saved signals.

Usage:
    # Run as module
    python -m seq_mcp

    # Or import and run
    from seq_mcp import create_seq_mcp_server
    server = create_seq_mcp_server()
    server.run()

Tools provided:
    - seq_search: Search stored events with a filter
    - seq_wait_for_events: Capture live events for up to 5 seconds
    - signal_list: List shared signals
"""

import json
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Annotated, Any, AsyncIterator, Awaitable, Callable

from dotenv import find_dotenv, load_dotenv
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field
import seqlog

from seq_mcp.auth import CredentialStore, EnvironmentCredentialStore, FileCredentialStore
from seq_mcp.config import SeqMCPConfig
from seq_mcp.connection import SeqConnectionFactory, resolve_server_url
from seq_mcp.exceptions import ConfigurationError
from seq_mcp.tools import (
    SEARCH_COUNT_DEFAULT,
    SEARCH_COUNT_MAX,
    WAIT_COUNT_DEFAULT,
    WAIT_COUNT_MAX,
    SeqTools,
    ToolOutcome,
    classify_error,
)
from seq_mcp.version_check import verify_seq_version

logger = logging.getLogger(__name__)


def create_credential_store(config: SeqMCPConfig) -> CredentialStore:
    """Build the credential store selected by the configuration.

    Raises:
        ConfigurationError: SEQ_API_KEY missing, or the credential file is
            missing, unreadable, malformed or has no usable keys. The
            message never names the file; the log line does.
    """
    if config.credential_source == "file":
        logger.info(f"Using credential file: {config.credential_file}")
        try:
            return FileCredentialStore(
                config.credential_file,
                watch=config.watch_credentials,
                watch_interval=config.watch_interval,
            )
        except OSError as e:
            logger.error(f"Cannot read credential file {config.credential_file}: {e}")
            raise ConfigurationError("Credential file is missing or unreadable", cause=e) from e
        except json.JSONDecodeError as e:
            logger.error(f"Credential file {config.credential_file} is not valid JSON: {e}")
            raise ConfigurationError("Credential file is not valid JSON", cause=e) from e
    return EnvironmentCredentialStore()


# =============================================================================
# Seq MCP Server
# =============================================================================


class SeqMCPServer:
    """MCP server exposing Seq query tools.

    The credential store and connection factory are built on first use,
    so a missing API key is reported through the tools instead of
    preventing the server from starting.

    Attributes:
        config: Server configuration.
        mcp: FastMCP server instance.
    """

    def __init__(
        self,
        config: SeqMCPConfig | None = None,
        store: CredentialStore | None = None,
        factory: SeqConnectionFactory | None = None,
    ):
        """Initialize the Seq MCP Server.

        Args:
            config: Server configuration (defaults to SeqMCPConfig.load()).
            store: Optional pre-built credential store.
            factory: Optional pre-built connection factory.
        """
        self.config = config or SeqMCPConfig.load()
        self._store = store
        self._factory = factory
        self._tools: SeqTools | None = None

        self.mcp = FastMCP(
            name=self.config.server_name,
            lifespan=self._lifespan,
        )

        self._register_tools()

    @property
    def store(self) -> CredentialStore:
        if self._store is None:
            self._store = create_credential_store(self.config)
        return self._store

    @property
    def factory(self) -> SeqConnectionFactory:
        if self._factory is None:
            self._factory = SeqConnectionFactory(
                self.store, server_url=self.config.server_url
            )
        return self._factory

    @property
    def tools(self) -> SeqTools:
        if self._tools is None:
            self._tools = SeqTools(self.factory, application=self.config.server_name)
        return self._tools

    @asynccontextmanager
    async def _lifespan(self, app: FastMCP) -> AsyncIterator[None]:
        """Check the Seq version on startup and release resources on exit."""
        logger.info(f"Seq MCP Server started: {self.config.server_name}")
        try:
            factory = self.factory
        except ConfigurationError as e:
            logger.error(f"Seq credentials are not usable yet: {e}")
        else:
            await verify_seq_version(
                factory,
                self.config.version_min,
                self.config.version_max,
                strict=self.config.version_strict,
            )

        try:
            yield
        finally:
            self.close()

    async def _call(
        self,
        operation: Callable[[SeqTools], Awaitable[ToolOutcome]],
    ) -> list[dict[str, Any]]:
        """Run a tool operation and convert its outcome for MCP.

        Classified errors become ToolError so the protocol marks the
        result as an error. Cancelled operations return an empty list.
        """
        try:
            tools = self.tools
        except ConfigurationError as e:
            logger.error(f"Seq credentials are not usable: {e}")
            raise ToolError(classify_error(e).message) from e

        try:
            outcome = await operation(tools)
        except ValueError as e:
            raise ToolError(str(e)) from e

        if outcome.error is not None:
            raise ToolError(outcome.error.message)
        return outcome.items

    def _register_tools(self) -> None:
        """Register all MCP tools."""

        # =====================================================================
        # seq_search
        # =====================================================================
        @self.mcp.tool(
            name="seq_search",
            description="Search Seq events with filters, returning up to the specified count",
        )
        async def seq_search(
            filter: Annotated[
                str,
                Field(description="Seq filter expression (e.g., \"@Level = 'Error'\")"),
            ],
            count: Annotated[
                int,
                Field(
                    ge=1,
                    le=SEARCH_COUNT_MAX,
                    description="Maximum number of events to return (1-1000)",
                ),
            ] = SEARCH_COUNT_DEFAULT,
            workspace: Annotated[
                str | None,
                Field(description="Workspace whose API key to use (default: 'default')"),
            ] = None,
        ) -> list[dict[str, Any]]:
            """Search historical events in Seq.

            Args:
                filter: Seq filter expression.
                count: Maximum number of events to return (1-1000).
                workspace: Optional workspace identifier.

            Returns:
                Matching events, newest first.
            """
            return await self._call(
                lambda tools: tools.search(filter, count=count, workspace=workspace)
            )

        # =====================================================================
        # seq_wait_for_events
        # =====================================================================
        @self.mcp.tool(
            name="seq_wait_for_events",
            description=(
                "Wait for and capture live events from Seq (times out after "
                "5 seconds, returns captured events as a snapshot)"
            ),
        )
        async def seq_wait_for_events(
            filter: Annotated[
                str | None,
                Field(description="Optional Seq filter expression to apply to the stream"),
            ] = None,
            count: Annotated[
                int,
                Field(
                    ge=1,
                    le=WAIT_COUNT_MAX,
                    description="Maximum number of events to capture (1-100)",
                ),
            ] = WAIT_COUNT_DEFAULT,
            workspace: Annotated[
                str | None,
                Field(description="Workspace whose API key to use (default: 'default')"),
            ] = None,
        ) -> list[dict[str, Any]]:
            """Capture live events from Seq's event stream.

            Events are collected until `count` arrive or 5 seconds pass and
            are returned together. An empty list means nothing matching
            arrived in time.
            """
            return await self._call(
                lambda tools: tools.wait_for_events(
                    filter, count=count, workspace=workspace
                )
            )

        # =====================================================================
        # signal_list
        # =====================================================================
        @self.mcp.tool(
            name="signal_list",
            description="List available signals in Seq (read-only access to shared signals)",
        )
        async def signal_list(
            workspace: Annotated[
                str | None,
                Field(description="Workspace whose API key to use (default: 'default')"),
            ] = None,
        ) -> list[dict[str, Any]]:
            """List shared signals (saved filters) defined in Seq."""
            return await self._call(lambda tools: tools.list_signals(workspace=workspace))

    def run(self, transport: str = "stdio") -> None:
        """Run the MCP server.

        Args:
            transport: Transport to use ('stdio' or 'sse').
        """
        logger.info(f"Starting Seq MCP Server: {self.config.server_name}")
        self.mcp.run(transport=transport)

    def close(self) -> None:
        """Stop the credential watcher, if any."""
        if self._store is not None:
            self._store.close()


# =============================================================================
# Factory Functions
# =============================================================================


def create_seq_mcp_server(
    config: SeqMCPConfig | None = None,
    store: CredentialStore | None = None,
) -> SeqMCPServer:
    """Create a Seq MCP Server instance.

    Args:
        config: Server configuration (defaults to SeqMCPConfig.load()).
        store: Optional pre-built credential store.

    Returns:
        Configured SeqMCPServer instance.
    """
    return SeqMCPServer(config=config, store=store)


def load_env_file() -> str | None:
    """Load a .env file from the working directory or its parents.

    Variables already set in the environment win. Set SKIP_ENV_FILE=true
    to disable.

    Returns:
        Path of the loaded file, or None.
    """
    if os.environ.get("SKIP_ENV_FILE", "").lower() == "true":
        return None
    path = find_dotenv(usecwd=True)
    if not path:
        return None
    load_dotenv(path, override=False)
    return path


def setup_logging(level: str) -> None:
    """Send logs to stderr; stdout carries the MCP stdio stream."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


class ApplicationFilter(logging.Filter):
    """Tag log records with the application name."""

    def __init__(self, application: str):
        super().__init__()
        self.application = application

    def filter(self, record: logging.LogRecord) -> bool:
        record.Application = self.application
        return True


def setup_seq_logging(
    config: SeqMCPConfig,
    api_key: str | None = None,
) -> logging.Handler:
    """Also ship this server's logs to Seq.

    Every event carries Application=<server name>, which is how search
    results made up of this server's own auth failures are recognized.

    Args:
        config: Server configuration (server URL, name and log level).
        api_key: Ingest key; defaults to SEQ_API_KEY.

    Returns:
        The installed handler.
    """
    server_url = resolve_server_url(config.server_url)
    seqlog.set_global_log_properties(Application=config.server_name)

    handler = seqlog.SeqLogHandler(
        server_url,
        api_key=api_key or os.environ.get("SEQ_API_KEY") or None,
        batch_size=10,
        auto_flush_timeout=2,
        support_extra_properties=True,
    )
    # Module loggers are plain loggers, so tag their records directly
    handler.addFilter(ApplicationFilter(config.server_name))
    handler.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    logging.getLogger().addHandler(handler)

    logger.info(f"Shipping logs to Seq at {server_url} as {config.server_name}")
    return handler


# =============================================================================
# CLI Entry Point
# =============================================================================


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="Seq MCP Server")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a seq-mcp.yaml config file",
    )
    parser.add_argument(
        "--server-url",
        default=None,
        help="Seq server URL (SEQ_SERVER_URL takes precedence)",
    )
    parser.add_argument(
        "--credential-source",
        choices=["env", "file"],
        default=None,
        help="Read API keys from environment variables or a JSON file",
    )
    parser.add_argument(
        "--credential-file",
        default=None,
        help="Path to the JSON credential file",
    )
    parser.add_argument(
        "--watch",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Reload the credential file when it changes",
    )
    parser.add_argument(
        "--log-to-seq",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Also send this server's logs to Seq",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport to use (default: stdio)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level",
    )

    args = parser.parse_args(argv)

    env_path = load_env_file()
    config = SeqMCPConfig.load(args.config)

    # Command line wins over file settings, environment wins for the URL
    if args.server_url and not os.environ.get("SEQ_SERVER_URL"):
        config.server_url = args.server_url
    if args.credential_source:
        config.credential_source = args.credential_source
    if args.credential_file:
        config.credential_file = args.credential_file
    if args.watch is not None:
        config.watch_credentials = args.watch
    if args.log_level:
        config.log_level = args.log_level
    if args.log_to_seq is not None:
        config.log_to_seq = args.log_to_seq

    setup_logging(config.log_level)
    if config.log_to_seq:
        setup_seq_logging(config)
    if env_path:
        logger.info(f"Loaded environment from {env_path}")

    server = create_seq_mcp_server(config=config)
    server.run(transport=args.transport)


if __name__ == "__main__":
    main()
