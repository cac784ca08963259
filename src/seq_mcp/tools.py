"""Seq query operations with uniform error classification.

SeqTools implements the three read-only operations exposed over MCP:

    - search: bounded search over stored events
    - wait_for_events: capture live events for a few seconds
    - list_signals: list shared signals

Every operation resolves a connection, makes one remote call and turns
whatever goes wrong into a ToolOutcome. Failures are classified the same
way for all three:

    Caller cancel / call timeout  -> empty result, cancelled=True
    Rejected key (any stage)      -> authentication error, fixed message
    Configuration problem         -> unknown error with the config message
    Anything else                 -> transport error with the message

No operation retries; retrying is the caller's decision.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from seq_mcp.connection import SeqConnection, SeqConnectionFactory
from seq_mcp.exceptions import (
    AUTH_FAILED_MESSAGE,
    AuthenticationError,
    ConfigurationError,
    SeqApiError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

APPLICATION_NAME = "seq-mcp"
WAIT_TIMEOUT_SECONDS = 5.0

SEARCH_COUNT_DEFAULT = 100
SEARCH_COUNT_MAX = 1000
WAIT_COUNT_DEFAULT = 10
WAIT_COUNT_MAX = 100

# Phrases this server logs when its own key is rejected
SELF_AUTH_FAILURE_MARKERS = (
    "authentication failed",
    "rejected api key",
    "lacks read permission",
)


class ErrorKind(str, Enum):
    """Outward error classification."""

    AUTHENTICATION = "authentication"
    CANCELLED = "cancelled"
    TRANSPORT = "transport"
    UNKNOWN = "unknown"


@dataclass
class ClassifiedError:
    """A failure as shown to tool callers."""

    kind: ErrorKind
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


@dataclass
class ToolOutcome:
    """Result of a tool operation: items, or a classified error."""

    items: list[dict[str, Any]] = field(default_factory=list)
    error: ClassifiedError | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "success": self.ok,
            "count": len(self.items),
            "items": self.items,
        }
        if self.cancelled:
            result["cancelled"] = True
        if self.error:
            result["error"] = self.error.to_dict()
        return result


def classify_error(error: BaseException) -> ClassifiedError:
    """Map an exception onto the outward error taxonomy.

    Authentication failures always get the same short message so that
    keys and server diagnostics never reach the caller.
    """
    if isinstance(error, AuthenticationError):
        return ClassifiedError(ErrorKind.AUTHENTICATION, AUTH_FAILED_MESSAGE)
    if isinstance(error, SeqApiError) and error.is_auth_failure:
        return ClassifiedError(ErrorKind.AUTHENTICATION, AUTH_FAILED_MESSAGE)
    if isinstance(error, ConfigurationError):
        # The cause can name server-side paths; keep it in the logs
        return ClassifiedError(ErrorKind.UNKNOWN, f"Configuration error: {error.message}")
    if isinstance(error, (asyncio.CancelledError, asyncio.TimeoutError)):
        return ClassifiedError(ErrorKind.CANCELLED, "Operation cancelled")
    return ClassifiedError(ErrorKind.TRANSPORT, f"Transport error: {error}")


# =============================================================================
# Self-referential auth failures
# =============================================================================


def _event_property(event: dict[str, Any], name: str) -> Any:
    """Read a property from an event in Seq API or CLEF shape."""
    props = event.get("Properties")
    if isinstance(props, list):
        for prop in props:
            if isinstance(prop, dict) and prop.get("Name") == name:
                return prop.get("Value")
    elif isinstance(props, dict) and name in props:
        return props[name]
    return event.get(name)


def _event_text(event: dict[str, Any]) -> str:
    parts = [
        event.get("RenderedMessage"),
        event.get("MessageTemplate"),
        event.get("@m"),
        event.get("@mt"),
    ]
    for token in event.get("MessageTemplateTokens") or []:
        if isinstance(token, dict):
            parts.append(token.get("Text"))
    return " ".join(str(p) for p in parts if p)


def is_self_auth_failure(event: dict[str, Any], application: str = APPLICATION_NAME) -> bool:
    """Check if an event is this server logging its own rejected key."""
    if _event_property(event, "Application") != application:
        return False
    text = _event_text(event).lower()
    return any(marker in text for marker in SELF_AUTH_FAILURE_MARKERS)


def collapse_self_auth_failures(
    events: list[dict[str, Any]],
    application: str = APPLICATION_NAME,
) -> list[dict[str, Any]]:
    """Replace a result made up only of our own auth failures with one event.

    When the server's logs are shipped to the Seq instance it queries, a
    bad key produces a burst of identical failure records. Those say the
    server is misconfigured; they are not what the query was looking for.
    """
    if not events or not all(is_self_auth_failure(e, application) for e in events):
        return events

    return [
        {
            "Level": "Error",
            "RenderedMessage": AUTH_FAILED_MESSAGE,
            "Properties": [{"Name": "Application", "Value": application}],
            "Synthetic": True,
            "CollapsedCount": len(events),
        }
    ]


# =============================================================================
# Cancellation
# =============================================================================


async def run_until_cancelled(
    operation: Awaitable[T],
    cancel: asyncio.Event | None = None,
    timeout: float | None = None,
) -> tuple[bool, T | None]:
    """Run an operation until it finishes, `cancel` is set, or `timeout` passes.

    Whichever comes first wins. A losing operation is cancelled and awaited
    so it can release its sockets before this returns.

    Returns:
        (True, result) if the operation finished, (False, None) otherwise.
        Exceptions from the operation propagate.
    """
    task = asyncio.ensure_future(operation)
    waiters: set[asyncio.Future[Any]] = {task}
    cancel_waiter: asyncio.Future[Any] | None = None
    if cancel is not None:
        cancel_waiter = asyncio.ensure_future(cancel.wait())
        waiters.add(cancel_waiter)

    try:
        await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    if task.done() and not task.cancelled():
        return True, task.result()
    return False, None


# =============================================================================
# Operations
# =============================================================================


class SeqTools:
    """Read-only Seq operations for tool callers.

    Example:
        tools = SeqTools(factory)
        outcome = await tools.search("@Level = 'Error'", count=20)
        if outcome.ok:
            for event in outcome.items:
                ...
    """

    def __init__(
        self,
        factory: SeqConnectionFactory,
        wait_timeout: float = WAIT_TIMEOUT_SECONDS,
        application: str = APPLICATION_NAME,
    ):
        """Initialize the tools.

        Args:
            factory: Creates a probed connection per call.
            wait_timeout: Capture window for wait_for_events in seconds.
            application: Application name this server logs under, used to
                recognize its own auth failure records.
        """
        self.factory = factory
        self.wait_timeout = wait_timeout
        self.application = application

    async def search(
        self,
        filter: str,
        count: int = SEARCH_COUNT_DEFAULT,
        workspace: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ToolOutcome:
        """Search stored events.

        Args:
            filter: Seq filter expression (e.g., "@Level = 'Error'"). Required.
            count: Maximum number of events to return (1-1000).
            workspace: Workspace whose API key to use.
            cancel: Set by the caller to abandon the search.

        Raises:
            ValueError: Missing filter or count out of range. Nothing is
                sent to Seq in that case.
        """
        if filter is None or not filter.strip():
            raise ValueError("filter is required")
        _check_count(count, SEARCH_COUNT_MAX)

        async def call(conn: SeqConnection) -> list[dict[str, Any]]:
            return await conn.client.search_events(filter, count=count, render=True)

        outcome = await self._invoke("search", workspace, call, cancel)
        if outcome.ok and not outcome.cancelled:
            outcome.items = collapse_self_auth_failures(outcome.items, self.application)
            logger.info(
                f"Search filter='{filter[:50]}' returned {len(outcome.items)} events"
            )
        return outcome

    async def wait_for_events(
        self,
        filter: str | None = None,
        count: int = WAIT_COUNT_DEFAULT,
        workspace: str | None = None,
        cancel: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> ToolOutcome:
        """Capture live events until `count` arrive or the wait window ends.

        The result is a snapshot: events are returned together once the
        capture ends, and an empty list is normal when nothing arrives.

        Args:
            filter: Optional Seq filter expression (default: all events).
            count: Maximum number of events to capture (1-100).
            workspace: Workspace whose API key to use.
            cancel: Set by the caller to abandon the capture.
            timeout: Capture window in seconds (default: the tools' wait_timeout).

        Raises:
            ValueError: count out of range.
        """
        _check_count(count, WAIT_COUNT_MAX)
        if cancel is not None and cancel.is_set():
            return ToolOutcome(cancelled=True)

        captured: list[dict[str, Any]] = []

        async def capture() -> list[dict[str, Any]]:
            conn = await self.factory.create(workspace)
            async with aclosing(conn.client.stream_events(filter or None)) as stream:
                async for event in stream:
                    captured.append(event)
                    if len(captured) >= count:
                        break
            return captured

        try:
            finished, _ = await run_until_cancelled(
                capture(), cancel=cancel, timeout=timeout or self.wait_timeout
            )
        except Exception as e:
            return self._failed("wait_for_events", e)

        # The deadline ends a capture normally; only the caller's signal discards it
        if not finished and cancel is not None and cancel.is_set():
            logger.info("wait_for_events cancelled by caller")
            return ToolOutcome(cancelled=True)

        items = collapse_self_auth_failures(list(captured), self.application)
        logger.info(
            f"Captured {len(items)} live events "
            f"({'count reached' if finished else 'wait window ended'})"
        )
        return ToolOutcome(items=items)

    async def list_signals(
        self,
        workspace: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ToolOutcome:
        """List shared signals. Private signals are never returned.

        Args:
            workspace: Workspace whose API key to use.
            cancel: Set by the caller to abandon the request.
        """

        async def call(conn: SeqConnection) -> list[dict[str, Any]]:
            return await conn.client.list_signals(shared=True)

        outcome = await self._invoke("list_signals", workspace, call, cancel)
        if outcome.ok and not outcome.cancelled:
            logger.info(f"Listed {len(outcome.items)} shared signals")
        return outcome

    async def _invoke(
        self,
        name: str,
        workspace: str | None,
        call: Callable[[SeqConnection], Awaitable[list[dict[str, Any]]]],
        cancel: asyncio.Event | None,
    ) -> ToolOutcome:
        """Connect, run one remote call and classify the result."""
        if cancel is not None and cancel.is_set():
            return ToolOutcome(cancelled=True)

        async def run() -> list[dict[str, Any]]:
            conn = await self.factory.create(workspace)
            return await call(conn)

        try:
            finished, items = await run_until_cancelled(run(), cancel=cancel)
        except Exception as e:
            return self._failed(name, e)

        if not finished:
            logger.info(f"{name} cancelled by caller")
            return ToolOutcome(cancelled=True)
        return ToolOutcome(items=items or [])

    def _failed(self, name: str, error: Exception) -> ToolOutcome:
        classified = classify_error(error)
        if classified.kind is ErrorKind.CANCELLED:
            logger.warning(f"{name} timed out; returning an empty result")
            return ToolOutcome(cancelled=True)

        if classified.kind is ErrorKind.AUTHENTICATION:
            logger.warning(f"{name} failed: {classified.message}")
        else:
            logger.error(f"{name} failed: {error}")
        return ToolOutcome(error=classified)


def _check_count(count: int, maximum: int) -> None:
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValueError(f"count must be an integer between 1 and {maximum}")
    if not 1 <= count <= maximum:
        raise ValueError(f"count must be between 1 and {maximum}, got {count}")
