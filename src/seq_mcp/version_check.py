"""Seq version compatibility check run at server startup."""

from __future__ import annotations

import logging
import re

from seq_mcp.connection import SeqConnectionFactory
from seq_mcp.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_LEADING_DIGITS = re.compile(r"\d+")


def parse_version(text: str) -> tuple[int, ...]:
    """Parse a dotted version into integers.

    Parsing stops at the first component without leading digits, so
    "2025.x" parses as (2025,) and "2024.3.1234-pre" as (2024, 3, 1234).

    Raises:
        ValueError: If the first component has no digits.
    """
    parts: list[int] = []
    for component in text.strip().split("."):
        match = _LEADING_DIGITS.match(component)
        if not match:
            break
        parts.append(int(match.group()))
    if not parts:
        raise ValueError(f"Not a version: {text!r}")
    return tuple(parts)


def _truncate(version: tuple[int, ...], length: int) -> tuple[int, ...]:
    padded = version + (0,) * max(0, length - len(version))
    return padded[:length]


def is_supported_version(version: str, minimum: str, maximum: str) -> bool:
    """Check a Seq version against inclusive bounds.

    Bounds only constrain the components they spell out: with a maximum
    of "2025.2" every 2025.2.* build is accepted, and "2025.x" accepts
    any 2025 release.

    Example:
        is_supported_version("2024.3.11923", "2024.1", "2025.x")  # True
        is_supported_version("2023.4.1000", "2024.1", "2025.x")   # False
    """
    current = parse_version(version)
    low = parse_version(minimum)
    high = parse_version(maximum)
    return _truncate(current, len(low)) >= low and _truncate(current, len(high)) <= high


async def verify_seq_version(
    factory: SeqConnectionFactory,
    minimum: str,
    maximum: str,
    strict: bool = False,
) -> str | None:
    """Connect with the default workspace and check the Seq version.

    Connection problems are logged and never stop startup; tool calls
    will report them to callers.

    Args:
        factory: Connection factory to probe with.
        minimum: Lowest supported version.
        maximum: Highest supported version.
        strict: Raise instead of warning when the version is out of range.

    Returns:
        The reported Seq version, or None if it could not be determined.

    Raises:
        ConfigurationError: Version out of range and strict is set.
    """
    try:
        conn = await factory.create()
    except Exception as e:
        logger.error(f"Failed to connect to Seq server: {e}")
        return None

    version = conn.version
    if not version:
        logger.warning("Seq did not report a version")
        return None

    try:
        supported = is_supported_version(version, minimum, maximum)
    except ValueError as e:
        logger.warning(f"Could not compare Seq version: {e}")
        return version

    logger.info(f"Connected to Seq version {version}")
    if not supported:
        message = (
            f"Seq version {version} is outside supported range {minimum}-{maximum}"
        )
        if strict:
            raise ConfigurationError(message)
        logger.warning(message)

    return version
