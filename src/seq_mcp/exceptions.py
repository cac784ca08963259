"""Standard exception hierarchy for seq-mcp.

All seq-mcp exceptions inherit from SeqMCPError, making it easy
to catch all library-specific errors.

Exception Hierarchy:
    SeqMCPError (base)
    ├── ConfigurationError - No usable credential or invalid configuration
    ├── AuthenticationError - Credential present but rejected
    └── TransportError - Network/protocol failure unrelated to credentials
        └── SeqApiError - Seq answered with a non-success status
"""

# Shown to tool callers for every rejected or under-permissioned key
AUTH_FAILED_MESSAGE = "Authentication failed: invalid or under-permissioned API key"


class SeqMCPError(Exception):
    """Base exception for all seq-mcp errors.

    Catch this to handle any library-specific exception:
        try:
            conn = await factory.create(workspace)
        except SeqMCPError as e:
            logger.error(f"Seq MCP error: {e}")
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{super().__str__()} (caused by: {self.cause})"
        return super().__str__()


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(SeqMCPError):
    """Invalid configuration.

    Raised when:
    - SEQ_API_KEY is not set for the environment credential store
    - A workspace has no entry in the credential file
    - The credential file is not a JSON object or lacks a "default" entry
    - The Seq version is out of range and the check is strict
    """

    pass


# =============================================================================
# Remote Errors
# =============================================================================


class AuthenticationError(SeqMCPError):
    """The API key was rejected or lacks read permission.

    Raised when:
    - Seq answers the probe with 401 or 403
    - The root document is missing the permission-gated events link
    """

    pass


class TransportError(SeqMCPError):
    """Network or protocol failure talking to Seq.

    Raised when:
    - The connection is refused or drops
    - Seq answers with an unexpected status
    - The response body cannot be decoded
    """

    pass


class SeqApiError(TransportError):
    """Seq answered with a non-success HTTP status."""

    def __init__(
        self,
        message: str,
        status: int,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause)
        self.status = status

    @property
    def is_auth_failure(self) -> bool:
        """Check if the status means the key was rejected."""
        return self.status in (401, 403)
