"""Credential management for the Seq MCP server.

Resolves a workspace name to a Seq API key, from the environment or
from a hot-reloadable JSON file.
"""

from seq_mcp.auth.store import (
    DEFAULT_WORKSPACE,
    CredentialStore,
    normalize_workspace,
)
from seq_mcp.auth.adapters import (
    EnvironmentCredentialStore,
    FileCredentialStore,
    workspace_variable,
)
from seq_mcp.auth.watcher import CredentialFileWatcher

__all__ = [
    # Core types
    "DEFAULT_WORKSPACE",
    "CredentialStore",
    "normalize_workspace",
    # Implementations
    "EnvironmentCredentialStore",
    "FileCredentialStore",
    "workspace_variable",
    # Hot reload
    "CredentialFileWatcher",
]
