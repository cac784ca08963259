"""CredentialStore implementations.

- EnvironmentCredentialStore: SEQ_API_KEY plus per-workspace overrides
- FileCredentialStore: JSON credential file with optional hot reload

The two stores treat unknown workspaces differently on purpose: the
environment store falls back to the default key, the file store refuses.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from seq_mcp.auth.store import (
    DEFAULT_WORKSPACE,
    CredentialStore,
    normalize_workspace,
)
from seq_mcp.auth.watcher import CredentialFileWatcher
from seq_mcp.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_KEY_VARIABLE = "SEQ_API_KEY"

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def workspace_variable(workspace: str, prefix: str = DEFAULT_KEY_VARIABLE) -> str:
    """Environment variable name holding a workspace's API key.

    Example:
        workspace_variable("production")  # "SEQ_API_KEY_PRODUCTION"
        workspace_variable("eu-west")     # "SEQ_API_KEY_EU_WEST"
    """
    return f"{prefix}_{_NON_ALNUM.sub('_', workspace.strip()).upper()}"


class EnvironmentCredentialStore(CredentialStore):
    """Credential store that reads API keys from environment variables.

    Keys are looked up as:
    - SEQ_API_KEY for the default workspace
    - SEQ_API_KEY_{WORKSPACE} for any other workspace, falling back to
      SEQ_API_KEY when the override is not set

    The default key is read once at construction. Overrides are read on
    every lookup, so reload() has nothing to do.

    Example:
        # In environment:
        # SEQ_API_KEY=abc123
        # SEQ_API_KEY_PRODUCTION=def456

        store = EnvironmentCredentialStore()
        store.get_api_key("production")  # "def456"
        store.get_api_key("staging")     # "abc123"
    """

    def __init__(self, variable: str = DEFAULT_KEY_VARIABLE):
        """Initialize from the environment.

        Args:
            variable: Name of the default key variable; also the
                prefix for workspace overrides.

        Raises:
            ConfigurationError: If the default key variable is unset or empty.
        """
        self._variable = variable
        default_key = os.environ.get(variable)
        if not default_key:
            raise ConfigurationError(
                f"{variable} environment variable is not set. "
                f"Set {variable} (and optionally {variable}_<WORKSPACE>) "
                "before starting the server."
            )
        self._default_key = default_key

    def get_api_key(self, workspace: str | None) -> str:
        """Get the key for a workspace, falling back to the default key."""
        if normalize_workspace(workspace) != DEFAULT_WORKSPACE:
            override = os.environ.get(workspace_variable(workspace, self._variable))
            if override:
                return override
        return self._default_key

    def reload(self) -> None:
        """Not needed - the default key is fixed for the process lifetime."""
        pass


class FileCredentialStore(CredentialStore):
    """Credential store backed by a JSON file.

    The file is a flat object mapping workspace names to API keys:

        {
          "default": "abc123",
          "production": "def456"
        }

    Names match case-insensitively. Values that are not strings are
    ignored. A "default" entry is required.

    The keys live in a read-only mapping that reload() replaces with a
    single assignment, so lookups never take a lock and never see a
    half-built mapping. Reloads themselves are serialized.

    Example:
        store = FileCredentialStore("secrets.json", watch=True)
        key = store.get_api_key("production")
        ...
        store.close()
    """

    def __init__(
        self,
        path: str | Path = "secrets.json",
        watch: bool = False,
        watch_interval: float = 1.0,
    ):
        """Load the credential file and optionally start watching it.

        Args:
            path: Path to the JSON credential file.
            watch: Reload automatically when the file changes.
            watch_interval: Seconds between file checks.

        Raises:
            OSError: If the file cannot be read.
            json.JSONDecodeError: If the file is not valid JSON.
            ConfigurationError: If the file has no usable "default" key.
        """
        self._path = str(path)
        self._reload_lock = threading.Lock()
        self._keys: Mapping[str, str] = MappingProxyType({})
        self._watcher: CredentialFileWatcher | None = None

        self.reload()

        if watch:
            directory = os.path.dirname(os.path.abspath(self._path))
            if os.path.isdir(directory):
                self._watcher = CredentialFileWatcher(
                    self._path, self.reload, interval=watch_interval
                )
                self._watcher.start()
            else:
                logger.warning(
                    f"Not watching {self._path}: directory {directory} does not exist"
                )

    @property
    def path(self) -> str:
        return self._path

    @property
    def watching(self) -> bool:
        return self._watcher is not None and self._watcher.running

    @property
    def workspaces(self) -> list[str]:
        """Workspace names currently loaded."""
        return sorted(self._keys)

    def get_api_key(self, workspace: str | None) -> str:
        """Get the key for a workspace. Unknown workspaces are an error."""
        name = normalize_workspace(workspace)
        keys = self._keys
        try:
            return keys[name]
        except KeyError:
            logger.warning(f"Workspace '{name}' not found in {self._path}")
            raise ConfigurationError(
                f"No API key for workspace '{workspace or DEFAULT_WORKSPACE}'"
            ) from None

    def reload(self) -> None:
        """Re-read the file and swap in the new keys."""
        with self._reload_lock:
            with open(self._path, encoding="utf-8") as f:
                raw = json.load(f)
            keys = self._parse(raw)
            self._keys = MappingProxyType(keys)

        logger.info(f"Loaded {len(keys)} workspace key(s) from {self._path}")

    def close(self) -> None:
        """Stop watching the file."""
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    def _parse(self, raw: object) -> dict[str, str]:
        if not isinstance(raw, dict):
            logger.error(f"Credential file {self._path} is not a JSON object")
            raise ConfigurationError("Credential file must contain a JSON object")

        keys: dict[str, str] = {}
        for name, value in raw.items():
            if not isinstance(value, str):
                logger.debug(f"Ignoring non-string entry '{name}' in {self._path}")
                continue
            keys[normalize_workspace(name)] = value

        if DEFAULT_WORKSPACE not in keys:
            logger.error(f"Credential file {self._path} has no '{DEFAULT_WORKSPACE}' entry")
            raise ConfigurationError(
                f"Credential file has no '{DEFAULT_WORKSPACE}' entry"
            )
        return keys
