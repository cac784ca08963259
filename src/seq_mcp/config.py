"""Configuration for the Seq MCP server.

SeqMCPConfig is assembled from three layers, highest priority first:

1. Environment variables (SEQ_SERVER_URL, SEQ_MCP_*)
2. A seq-mcp.yaml file (explicit path, SEQ_MCP_CONFIG, or auto-discovered)
3. Built-in defaults

Example seq-mcp.yaml:
    seq:
      server_url: http://seq.internal:5341

    credentials:
      source: file
      file: /etc/seq-mcp/secrets.json
      watch: true

    seq_version:
      min: "2024.1"
      max: "2025.x"
      strict: false

    logging:
      level: INFO
      seq: false

Usage:
    from seq_mcp.config import SeqMCPConfig

    config = SeqMCPConfig.load()
    print(config.server_url)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml

from seq_mcp.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://localhost:5341"
DEFAULT_CREDENTIAL_FILE = "secrets.json"
DEFAULT_VERSION_MIN = "2024.1"
DEFAULT_VERSION_MAX = "2025.x"

# Default config file names to search for
DEFAULT_CONFIG_FILES = [
    "seq-mcp.yaml",
    "seq-mcp.yml",
    ".seq-mcp.yaml",
]

CredentialSource = Literal["env", "file"]


@dataclass
class SeqMCPConfig:
    """Configuration for the Seq MCP server.

    Load with the full precedence chain:
        config = SeqMCPConfig.load()

    Or specify directly (tests, embedding):
        config = SeqMCPConfig(server_url="http://seq:5341", credential_source="file")
    """

    server_url: str = DEFAULT_SERVER_URL
    """Base address of the Seq server."""

    credential_source: CredentialSource = "env"
    """Where API keys come from: environment variables or a JSON file."""

    credential_file: str = DEFAULT_CREDENTIAL_FILE
    """Path of the JSON credential file (file source only)."""

    watch_credentials: bool = True
    """Whether to reload the credential file when it changes."""

    watch_interval: float = 1.0
    """Seconds between credential file checks."""

    version_min: str = DEFAULT_VERSION_MIN
    """Lowest supported Seq version."""

    version_max: str = DEFAULT_VERSION_MAX
    """Highest supported Seq version ('x' matches any component)."""

    version_strict: bool = False
    """Whether an out-of-range Seq version stops startup."""

    server_name: str = "seq-mcp"
    """MCP server name."""

    log_level: str = "INFO"
    """Logging level."""

    log_to_seq: bool = False
    """Whether to also ship this server's logs to Seq (tagged with server_name)."""

    source_path: Path | None = None
    """Path to the config file that was loaded."""

    @classmethod
    def load(cls, path: Path | str | None = None) -> "SeqMCPConfig":
        """Load configuration from file and environment.

        Args:
            path: Optional path to a YAML config file. Falls back to
                SEQ_MCP_CONFIG, then to auto-discovery.

        Returns:
            Fully resolved configuration.

        Raises:
            ConfigurationError: If the config file exists but cannot be parsed.
        """
        if path is None:
            path = os.environ.get("SEQ_MCP_CONFIG") or None

        if path is not None:
            config_path: Path | None = Path(path)
            if not config_path.exists():
                logger.warning(f"Config file not found: {path}")
                config_path = None
        else:
            config_path = _find_config_file()

        config = cls()
        if config_path is not None:
            config = _parse_config(_load_yaml(config_path), config_path)

        config.apply_env()
        return config

    @classmethod
    def from_env(cls) -> "SeqMCPConfig":
        """Create config from defaults and environment variables only.

        Environment variables:
        - SEQ_SERVER_URL: Seq server URL
        - SEQ_MCP_CREDENTIAL_SOURCE: env or file
        - SEQ_MCP_CREDENTIAL_FILE: Path to the JSON credential file
        - SEQ_MCP_WATCH_CREDENTIALS: true/false
        - SEQ_MCP_VERSION_MIN: Lowest supported Seq version
        - SEQ_MCP_VERSION_MAX: Highest supported Seq version
        - SEQ_MCP_LOG_LEVEL: Logging level
        - SEQ_MCP_LOG_TO_SEQ: true/false, ship logs to Seq
        """
        config = cls()
        config.apply_env()
        return config

    def apply_env(self) -> None:
        """Override fields with any environment variables that are set."""
        self.server_url = os.environ.get("SEQ_SERVER_URL") or self.server_url

        source = os.environ.get("SEQ_MCP_CREDENTIAL_SOURCE")
        if source:
            self.credential_source = _parse_source(source)

        self.credential_file = (
            os.environ.get("SEQ_MCP_CREDENTIAL_FILE") or self.credential_file
        )

        watch = os.environ.get("SEQ_MCP_WATCH_CREDENTIALS")
        if watch:
            self.watch_credentials = watch.lower() == "true"

        self.version_min = os.environ.get("SEQ_MCP_VERSION_MIN") or self.version_min
        self.version_max = os.environ.get("SEQ_MCP_VERSION_MAX") or self.version_max
        self.log_level = os.environ.get("SEQ_MCP_LOG_LEVEL") or self.log_level

        log_to_seq = os.environ.get("SEQ_MCP_LOG_TO_SEQ")
        if log_to_seq:
            self.log_to_seq = log_to_seq.lower() == "true"


def _parse_source(value: str) -> CredentialSource:
    source = value.strip().lower()
    if source not in ("env", "file"):
        raise ConfigurationError(
            f"Unknown credential source '{value}' (expected 'env' or 'file')"
        )
    return source  # type: ignore[return-value]


def _find_config_file() -> Path | None:
    """Search for a config file in current and parent directories.

    Returns:
        Path to config file if found, None otherwise.
    """
    current = Path.cwd()

    # Search up to 5 levels up
    for _ in range(5):
        for filename in DEFAULT_CONFIG_FILES:
            config_path = current / filename
            if config_path.exists():
                logger.debug(f"Found config file: {config_path}")
                return config_path

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config file {path}", cause=e) from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return _expand_env_vars(raw)


def _parse_config(raw: dict[str, Any], source_path: Path | None = None) -> SeqMCPConfig:
    """Parse raw YAML dict into structured config.

    Args:
        raw: Raw dict from YAML parsing.
        source_path: Optional source file path.

    Returns:
        Structured configuration.
    """
    config = SeqMCPConfig(source_path=source_path)

    seq = raw.get("seq") or {}
    if seq.get("server_url"):
        config.server_url = str(seq["server_url"])

    credentials = raw.get("credentials") or {}
    if credentials.get("source"):
        config.credential_source = _parse_source(str(credentials["source"]))
    if credentials.get("file"):
        config.credential_file = str(credentials["file"])
    if "watch" in credentials:
        config.watch_credentials = bool(credentials["watch"])
    if "watch_interval" in credentials:
        config.watch_interval = float(credentials["watch_interval"])

    versions = raw.get("seq_version") or {}
    if versions.get("min"):
        config.version_min = str(versions["min"])
    if versions.get("max"):
        config.version_max = str(versions["max"])
    if "strict" in versions:
        config.version_strict = bool(versions["strict"])

    server = raw.get("server") or {}
    if server.get("name"):
        config.server_name = str(server["name"])

    logging_section = raw.get("logging") or {}
    if logging_section.get("level"):
        config.log_level = str(logging_section["level"])
    if "seq" in logging_section:
        config.log_to_seq = bool(logging_section["seq"])

    return config


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in config values.

    Supports ${VAR} and $VAR syntax.
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        return os.path.expandvars(data)
    else:
        return data
