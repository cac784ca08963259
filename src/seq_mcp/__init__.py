"""Seq MCP Server - read-only Seq log queries for MCP clients.

Exposes Seq event search, live event capture and signal listing as MCP
tools, with per-workspace API keys that can be reloaded without a
restart.

Example:
    # Start the MCP server
    python -m seq_mcp

    # Or use programmatically
    from seq_mcp import SeqMCPConfig, SeqMCPServer

    config = SeqMCPConfig(
        server_url="http://localhost:5341",
        credential_source="file",
        credential_file="secrets.json",
    )
    server = SeqMCPServer(config)
    server.run()

Configuration for an MCP client:
    {
      "mcpServers": {
        "seq": {
          "command": "python",
          "args": ["-m", "seq_mcp"],
          "env": {
            "SEQ_SERVER_URL": "http://localhost:5341",
            "SEQ_API_KEY": "your-api-key"
          }
        }
      }
    }
"""

__version__ = "0.1.0"

from seq_mcp.exceptions import (
    AUTH_FAILED_MESSAGE,
    AuthenticationError,
    ConfigurationError,
    SeqApiError,
    SeqMCPError,
    TransportError,
)
from seq_mcp.config import SeqMCPConfig
from seq_mcp.auth import (
    CredentialStore,
    EnvironmentCredentialStore,
    FileCredentialStore,
)
from seq_mcp.client import SeqClient
from seq_mcp.connection import SeqConnection, SeqConnectionFactory
from seq_mcp.tools import ClassifiedError, ErrorKind, SeqTools, ToolOutcome
from seq_mcp.server import SeqMCPServer, create_seq_mcp_server

__all__ = [
    "__version__",
    # Errors
    "AUTH_FAILED_MESSAGE",
    "AuthenticationError",
    "ConfigurationError",
    "SeqApiError",
    "SeqMCPError",
    "TransportError",
    # Config
    "SeqMCPConfig",
    # Credentials
    "CredentialStore",
    "EnvironmentCredentialStore",
    "FileCredentialStore",
    # Connections
    "SeqClient",
    "SeqConnection",
    "SeqConnectionFactory",
    # Tools
    "ClassifiedError",
    "ErrorKind",
    "SeqTools",
    "ToolOutcome",
    # Server
    "SeqMCPServer",
    "create_seq_mcp_server",
]
