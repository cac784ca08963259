"""Entry point for running the Seq MCP Server as a module.

Usage:
    python -m seq_mcp
    python -m seq_mcp --credential-source file --credential-file secrets.json
"""

from seq_mcp.server import main

if __name__ == "__main__":
    main()
