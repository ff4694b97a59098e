#!/usr/bin/env python3
"""
Run MCP server in STDIO mode for desktop MCP clients
Reads Jira and model credentials from the environment or a .env file
"""
import sys
import os

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Import and run the server
from jira_assistant.server import mcp

if __name__ == "__main__":
    # Run with stdio transport (default for MCP)
    mcp.run()
