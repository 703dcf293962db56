"""Tools package for the transcript-qa MCP server."""
