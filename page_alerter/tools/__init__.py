"""MCP tools for page_alerter."""
