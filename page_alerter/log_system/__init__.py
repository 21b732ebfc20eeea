"""Logging helpers shared by the server, tools and watchers."""
