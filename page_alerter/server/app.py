"""page_alerter - MCP Server

This module builds the FastMCP server with multi-transport support (STDIO,
SSE and Streamable HTTP), registers the page tools wrapped in the logging and
exception-handling decorators, and runs the source watchers for the lifetime
of the server.
"""

import asyncio
import os
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import click
from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from page_alerter.config import ServerConfig, get_config
from page_alerter.decorators.exception_handler import exception_handler
from page_alerter.decorators.tool_logger import tool_logger
from page_alerter.log_system.correlation import (
    clear_initialization_correlation_id,
    generate_correlation_id,
    set_initialization_correlation_id,
)
from page_alerter.log_system.unified_logger import UnifiedLogger
from page_alerter.services.core import get_core, shutdown_core
from page_alerter.storage.database import close_database
from page_alerter.tools.page_tools import page_tools

logger = UnifiedLogger.get_logger("page_alerter")


# HTTP transports enter the lifespan once per session
_active_sessions = 0


@asynccontextmanager
async def watcher_lifespan(mcp_server: FastMCP) -> AsyncIterator[None]:
    """Run the source watchers while at least one session is open."""
    global _active_sessions

    if _active_sessions == 0:
        core = await get_core()
        core.start()
    _active_sessions += 1
    try:
        yield
    finally:
        _active_sessions -= 1
        if _active_sessions == 0:
            await shutdown_core()
            await close_database()


def create_mcp_server(config: Optional[ServerConfig] = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        config: Optional server configuration

    Returns:
        Configured FastMCP server instance
    """
    if config is None:
        config = get_config()

    set_initialization_correlation_id(generate_correlation_id("startup"))

    UnifiedLogger.initialize_default(config)
    logger.info(f"Server config: {config.name} at log level {config.log_level}")

    # Configure DNS rebinding protection (disabled by default for development)
    dns_protection = os.getenv("MCP_DNS_REBINDING_PROTECTION", "false").lower() == "true"
    allowed_hosts_env = os.getenv("MCP_ALLOWED_HOSTS", "")
    allowed_hosts = [h.strip() for h in allowed_hosts_env.split(",") if h.strip()] if allowed_hosts_env else []

    logger.info(f"DNS rebinding protection: {'enabled' if dns_protection else 'disabled'}")

    mcp_server = FastMCP(
        config.name or "page_alerter",
        lifespan=watcher_lifespan,
        transport_security=TransportSecuritySettings(
            enable_dns_rebinding_protection=dns_protection,
            allowed_hosts=allowed_hosts
        )
    )

    register_tools(mcp_server)

    logger.info("Server initialization complete")
    clear_initialization_correlation_id()

    return mcp_server


def register_tools(mcp_server: FastMCP) -> None:
    """Register all page tools, wrapped as exception_handler(tool_logger(tool))."""
    for tool_func in page_tools:
        decorated_func = exception_handler(tool_logger(tool_func))
        mcp_server.tool(name=tool_func.__name__)(decorated_func)
        logger.info(f"Registered page tool: {tool_func.__name__}")

    logger.info(f"Server '{mcp_server.name}' initialized with {len(page_tools)} tools")


# Create a server instance that can be imported by the MCP CLI
server = create_mcp_server()


@click.command()
@click.option(
    "--port",
    default=3001,
    help="Port to listen on for SSE or Streamable HTTP transport"
)
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind to (use 0.0.0.0 for Docker)"
)
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="stdio",
    help="Transport type (stdio, sse, or streamable-http)"
)
def main(port: int, host: str, transport: str) -> int:
    """Run the page_alerter server with specified transport."""
    async def run_server():
        if transport == "stdio":
            logger.info("Starting server with STDIO transport")
            await server.run_stdio_async()
        elif transport == "sse":
            logger.info(f"Starting server with SSE transport on {host}:{port}")
            server.settings.host = host
            server.settings.port = port
            await server.run_sse_async()
        elif transport == "streamable-http":
            logger.info(f"Starting server with Streamable HTTP transport on {host}:{port}")
            server.settings.host = host
            server.settings.port = port
            server.settings.streamable_http_path = "/mcp"
            await server.run_streamable_http_async()
        else:
            raise ValueError(f"Unknown transport: {transport}")

    try:
        asyncio.run(run_server())
        return 0
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        return 1


def main_stdio() -> int:
    """Entry point for STDIO transport (convenience wrapper)."""
    return main.callback(port=3001, host="127.0.0.1", transport="stdio")


def main_http() -> int:
    """Entry point for Streamable HTTP transport (convenience wrapper)."""
    return main.callback(port=3001, host="127.0.0.1", transport="streamable-http")


if __name__ == "__main__":
    sys.exit(main())
