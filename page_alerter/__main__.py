"""Main module for page_alerter MCP server.

This module allows the server to be run as a Python module using:
python -m page_alerter

It delegates to the server application's main function.
"""

from page_alerter.server.app import main

if __name__ == "__main__":
    main()
