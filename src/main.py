"""Meshfolio API server entry point (``meshfolio-api``).

Serves the Mesh Connect link, portfolio and managed transfer routes.
HOST and PORT come from the environment; Mesh credentials from settings.
"""

import logging
import os
import sys

import uvicorn

from src.api.app import app
from src.config import PRODUCT_NAME, configure_logging, get_settings

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8000


def parse_port(value: str) -> int:
    """TCP port from a string, or ValueError when it is not 1-65535."""
    port = int(value)
    if not 1 <= port <= 65535:
        raise ValueError(f"Port out of range: {port}")
    return port


def run() -> None:
    """Start uvicorn for the Mesh API routes."""
    settings = get_settings()
    configure_logging(settings.log_level)

    host = os.environ.get("HOST", DEFAULT_HOST)
    port_str = os.environ.get("PORT", str(DEFAULT_PORT))
    try:
        port = parse_port(port_str)
    except ValueError:
        print(f"Error: Invalid PORT value '{port_str}'. Must be an integer between 1-65535.")
        sys.exit(1)

    logger.info(f"Starting {PRODUCT_NAME} API on {host}:{port} (Mesh API: {settings.mesh_api_url})")
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
