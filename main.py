"""Entry point for the apps broker MCP gateway."""

import logging
import os
import sys

from apps_broker.server import build_server
from apps_broker.settings import Settings


def _configure_logging() -> None:
    # stdout carries JSON-RPC in stdio mode; logs always go to stderr.
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=log_level,
        stream=sys.stderr,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main() -> None:
    """Bootstrap and run the configured transport."""
    _configure_logging()
    logger = logging.getLogger("apps-broker")
    settings = Settings.load()
    server = build_server(settings)

    try:
        server.startup()
        logger.info("MCP gateway ready (transport=%s)", settings.transport)
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutdown requested (Ctrl+C).")
    except Exception:
        logger.exception("Server stopped due to an unexpected error.")
        raise
    finally:
        server.shutdown()
        logger.info("Server shutdown complete.")


if __name__ == "__main__":
    main()
