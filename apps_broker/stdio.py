"""Line-delimited JSON-RPC over stdin/stdout."""

import asyncio
import json
import logging
import sys
from typing import IO

from apps_broker.protocol import SHUTDOWN_METHODS, JsonRpcHandler

logger = logging.getLogger(__name__)


def _is_shutdown(line: str) -> bool:
    try:
        message = json.loads(line)
    except json.JSONDecodeError:
        return False
    return isinstance(message, dict) and message.get("method") in SHUTDOWN_METHODS


async def serve_stdio(
    handler: JsonRpcHandler,
    reader: IO[str] | None = None,
    writer: IO[str] | None = None,
) -> None:
    """Handle one message per line, strictly in order, until EOF or shutdown/exit."""
    reader = reader or sys.stdin
    writer = writer or sys.stdout
    logger.info("Starting MCP stdio transport")

    while True:
        line = await asyncio.to_thread(reader.readline)
        if not line:
            break
        if not line.strip():
            continue

        response = await handler.handle_line(line)
        if response is not None:
            writer.write(json.dumps(response, ensure_ascii=False, default=str) + "\n")
            writer.flush()
        if _is_shutdown(line):
            logger.info("Shutdown requested over stdio")
            break

    logger.info("MCP stdio transport stopped")
