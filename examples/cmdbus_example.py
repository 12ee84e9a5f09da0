#!/usr/bin/env python
"""
Command Bus Example

Demonstrates a provider serving a small key/value command set to two
consumers, including a here-doc payload.
"""

import sys
import os
import logging
import threading

# Add project root directory to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from cmdbus import BusConfig, BusContext, CallResult, Status

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class Store:
    """Provider state, guarded by its own lock since the bus provides none"""

    def __init__(self):
        self.lock = threading.Lock()
        self.values = {}
        self.pending_key = None


def handle_command(store: Store, command: str) -> CallResult:
    """
    Provider callback

    Args:
        store: Private data installed with the callback
        command: Assembled command text

    Returns:
        CallResult for the consumer
    """
    words = command.split()
    with store.lock:
        if words[0] == "set" and len(words) == 3:
            store.values[words[1]] = words[2]
            return CallResult.success()
        if words[0] == "get" and len(words) == 2:
            if words[1] not in store.values:
                return CallResult.failure(f"No such key: {words[1]}")
            return CallResult.success(store.values[words[1]])
        if words[0] == "keys":
            return CallResult.success("\n".join(sorted(store.values)))
    return CallResult(Status.UNKNOWN, f"Unknown request: {words[0]}")


def main():
    context = BusContext(BusConfig.from_env())
    handle = context.create("store")

    # Consumers register before the loop starts
    writer = context.register("store")
    reader = context.register("store")

    handle.install(handle_command, Store())
    loop = context.start("store")

    writer.run("set %s %s", "color", "blue")
    writer.run("set %s %d", "answer", 42)
    result = writer.call("set motd << EOF\nset motd hello\nEOF")
    logger.info(f"Here-doc body is dispatched as its own command: {result.status}")

    for key in ("color", "answer", "missing"):
        result = reader.run("get %s", key)
        logger.info(f"get {key} -> {result.status} {result.answer!r}")

    result = reader.call("keys")
    logger.info(f"keys -> {result.answer.splitlines()}")

    loop.stop()
    writer.close()
    reader.close()


if __name__ == "__main__":
    main()
