#!/usr/bin/env python3
"""
run_relay.py — Start the relay.

Usage:
    python run_relay.py [config.yaml]
    python run_relay.py -v [config.yaml]   # debug logging

Flow:
  1. Load and validate config (exit 1 on any config error)
  2. Create one connection per server
  3. Start all connections
  4. Run until interrupted
"""

import asyncio
import logging
import sys
from pathlib import Path

from hubrelay.errors import ConfigError
from hubrelay.relay import bootstrap
from transforms import BUILTIN_TRANSFORMS


async def run_relay(config_path: str = "config/relay.yaml") -> None:
    registry = await bootstrap(config_path, transforms=BUILTIN_TRANSFORMS)
    registry.start_all()
    try:
        # Connections live until the process exits
        await asyncio.Event().wait()
    finally:
        await registry.stop_all()


def main():
    args = sys.argv[1:]
    verbose = "-v" in args or "--verbose" in args
    args = [a for a in args if a not in ("-v", "--verbose")]

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    config_path = args[0] if args else "config/relay.yaml"

    if not Path(config_path).exists():
        print(f"Config not found: {config_path}")
        sys.exit(1)

    try:
        asyncio.run(run_relay(config_path))
    except ConfigError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted")


if __name__ == "__main__":
    main()
