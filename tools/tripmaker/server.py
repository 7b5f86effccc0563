#!/usr/bin/env python3
"""TripMaker auth server entry point.

Usage:
    python3 -m tripmaker.server
    python3 -m tripmaker.server --config config.json --log-level DEBUG
    python3 -m tripmaker.server --test-mode --config config.json.example

Architecture:
    ApiServer → AccountService → UserStore (WriteQueue) → users.json
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any

from . import event_log
from .accounts import AccountService
from .api import ApiServer
from .auth.store import UserStore
from .config import ConfigError, build_token_issuer, load_config
from .event_log import log_event

logger = logging.getLogger("tripmaker.server")


def build_accounts(config: dict[str, Any]) -> AccountService:
    """Wire the store and token issuer from configuration.

    Raises:
        ConfigError: production run without a JWT secret, or a bad expiry.
    """
    storage = config["storage"]
    store = UserStore(db_path=storage["path"], scratch_path=storage["scratch_path"])
    logger.info(f"UserStore initialized: {store.active_path}")
    return AccountService(store, build_token_issuer(config))


async def run_server(config: dict[str, Any], test_mode: bool = False):
    """Main server coroutine.

    Args:
        config: Configuration dictionary
        test_mode: If True, validate config and exit without starting
    """
    event_log.configure(config.get("event_log"))
    accounts = build_accounts(config)
    server = ApiServer(config.get("web", {}), accounts)

    if test_mode:
        print("TripMaker auth: test mode")
        print(f"  Environment: {config['environment']}")
        print(f"  User store: {accounts.store.active_path}")
        print(f"  Token expiry: {accounts.tokens.expires_in}")
        print(f"  Listen: {server.host}:{server.port}")
        print("Config valid. Exiting test mode.")
        return

    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Shutdown signal received")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await server.start()
        log_event(
            "server_started",
            component="tripmaker-server",
            environment=config["environment"],
            port=server.port,
            user_store=str(accounts.store.active_path),
        )
        logger.info(f"Health check: http://localhost:{server.port}/health")

        await shutdown_event.wait()

    finally:
        logger.info("Shutting down...")
        try:
            await server.stop()
        except Exception as e:
            logger.error(f"Server stop error: {e}")
        log_event("server_stopped", component="tripmaker-server")


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="tripmaker-server",
        description="TripMaker credential and profile service",
        usage="%(prog)s [options]",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to config.json (optional; environment variables override it)",
    )
    parser.add_argument(
        "--test-mode",
        "-t",
        action="store_true",
        help="Validate config and exit without starting",
    )
    parser.add_argument(
        "--log-level",
        "-l",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        config = load_config(args.config)
        asyncio.run(run_server(config, test_mode=args.test_mode))
    except ConfigError as e:
        logger.critical(f"Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
