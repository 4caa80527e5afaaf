"""
Channelwarden runner
====================

Opens the database, wires the moderation core and keeps the expired-ban
sweeper running until interrupted. Without a chat network collaborator the
runner uses the dry-run transport, which only logs channel operations.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. CHANNELWARDEN_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("CHANNELWARDEN_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()

import asyncio
from typing import List

from dotenv import load_dotenv

from channelwarden.util.logger import get_logger, handle_exception

logger = get_logger("main")


def load_environment() -> None:
    """Load ``.env`` from the base directory before the configuration is read."""
    load_dotenv(dotenv_path=BASE_DIR / ".env")


def configured_channels() -> List[str]:
    raw = os.getenv("CHANNELWARDEN_CHANNELS", "")
    return [c.strip() for c in raw.split(",") if c.strip()]


async def async_main() -> int:
    """Bootstrap the database and the moderation core, returning an exit code."""
    from channelwarden.configuration.app_configuration import app_config
    from channelwarden.core import build_core
    from channelwarden.database.db_connection import db_connection
    from channelwarden.database.db_schema import SchemaManager
    from channelwarden.transport.dry_run import DryRunCatalog, DryRunTransport

    try:
        logger.info("Opening database at %s", app_config.database_path)
        await db_connection.open(app_config.database_path)
        async with db_connection.transaction() as conn:
            await SchemaManager.initialize_schema(conn)
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        await db_connection.close()
        return 1

    core = build_core(db_connection, DryRunTransport(), DryRunCatalog(), app_config)

    owner_id = os.getenv("CHANNELWARDEN_OWNER_ID")
    if owner_id and owner_id.isdigit():
        await core.directory.ensure_owner(int(owner_id))
    for channel_id in configured_channels():
        await core.directory.register_channel(channel_id)

    core.sweeper.start()
    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("Runner cancelled; shutting down")
    finally:
        await core.sweeper.shutdown()
        await core.engine.wait_for_notifications()
        await db_connection.close()
        logger.info("Shutdown complete.")
    return 0


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process code."""
    sys.excepthook = handle_exception
    os.chdir(BASE_DIR)
    load_environment()
    logger.info("Starting channelwarden…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
