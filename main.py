#!/usr/bin/env python3
"""pgpeek - PostgreSQL catalog browser for the terminal"""

import sys

from loguru import logger

from config import ConfigError, Settings
from db import ConnectionFailure, Session


def setup_logging(settings: Settings) -> None:
    # The terminal belongs to the TUI, so logs only go to a file.
    logger.remove()
    logger.add(
        settings.log_file,
        level=settings.log_level,
        rotation="5 MB",
        retention=3,
        enqueue=True,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name} | {message}",
    )


def main():
    try:
        settings = Settings.from_args()
    except ConfigError as e:
        print(e)
        sys.exit(1)

    setup_logging(settings)
    logger.info("Starting pgpeek (preview limit {})", settings.preview_limit)

    try:
        session = Session.open(settings.database_url, settings.preview_limit)
    except ConnectionFailure as e:
        logger.error("connect: {}", e)
        print(f"connect: {e}")
        sys.exit(1)

    # Import here to speed up initial load
    from ui import PeekApp

    try:
        PeekApp(session).run()
    finally:
        session.close()
        logger.info("pgpeek stopped")


if __name__ == "__main__":
    main()
