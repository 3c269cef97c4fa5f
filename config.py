"""Startup settings from command line, environment and .env"""

import argparse
import os
from dataclasses import dataclass
from typing import Optional, Sequence

from dotenv import find_dotenv, load_dotenv

from db import DEFAULT_PREVIEW_LIMIT

DEFAULT_LOG_FILE = "pgpeek.log"


class ConfigError(Exception):
    """Invalid or missing startup configuration."""


def positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return value


@dataclass(frozen=True)
class Settings:
    database_url: str
    preview_limit: int = DEFAULT_PREVIEW_LIMIT
    log_file: str = DEFAULT_LOG_FILE
    log_level: str = "INFO"

    @classmethod
    def from_args(cls, argv: Optional[Sequence[str]] = None) -> "Settings":
        """
        Resolve settings. --url wins over $DATABASE_URL; values from a .env
        file in the working directory fill in unset environment variables.
        """
        load_dotenv(find_dotenv(usecwd=True))
        args = build_parser().parse_args(argv)

        url = args.url or os.environ.get("DATABASE_URL", "")
        if not url:
            raise ConfigError("Provide --url or set DATABASE_URL.")

        limit = args.limit
        if limit is None:
            limit = _env_limit()

        return cls(
            database_url=url,
            preview_limit=limit,
            log_file=args.log_file or os.environ.get("PGPEEK_LOG_FILE", DEFAULT_LOG_FILE),
            log_level=os.environ.get("PGPEEK_LOG_LEVEL", "INFO").upper(),
        )


def _env_limit() -> int:
    raw = os.environ.get("PGPEEK_LIMIT")
    if not raw:
        return DEFAULT_PREVIEW_LIMIT
    try:
        return positive_int(raw)
    except argparse.ArgumentTypeError as e:
        raise ConfigError(f"PGPEEK_LIMIT {e}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgpeek",
        description="Browse a PostgreSQL catalog and run queries in the terminal.",
    )
    parser.add_argument("--url", help="PostgreSQL connection URL (overrides $DATABASE_URL)")
    parser.add_argument("--limit", type=positive_int, default=None,
                        help=f"Row limit for previews (default {DEFAULT_PREVIEW_LIMIT})")
    parser.add_argument("--log-file", help=f"Log file path (default {DEFAULT_LOG_FILE})")
    return parser
