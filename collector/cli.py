"""Command line entry point running the provisioning step once."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

from collector.config import get_settings
from collector.db.database import create_database_engine
from collector.db.provisioning import provision
from collector.db.registry import build_registry
from collector.errors import ConfigurationError


logger = logging.getLogger("collector.cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Provision the form collector database")
    parser.add_argument(
        "--skip-create-database",
        action="store_true",
        help="Fail instead of creating the database when it does not exist",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        settings = get_settings()
        if args.skip_create_database:
            settings = dataclasses.replace(settings, provision_create_database=False)
        engine = create_database_engine(settings.database_url)
        try:
            provision(engine, settings, build_registry(settings))
        finally:
            engine.dispose()
    except ConfigurationError as e:
        print(f"Provisioning failed ({e.reason}): {e.detail or e.reason}", file=sys.stderr)
        return 1

    print("Database provisioned.")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
