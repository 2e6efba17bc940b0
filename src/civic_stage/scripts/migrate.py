"""Apply or roll back the document store and account table migrations."""
from __future__ import annotations

import argparse
import os

from alembic import command
from alembic.config import Config

from civic_stage.core.settings import settings

MIGRATIONS_DIR = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "..", "..", "..", "migrations")
)


def build_config(db_url: str | None = None) -> Config:
    """Return an Alembic config bound to ``db_url`` (defaults to DATABASE_URL)."""
    cfg = Config(os.path.join(MIGRATIONS_DIR, "alembic.ini"))
    cfg.set_main_option("script_location", MIGRATIONS_DIR)
    cfg.set_main_option("sqlalchemy.url", db_url or settings.database_url)
    return cfg


def run_upgrade_head(db_url: str | None = None) -> None:
    command.upgrade(build_config(db_url), "head")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Manage civic-stage database migrations")
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to DATABASE_URL)",
    )
    subcommands = parser.add_subparsers(dest="action", required=True)
    upgrade = subcommands.add_parser("upgrade", help="Upgrade to a revision")
    upgrade.add_argument("revision", nargs="?", default="head")
    downgrade = subcommands.add_parser("downgrade", help="Downgrade to a revision")
    downgrade.add_argument("revision")
    subcommands.add_parser("current", help="Show the current revision")
    args = parser.parse_args(argv)

    cfg = build_config(args.url)
    if args.action == "upgrade":
        command.upgrade(cfg, args.revision)
    elif args.action == "downgrade":
        command.downgrade(cfg, args.revision)
    else:
        command.current(cfg)


if __name__ == "__main__":
    main()
