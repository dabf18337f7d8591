from __future__ import annotations

import argparse
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from luckydraw.db.engine import make_engine

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def alembic_config() -> Config:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    return cfg


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to the requested revision."""
    command.upgrade(alembic_config(), target_revision)


def print_tables() -> None:
    """Print the lucky draw tables present in the configured database."""
    engine = make_engine()
    names = sorted(inspect(engine).get_table_names())
    print("Current tables:", ", ".join(names) or "(none)")
    engine.dispose()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Migrate the lucky draw database.")
    parser.add_argument("revision", nargs="?", default="head")
    args = parser.parse_args(argv)
    upgrade_db(args.revision)
    print_tables()


if __name__ == "__main__":
    main()
