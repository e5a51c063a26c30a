"""Run the bundled Alembic migrations against the configured database.

The migration scripts ship inside the package, so no alembic.ini is needed.
"""

import argparse
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy.exc import SQLAlchemyError

from steward.config import Settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"
INITIAL_REVISION = "5c1e0a7d2b94"


def get_alembic_config(database_url: str | None = None) -> Config:
    """Alembic config pointing at the packaged scripts and the Steward database."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", database_url or Settings().database_url)
    return cfg


def upgrade(revision: str = "head", database_url: str | None = None) -> None:
    """Upgrade to `revision`, adopting schemas that predate version tracking.

    A database whose tables were created by ``create_all`` has no
    alembic_version row; it is stamped at the initial revision and the
    upgrade is retried once.
    """
    cfg = get_alembic_config(database_url)
    logger.info(f"Upgrading database schema to {revision}")
    try:
        command.upgrade(cfg, revision)
    except SQLAlchemyError as e:
        if "already exists" not in str(e):
            raise
        logger.warning(
            f"Tables exist without alembic_version, stamping {INITIAL_REVISION} and retrying"
        )
        command.stamp(cfg, INITIAL_REVISION)
        command.upgrade(cfg, revision)
    logger.info(f"Database schema at {revision}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Apply Steward database migrations")
    parser.add_argument("revision", nargs="?", default="head", help="Target revision (default: head)")
    parser.add_argument("--database-url", help="Override STEWARD_DATABASE_URL")
    args = parser.parse_args(argv)

    logging.basicConfig(level=Settings().log_level)
    upgrade(args.revision, args.database_url)
