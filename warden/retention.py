"""
Cron entrypoint for the purge of expired sessions and single-use tokens:

  python -m warden.retention            # honours SESSION_PURGE_ENABLED
  python -m warden.retention --force    # run even when the purge is disabled

Hourly crontab: 0 * * * * cd /srv/warden && .venv/bin/python -m warden.retention
"""

import argparse
import logging
import sys

from warden.core.config import get_settings
from warden.core.database import SessionLocal
from warden.services.retention import run_purge

logger = logging.getLogger("warden.retention")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Delete expired refresh-token sessions and clear expired verification/reset tokens."
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Purge even when SESSION_PURGE_ENABLED is false",
    )
    parser.add_argument(
        "--quiet", action="store_true", help="Only log warnings and errors"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    db = SessionLocal()
    try:
        sessions_deleted, tokens_cleared = run_purge(db, get_settings(), force=args.force)
    except Exception:
        logger.exception("Purge job failed")
        return 1
    finally:
        db.close()
    logger.info(
        "Purge completed: sessions_deleted=%s tokens_cleared=%s",
        sessions_deleted,
        tokens_cleared,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
