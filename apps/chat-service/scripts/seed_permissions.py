#!/usr/bin/env python3
"""
Insert the chat permission vocabulary into the permissions table.

Safe to re-run; existing rows are left untouched.

Usage:
  python scripts/seed_permissions.py
"""
from __future__ import annotations

import logging

from chat_core.db.repositories import permissions as permissions_repo
from chat_core.utils.log_config import configure_logging

logger = logging.getLogger("seed_permissions")


def main(session_factory=None) -> int:
    configure_logging()
    if session_factory is None:
        from chat_core.db.database import SessionLocal
        session_factory = SessionLocal

    db = session_factory()
    try:
        rows = permissions_repo.ensure_permissions(db)
        names = [row.name for row in rows]
    finally:
        db.close()

    logger.info("seed_permissions: total=%d", len(names))
    print("\n".join(names))
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
