"""
Permission repository functions.

The permission vocabulary is fixed (``chat_core.utils.role_permissions``);
rows are seeded once and granted to roles by id.
"""
from __future__ import annotations

import logging
from typing import Iterable, List

from sqlalchemy.orm import Session

from chat_core.db import models
from chat_core.utils.role_permissions import ALLOWED_PERMISSIONS, validate_permission

logger = logging.getLogger(__name__)


def ensure_permissions(
    db: Session,
    names: Iterable[str] = ALLOWED_PERMISSIONS,
    *,
    commit: bool = True,
) -> List[models.Permission]:
    """Insert any missing permission rows and return all rows for ``names``.

    With ``commit=False`` new rows are only flushed so the caller's
    transaction decides whether they persist.
    """
    names = sorted({validate_permission(name) for name in names})
    existing = {p.name: p for p in db.query(models.Permission).filter(models.Permission.name.in_(names)).all()}
    created = []
    for name in names:
        if name not in existing:
            permission = models.Permission(name=name)
            db.add(permission)
            existing[name] = permission
            created.append(name)
    if created:
        if commit:
            db.commit()
        else:
            db.flush()
        logger.info("permissions_seeded: created=%s", ",".join(created))
    return [existing[name] for name in names]


def get_permissions_by_names(db: Session, names: Iterable[str]) -> List[models.Permission]:
    names = list(names)
    if not names:
        return []
    return db.query(models.Permission).filter(models.Permission.name.in_(names)).all()


def get_permission_ids(db: Session, names: Iterable[str]) -> list:
    return [permission.id for permission in get_permissions_by_names(db, names)]

