"""
User repository functions: accounts and user-to-user blocks.
"""
from __future__ import annotations

import uuid
from typing import Optional, Set

from sqlalchemy.orm import Session

from chat_core.db import models, schemas


def create_user(db: Session, user: schemas.UserCreate) -> models.User:
    db_user = models.User(username=user.username, display_name=user.display_name)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def get_user(db: Session, user_id: uuid.UUID) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def block_user(db: Session, blocker_id: uuid.UUID, blocked_id: uuid.UUID) -> models.UserBlock:
    db_block = (
        db.query(models.UserBlock)
        .filter(models.UserBlock.blocker_id == blocker_id, models.UserBlock.blocked_id == blocked_id)
        .first()
    )
    if db_block is None:
        db_block = models.UserBlock(blocker_id=blocker_id, blocked_id=blocked_id)
        db.add(db_block)
        db.commit()
    return db_block


def get_blocked_user_ids(db: Session, user_id: uuid.UUID) -> Set[uuid.UUID]:
    """Users that ``user_id`` has blocked."""
    rows = db.query(models.UserBlock.blocked_id).filter(models.UserBlock.blocker_id == user_id).all()
    return {row[0] for row in rows}

