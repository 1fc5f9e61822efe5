"""
Key/value site settings (integration credentials and similar).
"""
from __future__ import annotations

from typing import Dict, Optional

from sqlalchemy.orm import Session

from techdeputies.db import models


def get_setting(db: Session, key: str) -> Optional[str]:
    row = db.get(models.Setting, key)
    return row.value if row else None


def set_setting(db: Session, key: str, value: str, *, encrypted: bool = False) -> models.Setting:
    row = db.get(models.Setting, key)
    if row is None:
        row = models.Setting(key=key, value=value, encrypted=encrypted)
        db.add(row)
    else:
        row.value = value
        row.encrypted = encrypted
    db.commit()
    db.refresh(row)
    return row


def get_all_settings(db: Session) -> Dict[str, str]:
    return {row.key: row.value for row in db.query(models.Setting).order_by(models.Setting.key).all()}
