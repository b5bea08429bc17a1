from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from grndb.database import WriteSessionLocal

from . import effects, models

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = int(os.getenv("RECEIPT_EFFECT_DISPATCH_LIMIT", "50"))
DEFAULT_INTERVAL_SEC = int(os.getenv("RECEIPT_EFFECT_DISPATCH_INTERVAL_SEC", "10"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def dispatch_due_effects(db: Session, *, now: Optional[datetime] = None, limit: int = DEFAULT_LIMIT) -> int:
    """Retry PENDING and FAILED receipt effects whose next attempt is due."""
    now = now or _utcnow()
    query = (
        db.query(models.ReceiptEffect)
        .filter(
            models.ReceiptEffect.status.in_(
                [
                    models.ReceiptEffectStatusEnum.PENDING,
                    models.ReceiptEffectStatusEnum.FAILED,
                ]
            ),
            models.ReceiptEffect.next_attempt_at <= now,
        )
        .order_by(models.ReceiptEffect.next_attempt_at.asc(), models.ReceiptEffect.id.asc())
    )
    query = query.with_for_update(skip_locked=True)

    due = query.limit(limit).all()
    if not due:
        return 0

    applied = 0
    for effect in due:
        if effects.apply_effect(db, effect, now=now):
            applied += 1

    db.commit()
    logger.info(
        "Dispatched receipt effects",
        extra={"due": len(due), "applied": applied},
    )
    return len(due)


def run_dispatch_loop() -> None:
    while True:
        db = WriteSessionLocal()
        try:
            dispatched = dispatch_due_effects(db)
        except Exception:
            logger.exception("Receipt effect dispatch failed")
            db.rollback()
            dispatched = 0
        finally:
            db.close()
        time.sleep(DEFAULT_INTERVAL_SEC if dispatched == 0 else 0)


if __name__ == "__main__":
    run_dispatch_loop()
