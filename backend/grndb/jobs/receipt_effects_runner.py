"""Receipt effects retry job.

Intended for cron (e.g. every few minutes) to re-apply receipt side effects
that failed in-line: ledger posts, finished-goods moves, damaged-stock records
and source synchronisation. Use `python -m grndb.apps.receiving.dispatcher`
for a long-running loop instead.
"""

from __future__ import annotations

from datetime import datetime, timezone

from grndb.database import WriteSessionLocal
from grndb.apps.receiving import dispatcher


def run() -> dict:
    """Dispatch every due effect once and return a summary dict."""
    db = WriteSessionLocal()
    try:
        dispatched = dispatcher.dispatch_due_effects(db, now=datetime.now(timezone.utc))
        db.commit()
        return {"dispatched": dispatched}
    finally:
        db.close()


if __name__ == "__main__":
    result = run()
    print("Receipt effects run completed:", result)
