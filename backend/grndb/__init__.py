# backend/grndb/__init__.py
"""
Import ORM models from each app so that:

- Alembic and Base.metadata.create_all() see all tables.
- Cross-app relationships resolve regardless of import order.

The actual model classes are kept in grndb/apps/*/models.py.
"""

from .apps.stock import models as stock_models                # materials, finished goods
from .apps.purchasing import models as purchasing_models      # purchase orders, challans
from .apps.receiving import models as receiving_models        # goods receipts + effects
from .apps.audit import models as audit_models                # audit trail

__all__ = [
    "stock_models",
    "purchasing_models",
    "receiving_models",
    "audit_models",
]
