"""ORM Models — SQLAlchemy declarative models for the export pipeline.

Invariants:
    - All models inherit from Base (db/base.py)
    - Order is owned by the surrounding application; PohodaExportJob and AuditEntry by this service

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from pohoda_export.models.order import Order, OrderItem  # noqa: F401
from pohoda_export.models.export_job import PohodaExportJob  # noqa: F401
from pohoda_export.models.audit_entry import AuditEntry  # noqa: F401
