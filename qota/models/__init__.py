"""
Qota Compensation - SQLAlchemy Models Package

Compensation results are derived on demand; the deal collection record
is the only persisted entity.
"""

from qota.models.base import BaseModel, TimestampMixin, AuditMixin
from qota.models.collection import CollectionStatus, DealCollection

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "AuditMixin",
    "CollectionStatus",
    "DealCollection",
]
