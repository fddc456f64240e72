"""
Qota Compensation - Services Package

Business logic services.
"""

from qota.services.collection_service import CollectionService
from qota.services.compensation_service import CompensationService
from qota.services.payout_service import PayoutService
