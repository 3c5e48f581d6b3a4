"""
PaymentRepository - Data access layer for processor payments
"""

from typing import Optional
import logging
from repositories.base_repository import BaseRepository
from tracking_database import Payment

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[Payment]):
    """Repository for Payment data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, Payment)

    def find_by_external_id(self, external_id: str) -> Optional[Payment]:
        return self.session.query(Payment)\
            .filter_by(external_id=external_id)\
            .first()

    def upsert_payment(self, organization_id: str, contact_id: Optional[str], external_id: str,
                       amount_cents: int, currency: str, processor: str,
                       product_name: Optional[str] = None, status: str = 'succeeded') -> Payment:
        """
        Record a payment once per processor id.

        Repeat deliveries only refresh the status.

        Returns:
            The stored Payment
        """
        existing = self.find_by_external_id(external_id)
        if existing is not None:
            if existing.status != status:
                self.update(existing, status=status)
            return existing

        return self.create(
            organization_id=organization_id,
            contact_id=contact_id,
            external_id=external_id,
            amount_cents=amount_cents,
            currency=(currency or 'usd').lower(),
            processor=processor,
            product_name=product_name,
            status=status,
        )
