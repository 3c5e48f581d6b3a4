"""
OrganizationRepository - Data access layer for tenants
"""

from typing import Optional
from repositories.base_repository import BaseRepository
from tracking_database import Organization


class OrganizationRepository(BaseRepository[Organization]):
    """Repository for Organization data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, Organization)

    def find_by_public_key(self, public_key: str) -> Optional[Organization]:
        """
        Resolve the public pixel key to its organization.

        Args:
            public_key: Key embedded in the customer's pixel snippet

        Returns:
            Organization or None if the key is unknown
        """
        if not public_key:
            return None
        return self.session.query(Organization)\
            .filter_by(public_key=public_key)\
            .first()

    def find_by_name(self, name: str) -> Optional[Organization]:
        return self.session.query(Organization)\
            .filter_by(name=name)\
            .first()
