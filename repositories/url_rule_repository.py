"""
UrlRuleRepository - Data access layer for operator URL rules
"""

from typing import List
from repositories.base_repository import BaseRepository, SortOrder
from tracking_database import UrlRule


class UrlRuleRepository(BaseRepository[UrlRule]):
    """Repository for UrlRule data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, UrlRule)

    def find_active(self, organization_id: str) -> List[UrlRule]:
        """Active rules for the organization, oldest first."""
        return self.find_by(order_by='created_at', order=SortOrder.ASC,
                            organization_id=organization_id, is_active=True)

    def list_for_organization(self, organization_id: str) -> List[UrlRule]:
        """All rules for the organization, newest first."""
        return self.find_by(order_by='created_at', order=SortOrder.DESC,
                            organization_id=organization_id)
