"""
AlertRepository - Data access layer for alert timestamps
"""

from datetime import datetime
from repositories.base_repository import BaseRepository
from tracking_database import Alert


class AlertRepository(BaseRepository[Alert]):
    """Repository for Alert data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, Alert)

    def touch_active(self, organization_id: str, when: datetime) -> int:
        """
        Set last_event_at on the organization's active alerts.

        Returns:
            Number of alerts touched
        """
        return self.update_many(
            {'organization_id': organization_id, 'is_active': True},
            {'last_event_at': when},
        )
