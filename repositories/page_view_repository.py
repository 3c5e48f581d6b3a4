"""
PageViewRepository - Data access layer for raw beacon page views
"""

from typing import List
from repositories.base_repository import BaseRepository, SortOrder
from tracking_database import PageView


class PageViewRepository(BaseRepository[PageView]):
    """Repository for PageView data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, PageView)

    def find_for_session(self, session_id: str) -> List[PageView]:
        return self.find_by(order_by='timestamp', order=SortOrder.ASC, session_id=session_id)
