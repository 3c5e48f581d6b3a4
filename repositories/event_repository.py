"""
EventRepository - Data access layer for deduplicated funnel events
"""

from enum import Enum
from typing import Any, Dict, List, Optional
import logging
from repositories.base_repository import BaseRepository, SortOrder
from tracking_database import Event
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class InsertOutcome(str, Enum):
    """What happened to an event insert"""
    INSERTED = 'inserted'
    ALREADY_EXISTS = 'already_exists'


class EventRepository(BaseRepository[Event]):
    """Repository for Event data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, Event)

    def insert_event(self, organization_id: str, event_type: str, source: str, confidence: int,
                     external_id: str, payload: Optional[Dict[str, Any]] = None,
                     contact_id: Optional[str] = None, session_id: Optional[str] = None,
                     variant_id: Optional[str] = None) -> InsertOutcome:
        """
        Insert an event unless its external id was already recorded.

        The (organization_id, external_id) unique constraint is the only
        deduplication mechanism; a collision is reported, not raised.

        Returns:
            InsertOutcome.INSERTED or InsertOutcome.ALREADY_EXISTS
        """
        inserted = self.insert_ignoring_conflict(
            {
                'organization_id': organization_id,
                'contact_id': contact_id,
                'session_id': session_id,
                'type': event_type,
                'source': source,
                'confidence': confidence,
                'external_id': external_id,
                'variant_id': variant_id,
                'payload': payload or {},
                'created_at': utc_now(),
            },
            conflict_columns=('organization_id', 'external_id'),
        )
        return InsertOutcome.INSERTED if inserted else InsertOutcome.ALREADY_EXISTS

    def find_by_external_id(self, organization_id: str, external_id: str) -> Optional[Event]:
        return self.session.query(Event)\
            .filter_by(organization_id=organization_id, external_id=external_id)\
            .first()

    def find_for_contact(self, organization_id: str, contact_id: str,
                         event_type: Optional[str] = None, source: Optional[str] = None) -> List[Event]:
        """
        Get a contact's events, oldest first, optionally narrowed by type and source.
        """
        filters = {'organization_id': organization_id, 'contact_id': contact_id}
        if event_type:
            filters['type'] = event_type
        if source:
            filters['source'] = source
        return self.find_by(order_by='created_at', order=SortOrder.ASC, **filters)

    def replace_payloads(self, events: List[Event], payload: Dict[str, Any]) -> int:
        """
        Overwrite the payload of each event in place.

        Used for booking cancellations, which rewrite the existing booking row
        rather than adding a new event.

        Returns:
            Number of events rewritten
        """
        for event in events:
            self.update(event, payload=dict(payload))
        return len(events)
