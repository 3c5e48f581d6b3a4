"""
Event Recorder Service - persists events exactly once per external id
"""

from enum import Enum
from typing import Any, Dict, Optional, Union

from logging_config import get_logger
from repositories.event_repository import EventRepository, InsertOutcome
from repositories.unit_of_work import UnitOfWork
from tracking_database import EventType, EventSource

logger = get_logger(__name__)


def _enum_value(value: Union[Enum, str]) -> str:
    return value.value if isinstance(value, Enum) else value


class EventRecorderService:
    """Records normalized events; a repeated external id is a silent no-op"""

    def __init__(self, unit_of_work: UnitOfWork, event_repository: EventRepository):
        self.unit_of_work = unit_of_work
        self.event_repository = event_repository

    def record(self, organization_id: str, event_type: Union[EventType, str],
               source: Union[EventSource, str], confidence: int, external_id: str,
               payload: Optional[Dict[str, Any]] = None, contact_id: Optional[str] = None,
               session_id: Optional[str] = None, variant_id: Optional[str] = None) -> InsertOutcome:
        """
        Record an event unless its external id was already seen.

        Args:
            organization_id: Tenant scope
            event_type: EventType of the occurrence
            source: EventSource of the adapter that produced it
            confidence: Identity confidence attached to the event
            external_id: Deterministic dedup key, unique per organization
            payload: Opaque JSON payload
            contact_id: Resolved contact, if any
            session_id: Pixel session row id, if any
            variant_id: Split-test variant active for the session

        Returns:
            InsertOutcome.INSERTED or InsertOutcome.ALREADY_EXISTS
        """
        with self.unit_of_work.transaction():
            outcome = self.event_repository.insert_event(
                organization_id=organization_id,
                event_type=_enum_value(event_type),
                source=_enum_value(source),
                confidence=confidence,
                external_id=external_id,
                payload=payload,
                contact_id=contact_id,
                session_id=session_id,
                variant_id=variant_id,
            )

        if outcome is InsertOutcome.ALREADY_EXISTS:
            logger.info("Duplicate event ignored", organization_id=organization_id, external_id=external_id)
        else:
            logger.info(
                "Event recorded",
                organization_id=organization_id,
                event_type=_enum_value(event_type),
                external_id=external_id,
            )
        return outcome

    def cancel_bookings(self, organization_id: str, contact_id: str,
                        source: Union[EventSource, str], payload: Dict[str, Any]) -> int:
        """
        Rewrite the payload of a contact's BOOKING events from one source.

        Cancellation updates the existing rows rather than recording a new event.

        Returns:
            Number of bookings marked canceled
        """
        with self.unit_of_work.transaction():
            bookings = self.event_repository.find_for_contact(
                organization_id, contact_id,
                event_type=EventType.BOOKING.value,
                source=_enum_value(source),
            )
            count = self.event_repository.replace_payloads(bookings, payload)

        logger.info("Bookings canceled", organization_id=organization_id, contact_id=contact_id, count=count)
        return count
