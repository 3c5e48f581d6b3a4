"""
IdentitySignalRepository - Data access layer for identity signals
"""

from typing import Optional
import logging
from repositories.base_repository import BaseRepository
from tracking_database import IdentitySignal
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class SignalConflictError(Exception):
    """A brand-new signal lost a uniqueness race to a concurrent resolution"""

    def __init__(self, organization_id: str, signal_type: str):
        super().__init__(f"{signal_type} signal already claimed in organization {organization_id}")
        self.organization_id = organization_id
        self.signal_type = signal_type


class IdentitySignalRepository(BaseRepository[IdentitySignal]):
    """Repository for IdentitySignal data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, IdentitySignal)

    def find_by_value(self, organization_id: str, signal_type: str, value: str) -> Optional[IdentitySignal]:
        """
        Look up a signal by its (hashed) value within one organization.

        Matching scans by value, not by contact, so whichever contact owns the
        value is the match.

        Args:
            organization_id: Tenant scope
            signal_type: IdentityType value
            value: Hashed email/phone or verbatim fingerprint

        Returns:
            IdentitySignal or None
        """
        return self.session.query(IdentitySignal)\
            .filter_by(organization_id=organization_id, type=signal_type, value=value)\
            .first()

    def upsert_signal(self, organization_id: str, contact_id: str, signal_type: str,
                      value: str, raw_value: Optional[str], confidence: int) -> Optional[IdentitySignal]:
        """
        Record a sighting of a signal for a contact.

        - Already owned by this contact: refresh last_seen and raw_value, and
          raise confidence if the new value is higher (never lower it).
        - Owned by another contact: leave it alone and return None.
        - Unknown: insert it. If a concurrent resolution inserted it first,
          raise SignalConflictError so the caller can retry from a fresh read.

        Returns:
            The signal owned by contact_id, or None when another contact owns it
        """
        existing = self.find_by_value(organization_id, signal_type, value)
        now = utc_now()

        if existing is not None:
            if existing.contact_id != contact_id:
                logger.info(
                    f"{signal_type} signal already belongs to contact {existing.contact_id}; "
                    f"not reassigning to {contact_id}"
                )
                return None
            updates = {'last_seen': now}
            if raw_value:
                updates['raw_value'] = raw_value
            if confidence > existing.confidence:
                updates['confidence'] = confidence
            return self.update(existing, **updates)

        inserted = self.insert_ignoring_conflict(
            {
                'organization_id': organization_id,
                'contact_id': contact_id,
                'type': signal_type,
                'value': value,
                'raw_value': raw_value,
                'confidence': confidence,
                'first_seen': now,
                'last_seen': now,
            },
            conflict_columns=('organization_id', 'type', 'value'),
        )
        if not inserted:
            raise SignalConflictError(organization_id, signal_type)

        return self.find_by_value(organization_id, signal_type, value)
