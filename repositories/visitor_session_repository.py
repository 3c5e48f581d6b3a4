"""
VisitorSessionRepository - Data access layer for browsing sessions
"""

from typing import Any, Dict, Optional
import logging
from repositories.base_repository import BaseRepository
from tracking_database import VisitorSession

logger = logging.getLogger(__name__)


class VisitorSessionRepository(BaseRepository[VisitorSession]):
    """Repository for VisitorSession data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, VisitorSession)

    def find_by_key(self, organization_id: str, session_key: str) -> Optional[VisitorSession]:
        """
        Find a session by its client-generated token.

        Args:
            organization_id: Tenant scope
            session_key: Token generated by the pixel

        Returns:
            VisitorSession or None
        """
        return self.session.query(VisitorSession)\
            .filter_by(organization_id=organization_id, session_key=session_key)\
            .first()

    def insert_if_absent(self, values: Dict[str, Any]) -> bool:
        """
        Create the session unless another request already did.

        Returns:
            True if this call created the row
        """
        return self.insert_ignoring_conflict(values, conflict_columns=('organization_id', 'session_key'))

    def link_contact(self, organization_id: str, session_key: str, contact_id: str) -> int:
        """
        Point the session at a contact.

        Returns:
            Number of sessions updated (0 or 1)
        """
        count = self.session.query(VisitorSession)\
            .filter_by(organization_id=organization_id, session_key=session_key)\
            .update({'contact_id': contact_id}, synchronize_session='fetch')
        self.session.flush()
        return count

    def claim_by_fingerprint(self, organization_id: str, fingerprint: str, contact_id: str) -> int:
        """
        Link every anonymous session sharing the fingerprint to the contact.

        Sessions already linked to a contact are left untouched.

        Returns:
            Number of sessions claimed
        """
        count = self.session.query(VisitorSession)\
            .filter(
                VisitorSession.organization_id == organization_id,
                VisitorSession.fingerprint == fingerprint,
                VisitorSession.contact_id.is_(None),
            )\
            .update({'contact_id': contact_id}, synchronize_session='fetch')
        self.session.flush()
        if count:
            logger.debug(f"Claimed {count} anonymous sessions for contact {contact_id}")
        return count
