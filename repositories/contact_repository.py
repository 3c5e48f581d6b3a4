"""
ContactRepository - Data access layer for resolved contacts
"""

from typing import Dict, Iterable, Optional
import logging
from repositories.base_repository import BaseRepository
from tracking_database import Contact

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ('email', 'phone', 'first_name', 'last_name')


class ContactRepository(BaseRepository[Contact]):
    """Repository for Contact data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, Contact)

    def get_for_organization(self, contact_id: str, organization_id: str) -> Optional[Contact]:
        """
        Get a contact only if it belongs to the organization.

        Args:
            contact_id: Contact ID
            organization_id: Tenant the caller is acting for

        Returns:
            Contact or None (unknown id or another tenant's contact)
        """
        if not contact_id:
            return None
        return self.session.query(Contact)\
            .filter_by(id=contact_id, organization_id=organization_id)\
            .first()

    def create_contact(self, organization_id: str, fields: Dict[str, Optional[str]]) -> Contact:
        """Create a contact from whichever fields were supplied."""
        values = {key: fields.get(key) for key in UPDATABLE_FIELDS if fields.get(key)}
        return self.create(organization_id=organization_id, tags=[], **values)

    def apply_fields(self, contact: Contact, fields: Dict[str, Optional[str]]) -> Contact:
        """
        Copy non-null supplied fields onto the contact (last write wins).

        A field is never overwritten with None.
        """
        updates = {
            key: fields[key]
            for key in UPDATABLE_FIELDS
            if fields.get(key) and getattr(contact, key) != fields[key]
        }
        if not updates:
            return contact
        return self.update(contact, **updates)

    def append_tags(self, contact: Contact, tags: Iterable[str]) -> Contact:
        """
        Append tags to the contact's list; duplicates are kept.

        The row is re-read under a row lock first, so a concurrent append
        committed since the contact was loaded is extended rather than lost.
        """
        tags = [tag for tag in tags if tag]
        if not tags:
            return contact
        self.session.flush()
        self.session.refresh(contact, with_for_update=True)
        # Reassign so SQLAlchemy sees the JSON column change
        return self.update(contact, tags=list(contact.tags or []) + tags)

    def set_lead_quality(self, contact: Contact, quality: str) -> Contact:
        return self.update(contact, lead_quality=quality)

    def count_for_organization(self, organization_id: str) -> int:
        return self.count(organization_id=organization_id)
