"""
ExperimentAssignmentRepository - read access to split-test assignments
"""

from typing import Optional
from repositories.base_repository import BaseRepository
from tracking_database import ExperimentAssignment


class ExperimentAssignmentRepository(BaseRepository[ExperimentAssignment]):
    """Repository for ExperimentAssignment data access"""

    def __init__(self, session):
        """Initialize repository with database session"""
        super().__init__(session, ExperimentAssignment)

    def find_active_variant(self, organization_id: str, session_key: str) -> Optional[str]:
        """
        Variant id of the session's active assignment, if any.

        Args:
            organization_id: Tenant scope
            session_key: Pixel session token

        Returns:
            Variant id or None
        """
        assignment = self.session.query(ExperimentAssignment)\
            .filter_by(organization_id=organization_id, session_key=session_key, is_active=True)\
            .order_by(ExperimentAssignment.created_at.desc())\
            .first()
        return assignment.variant_id if assignment else None
