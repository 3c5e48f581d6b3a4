"""
Session Tracking Service - anonymous visit state keyed by the pixel's session token
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional

from logging_config import get_logger
from repositories.unit_of_work import UnitOfWork
from repositories.visitor_session_repository import VisitorSessionRepository
from tracking_database import VisitorSession
from utils.datetime_utils import utc_now, ensure_utc

logger = get_logger(__name__)


@dataclass
class CampaignFields:
    """First-touch attribution captured when a session is created"""
    landing_page: Optional[str] = None
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    utm_term: Optional[str] = None
    ad_clicks: Dict[str, str] = field(default_factory=dict)


class SessionTrackingService:
    """Upserts sessions and counts visits separated by an inactivity gap"""

    def __init__(self,
                 unit_of_work: UnitOfWork,
                 session_repository: VisitorSessionRepository,
                 inactivity_minutes: int = 30):
        self.unit_of_work = unit_of_work
        self.session_repository = session_repository
        self.inactivity_gap = timedelta(minutes=inactivity_minutes)

    def touch(self, organization_id: str, session_key: str, fingerprint: Optional[str],
              campaign: Optional[CampaignFields] = None, ip: Optional[str] = None,
              user_agent: Optional[str] = None, now: Optional[datetime] = None) -> VisitorSession:
        """
        Create or refresh a session.

        On create, first/last seen are set to now, visit_count to 1 and the
        campaign fields are stored. On update, last_seen and fingerprint are
        refreshed and visit_count increments only when the gap since last_seen
        exceeds the inactivity threshold. Campaign fields are never rewritten.

        Args:
            organization_id: Tenant scope
            session_key: Client-generated session token
            fingerprint: Device fingerprint reported by the pixel
            campaign: First-touch attribution for a new session
            ip: Client address
            user_agent: Client user agent
            now: Clock override

        Returns:
            The stored VisitorSession
        """
        now = now or utc_now()
        campaign = campaign or CampaignFields()

        with self.unit_of_work.transaction():
            session = self.session_repository.find_by_key(organization_id, session_key)

            if session is None:
                created = self.session_repository.insert_if_absent({
                    'organization_id': organization_id,
                    'session_key': session_key,
                    'fingerprint': fingerprint,
                    'ip': ip,
                    'user_agent': user_agent,
                    'landing_page': campaign.landing_page,
                    'referrer': campaign.referrer,
                    'utm_source': campaign.utm_source,
                    'utm_medium': campaign.utm_medium,
                    'utm_campaign': campaign.utm_campaign,
                    'utm_content': campaign.utm_content,
                    'utm_term': campaign.utm_term,
                    'ad_clicks': campaign.ad_clicks or None,
                    'first_seen': now,
                    'last_seen': now,
                    'visit_count': 1,
                })
                session = self.session_repository.find_by_key(organization_id, session_key)
                if created:
                    logger.debug("Session created", organization_id=organization_id, session_id=session.id)
                    return session

            self._refresh(session, fingerprint, now)

        return session

    def link_contact(self, organization_id: str, session_key: str, contact_id: str) -> bool:
        """Attach a session to a contact (click-through stitching)."""
        with self.unit_of_work.transaction():
            linked = self.session_repository.link_contact(organization_id, session_key, contact_id) > 0
        if linked:
            logger.info("Session linked to contact", organization_id=organization_id, contact_id=contact_id)
        return linked

    def _refresh(self, session: VisitorSession, fingerprint: Optional[str], now: datetime) -> None:
        updates = {'last_seen': now}
        if fingerprint:
            updates['fingerprint'] = fingerprint
        if now - ensure_utc(session.last_seen) > self.inactivity_gap:
            updates['visit_count'] = session.visit_count + 1
        self.session_repository.update(session, **updates)
