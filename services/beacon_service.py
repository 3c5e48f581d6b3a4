"""
Beacon Service - processes page_view and form_submit hits from the pixel

Steps for each hit:
    1. resolve the public org key
    2. touch the session (visit counting, first-touch attribution)
    3. click-through stitching from ?contactId / ?clickEmail
    4. form_submit with email or phone -> identity resolution + FORM_SUBMIT
    5. page view row
    6. split-test variant lookup
    7. URL rules
    8. alert timestamps (best effort)
"""

from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from logging_config import get_logger
from repositories.contact_repository import ContactRepository
from repositories.event_repository import InsertOutcome
from repositories.experiment_assignment_repository import ExperimentAssignmentRepository
from repositories.organization_repository import OrganizationRepository
from repositories.page_view_repository import PageViewRepository
from repositories.unit_of_work import UnitOfWork
from services.alert_service import AlertService
from services.beacon_schema import BeaconEnvelope
from services.common.result import Result
from services.event_recorder_service import EventRecorderService
from services.identity_resolution_service import ContactInfo, IdentityResolutionService
from services.session_tracking_service import CampaignFields, SessionTrackingService
from services.url_rule_matcher_service import UrlRuleMatcherService
from tracking_database import EventSource, EventType
from utils.datetime_utils import utc_now, utc_from_milliseconds, hour_bucket

logger = get_logger(__name__)


class BeaconService:
    """Handles beacon hits using repositories and the ingestion services"""

    def __init__(self,
                 unit_of_work: UnitOfWork,
                 organization_repository: OrganizationRepository,
                 contact_repository: ContactRepository,
                 page_view_repository: PageViewRepository,
                 experiment_repository: ExperimentAssignmentRepository,
                 session_tracker: SessionTrackingService,
                 identity_resolver: IdentityResolutionService,
                 event_recorder: EventRecorderService,
                 url_rule_matcher: UrlRuleMatcherService,
                 alert_service: AlertService):
        """
        Initialize with injected dependencies.

        Args:
            unit_of_work: Transaction scope shared by the repositories
            organization_repository: Repository for Organization lookups
            contact_repository: Repository for Contact lookups (click-through)
            page_view_repository: Repository for PageView writes
            experiment_repository: Repository for split-test assignments
            session_tracker: Session upsert and visit counting
            identity_resolver: Identity stitching engine
            event_recorder: Idempotent event writer
            url_rule_matcher: URL rule evaluation
            alert_service: Alert timestamp touch
        """
        self.unit_of_work = unit_of_work
        self.organization_repository = organization_repository
        self.contact_repository = contact_repository
        self.page_view_repository = page_view_repository
        self.experiment_repository = experiment_repository
        self.session_tracker = session_tracker
        self.identity_resolver = identity_resolver
        self.event_recorder = event_recorder
        self.url_rule_matcher = url_rule_matcher
        self.alert_service = alert_service

    def process(self, envelope: BeaconEnvelope, client_ip: Optional[str] = None,
                user_agent: Optional[str] = None) -> Result[Dict[str, Any]]:
        """
        Process one validated beacon hit.

        Args:
            envelope: Validated beacon payload
            client_ip: First X-Forwarded-For hop or remote address
            user_agent: Client user agent

        Returns:
            Result: success with {'ok': True, ...}; failure with
            UNKNOWN_ORGANIZATION (no writes) or PROCESSING_ERROR
        """
        organization = self.organization_repository.find_by_public_key(envelope.org_key)
        if organization is None:
            logger.info("Beacon for unknown organization key ignored")
            return Result.failure("Unknown organization key", code="UNKNOWN_ORGANIZATION")

        organization_id = organization.id

        try:
            return Result.success(self._process_for_organization(organization_id, envelope, client_ip, user_agent))
        except Exception as e:
            logger.error("Beacon processing failed", organization_id=organization_id, exc_info=True)
            self.unit_of_work.rollback()
            return Result.failure(str(e), code="PROCESSING_ERROR")

    def _process_for_organization(self, organization_id: str, envelope: BeaconEnvelope,
                                  client_ip: Optional[str], user_agent: Optional[str]) -> Dict[str, Any]:
        now = utc_now()

        session = self.session_tracker.touch(
            organization_id,
            envelope.session_id,
            envelope.fingerprint,
            campaign=CampaignFields(
                landing_page=envelope.url,
                referrer=envelope.referrer,
                utm_source=envelope.utms.utm_source,
                utm_medium=envelope.utms.utm_medium,
                utm_campaign=envelope.utms.utm_campaign,
                utm_content=envelope.utms.utm_content,
                utm_term=envelope.utms.utm_term,
                ad_clicks=dict(envelope.ad_clicks),
            ),
            ip=client_ip,
            user_agent=user_agent,
            now=now,
        )
        session_id = session.id
        contact_id = session.contact_id

        if not contact_id and (envelope.contact_id or envelope.click_email):
            contact_id = self._stitch_click_through(organization_id, envelope)

        form_recorded = False
        if envelope.type == 'form_submit' and envelope.contact and (envelope.contact.email or envelope.contact.phone):
            contact_id, form_recorded = self._record_form_submit(organization_id, envelope, session_id, now)

        with self.unit_of_work.transaction():
            self.page_view_repository.create(
                session_id=session_id,
                contact_id=contact_id,
                url=envelope.url,
                path=envelope.path,
                title=envelope.data.title if envelope.data else None,
                timestamp=utc_from_milliseconds(envelope.ts),
            )

        variant_id = self.experiment_repository.find_active_variant(organization_id, envelope.session_id)

        fired = self.url_rule_matcher.match_and_fire(
            organization_id,
            url=envelope.url,
            path=envelope.path,
            contact_id=contact_id,
            session_id=session_id,
            variant_id=variant_id,
            now=now,
        )

        self.alert_service.schedule_touch(organization_id)

        return {
            'ok': True,
            'contact_id': contact_id,
            'form_recorded': form_recorded,
            'rules_fired': len(fired),
        }

    def _stitch_click_through(self, organization_id: str, envelope: BeaconEnvelope) -> Optional[str]:
        """Link the session from a tracked link: direct contact id first, then email."""
        matched_id = None

        if envelope.contact_id:
            contact = self.contact_repository.get_for_organization(envelope.contact_id, organization_id)
            if contact is not None:
                matched_id = contact.id

        if not matched_id and envelope.click_email:
            matched_id = self.identity_resolver.find_contact_id_by_email(organization_id, envelope.click_email)

        if matched_id:
            self.session_tracker.link_contact(organization_id, envelope.session_id, matched_id)
        return matched_id

    def _record_form_submit(self, organization_id: str, envelope: BeaconEnvelope,
                            session_id: str, now: datetime) -> Tuple[Optional[str], bool]:
        contact = envelope.contact
        resolution = self.identity_resolver.resolve(
            organization_id,
            envelope.session_id,
            ContactInfo(
                email=contact.email,
                phone=contact.phone,
                first_name=contact.first_name,
                last_name=contact.last_name,
            ),
            fingerprint=envelope.fingerprint,
        )

        # Hour granularity lets the confirmation-page fallback dedupe against the form-page fire
        form_path = (envelope.data.form_path if envelope.data else None) or envelope.path
        external_id = f"pixel-form-{envelope.session_id}-{form_path}-{hour_bucket(now)}"

        outcome = self.event_recorder.record(
            organization_id=organization_id,
            event_type=EventType.FORM_SUBMIT,
            source=EventSource.PIXEL,
            confidence=resolution.confidence,
            external_id=external_id,
            payload={
                'email': contact.email,
                'phone': contact.phone,
                'formAction': envelope.data.form_action,
                'formId': envelope.data.form_id,
                'url': envelope.url,
            },
            contact_id=resolution.contact_id,
            session_id=session_id,
        )
        return resolution.contact_id, outcome is InsertOutcome.INSERTED
