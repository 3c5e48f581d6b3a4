"""
Webhook Ingestion Service - runs a source adapter's intent through the pipeline

verify -> parse -> organization check -> one of:
    CANCEL_BOOKING  mark the contact's bookings from that source canceled
    PAYMENT         payment-confirmed identity, payment row, PURCHASE event
    IDENTIFY        identity resolution, event, lead quality, tags, payment
"""

from typing import Any, Dict, Optional

from logging_config import get_logger, security_logger
from repositories.organization_repository import OrganizationRepository
from repositories.payment_repository import PaymentRepository
from repositories.unit_of_work import UnitOfWork
from services.adapters.base import (
    IntentKind, NormalizedIntent, PayloadError, PaymentInfo, SignatureError,
    SourceAdapter, WebhookRequest,
)
from services.common.result import Result
from services.event_recorder_service import EventRecorderService
from services.identity_resolution_service import IdentityResolutionService
from repositories.event_repository import InsertOutcome
from utils.datetime_utils import format_utc_iso, utc_now

logger = get_logger(__name__)


class WebhookIngestionService:
    """Provider-neutral webhook pipeline"""

    def __init__(self,
                 unit_of_work: UnitOfWork,
                 organization_repository: OrganizationRepository,
                 identity_resolver: IdentityResolutionService,
                 event_recorder: EventRecorderService,
                 payment_repository: PaymentRepository):
        self.unit_of_work = unit_of_work
        self.organization_repository = organization_repository
        self.identity_resolver = identity_resolver
        self.event_recorder = event_recorder
        self.payment_repository = payment_repository

    def ingest(self, adapter: SourceAdapter, request: WebhookRequest,
               client_ip: Optional[str] = None) -> Result[Dict[str, Any]]:
        """
        Process one webhook delivery.

        Args:
            adapter: Source adapter for the provider
            request: Raw delivery
            client_ip: Sender address, for security logging

        Returns:
            Result: success data is the JSON body to return; failure codes are
            the adapter's SignatureError/PayloadError codes or PROCESSING_ERROR.
            Signature failures carry metadata {'status_code': ...}.
        """
        try:
            adapter.verify(request)
        except SignatureError as e:
            security_logger.log_signature_failure(adapter.name, str(e), client_ip)
            return Result.failure(str(e), code=e.code, metadata={'status_code': e.status_code})

        try:
            intent = adapter.parse(request)
        except PayloadError as e:
            logger.warning("Webhook payload rejected", provider=adapter.name, error=str(e), code=e.code)
            return Result.failure(str(e), code=e.code)

        if intent.kind == IntentKind.IGNORE:
            logger.info("Webhook skipped", provider=adapter.name, reason=intent.skip_reason)
            return Result.success({'received': True, 'skipped': intent.skip_reason})

        organization = self.organization_repository.get_by_id(intent.organization_id)
        if organization is None:
            # Unknown tenants are acknowledged so the sender stops retrying
            logger.warning("Webhook for unknown organization", provider=adapter.name,
                           organization_id=intent.organization_id)
            return Result.success({'received': True, 'skipped': 'unknown organization'})

        try:
            if intent.kind == IntentKind.CANCEL_BOOKING:
                body = self._cancel_booking(adapter, intent)
            elif intent.kind == IntentKind.PAYMENT:
                body = self._payment(adapter, intent)
            else:
                body = self._identify(adapter, intent)
        except Exception as e:
            logger.error("Webhook processing failed", provider=adapter.name,
                         organization_id=intent.organization_id, exc_info=True)
            self.unit_of_work.rollback()
            return Result.failure(str(e), code="PROCESSING_ERROR")

        return Result.success(body)

    def _cancel_booking(self, adapter: SourceAdapter, intent: NormalizedIntent) -> Dict[str, Any]:
        email = intent.contact.email
        contact_id = self.identity_resolver.find_contact_id_by_email(intent.organization_id, email)
        canceled = 0
        if contact_id:
            canceled = self.event_recorder.cancel_bookings(
                intent.organization_id,
                contact_id,
                adapter.source,
                {'email': email, 'canceled': True, 'canceledAt': format_utc_iso(utc_now())},
            )
        else:
            logger.info("Cancellation for unknown contact", provider=adapter.name,
                        organization_id=intent.organization_id)
        return {'received': True, 'canceled': canceled}

    def _payment(self, adapter: SourceAdapter, intent: NormalizedIntent) -> Dict[str, Any]:
        resolution = self.identity_resolver.resolve_from_payment(
            intent.organization_id, intent.contact.email, intent.contact
        )
        if intent.payment:
            self._store_payment(intent.organization_id, resolution.contact_id, intent.payment)
        self._record_event(adapter, intent, resolution.contact_id)
        return {'received': True}

    def _identify(self, adapter: SourceAdapter, intent: NormalizedIntent) -> Dict[str, Any]:
        resolution = self.identity_resolver.resolve(intent.organization_id, None, intent.contact)
        contact_id = resolution.contact_id

        self._record_event(adapter, intent, contact_id)

        if intent.lead_quality:
            self.identity_resolver.set_lead_quality(intent.organization_id, contact_id, intent.lead_quality)
        if intent.tags:
            self.identity_resolver.append_tags(intent.organization_id, contact_id, intent.tags)
        if intent.payment:
            self._store_payment(intent.organization_id, contact_id, intent.payment)

        body: Dict[str, Any] = {'received': True}
        if adapter.echo_contact_id:
            body['contactId'] = contact_id
        return body

    def _record_event(self, adapter: SourceAdapter, intent: NormalizedIntent, contact_id: str) -> InsertOutcome:
        event = intent.event
        return self.event_recorder.record(
            organization_id=intent.organization_id,
            event_type=event.event_type,
            source=adapter.source,
            confidence=event.confidence,
            external_id=event.external_id,
            payload=event.payload,
            contact_id=contact_id,
        )

    def _store_payment(self, organization_id: str, contact_id: str, payment: PaymentInfo) -> None:
        with self.unit_of_work.transaction():
            self.payment_repository.upsert_payment(
                organization_id=organization_id,
                contact_id=contact_id,
                external_id=payment.external_id,
                amount_cents=payment.amount_cents,
                currency=payment.currency,
                processor=payment.processor,
                product_name=payment.product_name,
                status=payment.status,
            )
