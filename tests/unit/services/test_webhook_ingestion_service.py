"""
Tests for WebhookIngestionService with mocked collaborators
"""

from unittest.mock import MagicMock, Mock

import pytest

from repositories.event_repository import InsertOutcome
from services.adapters.base import (
    IntentEvent, IntentKind, NormalizedIntent, PayloadError, PaymentInfo,
    SignatureError, WebhookRequest,
)
from services.identity_resolution_service import ContactInfo, ResolutionResult
from services.webhook_ingestion_service import WebhookIngestionService
from tracking_database import EventSource, EventType


class TestWebhookIngestionService:
    """Test the provider-neutral webhook pipeline"""

    @pytest.fixture
    def organization_repository(self):
        repository = Mock()
        repository.get_by_id.return_value = Mock(id='org-1')
        return repository

    @pytest.fixture
    def identity_resolver(self):
        resolver = Mock()
        resolver.resolve.return_value = ResolutionResult(contact_id='contact-1', is_new=True, confidence=65)
        resolver.resolve_from_payment.return_value = ResolutionResult(contact_id='contact-1', is_new=False,
                                                                      confidence=100)
        return resolver

    @pytest.fixture
    def event_recorder(self):
        recorder = Mock()
        recorder.record.return_value = InsertOutcome.INSERTED
        return recorder

    @pytest.fixture
    def payment_repository(self):
        return Mock()

    @pytest.fixture
    def service(self, organization_repository, identity_resolver, event_recorder, payment_repository):
        return WebhookIngestionService(
            unit_of_work=MagicMock(),
            organization_repository=organization_repository,
            identity_resolver=identity_resolver,
            event_recorder=event_recorder,
            payment_repository=payment_repository,
        )

    @pytest.fixture
    def adapter(self):
        adapter = Mock()
        adapter.name = 'ghl'
        adapter.source = EventSource.GHL_WEBHOOK
        adapter.echo_contact_id = False
        return adapter

    @pytest.fixture
    def request_(self):
        return WebhookRequest(body=b'{}')

    def _identify_intent(self, **kwargs):
        defaults = dict(
            kind=IntentKind.IDENTIFY,
            organization_id='org-1',
            contact=ContactInfo(email='a@example.com'),
            event=IntentEvent(EventType.OPT_IN, 'ghl-1', 95, {'email': 'a@example.com'}),
        )
        defaults.update(kwargs)
        return NormalizedIntent(**defaults)

    def test_signature_failure_is_logged_and_returned(self, service, adapter, request_, mocker):
        # Arrange
        security_logger = mocker.patch('services.webhook_ingestion_service.security_logger')
        adapter.verify.side_effect = SignatureError('Invalid signature', status_code=401)

        # Act
        result = service.ingest(adapter, request_, client_ip='203.0.113.9')

        # Assert
        assert result.is_failure
        assert result.error_code == 'INVALID_SIGNATURE'
        assert result.metadata == {'status_code': 401}
        security_logger.log_signature_failure.assert_called_once_with('ghl', 'Invalid signature', '203.0.113.9')
        adapter.parse.assert_not_called()

    def test_payload_error(self, service, adapter, request_):
        adapter.parse.side_effect = PayloadError('Missing orgId', code='MISSING_ORGANIZATION')

        result = service.ingest(adapter, request_)

        assert result.is_failure
        assert result.error_code == 'MISSING_ORGANIZATION'

    def test_ignored_intent_is_acknowledged(self, service, adapter, request_, identity_resolver):
        adapter.parse.return_value = NormalizedIntent.ignore('no email')

        result = service.ingest(adapter, request_)

        assert result.data == {'received': True, 'skipped': 'no email'}
        identity_resolver.resolve.assert_not_called()

    def test_unknown_organization_is_acknowledged_without_writes(self, service, adapter, request_,
                                                                 organization_repository, event_recorder):
        organization_repository.get_by_id.return_value = None
        adapter.parse.return_value = self._identify_intent()

        result = service.ingest(adapter, request_)

        assert result.is_success
        assert result.data['skipped'] == 'unknown organization'
        event_recorder.record.assert_not_called()

    def test_identify_records_event_and_extras(self, service, adapter, request_, identity_resolver,
                                               event_recorder, payment_repository):
        # Arrange
        adapter.echo_contact_id = True
        adapter.parse.return_value = self._identify_intent(
            lead_quality='HIGH',
            tags=['vip'],
            payment=PaymentInfo('payment-zapier-1', 4900, 'usd', 'zapier', 'Course'),
        )

        # Act
        result = service.ingest(adapter, request_)

        # Assert
        assert result.data == {'received': True, 'contactId': 'contact-1'}
        identity_resolver.resolve.assert_called_once_with('org-1', None, ContactInfo(email='a@example.com'))
        event_recorder.record.assert_called_once_with(
            organization_id='org-1',
            event_type=EventType.OPT_IN,
            source=EventSource.GHL_WEBHOOK,
            confidence=95,
            external_id='ghl-1',
            payload={'email': 'a@example.com'},
            contact_id='contact-1',
        )
        identity_resolver.set_lead_quality.assert_called_once_with('org-1', 'contact-1', 'HIGH')
        identity_resolver.append_tags.assert_called_once_with('org-1', 'contact-1', ['vip'])
        payment_repository.upsert_payment.assert_called_once()

    def test_payment_intent_uses_payment_resolution(self, service, adapter, request_, identity_resolver,
                                                    payment_repository):
        # Arrange
        adapter.parse.return_value = self._identify_intent(
            kind=IntentKind.PAYMENT,
            event=IntentEvent(EventType.PURCHASE, 'stripe-evt_1', 100, {}),
            payment=PaymentInfo('pi_1', 4900, 'usd', 'stripe'),
        )

        # Act
        result = service.ingest(adapter, request_)

        # Assert
        assert result.data == {'received': True}
        identity_resolver.resolve_from_payment.assert_called_once()
        identity_resolver.resolve.assert_not_called()
        kwargs = payment_repository.upsert_payment.call_args.kwargs
        assert kwargs['external_id'] == 'pi_1'
        assert kwargs['contact_id'] == 'contact-1'

    def test_cancel_booking_for_known_contact(self, service, adapter, request_, identity_resolver, event_recorder):
        identity_resolver.find_contact_id_by_email.return_value = 'contact-1'
        event_recorder.cancel_bookings.return_value = 2
        adapter.parse.return_value = NormalizedIntent(kind=IntentKind.CANCEL_BOOKING, organization_id='org-1',
                                                      contact=ContactInfo(email='a@example.com'))

        result = service.ingest(adapter, request_)

        assert result.data == {'received': True, 'canceled': 2}
        args = event_recorder.cancel_bookings.call_args.args
        assert args[:3] == ('org-1', 'contact-1', EventSource.GHL_WEBHOOK)
        assert args[3]['canceled'] is True

    def test_cancel_booking_for_unknown_contact(self, service, adapter, request_, identity_resolver, event_recorder):
        identity_resolver.find_contact_id_by_email.return_value = None
        adapter.parse.return_value = NormalizedIntent(kind=IntentKind.CANCEL_BOOKING, organization_id='org-1',
                                                      contact=ContactInfo(email='a@example.com'))

        result = service.ingest(adapter, request_)

        assert result.data == {'received': True, 'canceled': 0}
        event_recorder.cancel_bookings.assert_not_called()

    def test_processing_error_rolls_back(self, service, adapter, request_, identity_resolver):
        identity_resolver.resolve.side_effect = RuntimeError('boom')
        adapter.parse.return_value = self._identify_intent()

        result = service.ingest(adapter, request_)

        assert result.is_failure
        assert result.error_code == 'PROCESSING_ERROR'
        service.unit_of_work.rollback.assert_called_once()
