"""
Tests for BeaconService - the pixel hit pipeline
"""

from datetime import datetime, timezone

import pytest

from services.beacon_schema import BeaconEnvelope
from tracking_database import Contact, Event, PageView, VisitorSession


class TestBeaconService:

    @pytest.fixture
    def beacon(self, services):
        return services.get('beacon')

    def _envelope(self, beacon_payload, **overrides):
        return BeaconEnvelope.model_validate(beacon_payload(**overrides))

    def test_page_view_creates_session_and_page_view(self, beacon, beacon_payload, db_session):
        # Act
        result = beacon.process(self._envelope(beacon_payload), client_ip='198.51.100.1', user_agent='ua')

        # Assert
        assert result.is_success
        assert result.data['contact_id'] is None
        session = db_session.query(VisitorSession).one()
        assert session.utm_source == 'fb'
        assert session.utm_campaign == 'spring'
        assert session.ip == '198.51.100.1'
        page_view = db_session.query(PageView).one()
        assert page_view.session_id == session.id
        assert page_view.path == '/landing'

    def test_unknown_org_key_writes_nothing(self, beacon, beacon_payload, db_session):
        result = beacon.process(self._envelope(beacon_payload, orgKey='nope'))

        assert result.is_failure
        assert result.error_code == 'UNKNOWN_ORGANIZATION'
        assert db_session.query(VisitorSession).count() == 0
        assert db_session.query(PageView).count() == 0

    def test_form_submit_resolves_contact_and_records_event(self, beacon, beacon_payload, db_session, mocker):
        # Arrange
        mocker.patch('services.beacon_service.utc_now', return_value=datetime(2025, 1, 1, 12, 30, tzinfo=timezone.utc))
        envelope = self._envelope(
            beacon_payload,
            type='form_submit',
            path='/optin',
            data={'contact': {'email': 'jane@example.com', 'firstName': 'Jane'}, 'formId': 'f1'},
        )

        # Act
        result = beacon.process(envelope)
        repeat = beacon.process(envelope)

        # Assert
        assert result.data['form_recorded'] is True
        assert repeat.data['form_recorded'] is False
        contact = db_session.query(Contact).one()
        assert result.data['contact_id'] == contact.id
        event = db_session.query(Event).filter_by(type='FORM_SUBMIT').one()
        assert event.external_id == 'pixel-form-sess-123-/optin-2025-01-01T12'
        assert event.confidence == 65
        assert event.payload['formId'] == 'f1'
        assert db_session.query(VisitorSession).one().contact_id == contact.id

    def test_form_submit_without_identifier_is_just_a_page_view(self, beacon, beacon_payload, db_session):
        envelope = self._envelope(beacon_payload, type='form_submit', data={'contact': {'firstName': 'Jane'}})

        result = beacon.process(envelope)

        assert result.data['form_recorded'] is False
        assert db_session.query(Contact).count() == 0
        assert db_session.query(PageView).count() == 1

    def test_click_through_by_contact_id(self, beacon, beacon_payload, organization, make_contact, db_session):
        contact = make_contact(organization.id, email='a@example.com')

        result = beacon.process(self._envelope(beacon_payload, contactId=contact.id))

        assert result.data['contact_id'] == contact.id
        assert db_session.query(VisitorSession).one().contact_id == contact.id

    def test_click_through_ignores_other_tenants_contact(self, beacon, beacon_payload, other_organization,
                                                          make_contact, db_session):
        foreign = make_contact(other_organization.id, email='a@example.com')

        result = beacon.process(self._envelope(beacon_payload, contactId=foreign.id))

        assert result.data['contact_id'] is None
        assert db_session.query(VisitorSession).one().contact_id is None

    def test_click_through_by_email(self, beacon, beacon_payload, organization, services):
        from services.identity_resolution_service import ContactInfo
        resolved = services.get('identity_resolution').resolve(organization.id, None,
                                                               ContactInfo(email='a@example.com'))

        result = beacon.process(self._envelope(beacon_payload, clickEmail='A@example.com'))

        assert result.data['contact_id'] == resolved.contact_id

    def test_url_rule_fires_from_page_view(self, beacon, beacon_payload, organization, make_url_rule, db_session):
        make_url_rule(organization.id, event_type='PURCHASE')

        result = beacon.process(self._envelope(beacon_payload, url='https://example.com/thank-you',
                                               path='/thank-you'))

        assert result.data['rules_fired'] == 1
        event = db_session.query(Event).filter_by(type='PURCHASE').one()
        assert event.confidence == 50

    def test_processing_error_is_a_failure_result(self, beacon, beacon_payload, mocker):
        # Arrange
        mocker.patch.object(beacon.session_tracker, 'touch', side_effect=RuntimeError('boom'))

        # Act
        result = beacon.process(self._envelope(beacon_payload))

        # Assert
        assert result.is_failure
        assert result.error_code == 'PROCESSING_ERROR'
