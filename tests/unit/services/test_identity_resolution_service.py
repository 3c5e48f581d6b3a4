"""
Tests for IdentityResolutionService - signal priority, confidence and stitching
"""

import pytest

from repositories.identity_signal_repository import IdentitySignalRepository
from services.identity_resolution_service import (
    ContactInfo,
    IdentityResolutionError,
    IdentityResolutionService,
)
from tracking_database import Contact, IdentitySignal, VisitorSession
from utils.identity_utils import hash_identity_value


class TestIdentityResolutionService:

    @pytest.fixture
    def resolver(self, services):
        return services.get('identity_resolution')

    @pytest.fixture
    def session_tracker(self, services):
        return services.get('session_tracking')

    def _signal(self, db_session, organization_id, signal_type):
        return db_session.query(IdentitySignal).filter_by(organization_id=organization_id, type=signal_type).one()

    def test_new_contact_is_created_with_signals(self, resolver, organization, db_session):
        # Act
        result = resolver.resolve(organization.id, None,
                                  ContactInfo(email='Jane@Example.com', phone='+1 (555) 010-2000',
                                              first_name='Jane'),
                                  fingerprint='fp-1')

        # Assert
        assert result.is_new is True
        assert result.confidence == 65
        contact = db_session.get(Contact, result.contact_id)
        assert contact.email == 'Jane@Example.com'
        assert contact.first_name == 'Jane'

        email_signal = self._signal(db_session, organization.id, 'EMAIL')
        assert email_signal.value == hash_identity_value('jane@example.com')
        assert email_signal.confidence == 90
        assert self._signal(db_session, organization.id, 'PHONE').value == hash_identity_value('15550102000')
        assert self._signal(db_session, organization.id, 'FINGERPRINT').value == 'fp-1'

    def test_email_match_wins_over_phone(self, resolver, organization):
        # Arrange
        by_email = resolver.resolve(organization.id, None, ContactInfo(email='a@example.com'))
        by_phone = resolver.resolve(organization.id, None, ContactInfo(phone='5550001111'))

        # Act
        result = resolver.resolve(organization.id, None, ContactInfo(email='A@example.com', phone='5550001111'))

        # Assert
        assert result.contact_id == by_email.contact_id
        assert result.contact_id != by_phone.contact_id
        assert result.confidence == 90
        assert result.is_new is False

    def test_phone_match_confidence(self, resolver, organization):
        first = resolver.resolve(organization.id, None, ContactInfo(phone='555-000-1111'))

        result = resolver.resolve(organization.id, None, ContactInfo(phone='(555) 000 1111'))

        assert result.contact_id == first.contact_id
        assert result.confidence == 85

    def test_fingerprint_match_confidence(self, resolver, organization):
        first = resolver.resolve(organization.id, None, ContactInfo(email='a@example.com'), fingerprint='fp-9')

        result = resolver.resolve(organization.id, None, ContactInfo(email='new@example.com'), fingerprint='fp-9')

        assert result.contact_id == first.contact_id
        assert result.confidence == 65

    def test_same_email_in_two_organizations_gives_two_contacts(self, resolver, organization, other_organization):
        first = resolver.resolve(organization.id, None, ContactInfo(email='a@example.com'))
        second = resolver.resolve(other_organization.id, None, ContactInfo(email='a@example.com'))

        assert first.contact_id != second.contact_id
        assert second.is_new is True

    def test_fields_are_never_overwritten_with_null(self, resolver, organization, db_session):
        first = resolver.resolve(organization.id, None,
                                 ContactInfo(email='a@example.com', first_name='Ann', last_name='Lee'))

        resolver.resolve(organization.id, None, ContactInfo(email='a@example.com', first_name='Anna'))

        contact = db_session.get(Contact, first.contact_id)
        assert contact.first_name == 'Anna'
        assert contact.last_name == 'Lee'

    def test_payment_upgrades_email_confidence(self, resolver, organization, db_session):
        # Arrange
        first = resolver.resolve(organization.id, None, ContactInfo(email='buyer@example.com'))

        # Act
        paid = resolver.resolve_from_payment(organization.id, 'buyer@example.com')
        again = resolver.resolve(organization.id, None, ContactInfo(email='buyer@example.com'))

        # Assert
        assert paid.contact_id == first.contact_id
        assert paid.confidence == 100
        assert again.contact_id == first.contact_id
        assert self._signal(db_session, organization.id, 'EMAIL').confidence == 100

    def test_payment_for_unknown_email_creates_contact(self, resolver, organization, db_session):
        result = resolver.resolve_from_payment(organization.id, 'new@example.com',
                                               ContactInfo(first_name='Neo'))

        assert result.is_new is True
        contact = db_session.get(Contact, result.contact_id)
        assert contact.email == 'new@example.com'
        assert contact.first_name == 'Neo'

    def test_session_and_fingerprint_sessions_are_linked(self, resolver, session_tracker, organization, db_session):
        # Arrange
        session_tracker.touch(organization.id, 'sess-a', 'fp-1')
        session_tracker.touch(organization.id, 'sess-b', 'fp-1')
        session_tracker.touch(organization.id, 'sess-c', 'fp-other')

        # Act
        result = resolver.resolve(organization.id, 'sess-c', ContactInfo(email='a@example.com'), fingerprint='fp-1')

        # Assert
        linked = {s.session_key for s in db_session.query(VisitorSession).filter_by(contact_id=result.contact_id)}
        assert linked == {'sess-a', 'sess-b', 'sess-c'}

    def test_lost_race_is_retried_against_winner(self, resolver, organization, db_session, mocker):
        # Arrange - the winner already owns the email, but our first two reads miss it
        winner = resolver.resolve(organization.id, None, ContactInfo(email='race@example.com'))
        real_find = IdentitySignalRepository.find_by_value
        calls = {'count': 0}

        def stale_then_real(repo, *args, **kwargs):
            calls['count'] += 1
            if calls['count'] <= 2:
                return None
            return real_find(repo, *args, **kwargs)

        mocker.patch.object(IdentitySignalRepository, 'find_by_value', autospec=True, side_effect=stale_then_real)

        # Act
        result = resolver.resolve(organization.id, None, ContactInfo(email='race@example.com'))

        # Assert
        assert result.contact_id == winner.contact_id
        assert result.is_new is False
        assert db_session.query(Contact).filter_by(organization_id=organization.id).count() == 1

    def test_persistent_conflict_raises_resolution_error(self, resolver, organization, mocker):
        resolver.resolve(organization.id, None, ContactInfo(email='race@example.com'))
        mocker.patch.object(IdentitySignalRepository, 'find_by_value', return_value=None)

        with pytest.raises(IdentityResolutionError):
            resolver.resolve(organization.id, None, ContactInfo(email='race@example.com'))

    def test_set_lead_quality_and_tags_are_tenant_scoped(self, resolver, organization, other_organization,
                                                          db_session):
        result = resolver.resolve(organization.id, None, ContactInfo(email='a@example.com'))

        assert resolver.set_lead_quality(organization.id, result.contact_id, 'HIGH') is True
        assert resolver.append_tags(organization.id, result.contact_id, ['vip']) is True
        assert resolver.set_lead_quality(other_organization.id, result.contact_id, 'LOW') is False

        contact = db_session.get(Contact, result.contact_id)
        assert contact.lead_quality == 'HIGH'
        assert contact.tags == ['vip']

    def test_find_contact_id_by_email(self, resolver, organization):
        result = resolver.resolve(organization.id, None, ContactInfo(email='a@example.com'))

        assert resolver.find_contact_id_by_email(organization.id, ' A@Example.com ') == result.contact_id
        assert resolver.find_contact_id_by_email(organization.id, 'nobody@example.com') is None
        assert resolver.find_contact_id_by_email(organization.id, None) is None


class TestIdentityResolutionServiceWithMocks:
    """Transaction handling with mocked repositories"""

    def test_database_error_is_wrapped(self, mocker):
        # Arrange
        from sqlalchemy.exc import OperationalError
        uow = mocker.MagicMock()
        signals = mocker.Mock()
        signals.find_by_value.side_effect = OperationalError('SELECT', {}, Exception('db down'))
        resolver = IdentityResolutionService(uow, mocker.Mock(), signals, mocker.Mock())

        # Act & Assert
        with pytest.raises(IdentityResolutionError):
            resolver.resolve('org-1', None, ContactInfo(email='a@example.com'))
