"""
End-to-end properties of the ingestion pipeline, driven through the HTTP routes
"""

from datetime import datetime, timedelta, timezone

from tests.helpers import post_json, post_stripe, stripe_checkout_event
from tracking_database import Contact, Event, IdentitySignal, VisitorSession


class TestPipelineProperties:

    def test_form_submit_is_recorded_once_per_hour(self, client, beacon_payload, db_session, mocker):
        start = datetime(2025, 1, 1, 12, 5, tzinfo=timezone.utc)
        mocker.patch('services.beacon_service.utc_now', side_effect=[start, start + timedelta(minutes=50)])
        payload = beacon_payload(type='form_submit', path='/optin',
                                 data={'contact': {'email': 'e@x.com'}, 'formPath': '/optin'})

        post_json(client, '/api/pixel', payload)
        post_json(client, '/api/pixel', dict(payload, path='/thanks'))

        assert db_session.query(Event).filter_by(type='FORM_SUBMIT').count() == 1

    def test_beacon_and_crm_stitch_to_one_contact(self, client, beacon_payload, organization, db_session):
        # Arrange
        post_json(client, '/api/pixel', beacon_payload(type='form_submit',
                                                       data={'contact': {'email': 'e@x.com'}}))

        # Act
        post_json(client, f'/api/webhooks/ghl?orgId={organization.id}',
                  {'type': 'ContactCreate', 'id': 'c-1', 'email': 'E@X.com', 'firstName': 'Eve'})

        # Assert
        contacts = db_session.query(Contact).filter_by(organization_id=organization.id).all()
        assert len(contacts) == 1
        assert contacts[0].first_name == 'Eve'
        assert {e.contact_id for e in db_session.query(Event).all()} == {contacts[0].id}

    def test_payment_confidence_never_drops(self, client, app, beacon_payload, organization, db_session):
        post_stripe(client, app, stripe_checkout_event(organization.id, email='e@x.com'))

        post_json(client, '/api/pixel', beacon_payload(type='form_submit', data={'contact': {'email': 'e@x.com'}}))
        post_json(client, f'/api/webhooks/ghl?orgId={organization.id}', {'type': 'ContactCreate', 'email': 'e@x.com'})

        assert db_session.query(IdentitySignal).filter_by(type='EMAIL').one().confidence == 100

    def test_fingerprint_claims_anonymous_session(self, client, beacon_payload, db_session):
        # Arrange - anonymous browsing in another session with the same fingerprint
        post_json(client, '/api/pixel', beacon_payload(sessionId='anon-tab', fingerprint='fp-shared'))

        # Act
        post_json(client, '/api/pixel', beacon_payload(sessionId='form-tab', fingerprint='fp-shared',
                                                       type='form_submit',
                                                       data={'contact': {'email': 'e@x.com'}}))

        # Assert
        contact = db_session.query(Contact).one()
        anonymous = db_session.query(VisitorSession).filter_by(session_key='anon-tab').one()
        assert anonymous.contact_id == contact.id

    def test_url_rule_exclusion_and_daily_dedup(self, client, beacon_payload, organization, make_url_rule,
                                                make_contact, db_session):
        # Arrange
        make_url_rule(organization.id, pattern='**/thank-you', exclude_pattern='**/thank-you-variant*')
        contact = make_contact(organization.id, email='e@x.com')

        def view(path):
            return post_json(client, '/api/pixel', beacon_payload(
                url=f'https://example.com{path}', path=path, contactId=contact.id,
            ))

        # Act
        view('/thank-you')
        view('/thank-you')
        view('/thank-you-variant-b')

        # Assert
        events = db_session.query(Event).filter_by(type='OPT_IN').all()
        assert len(events) == 1
        assert events[0].contact_id == contact.id
        assert events[0].confidence == 80

    def test_visit_counting(self, client, beacon_payload, db_session, mocker):
        start = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        mocker.patch('services.beacon_service.utc_now', side_effect=[
            start, start + timedelta(minutes=10), start + timedelta(minutes=41),
        ])

        post_json(client, '/api/pixel', beacon_payload())
        post_json(client, '/api/pixel', beacon_payload())
        assert db_session.query(VisitorSession).one().visit_count == 1

        post_json(client, '/api/pixel', beacon_payload())
        db_session.expire_all()
        assert db_session.query(VisitorSession).one().visit_count == 2

    def test_unknown_org_key_writes_nothing(self, client, beacon_payload, db_session):
        response = post_json(client, '/api/pixel', beacon_payload(
            orgKey='nope', type='form_submit', data={'contact': {'email': 'e@x.com'}},
        ))

        assert response.status_code == 200
        assert response.get_json()['ok'] is False
        assert db_session.query(VisitorSession).count() == 0
        assert db_session.query(Contact).count() == 0
        assert db_session.query(Event).count() == 0
