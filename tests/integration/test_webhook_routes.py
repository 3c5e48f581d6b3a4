"""
Integration tests for the provider webhook endpoints
"""

from tests.helpers import post_json, post_stripe, stripe_checkout_event
from tracking_database import Contact, Event, IdentitySignal, Payment


class TestStripeWebhook:

    def test_checkout_records_payment_purchase_and_identity(self, client, app, organization, db_session):
        # Act
        response = post_stripe(client, app, stripe_checkout_event(organization.id))

        # Assert
        assert response.status_code == 200
        assert response.get_json() == {'received': True}
        contact = db_session.query(Contact).one()
        assert contact.first_name == 'Bo'
        payment = db_session.query(Payment).one()
        assert payment.amount_cents == 9700
        assert payment.contact_id == contact.id
        event = db_session.query(Event).one()
        assert event.type == 'PURCHASE'
        assert event.external_id == 'stripe-evt_1'
        assert event.confidence == 100
        assert db_session.query(IdentitySignal).filter_by(type='EMAIL').one().confidence == 100

    def test_redelivery_is_idempotent(self, client, app, organization, db_session):
        post_stripe(client, app, stripe_checkout_event(organization.id))
        response = post_stripe(client, app, stripe_checkout_event(organization.id))

        assert response.status_code == 200
        assert db_session.query(Event).count() == 1
        assert db_session.query(Payment).count() == 1

    def test_bad_signature_is_400(self, client, app, organization, db_session):
        response = post_stripe(client, app, stripe_checkout_event(organization.id), secret='whsec_wrong')

        assert response.status_code == 400
        assert db_session.query(Event).count() == 0

    def test_missing_signature_is_400(self, client, organization):
        response = post_json(client, '/api/webhooks/stripe', stripe_checkout_event(organization.id))

        assert response.status_code == 400


class TestQueryOrgWebhooks:

    def test_ghl_opt_in(self, client, organization, db_session):
        response = post_json(client, f'/api/webhooks/ghl?orgId={organization.id}',
                             {'type': 'ContactCreate', 'id': 'c-1', 'email': 'a@example.com'})

        assert response.status_code == 200
        event = db_session.query(Event).one()
        assert event.type == 'OPT_IN'
        assert event.source == 'GHL_WEBHOOK'

    def test_missing_org_id_is_400(self, client):
        response = post_json(client, '/api/webhooks/typeform', {'form_response': {}})

        assert response.status_code == 400

    def test_unknown_org_is_acknowledged(self, client, db_session):
        response = post_json(client, '/api/webhooks/ghl?orgId=does-not-exist',
                             {'type': 'ContactCreate', 'email': 'a@example.com'})

        assert response.status_code == 200
        assert response.get_json()['received'] is True
        assert db_session.query(Contact).count() == 0

    def test_invalid_json_is_400(self, client, organization):
        response = client.post(f'/api/webhooks/ghl?orgId={organization.id}', data='{nope',
                               content_type='application/json')

        assert response.status_code == 400

    def test_unknown_provider_is_404(self, client):
        response = post_json(client, '/api/webhooks/myspace', {})

        assert response.status_code == 404

    def test_calendly_booking_then_cancel(self, client, organization, db_session):
        url = f'/api/webhooks/calendly?orgId={organization.id}'
        post_json(client, url, {'event': 'invitee.created',
                                'payload': {'email': 'a@example.com', 'uri': 'https://x/invitees/INV1'}})

        response = post_json(client, url, {'event': 'invitee.canceled', 'payload': {'email': 'a@example.com'}})

        assert response.get_json() == {'received': True, 'canceled': 1}
        db_session.expire_all()
        booking = db_session.query(Event).one()
        assert booking.type == 'BOOKING'
        assert booking.payload['canceled'] is True
        assert booking.payload['email'] == 'a@example.com'

    def test_zapier_echoes_contact_id_and_enforces_secret(self, client, app, organization, db_session):
        app.config['ZAPIER_WEBHOOK_SECRET'] = 's3cret'
        url = f'/api/webhooks/zapier?orgId={organization.id}&event=opt_in'

        denied = post_json(client, url, {'email': 'a@example.com'})
        allowed = post_json(client, f'{url}&secret=s3cret', {'email': 'a@example.com', 'tags': 'vip'})

        assert denied.status_code == 401
        assert allowed.status_code == 200
        contact = db_session.query(Contact).one()
        assert allowed.get_json()['contactId'] == contact.id
        assert contact.tags == ['vip']

    def test_processing_error_hides_detail(self, client, app, organization, mocker):
        resolver = app.services.get('identity_resolution')
        mocker.patch.object(resolver, 'resolve', side_effect=RuntimeError('secret detail'))

        response = post_json(client, f'/api/webhooks/ghl?orgId={organization.id}',
                             {'type': 'ContactCreate', 'email': 'a@example.com'})

        assert response.status_code == 500
        assert response.get_json() == {'error': 'Processing failed'}


class TestClickFunnelsWebhook:

    def test_ping(self, client, organization):
        response = client.get(f'/api/webhooks/clickfunnels/{organization.id}')

        assert response.status_code == 200
        assert response.get_json() == {'ok': True}

    def test_urlencoded_opt_in(self, client, organization, db_session):
        response = client.post(f'/api/webhooks/clickfunnels/{organization.id}',
                               data={'email': 'a@example.com', 'name': 'Ann Lee'})

        assert response.status_code == 200
        event = db_session.query(Event).one()
        assert event.type == 'FORM_SUBMIT'
        assert event.confidence == 95

    def test_generic_route_rejects_clickfunnels(self, client):
        assert post_json(client, '/api/webhooks/clickfunnels', {}).status_code == 404
