"""
Tests for the Stripe adapter
"""

import json

import pytest

from services.adapters import StripeAdapter
from services.adapters.base import IntentKind, SignatureError, WebhookRequest
from tests.helpers import stripe_signature_header
from tracking_database import EventType

SECRET = 'whsec_unit'


def _checkout_event(**session_overrides):
    session = {
        'id': 'cs_1',
        'client_reference_id': 'org-1',
        'payment_intent': 'pi_1',
        'amount_total': 4900,
        'currency': 'usd',
        'customer_details': {'email': 'Buyer@Example.com', 'name': 'Bo Buyer'},
        'metadata': {'product_name': 'Course'},
    }
    session.update(session_overrides)
    return {'id': 'evt_1', 'type': 'checkout.session.completed', 'data': {'object': session}}


class TestStripeAdapterVerify:

    def test_valid_signature(self):
        body = json.dumps(_checkout_event())

        StripeAdapter(SECRET, 'sk_test').verify(WebhookRequest(
            body=body.encode('utf-8'), headers={'Stripe-Signature': stripe_signature_header(body, SECRET)}
        ))

    def test_wrong_secret(self):
        body = json.dumps(_checkout_event())

        with pytest.raises(SignatureError):
            StripeAdapter(SECRET, 'sk_test').verify(WebhookRequest(
                body=body.encode('utf-8'), headers={'Stripe-Signature': stripe_signature_header(body, 'other')}
            ))

    @pytest.mark.parametrize('secret,api_key,header', [
        ('', 'sk_test', 't=1,v1=x'),
        (SECRET, '', 't=1,v1=x'),
        (SECRET, 'sk_test', None),
    ])
    def test_missing_configuration_or_header(self, secret, api_key, header):
        headers = {'Stripe-Signature': header} if header else {}

        with pytest.raises(SignatureError):
            StripeAdapter(secret, api_key).verify(WebhookRequest(body=b'{}', headers=headers))


class TestStripeAdapterParse:

    def test_checkout_completed(self):
        intent = StripeAdapter().parse(WebhookRequest(body=json.dumps(_checkout_event()).encode('utf-8')))

        assert intent.kind == IntentKind.PAYMENT
        assert intent.organization_id == 'org-1'
        assert intent.contact.email == 'buyer@example.com'
        assert intent.contact.first_name == 'Bo'
        assert intent.contact.last_name == 'Buyer'
        assert intent.payment.external_id == 'pi_1'
        assert intent.payment.amount_cents == 4900
        assert intent.payment.product_name == 'Course'
        assert intent.event.event_type == EventType.PURCHASE
        assert intent.event.external_id == 'stripe-evt_1'
        assert intent.event.confidence == 100

    def test_checkout_without_reference_is_ignored(self):
        event = _checkout_event(client_reference_id=None)

        intent = StripeAdapter().parse(WebhookRequest(body=json.dumps(event).encode('utf-8')))

        assert intent.kind == IntentKind.IGNORE

    def test_payment_intent_uses_metadata(self):
        event = {
            'id': 'evt_2', 'type': 'payment_intent.succeeded',
            'data': {'object': {
                'id': 'pi_2', 'amount': 1000, 'currency': 'eur', 'receipt_email': 'a@example.com',
                'metadata': {'organizationId': 'org-1', 'firstName': 'Ann'},
            }},
        }

        intent = StripeAdapter().parse(WebhookRequest(body=json.dumps(event).encode('utf-8')))

        assert intent.payment.external_id == 'pi_2'
        assert intent.payment.currency == 'eur'
        assert intent.contact.first_name == 'Ann'

    def test_other_event_types_are_ignored(self):
        event = {'id': 'evt_3', 'type': 'charge.refunded', 'data': {'object': {}}}

        assert StripeAdapter().parse(WebhookRequest(body=json.dumps(event).encode('utf-8'))).kind == IntentKind.IGNORE
