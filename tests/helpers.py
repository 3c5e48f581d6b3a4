"""
Helpers shared by the route tests
"""
import hashlib
import hmac
import json
import time


def post_json(client, url, payload, **kwargs):
    """POST a JSON body the way the webhook senders do."""
    return client.post(url, data=json.dumps(payload), content_type='application/json', **kwargs)


def stripe_signature_header(payload: str, secret: str, timestamp: int = None) -> str:
    """Build a Stripe-Signature header for a raw payload."""
    timestamp = timestamp or int(time.time())
    signed = f'{timestamp}.{payload}'.encode('utf-8')
    signature = hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()
    return f't={timestamp},v1={signature}'


def stripe_checkout_event(organization_id, event_id='evt_1', email='buyer@example.com'):
    """checkout.session.completed event for a $97 purchase."""
    return {
        'id': event_id,
        'type': 'checkout.session.completed',
        'data': {'object': {
            'id': 'cs_1',
            'client_reference_id': organization_id,
            'payment_intent': 'pi_1',
            'amount_total': 9700,
            'currency': 'usd',
            'customer_details': {'email': email, 'name': 'Bo Buyer'},
        }},
    }


def post_stripe(client, app, payload, secret=None):
    """POST a Stripe event signed with the app's webhook secret."""
    body = json.dumps(payload)
    header = stripe_signature_header(body, secret or app.config['STRIPE_WEBHOOK_SECRET'])
    return client.post('/api/webhooks/stripe', data=body, content_type='application/json',
                       headers={'Stripe-Signature': header})
