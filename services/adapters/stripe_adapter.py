"""Stripe: checkout sessions and payment intents, verified with the Stripe SDK."""

import stripe

from services.adapters.base import (
    IntentEvent, IntentKind, NormalizedIntent, PaymentInfo, SignatureError,
    SourceAdapter, WebhookRequest,
)
from tracking_database import EventSource, EventType
from utils.identity_utils import split_full_name


class StripeAdapter(SourceAdapter):
    """
    The organization comes from the checkout's client_reference_id or the
    payment intent's metadata.organizationId, which operators set themselves.
    """

    name = 'stripe'
    source = EventSource.STRIPE_WEBHOOK

    def __init__(self, secret: str = '', api_key: str = ''):
        super().__init__(secret)
        self.api_key = api_key or ''

    def verify(self, request: WebhookRequest) -> None:
        signature = request.header('stripe-signature')
        if not signature or not self.secret or not self.api_key:
            raise SignatureError('Missing signature or Stripe config')
        try:
            stripe.Webhook.construct_event(request.body, signature, self.secret)
        except ValueError:
            raise SignatureError('Invalid payload')
        except stripe.SignatureVerificationError:
            raise SignatureError('Invalid signature')

    def parse(self, request: WebhookRequest) -> NormalizedIntent:
        event = self.json_body(request)
        event_type = event.get('type')
        obj = (event.get('data') or {}).get('object') or {}
        event_id = event.get('id')

        if event_type == 'checkout.session.completed':
            return self._checkout_completed(obj, event_id)
        if event_type == 'payment_intent.succeeded':
            return self._payment_intent(obj, event_id)
        return NormalizedIntent.ignore(f'unhandled event type {event_type!r}')

    def _checkout_completed(self, session: dict, event_id: str) -> NormalizedIntent:
        details = session.get('customer_details') or {}
        organization_id = session.get('client_reference_id')
        first_name, last_name = split_full_name(details.get('name'))
        contact = self.contact_from(
            email=details.get('email'),
            phone=details.get('phone'),
            first_name=first_name,
            last_name=last_name,
        )
        if not contact.email:
            return NormalizedIntent.ignore('no email', organization_id)
        if not organization_id:
            return NormalizedIntent.ignore('no client_reference_id')

        amount_cents = session.get('amount_total') or 0
        currency = session.get('currency') or 'usd'
        metadata = session.get('metadata') or {}
        return NormalizedIntent(
            kind=IntentKind.PAYMENT,
            organization_id=organization_id,
            contact=contact,
            payment=PaymentInfo(
                external_id=session.get('payment_intent') or session.get('id'),
                amount_cents=amount_cents,
                currency=currency,
                processor='stripe',
                product_name=metadata.get('product_name'),
            ),
            event=IntentEvent(
                event_type=EventType.PURCHASE,
                external_id=f'stripe-{event_id}',
                confidence=100,
                payload={
                    'amountCents': amount_cents,
                    'currency': currency,
                    'email': contact.email,
                    'stripeSessionId': session.get('id'),
                },
            ),
        )

    def _payment_intent(self, intent: dict, event_id: str) -> NormalizedIntent:
        metadata = intent.get('metadata') or {}
        organization_id = metadata.get('organizationId')
        contact = self.contact_from(
            email=intent.get('receipt_email') or metadata.get('email'),
            first_name=metadata.get('firstName'),
            last_name=metadata.get('lastName'),
        )
        if not contact.email or not organization_id:
            return NormalizedIntent.ignore('no email or organizationId', organization_id)

        amount_cents = intent.get('amount') or 0
        currency = intent.get('currency') or 'usd'
        return NormalizedIntent(
            kind=IntentKind.PAYMENT,
            organization_id=organization_id,
            contact=contact,
            payment=PaymentInfo(
                external_id=intent.get('id'),
                amount_cents=amount_cents,
                currency=currency,
                processor='stripe',
            ),
            event=IntentEvent(
                event_type=EventType.PURCHASE,
                external_id=f'stripe-{event_id}',
                confidence=100,
                payload={'amountCents': amount_cents, 'currency': currency, 'email': contact.email},
            ),
        )
