"""Whop: successful payments and memberships becoming valid."""

from services.adapters.base import (
    IntentEvent, IntentKind, NormalizedIntent, PaymentInfo, SignatureError,
    SourceAdapter, WebhookRequest, first_present,
)
from tracking_database import EventSource, EventType
from utils.identity_utils import deterministic_id, split_full_name

PAYMENT_EVENTS = ('payment.succeeded', 'membership.went_valid')


class WhopAdapter(SourceAdapter):
    """Organization comes from data.metadata.organizationId set on the Whop product."""

    name = 'whop'
    source = EventSource.WHOP_WEBHOOK

    def verify(self, request: WebhookRequest) -> None:
        # Unlike most providers, a configured secret makes the header mandatory
        if not self.secret:
            return
        expected = 'sha256=' + self.hmac_hex(request.body)
        if not self.signatures_match(expected, request.header('x-whop-signature')):
            raise SignatureError('Invalid signature')

    def parse(self, request: WebhookRequest) -> NormalizedIntent:
        event = self.json_body(request)
        event_type = event.get('event')
        if event_type not in PAYMENT_EVENTS:
            return NormalizedIntent.ignore(f'unhandled event type {event_type!r}')

        data = event.get('data') if isinstance(event.get('data'), dict) else event
        user = data.get('user') if isinstance(data.get('user'), dict) else {}
        metadata = data.get('metadata') if isinstance(data.get('metadata'), dict) else {}
        organization_id = metadata.get('organizationId')

        first_name, last_name = split_full_name(str(user['name'])) if user.get('name') else (None, None)
        contact = self.contact_from(
            email=first_present(user.get('email'), data.get('email')),
            first_name=first_name,
            last_name=last_name,
        )
        if not contact.email or not organization_id:
            return NormalizedIntent.ignore('no email or organizationId', organization_id)

        try:
            amount = float(first_present(data.get('total'), data.get('amount')) or 0)
        except (TypeError, ValueError):
            amount = 0.0
        amount_cents = int(round(amount * 100))
        payment_id = str(first_present(
            data.get('id'),
            event.get('id'),
            deterministic_id('whop', contact.email, amount_cents, organization_id),
        ))
        event_key = str(first_present(event.get('id'), payment_id))

        return NormalizedIntent(
            kind=IntentKind.PAYMENT,
            organization_id=organization_id,
            contact=contact,
            payment=PaymentInfo(
                external_id=payment_id,
                amount_cents=amount_cents,
                currency=data.get('currency') or 'usd',
                processor='whop',
            ),
            event=IntentEvent(
                event_type=EventType.PURCHASE,
                external_id=f'whop-{event_key}',
                confidence=100,
                payload={'amountCents': amount_cents, 'email': contact.email},
            ),
        )
