"""Calendly: invitee.created bookings and invitee.canceled cancellations (?orgId=...)."""

from services.adapters.base import (
    IntentEvent, IntentKind, NormalizedIntent, SignatureError,
    SourceAdapter, WebhookRequest, first_present,
)
from tracking_database import EventSource, EventType
from utils.identity_utils import deterministic_id, split_full_name


class CalendlyAdapter(SourceAdapter):
    name = 'calendly'
    source = EventSource.CALENDLY_WEBHOOK

    def verify(self, request: WebhookRequest) -> None:
        """
        Header format: 't=<timestamp>,v1=<hex hmac of "<timestamp>.<body>">'.
        Checked when a secret is configured and the header is present.
        """
        header = request.header('x-calendly-webhook-subscription')
        if not (self.secret and header):
            return

        parts = dict(
            part.split('=', 1) for part in header.split(',') if '=' in part
        )
        timestamp = parts.get('t', '').strip()
        received = parts.get('v1', '').strip()
        if not timestamp or not received:
            raise SignatureError('Malformed signature header')

        expected = self.hmac_hex(timestamp.encode('utf-8') + b'.' + request.body)
        if not self.signatures_match(expected, received):
            raise SignatureError('Invalid signature')

    def parse(self, request: WebhookRequest) -> NormalizedIntent:
        payload = self.json_body(request)
        organization_id = self.query_organization_id(request)

        event_type = payload.get('event')
        data = payload.get('payload') if isinstance(payload.get('payload'), dict) else {}

        if event_type == 'invitee.created':
            first_name, last_name = split_full_name(data.get('name'))
            contact = self.contact_from(email=data.get('email'), first_name=first_name, last_name=last_name)
            if not contact.email:
                return NormalizedIntent.ignore('no email', organization_id)

            uri = first_present(data.get('uri'), payload.get('uri'))
            external_id = (
                f"calendly-{str(uri).rstrip('/').split('/')[-1]}" if uri
                else deterministic_id('calendly', 'booking', contact.email, organization_id)
            )
            return NormalizedIntent(
                kind=IntentKind.IDENTIFY,
                organization_id=organization_id,
                contact=contact,
                event=IntentEvent(
                    event_type=EventType.BOOKING,
                    external_id=external_id,
                    confidence=95,
                    payload={
                        'email': contact.email,
                        'scheduledAt': data.get('scheduled_event'),
                        'timezone': data.get('timezone'),
                        'questionsAndAnswers': data.get('questions_and_answers'),
                    },
                ),
            )

        if event_type == 'invitee.canceled':
            contact = self.contact_from(email=data.get('email'))
            if not contact.email:
                return NormalizedIntent.ignore('no email', organization_id)
            return NormalizedIntent(kind=IntentKind.CANCEL_BOOKING, organization_id=organization_id, contact=contact)

        return NormalizedIntent.ignore(f'unhandled event type {event_type!r}', organization_id)
