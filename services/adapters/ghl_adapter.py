"""GoHighLevel: contact/form opt-ins and appointment bookings (?orgId=...)."""

from services.adapters.base import (
    IntentEvent, IntentKind, NormalizedIntent, PayloadError, SignatureError,
    SourceAdapter, WebhookRequest, first_present,
)
from tracking_database import EventSource, EventType
from utils.identity_utils import deterministic_id

OPT_IN_EXACT = ('ContactCreate', 'contact.create')
BOOKING_EXACT = ('AppointmentCreate', 'appointment.create')


class GhlAdapter(SourceAdapter):
    name = 'ghl'
    source = EventSource.GHL_WEBHOOK

    def verify(self, request: WebhookRequest) -> None:
        # Only checked when both the secret and the header are present
        signature = request.header('x-ghl-signature')
        if self.secret and signature:
            if not self.signatures_match(self.hmac_hex(request.body), signature):
                raise SignatureError('Invalid signature')

    def parse(self, request: WebhookRequest) -> NormalizedIntent:
        payload = self.json_body(request)

        custom_fields = payload.get('customFields') if isinstance(payload.get('customFields'), dict) else {}
        organization_id = request.args.get('orgId') or custom_fields.get('organizationId')
        if not organization_id:
            raise PayloadError('No organizationId', code='MISSING_ORGANIZATION')

        event_type = str(first_present(payload.get('type'), payload.get('event_type'), ''))
        if 'form' in event_type or 'opt' in event_type or event_type in OPT_IN_EXACT:
            kind = 'optin'
        elif 'appointment' in event_type or 'booking' in event_type or event_type in BOOKING_EXACT:
            kind = 'booking'
        else:
            return NormalizedIntent.ignore(f'unhandled event type {event_type!r}', organization_id)

        raw = payload.get('contact') if isinstance(payload.get('contact'), dict) else payload
        contact = self.contact_from(
            email=first_present(raw.get('email'), payload.get('email')),
            phone=first_present(raw.get('phone'), payload.get('phone')),
            first_name=first_present(raw.get('firstName'), raw.get('first_name')),
            last_name=first_present(raw.get('lastName'), raw.get('last_name')),
        )
        if not contact.has_identifier:
            return NormalizedIntent.ignore('no email or phone', organization_id)

        native_id = payload.get('id')
        if kind == 'optin':
            event = IntentEvent(
                event_type=EventType.OPT_IN,
                external_id=f'ghl-{native_id}' if native_id is not None
                else deterministic_id('ghl', 'optin', contact.email, organization_id),
                confidence=90,
                payload={'email': contact.email, 'source': 'ghl_form'},
            )
        else:
            event = IntentEvent(
                event_type=EventType.BOOKING,
                external_id=f'ghl-appt-{native_id}' if native_id is not None
                else deterministic_id('ghl', 'booking', contact.email, organization_id),
                confidence=95,
                payload={
                    'email': contact.email,
                    'appointmentId': native_id,
                    'startTime': first_present(payload.get('startTime'), payload.get('start_time')),
                    'calendarId': first_present(payload.get('calendarId'), payload.get('calendar_id')),
                },
            )

        return NormalizedIntent(
            kind=IntentKind.IDENTIFY,
            organization_id=organization_id,
            contact=contact,
            event=event,
        )
