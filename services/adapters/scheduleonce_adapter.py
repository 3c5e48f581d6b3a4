"""ScheduleOnce (OnceHub): scheduled, rescheduled and canceled bookings (?orgId=...)."""

from services.adapters.base import (
    IntentEvent, IntentKind, NormalizedIntent, SignatureError,
    SourceAdapter, WebhookRequest, first_present,
)
from tracking_database import EventSource, EventType
from utils.identity_utils import deterministic_id, split_full_name

SCHEDULED = ('booking.scheduled', 'BOOKED', 'scheduled')
RESCHEDULED = ('booking.rescheduled', 'RESCHEDULED', 'rescheduled')
CANCELED = ('booking.canceled', 'CANCELED', 'canceled')


class ScheduleOnceAdapter(SourceAdapter):
    name = 'scheduleonce'
    source = EventSource.SCHEDULEONCE_WEBHOOK

    def verify(self, request: WebhookRequest) -> None:
        if not self.secret:
            return
        received = request.header('x-api-key') or request.header('authorization')
        if not self.signatures_match(self.secret, received):
            raise SignatureError('Invalid API key', code='INVALID_API_KEY', status_code=401)

    def parse(self, request: WebhookRequest) -> NormalizedIntent:
        payload = self.json_body(request)
        organization_id = self.query_organization_id(request)

        event_type = first_present(payload.get('event_type'), payload.get('type'), payload.get('status'))
        booking = first_present(payload.get('booking'), payload.get('data'))
        if not isinstance(booking, dict):
            booking = payload

        if event_type in SCHEDULED or event_type in RESCHEDULED:
            return self._scheduled(payload, booking, organization_id)

        if event_type in CANCELED:
            booker = booking.get('booker') if isinstance(booking.get('booker'), dict) else {}
            contact = self.contact_from(email=first_present(booking.get('email'), booker.get('email')))
            if not contact.email:
                return NormalizedIntent.ignore('no email', organization_id)
            return NormalizedIntent(kind=IntentKind.CANCEL_BOOKING, organization_id=organization_id, contact=contact)

        return NormalizedIntent.ignore(f'unhandled event type {event_type!r}', organization_id)

    def _scheduled(self, payload: dict, booking: dict, organization_id: str) -> NormalizedIntent:
        booker = first_present(booking.get('booker'), booking.get('invitee'), booking.get('customer'))
        if not isinstance(booker, dict):
            booker = booking

        name = first_present(booker.get('name'), booker.get('full_name'), booking.get('name')) or ''
        split_first, split_last = split_full_name(name)
        contact = self.contact_from(
            email=first_present(booker.get('email'), booking.get('email')),
            phone=first_present(booker.get('phone'), booking.get('phone')),
            first_name=first_present(booker.get('first_name'), split_first),
            last_name=first_present(booker.get('last_name'), split_last),
        )
        if not contact.email:
            return NormalizedIntent.ignore('no email', organization_id)

        native_id = payload.get('id')
        key = str(native_id) if native_id else deterministic_id('scheduleonce', 'booking', contact.email, organization_id)

        return NormalizedIntent(
            kind=IntentKind.IDENTIFY,
            organization_id=organization_id,
            contact=contact,
            event=IntentEvent(
                event_type=EventType.BOOKING,
                external_id=f'scheduleonce-{key}',
                confidence=95,
                payload={
                    'email': contact.email,
                    'bookingId': first_present(booking.get('id'), booking.get('booking_id')),
                    'scheduledStart': first_present(
                        booking.get('start_time'), booking.get('scheduled_time'), booking.get('starts_at')
                    ),
                    'pageId': first_present(booking.get('page_id'), booking.get('event_type_id')),
                    'status': 'scheduled',
                },
            ),
        )
