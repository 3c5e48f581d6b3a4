"""
Zapier catch hook: generic bridge for tools without a native integration.

URL: /webhooks/zapier?orgId=ORG_ID&event=EVENT&secret=SECRET

Body fields (mapped in the Zap): email, phone, first_name, last_name, amount,
currency, product_name, external_id, lead_quality (high|medium|low) and
tags (comma separated).
"""

from typing import List

from services.adapters.base import (
    IntentEvent, IntentKind, NormalizedIntent, PaymentInfo, SignatureError,
    SourceAdapter, WebhookRequest, first_present,
)
from tracking_database import EventSource, EventType, LeadQuality
from utils.identity_utils import deterministic_id

EVENT_TYPE_MAP = {
    'opt_in': EventType.OPT_IN,
    'optin': EventType.OPT_IN,
    'purchase': EventType.PURCHASE,
    'booking': EventType.BOOKING,
    'booking_confirmed': EventType.BOOKING_CONFIRMED,
    'application': EventType.APPLICATION_SUBMIT,
    'application_submit': EventType.APPLICATION_SUBMIT,
    'webinar_register': EventType.WEBINAR_REGISTER,
    'webinar_attend': EventType.WEBINAR_ATTEND,
    'webinar_cta': EventType.WEBINAR_CTA_CLICK,
    'custom': EventType.CUSTOM,
}

LEAD_QUALITY_MAP = {
    'high': LeadQuality.HIGH,
    'medium': LeadQuality.MEDIUM,
    'low': LeadQuality.LOW,
}


def parse_tags(raw) -> List[str]:
    if isinstance(raw, list):
        return [str(tag).strip() for tag in raw if str(tag).strip()]
    if isinstance(raw, str):
        return [tag.strip() for tag in raw.split(',') if tag.strip()]
    return []


class ZapierAdapter(SourceAdapter):
    name = 'zapier'
    source = EventSource.ZAPIER_WEBHOOK
    echo_contact_id = True

    def verify(self, request: WebhookRequest) -> None:
        if not self.secret:
            return
        received = request.args.get('secret') or request.header('x-zapier-secret')
        if not self.signatures_match(self.secret, received):
            raise SignatureError('Invalid secret', code='INVALID_SECRET', status_code=401)

    def parse(self, request: WebhookRequest) -> NormalizedIntent:
        organization_id = self.query_organization_id(request)
        body = self.json_body(request)
        event_param = (request.args.get('event') or 'custom').lower()

        contact = self.contact_from(
            email=first_present(body.get('email'), body.get('Email')),
            phone=first_present(body.get('phone'), body.get('Phone')),
            first_name=first_present(body.get('first_name'), body.get('firstName'), body.get('First Name')),
            last_name=first_present(body.get('last_name'), body.get('lastName'), body.get('Last Name')),
        )
        if not contact.has_identifier:
            return NormalizedIntent.ignore('no email or phone', organization_id)

        event_type = EVENT_TYPE_MAP.get(event_param, EventType.CUSTOM)
        native_id = body.get('external_id')
        dedup_key = str(native_id) if native_id else deterministic_id('zapier', contact.email, event_param, organization_id)

        payment = None
        if event_type == EventType.PURCHASE and body.get('amount'):
            try:
                amount_cents = int(round(float(body['amount']) * 100))
            except (TypeError, ValueError):
                amount_cents = 0
            payment = PaymentInfo(
                external_id=f'payment-{dedup_key}',
                amount_cents=amount_cents,
                currency=body.get('currency') or 'usd',
                processor='zapier',
                product_name=body.get('product_name'),
            )

        lead_quality = LEAD_QUALITY_MAP.get(str(body.get('lead_quality') or '').lower())

        return NormalizedIntent(
            kind=IntentKind.IDENTIFY,
            organization_id=organization_id,
            contact=contact,
            payment=payment,
            lead_quality=lead_quality,
            tags=parse_tags(body.get('tags')),
            event=IntentEvent(
                event_type=event_type,
                external_id=f'zapier-{dedup_key}',
                confidence=85,
                payload={
                    'email': contact.email,
                    'phone': contact.phone,
                    'source': 'zapier',
                    'eventParam': event_param,
                    'rawBody': body,
                },
            ),
        )
