"""
ClickFunnels: opt-in form submissions, organization id in the URL path.

Classic posts form-urlencoded data (with Infusionsoft-style fallbacks);
CF 2.0 posts JSON with a `contact` object.
"""

from typing import Dict

from services.adapters.base import (
    IntentEvent, IntentKind, NormalizedIntent, PayloadError,
    SourceAdapter, WebhookRequest, first_present,
)
from tracking_database import EventSource, EventType
from utils.identity_utils import deterministic_id, split_full_name


class ClickFunnelsAdapter(SourceAdapter):
    name = 'clickfunnels'
    source = EventSource.CLICKFUNNELS_WEBHOOK

    def parse(self, request: WebhookRequest) -> NormalizedIntent:
        organization_id = request.path_organization_id
        if not organization_id:
            raise PayloadError('Missing organization id', code='MISSING_ORGANIZATION')

        if 'application/json' in request.content_type:
            fields = self._json_fields(request)
        else:
            fields = self._classic_fields(request)

        contact = self.contact_from(
            email=fields['email'] or None,
            phone=fields['phone'] or None,
            first_name=fields['first_name'] or None,
            last_name=fields['last_name'] or None,
        )
        if not contact.has_identifier:
            return NormalizedIntent.ignore('no email or phone', organization_id)

        submission_id = fields['id']
        return NormalizedIntent(
            kind=IntentKind.IDENTIFY,
            organization_id=organization_id,
            contact=contact,
            event=IntentEvent(
                event_type=EventType.FORM_SUBMIT,
                external_id=f'cf-submission-{submission_id}' if submission_id
                else deterministic_id('cf', 'optin', contact.email, organization_id),
                confidence=95,
                payload={
                    'email': contact.email,
                    'phone': contact.phone,
                    'pageUrl': fields['page_url'] or None,
                    'source': 'clickfunnels_webhook',
                },
            ),
        )

    def _json_fields(self, request: WebhookRequest) -> Dict[str, str]:
        body = self.json_body(request)
        contact = body.get('contact') if isinstance(body.get('contact'), dict) else body

        def pick(*values) -> str:
            value = first_present(*values)
            return '' if value is None else str(value)

        return {
            'email': pick(contact.get('email'), body.get('email')),
            'phone': pick(contact.get('phone'), body.get('phone')),
            'first_name': pick(contact.get('first_name'), contact.get('firstName'), body.get('first_name')),
            'last_name': pick(contact.get('last_name'), contact.get('lastName'), body.get('last_name')),
            'id': pick(contact.get('id'), body.get('id'), body.get('submission_id')),
            'page_url': pick(body.get('page_url'), body.get('funnel_step_url')),
        }

    def _classic_fields(self, request: WebhookRequest) -> Dict[str, str]:
        params = self.form_body(request)
        name_first, name_last = split_full_name(params.get('name'))
        return {
            'email': first_present(params.get('email'), params.get('inf_field_Email')) or '',
            'phone': first_present(params.get('phone'), params.get('inf_field_Phone1')) or '',
            'first_name': first_present(params.get('first_name'), params.get('inf_field_FirstName'), name_first) or '',
            'last_name': first_present(params.get('last_name'), params.get('inf_field_LastName'), name_last) or '',
            'id': first_present(params.get('contact_id'), params.get('submission_id')) or '',
            'page_url': first_present(params.get('page_url'), params.get('funnel_step_url')) or '',
        }
