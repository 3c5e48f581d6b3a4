"""
JotForm: form submissions (?orgId=...), no authentication.

JotForm posts form-urlencoded data by default, with the answers wrapped in a
`rawRequest` JSON string; some configurations post JSON instead. Both are
flattened into one level of string fields before sniffing for contact data.
"""

import json
import re
from typing import Any, Dict, Optional

from services.adapters.base import (
    IntentEvent, IntentKind, NormalizedIntent, SourceAdapter, WebhookRequest,
)
from tracking_database import EventSource, EventType
from utils.identity_utils import deterministic_id, normalize_phone

EMAIL_VALUE_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_VALUE_PATTERN = re.compile(r'^[\d\s\-+()]{7,}$')
# Numeric ids would otherwise pass for phone numbers
METADATA_KEYS = {'submissionid', 'submission_id', 'formid', 'form_id', 'ip', 'event_id'}


def flatten_fields(obj: Dict[str, Any], prefix: str = '') -> Dict[str, str]:
    """{'q3': {'first': 'Ann'}} -> {'q3_first': 'Ann'}; lists are kept as their string form."""
    result: Dict[str, str] = {}
    for key, value in obj.items():
        flat_key = f'{prefix}_{key}' if prefix else str(key)
        if isinstance(value, dict):
            result.update(flatten_fields(value, flat_key))
        else:
            result[flat_key] = '' if value is None else str(value)
    return result


def extract_contact_fields(fields: Dict[str, str]) -> Dict[str, Optional[str]]:
    """Sniff email/phone by value shape, names and fallbacks by key name."""
    contact: Dict[str, Optional[str]] = {'email': None, 'phone': None, 'first_name': None, 'last_name': None}

    for key, raw_value in fields.items():
        lowered = key.lower()
        value = raw_value.strip()
        if not value or lowered in METADATA_KEYS:
            continue

        if not contact['email'] and EMAIL_VALUE_PATTERN.match(value):
            contact['email'] = value
        elif not contact['phone'] and PHONE_VALUE_PATTERN.match(value) and len(normalize_phone(value)) >= 7:
            contact['phone'] = value

        if 'first' in lowered or lowered == 'fname':
            contact['first_name'] = value
        elif 'last' in lowered or lowered == 'lname':
            contact['last_name'] = value
        elif 'email' in lowered and not contact['email']:
            contact['email'] = value
        elif 'phone' in lowered and not contact['phone']:
            contact['phone'] = value

    return contact


class JotformAdapter(SourceAdapter):
    name = 'jotform'
    source = EventSource.JOTFORM_WEBHOOK

    def parse(self, request: WebhookRequest) -> NormalizedIntent:
        organization_id = self.query_organization_id(request)
        fields = self._read_fields(request)

        contact = self.contact_from(**extract_contact_fields(fields))
        if not contact.has_identifier:
            return NormalizedIntent.ignore('no email or phone', organization_id)

        submission_id = fields.get('submissionID') or fields.get('submission_id')
        form_id = fields.get('formID') or fields.get('form_id')
        external_id = (
            f'jotform-{submission_id}' if submission_id
            else deterministic_id('jotform', contact.email, form_id, organization_id)
        )

        return NormalizedIntent(
            kind=IntentKind.IDENTIFY,
            organization_id=organization_id,
            contact=contact,
            event=IntentEvent(
                event_type=EventType.OPT_IN,
                external_id=external_id,
                confidence=90,
                payload={
                    'email': contact.email,
                    'phone': contact.phone,
                    'formId': form_id,
                    'submissionId': submission_id,
                },
            ),
        )

    def _read_fields(self, request: WebhookRequest) -> Dict[str, str]:
        if 'application/json' in request.content_type:
            return flatten_fields(self.json_body(request))

        params = self.form_body(request)
        raw_request = params.get('rawRequest')
        if raw_request:
            try:
                parsed = json.loads(raw_request)
            except ValueError:
                parsed = None
            if isinstance(parsed, dict):
                # Top-level ids (submissionID, formID) live outside rawRequest
                fields = {key: value for key, value in params.items() if key != 'rawRequest'}
                fields.update(flatten_fields(parsed))
                return fields
        return params
