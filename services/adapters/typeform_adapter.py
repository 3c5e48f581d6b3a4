"""Typeform: form responses become OPT_IN or APPLICATION_SUBMIT (?orgId=...)."""

import base64
import hashlib
import hmac
import re
from typing import Any, Dict, List, Optional

from services.adapters.base import (
    IntentEvent, IntentKind, NormalizedIntent, SignatureError,
    SourceAdapter, WebhookRequest,
)
from tracking_database import EventSource, EventType, LeadQuality
from utils.identity_utils import deterministic_id, split_full_name

APPLICATION_ANSWER_THRESHOLD = 5
QUALIFYING_REFS = ('income', 'invest', 'budget', 'revenue')
LOW_QUALITY_PATTERN = re.compile(r"\b(no|0|broke|can't)\b")
HIGH_QUALITY_MARKERS = ('10k', '50k', '100k', 'yes')


def extract_lead_quality(answers: List[Dict[str, Any]]) -> Optional[LeadQuality]:
    """
    Classify the first income/investment/budget/revenue answer.

    Negative answers ('no', '0', 'broke', "can't") are LOW, clear capacity
    ('10k', '50k', '100k', 'yes') is HIGH, anything else MEDIUM. No qualifying
    question means no classification.
    """
    for answer in answers:
        ref = ((answer.get('field') or {}).get('ref') or '').lower()
        if not any(marker in ref for marker in QUALIFYING_REFS):
            continue

        choice = (answer.get('choice') or {}).get('label') or ''
        text = answer.get('text') or ''
        combined = f'{choice} {text}'.lower()

        if LOW_QUALITY_PATTERN.search(combined):
            return LeadQuality.LOW
        if any(marker in combined for marker in HIGH_QUALITY_MARKERS):
            return LeadQuality.HIGH
        return LeadQuality.MEDIUM
    return None


def extract_contact_fields(answers: List[Dict[str, Any]]) -> Dict[str, Optional[str]]:
    fields: Dict[str, Optional[str]] = {'email': None, 'phone': None, 'first_name': None, 'last_name': None}

    for answer in answers:
        answer_type = answer.get('type')
        ref = ((answer.get('field') or {}).get('ref') or '').lower()

        if answer_type == 'email':
            fields['email'] = answer.get('email')
        elif answer_type == 'phone_number':
            fields['phone'] = answer.get('phone_number')
        elif answer_type in ('text', 'short_text'):
            text = answer.get('text') or ''
            if 'first' in ref or 'fname' in ref:
                fields['first_name'] = text
            elif 'last' in ref or 'lname' in ref:
                fields['last_name'] = text
            elif 'name' in ref and not fields['first_name']:
                fields['first_name'], fields['last_name'] = split_full_name(text)

    return fields


class TypeformAdapter(SourceAdapter):
    name = 'typeform'
    source = EventSource.TYPEFORM_WEBHOOK

    def verify(self, request: WebhookRequest) -> None:
        signature = request.header('typeform-signature')
        if not (self.secret and signature):
            return
        digest = hmac.new(self.secret.encode('utf-8'), request.body, hashlib.sha256).digest()
        expected = 'sha256=' + base64.b64encode(digest).decode('ascii')
        if not self.signatures_match(expected, signature):
            raise SignatureError('Invalid signature')

    def parse(self, request: WebhookRequest) -> NormalizedIntent:
        payload = self.json_body(request)
        organization_id = self.query_organization_id(request)

        form_response = payload.get('form_response')
        if not isinstance(form_response, dict):
            return NormalizedIntent.ignore('no form_response', organization_id)

        answers = [a for a in (form_response.get('answers') or []) if isinstance(a, dict)]
        contact = self.contact_from(**extract_contact_fields(answers))
        if not contact.has_identifier:
            return NormalizedIntent.ignore('no email or phone', organization_id)

        lead_quality = extract_lead_quality(answers)
        token = form_response.get('token')
        event_type = EventType.APPLICATION_SUBMIT if len(answers) > APPLICATION_ANSWER_THRESHOLD else EventType.OPT_IN

        return NormalizedIntent(
            kind=IntentKind.IDENTIFY,
            organization_id=organization_id,
            contact=contact,
            lead_quality=lead_quality,
            event=IntentEvent(
                event_type=event_type,
                external_id=f'typeform-{token}' if token
                else deterministic_id('typeform', contact.email, organization_id),
                confidence=90,
                payload={
                    'email': contact.email,
                    'phone': contact.phone,
                    'formId': form_response.get('form_id'),
                    'submittedAt': form_response.get('submitted_at'),
                    'leadQuality': lead_quality.value if lead_quality else None,
                },
            ),
        )
