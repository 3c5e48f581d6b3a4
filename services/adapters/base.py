"""
Source adapter contract

Every external sender is one SourceAdapter: verify() checks the sender's auth
scheme, parse() turns the raw payload into a NormalizedIntent. Adapters hold no
state beyond their configured secret and never touch the database, so the
identity and event core stays ignorant of provider quirks.
"""

import hashlib
import hmac
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import parse_qsl

from services.identity_resolution_service import ContactInfo
from tracking_database import EventSource, EventType, LeadQuality
from utils.identity_utils import sanitize_contact


class PayloadError(Exception):
    """Body could not be parsed or required routing data is missing"""

    def __init__(self, message: str, code: str = 'INVALID_BODY'):
        super().__init__(message)
        self.code = code


class SignatureError(Exception):
    """Sender authentication failed"""

    def __init__(self, message: str, code: str = 'INVALID_SIGNATURE', status_code: int = 400):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class IntentKind(str, Enum):
    IDENTIFY = 'identify'
    PAYMENT = 'payment'
    CANCEL_BOOKING = 'cancel_booking'
    IGNORE = 'ignore'


@dataclass
class WebhookRequest:
    """Transport-neutral view of an incoming webhook delivery"""
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)
    args: Mapping[str, str] = field(default_factory=dict)
    content_type: str = ''
    path_organization_id: Optional[str] = None

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')

    def header(self, name: str, default: str = '') -> str:
        """Case-insensitive header lookup."""
        value = self.headers.get(name)
        if value is None:
            lowered = name.lower()
            for key, candidate in self.headers.items():
                if key.lower() == lowered:
                    value = candidate
                    break
        return value if value is not None else default


@dataclass
class IntentEvent:
    event_type: EventType
    external_id: str
    confidence: int
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentInfo:
    external_id: str
    amount_cents: int
    currency: str
    processor: str
    product_name: Optional[str] = None
    status: str = 'succeeded'


@dataclass
class NormalizedIntent:
    """What one webhook delivery asks the pipeline to do"""
    kind: IntentKind
    organization_id: Optional[str] = None
    contact: ContactInfo = field(default_factory=ContactInfo)
    event: Optional[IntentEvent] = None
    payment: Optional[PaymentInfo] = None
    lead_quality: Optional[LeadQuality] = None
    tags: List[str] = field(default_factory=list)
    skip_reason: Optional[str] = None

    @classmethod
    def ignore(cls, reason: str, organization_id: Optional[str] = None) -> 'NormalizedIntent':
        return cls(kind=IntentKind.IGNORE, organization_id=organization_id, skip_reason=reason)


class SourceAdapter(ABC):
    """Base class for one webhook provider"""

    name: str = ''
    source: EventSource = None
    echo_contact_id = False

    def __init__(self, secret: str = ''):
        self.secret = secret or ''

    def verify(self, request: WebhookRequest) -> None:
        """Raise SignatureError when the delivery is not authentic."""
        return None

    @abstractmethod
    def parse(self, request: WebhookRequest) -> NormalizedIntent:
        """Translate the delivery into a NormalizedIntent or raise PayloadError."""

    # Shared parsing helpers

    @staticmethod
    def json_body(request: WebhookRequest) -> Dict[str, Any]:
        try:
            payload = json.loads(request.body or b'')
        except (ValueError, UnicodeDecodeError):
            raise PayloadError('Invalid JSON')
        if not isinstance(payload, dict):
            raise PayloadError('Invalid JSON')
        return payload

    @staticmethod
    def form_body(request: WebhookRequest) -> Dict[str, str]:
        """Decode an application/x-www-form-urlencoded body (last value wins)."""
        return dict(parse_qsl(request.text, keep_blank_values=True))

    @staticmethod
    def query_organization_id(request: WebhookRequest) -> str:
        organization_id = (request.args.get('orgId') or '').strip()
        if not organization_id:
            raise PayloadError('Missing required query param: orgId', code='MISSING_ORGANIZATION')
        return organization_id

    @staticmethod
    def contact_from(email: Any = None, phone: Any = None,
                     first_name: Any = None, last_name: Any = None) -> ContactInfo:
        """Sanitize untrusted values into a ContactInfo; invalid ones are dropped."""
        cleaned = sanitize_contact({
            'email': email,
            'phone': phone,
            'first_name': first_name,
            'last_name': last_name,
        })
        return ContactInfo(**cleaned)

    def hmac_hex(self, message: bytes) -> str:
        return hmac.new(self.secret.encode('utf-8'), message, hashlib.sha256).hexdigest()

    @staticmethod
    def signatures_match(expected: str, received: str) -> bool:
        return hmac.compare_digest(expected.encode('utf-8'), (received or '').encode('utf-8'))


def first_present(*values: Any) -> Any:
    """First value that is not None (empty strings count as present)."""
    for value in values:
        if value is not None:
            return value
    return None
