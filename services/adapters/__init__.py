"""
Source adapters, one per webhook provider
"""

from .base import (
    IntentEvent,
    IntentKind,
    NormalizedIntent,
    PayloadError,
    PaymentInfo,
    SignatureError,
    SourceAdapter,
    WebhookRequest,
)
from .calendly_adapter import CalendlyAdapter
from .clickfunnels_adapter import ClickFunnelsAdapter
from .ghl_adapter import GhlAdapter
from .jotform_adapter import JotformAdapter
from .scheduleonce_adapter import ScheduleOnceAdapter
from .stripe_adapter import StripeAdapter
from .typeform_adapter import TypeformAdapter
from .whop_adapter import WhopAdapter
from .zapier_adapter import ZapierAdapter

__all__ = [
    'IntentEvent',
    'IntentKind',
    'NormalizedIntent',
    'PayloadError',
    'PaymentInfo',
    'SignatureError',
    'SourceAdapter',
    'WebhookRequest',
    'CalendlyAdapter',
    'ClickFunnelsAdapter',
    'GhlAdapter',
    'JotformAdapter',
    'ScheduleOnceAdapter',
    'StripeAdapter',
    'TypeformAdapter',
    'WhopAdapter',
    'ZapierAdapter',
]
