# tracking_database.py

import secrets
import uuid
from enum import Enum

from extensions import db
from utils.datetime_utils import utc_now


def _new_id() -> str:
    return str(uuid.uuid4())


def _new_public_key() -> str:
    return secrets.token_urlsafe(16)


# --- Enumerations ---

class IdentityType(str, Enum):
    """Kinds of identity signal that can point at a contact"""
    EMAIL = 'EMAIL'
    PHONE = 'PHONE'
    FINGERPRINT = 'FINGERPRINT'


class EventType(str, Enum):
    """Funnel actions recorded against a contact or session"""
    FORM_SUBMIT = 'FORM_SUBMIT'
    OPT_IN = 'OPT_IN'
    PURCHASE = 'PURCHASE'
    BOOKING = 'BOOKING'
    BOOKING_CONFIRMED = 'BOOKING_CONFIRMED'
    APPLICATION_SUBMIT = 'APPLICATION_SUBMIT'
    WEBINAR_REGISTER = 'WEBINAR_REGISTER'
    WEBINAR_ATTEND = 'WEBINAR_ATTEND'
    WEBINAR_CTA_CLICK = 'WEBINAR_CTA_CLICK'
    CUSTOM = 'CUSTOM'


class EventSource(str, Enum):
    """Which ingestion entry point produced an event"""
    PIXEL = 'PIXEL'
    GHL_WEBHOOK = 'GHL_WEBHOOK'
    STRIPE_WEBHOOK = 'STRIPE_WEBHOOK'
    CALENDLY_WEBHOOK = 'CALENDLY_WEBHOOK'
    TYPEFORM_WEBHOOK = 'TYPEFORM_WEBHOOK'
    JOTFORM_WEBHOOK = 'JOTFORM_WEBHOOK'
    SCHEDULEONCE_WEBHOOK = 'SCHEDULEONCE_WEBHOOK'
    WHOP_WEBHOOK = 'WHOP_WEBHOOK'
    ZAPIER_WEBHOOK = 'ZAPIER_WEBHOOK'
    CLICKFUNNELS_WEBHOOK = 'CLICKFUNNELS_WEBHOOK'


class LeadQuality(str, Enum):
    HIGH = 'HIGH'
    MEDIUM = 'MEDIUM'
    LOW = 'LOW'


# --- Tenant ---

class Organization(db.Model):
    """Tenant boundary. public_key is embedded in the pixel, id is private."""
    __tablename__ = 'organizations'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(200), nullable=False)
    public_key = db.Column(db.String(64), unique=True, nullable=False, default=_new_public_key)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    contacts = db.relationship('Contact', backref='organization', lazy=True, cascade="all, delete-orphan")
    sessions = db.relationship('VisitorSession', backref='organization', lazy=True, cascade="all, delete-orphan")
    events = db.relationship('Event', backref='organization', lazy=True, cascade="all, delete-orphan")
    url_rules = db.relationship('UrlRule', backref='organization', lazy=True, cascade="all, delete-orphan")

    def __repr__(self):
        return f'<Organization {self.id}: {self.name}>'


# --- Identity ---

class Contact(db.Model):
    """A resolved real person within one organization"""
    __tablename__ = 'contacts'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    organization_id = db.Column(db.String(36), db.ForeignKey('organizations.id', ondelete='CASCADE'),
                                nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True, index=True)
    phone = db.Column(db.String(50), nullable=True)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)  # append-only, duplicates tolerated
    lead_quality = db.Column(db.String(10), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=utc_now)

    signals = db.relationship('IdentitySignal', backref='contact', lazy=True, cascade="all, delete-orphan")

    def __repr__(self):
        return f'<Contact {self.id}: {self.email or self.phone or "anonymous"}>'

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'email': self.email,
            'phone': self.phone,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'tags': list(self.tags or []),
            'lead_quality': self.lead_quality,
        }


class IdentitySignal(db.Model):
    """One hashed (or fingerprint) fact linking an identifier to a contact"""
    __tablename__ = 'identity_signals'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    organization_id = db.Column(db.String(36), db.ForeignKey('organizations.id', ondelete='CASCADE'),
                                nullable=False)
    contact_id = db.Column(db.String(36), db.ForeignKey('contacts.id', ondelete='CASCADE'), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    value = db.Column(db.String(255), nullable=False)
    raw_value = db.Column(db.String(255), nullable=True)
    confidence = db.Column(db.Integer, nullable=False)
    first_seen = db.Column(db.DateTime, nullable=False, default=utc_now)
    last_seen = db.Column(db.DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        db.UniqueConstraint('contact_id', 'type', 'value', name='uq_signal_contact_type_value'),
        db.UniqueConstraint('organization_id', 'type', 'value', name='uq_signal_org_type_value'),
    )

    def __repr__(self):
        return f'<IdentitySignal {self.type} -> {self.contact_id} ({self.confidence})>'


# --- Sessions & page views ---

class VisitorSession(db.Model):
    """One anonymous-to-identified browsing session keyed by the client token"""
    __tablename__ = 'visitor_sessions'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    organization_id = db.Column(db.String(36), db.ForeignKey('organizations.id', ondelete='CASCADE'),
                                nullable=False)
    session_key = db.Column(db.String(128), nullable=False)
    contact_id = db.Column(db.String(36), db.ForeignKey('contacts.id', ondelete='SET NULL'),
                           nullable=True, index=True)
    fingerprint = db.Column(db.String(128), nullable=True, index=True)
    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    # First-touch attribution, written once at creation
    landing_page = db.Column(db.Text, nullable=True)
    referrer = db.Column(db.Text, nullable=True)
    utm_source = db.Column(db.String(255), nullable=True)
    utm_medium = db.Column(db.String(255), nullable=True)
    utm_campaign = db.Column(db.String(255), nullable=True)
    utm_content = db.Column(db.String(255), nullable=True)
    utm_term = db.Column(db.String(255), nullable=True)
    ad_clicks = db.Column(db.JSON, nullable=True)

    first_seen = db.Column(db.DateTime, nullable=False, default=utc_now)
    last_seen = db.Column(db.DateTime, nullable=False, default=utc_now)
    visit_count = db.Column(db.Integer, nullable=False, default=1)

    contact = db.relationship('Contact', backref='sessions')

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'session_key', name='uq_session_org_key'),
    )

    def __repr__(self):
        return f'<VisitorSession {self.session_key} visits={self.visit_count}>'


class PageView(db.Model):
    __tablename__ = 'page_views'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    session_id = db.Column(db.String(36), db.ForeignKey('visitor_sessions.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    contact_id = db.Column(db.String(36), db.ForeignKey('contacts.id', ondelete='SET NULL'), nullable=True)
    url = db.Column(db.Text, nullable=False)
    path = db.Column(db.Text, nullable=False)
    title = db.Column(db.String(500), nullable=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=utc_now)


# --- Events & payments ---

class Event(db.Model):
    """One deduplicated occurrence of a funnel action"""
    __tablename__ = 'events'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    organization_id = db.Column(db.String(36), db.ForeignKey('organizations.id', ondelete='CASCADE'),
                                nullable=False)
    contact_id = db.Column(db.String(36), db.ForeignKey('contacts.id', ondelete='SET NULL'),
                           nullable=True, index=True)
    session_id = db.Column(db.String(36), db.ForeignKey('visitor_sessions.id', ondelete='SET NULL'),
                           nullable=True)
    type = db.Column(db.String(40), nullable=False)
    source = db.Column(db.String(40), nullable=False)
    confidence = db.Column(db.Integer, nullable=False)
    external_id = db.Column(db.String(255), nullable=False)
    variant_id = db.Column(db.String(64), nullable=True)
    payload = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=utc_now)

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'external_id', name='uq_event_org_external_id'),
        db.Index('idx_event_org_type_created', 'organization_id', 'type', 'created_at'),
    )

    def __repr__(self):
        return f'<Event {self.type} {self.external_id}>'


class Payment(db.Model):
    __tablename__ = 'payments'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    organization_id = db.Column(db.String(36), db.ForeignKey('organizations.id', ondelete='CASCADE'),
                                nullable=False)
    contact_id = db.Column(db.String(36), db.ForeignKey('contacts.id', ondelete='SET NULL'), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(10), nullable=False, default='usd')
    processor = db.Column(db.String(30), nullable=False)
    external_id = db.Column(db.String(255), unique=True, nullable=False)
    product_name = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(30), nullable=False, default='succeeded')
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=utc_now)


# --- Configuration read by the pipeline ---

class UrlRule(db.Model):
    """Operator-declared pattern that synthesizes an event from a page view"""
    __tablename__ = 'url_rules'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    organization_id = db.Column(db.String(36), db.ForeignKey('organizations.id', ondelete='CASCADE'),
                                nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    match_type = db.Column(db.String(10), nullable=False, default='contains')  # 'contains' (glob) or 'exact'
    pattern = db.Column(db.Text, nullable=False)
    exclude_pattern = db.Column(db.Text, nullable=True)
    ignore_case = db.Column(db.Boolean, nullable=False, default=True)
    ignore_query = db.Column(db.Boolean, nullable=False, default=True)
    event_type = db.Column(db.String(40), nullable=False)
    tags = db.Column(db.JSON, nullable=False, default=list)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'match_type': self.match_type,
            'pattern': self.pattern,
            'exclude_pattern': self.exclude_pattern,
            'ignore_case': self.ignore_case,
            'ignore_query': self.ignore_query,
            'event_type': self.event_type,
            'tags': list(self.tags or []),
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Alert(db.Model):
    __tablename__ = 'alerts'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    organization_id = db.Column(db.String(36), db.ForeignKey('organizations.id', ondelete='CASCADE'),
                                nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_event_at = db.Column(db.DateTime, nullable=True)


class ExperimentAssignment(db.Model):
    """Split-test variant a session was bucketed into"""
    __tablename__ = 'experiment_assignments'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    organization_id = db.Column(db.String(36), db.ForeignKey('organizations.id', ondelete='CASCADE'),
                                nullable=False)
    session_key = db.Column(db.String(128), nullable=False, index=True)
    experiment_id = db.Column(db.String(64), nullable=False)
    variant_id = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
