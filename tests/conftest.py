# tests/conftest.py
"""
Shared fixtures for the pytest test suite.

Every test function gets a fresh app on in-memory SQLite with all tables
created, so tests never see each other's rows.
"""

import pytest

from app import create_app
from extensions import db
from tracking_database import Contact, Organization, UrlRule


@pytest.fixture
def app():
    """Flask application on an empty in-memory database."""
    app = create_app(config_name='testing')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    return db.session


@pytest.fixture
def services(app):
    """The app's service registry."""
    return app.services


@pytest.fixture
def organization(db_session):
    org = Organization(name='Acme Funnels')
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture
def other_organization(db_session):
    org = Organization(name='Other Tenant')
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture
def make_contact(db_session):
    """Factory for contacts in a given organization."""
    def _make(organization_id, **kwargs):
        defaults = {'tags': []}
        defaults.update(kwargs)
        contact = Contact(organization_id=organization_id, **defaults)
        db_session.add(contact)
        db_session.commit()
        return contact
    return _make


@pytest.fixture
def make_url_rule(db_session):
    """Factory for URL rules in a given organization."""
    def _make(organization_id, **kwargs):
        defaults = {
            'name': 'Thank you page',
            'match_type': 'contains',
            'pattern': '**/thank-you',
            'event_type': 'OPT_IN',
            'tags': [],
        }
        defaults.update(kwargs)
        rule = UrlRule(organization_id=organization_id, **defaults)
        db_session.add(rule)
        db_session.commit()
        return rule
    return _make


@pytest.fixture
def beacon_payload(organization):
    """Factory for a valid beacon envelope dict."""
    def _make(**overrides):
        payload = {
            'orgKey': organization.public_key,
            'sessionId': 'sess-123',
            'fingerprint': 'fp-abc',
            'type': 'page_view',
            'url': 'https://example.com/landing?utm_source=fb',
            'path': '/landing',
            'referrer': 'https://facebook.com/',
            'utms': {'utm_source': 'fb', 'utm_campaign': 'spring'},
            'ts': 1735732800000,
        }
        payload.update(overrides)
        return payload
    return _make
