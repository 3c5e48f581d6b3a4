"""
BaseRepository Tests - generic CRUD and conflict-ignoring inserts on SQLite
"""

import pytest
from unittest.mock import Mock

from repositories.base_repository import BaseRepository, SortOrder
from tracking_database import Organization, UrlRule


class TestBaseRepository:
    """Test BaseRepository functionality against a real session"""

    @pytest.fixture
    def repository(self, db_session):
        return BaseRepository(db_session, UrlRule)

    def test_create_flushes_and_assigns_id(self, repository, organization):
        # Act
        rule = repository.create(organization_id=organization.id, name='r', pattern='/x', event_type='OPT_IN', tags=[])

        # Assert
        assert rule.id is not None
        assert repository.get_by_id(rule.id) is rule

    def test_find_by_orders_results(self, repository, organization):
        repository.create(organization_id=organization.id, name='b', pattern='/b', event_type='OPT_IN', tags=[])
        repository.create(organization_id=organization.id, name='a', pattern='/a', event_type='OPT_IN', tags=[])

        ascending = repository.find_by(order_by='name', organization_id=organization.id)
        descending = repository.find_by(order_by='name', order=SortOrder.DESC, organization_id=organization.id)

        assert [r.name for r in ascending] == ['a', 'b']
        assert [r.name for r in descending] == ['b', 'a']

    def test_find_by_handles_none_and_lists(self, repository, organization):
        repository.create(organization_id=organization.id, name='a', pattern='/a', event_type='OPT_IN',
                          tags=[], exclude_pattern=None)
        repository.create(organization_id=organization.id, name='b', pattern='/b', event_type='PURCHASE',
                          tags=[], exclude_pattern='/b/x')

        assert [r.name for r in repository.find_by(exclude_pattern=None)] == ['a']
        assert repository.count(event_type=['OPT_IN', 'PURCHASE']) == 2

    def test_update_many_returns_count(self, repository, organization):
        repository.create(organization_id=organization.id, name='a', pattern='/a', event_type='OPT_IN', tags=[])
        repository.create(organization_id=organization.id, name='b', pattern='/b', event_type='OPT_IN', tags=[])

        count = repository.update_many({'organization_id': organization.id}, {'is_active': False})

        assert count == 2

    def test_insert_ignoring_conflict_reports_duplicates(self, db_session):
        # Arrange
        repository = BaseRepository(db_session, Organization)
        values = {'id': 'org-fixed', 'name': 'One', 'public_key': 'pk-fixed'}

        # Act
        first = repository.insert_ignoring_conflict(dict(values), conflict_columns=('public_key',))
        second = repository.insert_ignoring_conflict(dict(values, id='org-other'), conflict_columns=('public_key',))

        # Assert
        assert first is True
        assert second is False
        assert repository.count(public_key='pk-fixed') == 1

    def test_unsupported_dialect_raises(self):
        # Arrange
        session = Mock()
        session.get_bind.return_value.dialect.name = 'mysql'
        repository = BaseRepository(session, Organization)

        # Act & Assert
        with pytest.raises(NotImplementedError):
            repository.insert_ignoring_conflict({'name': 'x'}, conflict_columns=('public_key',))
