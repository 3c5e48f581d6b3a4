"""
Tests for the ServiceRegistry
"""

import pytest

from services.service_registry import ServiceLifecycle, ServiceRegistry


class TestServiceRegistry:

    @pytest.fixture
    def registry(self):
        return ServiceRegistry()

    def test_dependencies_are_injected_by_name(self, registry):
        registry.register_factory('config', lambda: {'secret': 's'})
        registry.register_factory('client', lambda config: ('client', config), dependencies=['config'])

        assert registry.get('client') == ('client', {'secret': 's'})

    def test_singleton_is_cached_and_transient_is_not(self, registry):
        registry.register_factory('single', object)
        registry.register_factory('many', object, lifecycle=ServiceLifecycle.TRANSIENT)

        assert registry.get('single') is registry.get('single')
        assert registry.get('many') is not registry.get('many')

    def test_reset_service_rebuilds(self, registry):
        registry.register_factory('single', object)
        first = registry.get('single')

        registry.reset_service('single')

        assert registry.get('single') is not first

    def test_unknown_service(self, registry):
        with pytest.raises(ValueError):
            registry.get('missing')

    def test_circular_dependency_detected(self, registry):
        registry.register_factory('a', lambda b: b, dependencies=['b'])
        registry.register_factory('b', lambda a: a, dependencies=['a'])

        with pytest.raises(RuntimeError, match='Circular dependency'):
            registry.get('a')
        with pytest.raises(RuntimeError):
            registry.get_initialization_order()

    def test_validate_dependencies_reports_missing(self, registry):
        registry.register_factory('a', lambda missing: None, dependencies=['missing'])

        assert registry.validate_dependencies() == ["Service 'a' depends on unregistered service 'missing'"]

    def test_initialization_order_puts_dependencies_first(self, registry):
        registry.register_factory('service', lambda repo: None, dependencies=['repo'])
        registry.register_factory('repo', lambda session: None, dependencies=['session'])
        registry.register_factory('session', lambda: None)

        assert registry.get_initialization_order() == ['session', 'repo', 'service']

    def test_names_by_tag(self, registry):
        registry.register_factory('stripe_adapter', object, tags={'webhook_adapter'})
        registry.register_factory('ghl_adapter', object, tags={'webhook_adapter'})
        registry.register_factory('beacon', object)

        assert registry.names_by_tag('webhook_adapter') == ['ghl_adapter', 'stripe_adapter']

    def test_app_registry_is_complete(self, services):
        assert services.validate_dependencies() == []
        assert len(services.names_by_tag('webhook_adapter')) == 9
        assert services.get('webhook_ingestion') is services.get('webhook_ingestion')
