"""
Service Registry
Lazy factory registration with dependency resolution for repositories,
ingestion services and webhook adapters
"""
from typing import Dict, Any, Callable, Optional, Set, List
from enum import Enum
import threading
import logging

logger = logging.getLogger(__name__)


class ServiceLifecycle(Enum):
    """Service lifecycle management options"""
    SINGLETON = "singleton"  # One instance per application
    TRANSIENT = "transient"  # New instance per lookup


class ServiceDescriptor:
    """Describes a service registration"""

    def __init__(
        self,
        name: str,
        factory: Callable,
        lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON,
        dependencies: Optional[List[str]] = None,
        tags: Optional[Set[str]] = None
    ):
        self.name = name
        self.factory = factory
        self.instance = None
        self.lifecycle = lifecycle
        self.dependencies = dependencies or []
        self.tags = tags or set()
        self.lock = threading.Lock()


class ServiceRegistry:
    """
    Registry of lazily created services.

    Dependencies are resolved by name and passed to the factory as keyword
    arguments. Cycles are reported with the full chain.
    """

    def __init__(self):
        self._descriptors: Dict[str, ServiceDescriptor] = {}
        self._thread_local = threading.local()
        self._lock = threading.Lock()

    def register_factory(
        self,
        name: str,
        factory: Callable,
        lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON,
        dependencies: Optional[List[str]] = None,
        tags: Optional[Set[str]] = None
    ) -> None:
        """
        Register a factory function for lazy service instantiation.

        Args:
            name: Service identifier
            factory: Callable that returns a service instance
            lifecycle: Service lifecycle type
            dependencies: Services this factory depends on
            tags: Optional tags for grouping (e.g. 'webhook_adapter')
        """
        descriptor = ServiceDescriptor(name, factory, lifecycle, dependencies, tags)
        with self._lock:
            self._descriptors[name] = descriptor

    def get(self, name: str) -> Any:
        """
        Get a service by name, creating it and its dependencies on first use.

        Raises:
            ValueError: If service is not registered
            RuntimeError: If circular dependency detected
        """
        if name not in self._descriptors:
            raise ValueError(f"Service '{name}' is not registered")

        descriptor = self._descriptors[name]
        stack = self._initialization_stack()
        if name in stack:
            cycle = " -> ".join(stack + [name])
            raise RuntimeError(f"Circular dependency detected: {cycle}")

        if descriptor.lifecycle == ServiceLifecycle.TRANSIENT:
            return self._create_instance(descriptor)

        if descriptor.instance is not None:
            return descriptor.instance
        with descriptor.lock:
            if descriptor.instance is None:
                descriptor.instance = self._create_instance(descriptor)
            return descriptor.instance

    def has(self, name: str) -> bool:
        return name in self._descriptors

    def names_by_tag(self, tag: str) -> List[str]:
        """Registered names carrying a tag, without instantiating them."""
        return sorted(name for name, descriptor in self._descriptors.items() if tag in descriptor.tags)

    def reset_service(self, name: str) -> None:
        """Drop a cached singleton so the next get() rebuilds it"""
        descriptor = self._descriptors.get(name)
        if descriptor is not None:
            with descriptor.lock:
                descriptor.instance = None

    def validate_dependencies(self) -> List[str]:
        """
        Validate all service dependencies are registered.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        for name, descriptor in self._descriptors.items():
            for dep in descriptor.dependencies:
                if dep not in self._descriptors:
                    errors.append(f"Service '{name}' depends on unregistered service '{dep}'")
        return errors

    def get_initialization_order(self) -> List[str]:
        """
        Topological order of all registered services.

        Raises:
            RuntimeError: If circular dependency exists
        """
        visited: Set[str] = set()
        order: List[str] = []

        def visit(node: str, path: List[str]):
            if node in path:
                raise RuntimeError(f"Circular dependency detected: {' -> '.join(path + [node])}")
            if node in visited:
                return
            descriptor = self._descriptors.get(node)
            for dep in descriptor.dependencies if descriptor else []:
                visit(dep, path + [node])
            visited.add(node)
            order.append(node)

        for name in self._descriptors:
            visit(name, [])
        return order

    def _initialization_stack(self) -> List[str]:
        if not hasattr(self._thread_local, 'initialization_stack'):
            self._thread_local.initialization_stack = []
        return self._thread_local.initialization_stack

    def _create_instance(self, descriptor: ServiceDescriptor) -> Any:
        stack = self._initialization_stack()
        stack.append(descriptor.name)
        try:
            deps = {dep: self.get(dep) for dep in descriptor.dependencies}
            instance = descriptor.factory(**deps)
            logger.debug(f"Created service instance: {descriptor.name}")
            return instance
        finally:
            stack.pop()
