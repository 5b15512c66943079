from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar, overload

from ._errors import CircularDependency, InvalidAlias, ServiceNotFound
from ._resolver import Autowirer
from ._types import ContainerLike, service_id


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable

    from ._resolver import Bindings, DependencyResolver

    T = TypeVar("T")

    Producer = Callable[..., Any]
    Token = type[T] | str


class NullContainer:
    """Terminal parent of every root container: it knows no services."""

    def has(self, id: str) -> bool:  # noqa: A002, ARG002
        return False

    def get(self, id: str) -> Any:  # noqa: A002
        raise ServiceNotFound(id)


class MappingContainer:
    """Read-only container over a plain mapping of ids to instances."""

    def __init__(self, services: Mapping[Token[Any], object] | None = None) -> None:
        self._services = {service_id(key): value for key, value in (services or {}).items()}

    def has(self, id: Token[Any]) -> bool:  # noqa: A002
        return service_id(id) in self._services

    def get(self, id: Token[Any]) -> Any:  # noqa: A002
        key = service_id(id)
        try:
            return self._services[key]
        except KeyError:
            raise ServiceNotFound(key) from None


@dataclass(frozen=True)
class ParentLookup:
    """Producer standing for the parent container's current value of a service."""

    service_id: str


@dataclass(frozen=True)
class Extension:
    """Producer that applies `transform` to whatever `producer` yields."""

    producer: Producer | ParentLookup | Extension
    transform: Producer


class CascadeContainer:
    """Service container with isolated, layered scopes.

    - bind instances, deferred resolvers (evaluated once), factories (evaluated
      on every lookup) and aliases
    - decorate any binding with `extend`
    - `cascade()` a child layer that sees everything the parent sees, while its
      own bindings stay invisible to the parent.
    """

    def __init__(
        self,
        parent: ContainerLike | Mapping[Token[Any], object] | None = None,
        resolver: DependencyResolver | None = None,
    ) -> None:
        """Create a container.

        `parent` is either the parent container, or a mapping of initial service
        instances for a root container.
        """
        self._instances: dict[str, object] = {}
        self._deferred: dict[str, Producer | Extension] = {}
        self._factories: dict[str, Producer | Extension] = {}
        self._aliases: dict[str, str] = {}
        self._producing: list[str] = []
        self._lock = threading.RLock()

        if isinstance(parent, Mapping):
            for key, instance in parent.items():
                self._instances[service_id(key)] = instance
            parent = None
        elif parent is not None and not isinstance(parent, ContainerLike):
            msg = f"Parent must provide has() and get(), got {type(parent).__name__}"
            raise TypeError(msg)

        self._parent: ContainerLike = parent if parent is not None else NullContainer()
        self._resolver: DependencyResolver = resolver if resolver is not None else Autowirer()

    @property
    def parent(self) -> ContainerLike:
        return self._parent

    @property
    def resolver(self) -> DependencyResolver:
        return self._resolver

    def cascade(self) -> CascadeContainer:
        """Create a nested layer of this container.

        The layer shares the resolver. Anything bound on it does not affect this container.
        """
        logger.debug("Cascading a new layer from %r", self)
        return type(self)(self, self._resolver)

    def has(self, id: Token[Any]) -> bool:  # noqa: A002
        with self._lock:
            key = self._unalias(service_id(id))
            if key in self._instances or key in self._deferred or key in self._factories:
                return True

        return self._parent.has(key)

    @overload
    def get(self, id: type[T]) -> T: ...  # noqa: A002

    @overload
    def get(self, id: str) -> Any: ...  # noqa: A002

    def get(self, id: Token[T]) -> Any:  # noqa: A002
        """Look the service up in this layer, then in the parent chain.

        Precedence: alias, instance, deferred resolver, factory, parent.
        """
        with self._lock:
            key = self._unalias(service_id(id))

            if key in self._instances:
                return self._instances[key]

            if key in self._deferred:
                instance = self._produce(key, self._deferred[key])
                # Promote: later lookups hit the instance and never re-run the resolver
                self._forget(key)
                self._instances[key] = instance
                logger.debug("Promoted deferred service %s", key)
                return instance

            if key in self._factories:
                return self._produce(key, self._factories[key])

        if self._parent.has(key):
            return self._parent.get(key)

        raise ServiceNotFound(key)

    def set(self, id: Token[Any], instance: object) -> None:  # noqa: A002
        """Bind the given instance, replacing any previous binding of the id."""
        key = service_id(id)
        with self._lock:
            self._forget(key)
            self._instances[key] = instance

    def alias(self, id: Token[Any], alias: Token[Any]) -> None:  # noqa: A002
        """Make `alias` resolve to whatever `id` resolves to."""
        target, key = service_id(id), service_id(alias)
        if target == key:
            msg = f"Cannot alias service `{key}` to itself."
            raise InvalidAlias(msg)

        with self._lock:
            hop = target
            while hop in self._aliases:
                hop = self._aliases[hop]
                if hop == key:
                    msg = f"Aliasing `{target}` as `{key}` would create an alias cycle."
                    raise InvalidAlias(msg)

            self._forget(key)
            self._aliases[key] = target

    def factory(self, id: Token[Any], factory: Producer) -> None:  # noqa: A002
        """Bind a factory, invoked on every lookup.

        To remember the first result instead, use `deferred`.
        """
        key = service_id(id)
        _check_callable(factory, key)
        with self._lock:
            self._forget(key)
            self._factories[key] = factory

    def deferred(self, id: Token[Any], resolver: Producer) -> None:  # noqa: A002
        """Bind a deferred resolver (one-time factory).

        It runs on the first lookup only; its result is then kept as a regular instance.
        """
        key = service_id(id)
        _check_callable(resolver, key)
        with self._lock:
            self._forget(key)
            self._deferred[key] = resolver

    def extend(self, id: Token[Any], extension: Producer) -> None:  # noqa: A002
        """Decorate an existing service with `extension`.

        The extension receives the previous value as its first argument, other
        parameters are autowired, and its result replaces the previous value.

        - an instance is extended right away
        - a deferred resolver stays deferred, a factory stays a factory
        - a service only the parent knows becomes a local deferred resolver,
          and the parent is left untouched.
        """
        _check_callable(extension, service_id(id))
        with self._lock:
            key = self._unalias(service_id(id))

            if key in self._instances:
                self._instances[key] = self.call(extension, [self._instances[key]])
            elif key in self._deferred:
                self._deferred[key] = Extension(self._deferred[key], extension)
            elif key in self._factories:
                self._factories[key] = Extension(self._factories[key], extension)
            elif self._parent.has(key):
                self._deferred[key] = Extension(ParentLookup(key), extension)
            else:
                raise ServiceNotFound(key)

        logger.debug("Extended service %s", key)

    @overload
    def resolve(self, id: type[T]) -> T: ...  # noqa: A002

    @overload
    def resolve(self, id: str) -> Any: ...  # noqa: A002

    def resolve(self, id: Token[T]) -> Any:  # noqa: A002
        """Get the service if it is bound, otherwise construct it on the fly.

        Construction recursively autowires constructor parameters from this container.
        """
        with self._lock:
            if self.has(id):
                return self.get(id)

            return self._resolver.resolve(self, id)

    @overload
    def construct(self, cls: type[T], bindings: Bindings | None = None) -> T: ...

    @overload
    def construct(self, cls: str, bindings: Bindings | None = None) -> Any: ...

    def construct(self, cls: Token[T], bindings: Bindings | None = None) -> Any:
        """Build a fresh instance of `cls`, even when the container already has one bound.

        `bindings` maps parameter names or positions to values that take
        precedence over autowiring.
        """
        return self._resolver.construct(self, cls, bindings)

    def call(self, func: Callable[..., T], bindings: Bindings | None = None) -> T:
        """Call `func`, autowiring its parameters from this container."""
        return self._resolver.call(self, func, bindings)

    def _unalias(self, key: str) -> str:
        # alias() refuses cycles, so this terminates
        while key in self._aliases:
            key = self._aliases[key]
        return key

    def _produce(self, key: str, producer: Producer | Extension) -> Any:
        if key in self._producing:
            chain = self._producing[self._producing.index(key) :]
            raise CircularDependency([*chain, key])

        self._producing.append(key)
        try:
            return self._invoke(producer)
        finally:
            self._producing.pop()

    def _invoke(self, producer: Producer | Extension | ParentLookup) -> Any:
        if isinstance(producer, Extension):
            return self.call(producer.transform, [self._invoke(producer.producer)])

        if isinstance(producer, ParentLookup):
            return self._parent.get(producer.service_id)

        return self.call(producer)

    def _forget(self, key: str) -> None:
        """Erase any binding of the given id in this layer."""
        self._aliases.pop(key, None)
        self._instances.pop(key, None)
        self._deferred.pop(key, None)
        self._factories.pop(key, None)


def _check_callable(producer: object, key: str) -> None:
    if not callable(producer):
        msg = f"Producer for `{key}` must be callable, got {type(producer).__name__}"
        raise TypeError(msg)
