from __future__ import annotations

import inspect
import logging
import pkgutil
import threading
import typing
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, get_type_hints

from ._errors import (
    CannotAutowireArgument,
    CannotAutowireDependencyArgument,
    CircularDependency,
    ClassCannotBeInstantiated,
    ResolutionError,
    ServiceNotFound,
)
from ._types import ContainerLike, service_id


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ._container import CascadeContainer

    T = TypeVar("T")

    # Parameter name or position -> value, or plain positional values
    Bindings = Mapping[str | int, Any] | Sequence[Any]

_EMPTY = inspect.Parameter.empty


class DependencyResolver(Protocol):
    """Autowiring capability consumed by the container.

    Unlike a plain `resolve(id)` / `construct(cls, bindings)` / `call(func, bindings)`
    interface, every method takes the container that asked for it as an extra first
    argument. A single resolver can then be shared by a whole cascade chain and still
    resolve from the right layer. Custom resolvers must accept it too.
    """

    def resolve(self, container: CascadeContainer, id: str | type) -> Any: ...  # noqa: A002

    def construct(
        self,
        container: CascadeContainer,
        cls: str | type[T],
        bindings: Bindings | None = None,
    ) -> T: ...

    def call(
        self,
        container: CascadeContainer,
        func: Callable[..., T],
        bindings: Bindings | None = None,
    ) -> T: ...


class Autowirer:
    """Build classes and call functions, filling parameters from a container.

    Resolution precedence for every parameter:
    1. explicit binding (by name or position)
    2. container binding for the annotated class, or the container itself
    3. autowiring the annotated class
    4. container binding named like the parameter
    5. default
    6. error.
    """

    def __init__(self) -> None:
        self._local = threading.local()

    def resolve(self, container: CascadeContainer, id: str | type) -> Any:  # noqa: A002
        return self.construct(container, id)

    def construct(
        self,
        container: CascadeContainer,
        cls: str | type[T],
        bindings: Bindings | None = None,
    ) -> T:
        if isinstance(cls, str):
            cls = _locate(cls)
        _check_instantiable(cls)

        stack = self._stack()
        if cls in stack:
            chain = [_name(c) for c in stack[stack.index(cls) :]]
            raise CircularDependency([*chain, _name(cls)])

        stack.append(cls)
        try:
            if cls.__init__ is object.__init__ and cls.__new__ is object.__new__ and not bindings:
                return cls()
            try:
                sig = inspect.signature(cls)
            except ValueError as exc:
                # Builtin classes such as dict expose no signature
                if not bindings:
                    return cls()
                msg = f"Cannot inspect the constructor of {_name(cls)}"
                raise ClassCannotBeInstantiated(msg) from exc
            return self._invoke(container, cls, sig, bindings, _get_type_hints(cls))
        finally:
            stack.pop()

    def call(
        self,
        container: CascadeContainer,
        func: Callable[..., T],
        bindings: Bindings | None = None,
    ) -> T:
        if inspect.isclass(func):
            return self.construct(container, func, bindings)
        return self._invoke(container, func, inspect.signature(func), bindings, _get_type_hints(func))

    def _invoke(
        self,
        container: CascadeContainer,
        target: Callable[..., T],
        sig: inspect.Signature,
        bindings: Bindings | None,
        hints: dict[str, Any],
    ) -> T:
        params = sig.parameters

        named, extra_positional = self._name_bindings(bindings, params)

        kw_overrides, posonly_overrides = self._split_positional_only(named, params)

        bound = self._bind_explicit(sig, kw_overrides, target)

        self._inject_positional_only(bound, posonly_overrides)
        self._inject_extra_positional(bound, params, extra_positional)

        self._fill_missing_arguments(container, target, sig, bound, hints)

        args, kwargs = self._materialize_call(sig, bound)
        return target(*args, **kwargs)

    def _stack(self) -> list[type]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = []
        return stack

    def _name_bindings(
        self,
        bindings: Bindings | None,
        params: Mapping[str, inspect.Parameter],
    ) -> tuple[dict[str, Any], list[Any]]:
        """Turn positional bindings into named ones; positions past the signature are returned apart."""
        if bindings is None:
            return {}, []
        if not isinstance(bindings, Mapping):
            bindings = dict(enumerate(bindings))

        positional = [
            name
            for name, p in params.items()
            if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        ]
        named: dict[str, Any] = {}
        extra: list[Any] = []
        for key, value in bindings.items():
            if isinstance(key, int):
                if key < len(positional):
                    named[positional[key]] = value
                else:
                    extra.append(value)
            else:
                named[key] = value
        return named, extra

    def _split_positional_only(
        self,
        overrides: dict[str, Any],
        params: Mapping[str, inspect.Parameter],
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        pos_only = {name for name, p in params.items() if p.kind is inspect.Parameter.POSITIONAL_ONLY}

        return (
            {k: v for k, v in overrides.items() if k not in pos_only},
            {k: v for k, v in overrides.items() if k in pos_only},
        )

    def _bind_explicit(
        self, sig: inspect.Signature, kw: dict[str, Any], target: Callable[..., Any]
    ) -> inspect.BoundArguments:
        try:
            return sig.bind_partial(**kw)
        except TypeError as e:
            msg = f"Bindings don't match {_name(target)} signature: {e}"
            raise TypeError(msg) from e

    def _inject_positional_only(self, bound: inspect.BoundArguments, posonly_overrides: dict[str, Any]) -> None:
        for name, value in posonly_overrides.items():
            bound.arguments[name] = value

    def _inject_extra_positional(
        self,
        bound: inspect.BoundArguments,
        params: Mapping[str, inspect.Parameter],
        extra: list[Any],
    ) -> None:
        # Without *args, surplus positional values are dropped
        for name, p in params.items():
            if p.kind is p.VAR_POSITIONAL and extra:
                bound.arguments[name] = tuple(extra)
                break

    def _fill_missing_arguments(
        self,
        container: CascadeContainer,
        target: Callable[..., Any],
        sig: inspect.Signature,
        bound: inspect.BoundArguments,
        hints: dict[str, Any],
    ) -> None:
        for name, p in sig.parameters.items():
            if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
                continue

            if name not in bound.arguments:
                bound.arguments[name] = self._resolve_argument(container, target, p, hints)

    def _resolve_argument(
        self,
        container: CascadeContainer,
        target: Callable[..., Any],
        p: inspect.Parameter,
        hints: dict[str, Any],
    ) -> Any:
        name = p.name
        ann = hints.get(name, _EMPTY)
        failure: ResolutionError | None = None

        # 1) type-based
        if ann is not _EMPTY and ann is not Any and inspect.isclass(ann):
            key = service_id(ann)
            if container.has(key):
                return container.get(key)

            if ann is ContainerLike or (
                ann is not object and not _is_protocol(ann) and isinstance(container, ann)
            ):
                return container

            if _is_autowirable(ann):
                try:
                    return container.resolve(ann)
                except CircularDependency:
                    raise
                except ResolutionError as exc:
                    logger.debug("Autowiring %s for '%s' of %s failed: %s", _name(ann), name, _name(target), exc)
                    failure = exc

        # 2) name-based
        if container.has(name):
            return container.get(name)

        # 3) default
        if p.default is not _EMPTY:
            return p.default

        # 4) error
        if failure is not None:
            raise CannotAutowireDependencyArgument(_name(target), name, _name(ann)) from failure
        raise CannotAutowireArgument(_name(target), name)

    def _materialize_call(
        self, sig: inspect.Signature, bound: inspect.BoundArguments
    ) -> tuple[list[Any], dict[str, Any]]:
        params = sig.parameters
        args, kwargs = [], {}

        captured: tuple[Any, ...] = ()
        for name, p in params.items():
            if p.kind is p.VAR_POSITIONAL:
                captured = tuple(bound.arguments.get(name, ()))
                break

        # positional-only, and positional-or-keyword ahead of a non-empty *args
        for name, p in params.items():
            if p.kind is p.POSITIONAL_ONLY or (p.kind is p.POSITIONAL_OR_KEYWORD and captured):
                args.append(bound.arguments[name])

        # *args
        args.extend(captured)

        # keywords
        for name, p in params.items():
            if p.kind is p.KEYWORD_ONLY or (p.kind is p.POSITIONAL_OR_KEYWORD and not captured):
                kwargs[name] = bound.arguments[name]

        # **kwargs
        for name, p in params.items():
            if p.kind is p.VAR_KEYWORD:
                kwargs.update(bound.arguments.get(name, {}))
                break

        return args, kwargs


def _locate(name: str) -> Any:
    try:
        return pkgutil.resolve_name(name)
    except (ImportError, AttributeError, ValueError) as exc:
        raise ServiceNotFound(name) from exc


def _check_instantiable(cls: object) -> None:
    if not inspect.isclass(cls):
        msg = f"{cls!r} is not a class"
        raise ClassCannotBeInstantiated(msg)
    if _is_protocol(cls):
        msg = f"{_name(cls)} is a protocol and cannot be instantiated"
        raise ClassCannotBeInstantiated(msg)
    if inspect.isabstract(cls):
        msg = f"{_name(cls)} is abstract and cannot be instantiated"
        raise ClassCannotBeInstantiated(msg)


def _is_autowirable(cls: type) -> bool:
    if getattr(cls, "__module__", "") == "builtins":
        return False
    return not (_is_protocol(cls) or inspect.isabstract(cls))


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def _is_protocol(tp: object) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def _is_protocol(tp: object) -> bool:
        """Detect whether 'tp' is a typing.Protocol class (not merely an implementation of one)."""
        return inspect.isclass(tp) and bool(getattr(tp, "_is_protocol", False))


def _name(obj: object) -> str:
    return getattr(obj, "__qualname__", None) or repr(obj)


def _get_type_hints(target: Callable[..., Any]) -> dict[str, Any]:
    func = target
    if inspect.isclass(target):
        func = inspect.getattr_static(target, "__init__")
        if func is object.__init__:
            # Arguments go to __new__ (e.g. NamedTuple)
            func = target.__new__
    try:
        return get_type_hints(func)
    except TypeError:
        pass
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s type hints", exc.name, _name(target))

    return _raw_annotations(target)


def _raw_annotations(target: Callable[..., Any]) -> dict[str, Any]:
    """Annotations straight from the signature, skipping the unevaluated (string) ones."""
    try:
        params = inspect.signature(target).parameters
    except (TypeError, ValueError):
        return {}

    return {
        name: p.annotation
        for name, p in params.items()
        if p.annotation is not _EMPTY and not isinstance(p.annotation, str)
    }
