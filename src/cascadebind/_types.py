from __future__ import annotations

import inspect
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ContainerLike(Protocol):
    """Anything that can act as a parent container."""

    def has(self, id: str) -> bool: ...  # noqa: A002

    def get(self, id: str) -> Any: ...  # noqa: A002


def service_id(key: Any) -> str:
    """Normalize a service key to its string id.

    Strings are ids already. A class maps to ``"<module>.<qualname>"``, which is
    also the id the autowirer looks up for a parameter annotated with that class.
    """
    if isinstance(key, str):
        return key
    if inspect.isclass(key):
        return f"{key.__module__}.{key.__qualname__}"
    msg = f"Service ids have to be strings or classes, got {type(key).__name__}: {key!r}"
    raise TypeError(msg)
