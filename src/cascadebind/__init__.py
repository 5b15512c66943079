"""Cascading dependency injection container.

This package provides a service container mapping string ids (or classes) to
services, with lazily evaluated bindings, factories, aliases, decoration and
layered scopes.

Exports:
- `CascadeContainer`: Main container. Bind instances, deferred resolvers,
  factories and aliases, `extend` them, and `cascade()` isolated child layers
  that inherit from their parent without ever writing into it.
- `Autowirer`: Default `DependencyResolver`, building classes and calling
  functions by inspecting their signatures.
- `NullContainer` / `MappingContainer`: Terminal and read-only parent containers.
- `service_id`: Normalizes a class to its string service id.
"""

from ._container import CascadeContainer, MappingContainer, NullContainer
from ._errors import (
    CannotAutowireArgument,
    CannotAutowireDependencyArgument,
    CircularDependency,
    ClassCannotBeInstantiated,
    ContainerError,
    InvalidAlias,
    ResolutionError,
    ServiceNotFound,
)
from ._resolver import Autowirer, DependencyResolver
from ._types import ContainerLike, service_id


__all__ = [
    "Autowirer",
    "CannotAutowireArgument",
    "CannotAutowireDependencyArgument",
    "CascadeContainer",
    "CircularDependency",
    "ClassCannotBeInstantiated",
    "ContainerError",
    "ContainerLike",
    "DependencyResolver",
    "InvalidAlias",
    "MappingContainer",
    "NullContainer",
    "ResolutionError",
    "ServiceNotFound",
    "service_id",
]
