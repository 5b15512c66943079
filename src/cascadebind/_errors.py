from __future__ import annotations


class ContainerError(Exception):
    """Base class for every error raised by cascadebind."""


class ServiceNotFound(ContainerError, LookupError):  # noqa: N818
    """No binding resolves the requested id in the container or its parents."""

    def __init__(self, service_id: str) -> None:
        super().__init__(f"Service `{service_id}` is not defined in the container.")
        self.service_id = service_id


class InvalidAlias(ContainerError, ValueError):  # noqa: N818
    pass


class ResolutionError(ContainerError):
    """Autowiring failed. Raised by the resolver, propagated by the container."""


class CannotAutowireArgument(ResolutionError):  # noqa: N818
    def __init__(self, func_name: str, argument: str) -> None:
        super().__init__(
            f"Cannot autowire argument '{argument}' of {func_name}. "
            "No explicit binding, container binding or default value found."
        )
        self.argument = argument


class CannotAutowireDependencyArgument(CannotAutowireArgument):
    """The argument has a class annotation, but that class could not be built either."""

    def __init__(self, func_name: str, argument: str, dependency: str) -> None:
        ResolutionError.__init__(
            self,
            f"Cannot autowire argument '{argument}' of {func_name}: "
            f"dependency {dependency} could not be resolved.",
        )
        self.argument = argument
        self.dependency = dependency


class ClassCannotBeInstantiated(ResolutionError):  # noqa: N818
    pass


class CircularDependency(ResolutionError):  # noqa: N818
    def __init__(self, chain: list[str]) -> None:
        super().__init__(f"Circular dependency detected: {' -> '.join(chain)}")
        self.chain = chain
