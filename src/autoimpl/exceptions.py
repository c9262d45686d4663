from __future__ import annotations

from collections.abc import Sequence


class AutoImplError(Exception):
    """Represent a base class for all autoimpl-specific failures.

    Catch this type when you want to handle any autoimpl error path without
    matching each concrete exception class individually.
    """


class ConfigurationError(AutoImplError):
    """Signal invalid settings or an unusable project layout.

    Raised by ``load_settings`` when a value fails validation and by
    ``GenerationPipeline.run`` when the output directory lies outside the
    source root or the source root cannot be read. This is the only error
    class that aborts a whole generation run.

    Typical fixes include correcting ``autoimpl.config.json`` or the
    ``AUTOIMPL_*`` environment variables.
    """


class SymbolResolutionError(AutoImplError):
    """Signal that a type reference does not name a usable declaration.

    Raised internally by ``DependenciesExtractor`` for a single member. The
    extractor logs it as a diagnostic and skips the member, so it never
    escapes an extraction call.
    """

    def __init__(self, reference: str, owner: str, reason: str) -> None:
        self.reference = reference
        self.owner = owner
        self.reason = reason
        super().__init__(f"Cannot resolve '{reference}' on '{owner}': {reason}")


class BackendError(AutoImplError):
    """Signal a failed call to a code-synthesis backend.

    Raised by backend adapters for transport failures, non-success HTTP
    statuses and malformed responses. The pipeline catches it per target,
    persists a stub implementation and continues with sibling targets.
    """


class BackendTimeoutError(BackendError):
    """Signal that a backend call exceeded the configured timeout.

    Typical fix is raising ``timeout`` in the settings or choosing a faster
    model.
    """


class PostProcessError(AutoImplError):
    """Signal generated source that cannot be repaired into a valid artifact.

    Raised by ``PostProcessor`` when the response does not parse or lacks the
    expected ``<Identifier>Impl`` class. When repair attempts are exhausted the
    pipeline persists the best-effort text and reports the target as an error.
    """

    def __init__(self, identifier: str, errors: Sequence[str]) -> None:
        self.identifier = identifier
        self.errors = list(errors)
        details = "; ".join(self.errors) or "unknown error"
        super().__init__(f"Generated code for '{identifier}' is invalid: {details}")


class LockStateError(AutoImplError):
    """Signal a lock file that cannot be read or does not hold a path list.

    ``LockRegistry`` treats this as an empty lock set and logs a warning;
    locking is advisory.
    """


class ContainerLookupError(AutoImplError):
    """Signal that a container identifier has no registered factory.

    Raised by ``Registry.get`` on first access to an unknown identifier.
    Lookup is case-sensitive.

    Typical fixes include generating the missing contract or correcting the
    identifier casing.
    """

    def __init__(self, identifier: str, available: Sequence[str] = ()) -> None:
        self.identifier = identifier
        self.available = list(available)
        message = f"Service not found for identifier: '{identifier}'"
        if self.available:
            message += f" (registered: {', '.join(self.available)})"
        super().__init__(message)


class ContainerCircularDependencyError(AutoImplError):
    """Signal a dependency cycle discovered during lazy construction.

    Raised by ``Registry.get`` when a factory asks, directly or transitively,
    for an identifier that is still being constructed.
    """

    def __init__(self, identifier: str, chain: Sequence[str]) -> None:
        self.identifier = identifier
        self.chain = [*chain, identifier]
        requester = chain[-1] if chain else identifier
        super().__init__(
            f"Circular dependency between '{requester}' and '{identifier}': "
            f"{' -> '.join(self.chain)}",
        )


class ContainerRegistrationError(AutoImplError):
    """Signal a second registration for an identifier already in the registry.

    Pass ``replace=True`` to ``Registry.register`` to overwrite on purpose.
    """

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"Identifier '{identifier}' is already registered")
