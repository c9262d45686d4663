from autoimpl.container.registry import Registry
from autoimpl.exceptions import (
    AutoImplError,
    BackendError,
    BackendTimeoutError,
    ConfigurationError,
    ContainerCircularDependencyError,
    ContainerLookupError,
    ContainerRegistrationError,
    LockStateError,
    PostProcessError,
    SymbolResolutionError,
)
from autoimpl.locking import LockRegistry
from autoimpl.markers import AutoGen, AutoGenMarker
from autoimpl.models import (
    DeclarationKind,
    DependencyEdge,
    GeneratedArtifact,
    GenerateOptions,
    GenerationResult,
    InjectionKind,
    ServiceContract,
    TargetState,
    TargetStatus,
)

__all__ = [
    "AutoGen",
    "AutoGenMarker",
    "AutoImplError",
    "BackendError",
    "BackendTimeoutError",
    "ConfigurationError",
    "ContainerCircularDependencyError",
    "ContainerLookupError",
    "ContainerRegistrationError",
    "DeclarationKind",
    "DependencyEdge",
    "GenerateOptions",
    "GeneratedArtifact",
    "GenerationResult",
    "InjectionKind",
    "LockRegistry",
    "LockStateError",
    "PostProcessError",
    "Registry",
    "ServiceContract",
    "SymbolResolutionError",
    "TargetState",
    "TargetStatus",
]
