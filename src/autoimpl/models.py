from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

IMPL_SUFFIX = "Impl"
IMPL_FILE_SUFFIX = "_impl.py"
CONTAINER_FILE_NAME = "container.py"


class DeclarationKind(str, Enum):
    """Defines what kind of class declaration was found in the source."""

    INTERFACE = "interface"
    """A ``typing.Protocol`` class."""

    ABSTRACT_CLASS = "abstract_class"
    """An ``abc.ABC`` subclass or a class with abstract methods."""

    CLASS = "class"
    """A concrete class."""

    ENUM = "enum"
    """An ``enum.Enum`` subclass."""

    @property
    def is_contract(self) -> bool:
        return self in (DeclarationKind.INTERFACE, DeclarationKind.ABSTRACT_CLASS)


class InjectionKind(str, Enum):
    """Defines how the container hands a dependency to its owner."""

    CONSTRUCTOR_PARAMETER = "constructor_parameter"
    MARKED_PROPERTY = "marked_property"


class TargetState(str, Enum):
    """Pipeline state of one generation target."""

    DISCOVERED = "discovered"
    PROMPT_BUILT = "prompt_built"
    BACKEND_INVOKED = "backend_invoked"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    POST_PROCESSED = "post_processed"
    PERSISTED = "persisted"
    SKIPPED = "skipped"


class TargetStatus(str, Enum):
    """User-visible outcome of one generation target."""

    GENERATED = "generated"
    SKIPPED = "skipped"
    LOCKED = "locked"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ServiceContract:
    """A declared-but-unimplemented service surface."""

    identifier: str
    declaration_kind: DeclarationKind
    source_location: Path
    member_signatures: tuple[str, ...]
    module: str
    declaration: Any = field(default=None, compare=False, repr=False, hash=False)

    @property
    def impl_name(self) -> str:
        return f"{self.identifier}{IMPL_SUFFIX}"

    @property
    def impl_file_name(self) -> str:
        return impl_file_name(self.identifier)


@dataclass(frozen=True, slots=True)
class DependencyEdge:
    """One injected dependency of an owner service."""

    owner_identifier: str
    dependency_identifier: str
    injection_kind: InjectionKind
    property_name: str | None = None

    @property
    def dedupe_key(self) -> tuple[str, str, str | None]:
        return (self.owner_identifier, self.dependency_identifier, self.property_name)


@dataclass(frozen=True, slots=True)
class PropertyDependency:
    """A marked attribute and the identifier of the type it receives."""

    name: str
    type: str


@dataclass(slots=True)
class ExtractedDependencies:
    """Constructor and property dependencies of one class."""

    constructor_deps: list[str] = field(default_factory=list)
    property_deps: list[PropertyDependency] = field(default_factory=list)
    constructor_params: list[str] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.constructor_deps or self.property_deps)

    def edges(self, owner_identifier: str) -> tuple[DependencyEdge, ...]:
        """Return deduplicated edges, constructor parameters first."""
        edges: list[DependencyEdge] = []
        seen: set[tuple[str, str, str | None]] = set()
        params = self.constructor_params or [None] * len(self.constructor_deps)
        candidates = [
            DependencyEdge(
                owner_identifier=owner_identifier,
                dependency_identifier=dependency,
                injection_kind=InjectionKind.CONSTRUCTOR_PARAMETER,
                property_name=param,
            )
            for dependency, param in zip(self.constructor_deps, params)
        ]
        candidates.extend(
            DependencyEdge(
                owner_identifier=owner_identifier,
                dependency_identifier=dependency.type,
                injection_kind=InjectionKind.MARKED_PROPERTY,
                property_name=dependency.name,
            )
            for dependency in self.property_deps
        )
        for edge in candidates:
            if edge.dedupe_key in seen:
                continue
            seen.add(edge.dedupe_key)
            edges.append(edge)
        return tuple(edges)


@dataclass(frozen=True, slots=True)
class GeneratedArtifact:
    """Generated source implementing one contract."""

    interface_name: str
    impl_name: str
    file_path: Path
    dependencies: tuple[DependencyEdge, ...] = ()

    @property
    def module_name(self) -> str:
        return self.file_path.stem

    @property
    def constructor_dependencies(self) -> tuple[DependencyEdge, ...]:
        return tuple(
            edge
            for edge in self.dependencies
            if edge.injection_kind is InjectionKind.CONSTRUCTOR_PARAMETER
        )

    @property
    def property_dependencies(self) -> tuple[DependencyEdge, ...]:
        return tuple(
            edge
            for edge in self.dependencies
            if edge.injection_kind is InjectionKind.MARKED_PROPERTY
        )


@dataclass(frozen=True, slots=True)
class GenerateOptions:
    """Options of one ``generate`` run."""

    force: bool = False
    files: tuple[str, ...] = ()
    verbose: bool = False
    model: str | None = None
    provider: str | None = None


@dataclass(slots=True)
class FileStats:
    """Outcome of one target."""

    interface_name: str
    status: TargetStatus
    duration: float = 0.0
    error: str | None = None
    state: TargetState = TargetState.DISCOVERED


@dataclass(frozen=True, slots=True)
class GenerationSummary:
    total: int
    generated: int
    skipped: int
    locked: int
    errors: int

    @property
    def success_rate(self) -> float:
        return self.generated / self.total * 100 if self.total else 0.0


@dataclass(slots=True)
class GenerationResult:
    """Result of a generation run."""

    success: bool
    file_stats: list[FileStats]
    total_duration: float
    artifacts: list[GeneratedArtifact] = field(default_factory=list)
    container_path: Path | None = None

    def summary(self) -> GenerationSummary:
        counts = {status: 0 for status in TargetStatus}
        for stats in self.file_stats:
            counts[stats.status] += 1
        return GenerationSummary(
            total=len(self.file_stats),
            generated=counts[TargetStatus.GENERATED],
            skipped=counts[TargetStatus.SKIPPED],
            locked=counts[TargetStatus.LOCKED],
            errors=counts[TargetStatus.ERROR],
        )


def impl_file_name(identifier: str) -> str:
    """Return the artifact file name for an identifier."""
    return f"{identifier.lower()}{IMPL_FILE_SUFFIX}"
