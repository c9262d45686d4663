from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from autoimpl._internal.rendering import compile_template
from autoimpl.models import CONTAINER_FILE_NAME, GeneratedArtifact
from autoimpl.templates import CONTAINER_MODULE_TEMPLATE

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _PropertyAssignment:
    name: str
    identifier: str


@dataclass(frozen=True, slots=True)
class ContainerEntry:
    """Rendering data for one registered service."""

    identifier: str
    impl_name: str
    module_name: str
    factory_name: str
    arguments: tuple[str, ...] = ()
    properties: tuple[_PropertyAssignment, ...] = field(default=())


class ContainerSynthesizer:
    """Render the container module that wires generated implementations."""

    def __init__(self) -> None:
        self._template = compile_template(CONTAINER_MODULE_TEMPLATE)

    def entries(self, artifacts: Iterable[GeneratedArtifact]) -> list[ContainerEntry]:
        """Return one entry per identifier, in first-seen order."""
        entries: dict[str, ContainerEntry] = {}
        factory_names: set[str] = set()
        for artifact in artifacts:
            if artifact.interface_name in entries:
                logger.debug("Skipping duplicate container entry for %s", artifact.interface_name)
                continue
            factory_name = _unique_factory_name(artifact.interface_name, factory_names)
            factory_names.add(factory_name)
            entries[artifact.interface_name] = ContainerEntry(
                identifier=artifact.interface_name,
                impl_name=artifact.impl_name,
                module_name=artifact.module_name,
                factory_name=factory_name,
                arguments=tuple(
                    f'{edge.property_name}=self.get("{edge.dependency_identifier}")'
                    if edge.property_name
                    else f'self.get("{edge.dependency_identifier}")'
                    for edge in artifact.constructor_dependencies
                ),
                properties=tuple(
                    _PropertyAssignment(
                        name=edge.property_name,
                        identifier=edge.dependency_identifier,
                    )
                    for edge in artifact.property_dependencies
                    if edge.property_name is not None
                ),
            )
        return list(entries.values())

    def synthesize(self, artifacts: Iterable[GeneratedArtifact]) -> str:
        """Return the container module source for ``artifacts``."""
        return self._template.render(entries=self.entries(artifacts))

    def write(self, output_dir: Path, artifacts: Iterable[GeneratedArtifact]) -> Path:
        source = self.synthesize(artifacts)
        path = output_dir / CONTAINER_FILE_NAME
        path.write_text(source, encoding="utf-8")
        logger.info("  -> Container written to %s", path)
        return path


def _unique_factory_name(identifier: str, taken: set[str]) -> str:
    base = f"_create_{identifier.lower()}"
    name = base
    counter = 2
    while name in taken:
        name = f"{base}_{counter}"
        counter += 1
    return name
