from autoimpl.container.registry import Factory, Registry
from autoimpl.container.synthesizer import ContainerEntry, ContainerSynthesizer

__all__ = ["ContainerEntry", "ContainerSynthesizer", "Factory", "Registry"]
