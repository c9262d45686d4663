from autoimpl.backends.cloudflare import CloudflareBackend
from autoimpl.backends.ollama import OllamaBackend
from autoimpl.backends.protocol import SynthesisBackend
from autoimpl.backends.registry import BackendRegistry, ProviderConfig

__all__ = [
    "BackendRegistry",
    "CloudflareBackend",
    "OllamaBackend",
    "ProviderConfig",
    "SynthesisBackend",
]
