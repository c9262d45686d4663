from autoimpl.generation.discovery import discover_targets
from autoimpl.generation.pipeline import GenerationPipeline
from autoimpl.generation.postprocess import PostProcessor, strip_code_fences
from autoimpl.generation.prompts import PromptBuilder
from autoimpl.generation.statistics import format_statistics, log_statistics
from autoimpl.generation.stubs import render_stub

__all__ = [
    "GenerationPipeline",
    "PostProcessor",
    "PromptBuilder",
    "discover_targets",
    "format_statistics",
    "log_statistics",
    "render_stub",
    "strip_code_fences",
]
