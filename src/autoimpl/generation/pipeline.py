from __future__ import annotations

import asyncio
import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path

from autoimpl._internal.annotations import dotted_name, last_segment
from autoimpl._internal.ast_project import AstProject
from autoimpl._internal.declarations import Declaration
from autoimpl.backends.protocol import SynthesisBackend
from autoimpl.config import AutoImplSettings
from autoimpl.container.synthesizer import ContainerSynthesizer
from autoimpl.dependencies import DependenciesExtractor
from autoimpl.exceptions import BackendError, ConfigurationError, PostProcessError
from autoimpl.generation.discovery import discover_targets
from autoimpl.generation.postprocess import PostProcessor, strip_code_fences
from autoimpl.generation.prompts import PromptBuilder
from autoimpl.generation.stubs import render_stub
from autoimpl.inspection import SourceInspector
from autoimpl.locking import LockRegistry
from autoimpl.models import (
    IMPL_FILE_SUFFIX,
    IMPL_SUFFIX,
    FileStats,
    GeneratedArtifact,
    GenerateOptions,
    GenerationResult,
    ServiceContract,
    TargetState,
    TargetStatus,
)
from autoimpl.symbols import SymbolResolver

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _RunContext:
    options: GenerateOptions
    output_dir: Path
    locked: frozenset[Path]
    model: str
    semaphore: asyncio.Semaphore
    write_lock: asyncio.Lock
    file_owners: dict[str, str] = field(default_factory=dict)
    written: set[Path] = field(default_factory=set)


class GenerationPipeline:
    """Discover contracts, synthesize implementations and write the container.

    One run moves every target through ``DISCOVERED -> PROMPT_BUILT ->
    BACKEND_INVOKED -> SUCCEEDED | FAILED -> POST_PROCESSED -> PERSISTED``,
    or straight to ``SKIPPED``. A failing target never stops its siblings.
    """

    def __init__(
        self,
        settings: AutoImplSettings,
        backend: SynthesisBackend,
        *,
        inspector: SourceInspector | None = None,
        lock_registry: LockRegistry | None = None,
        model: str | None = None,
    ) -> None:
        self._settings = settings
        self._backend = backend
        self._inspector = inspector
        self._lock_registry = lock_registry or LockRegistry(settings.lock_file)
        self._model = model
        self._synthesizer = ContainerSynthesizer()

    async def run(self, options: GenerateOptions | None = None) -> GenerationResult:
        """Run one generation pass and return per-target statistics.

        Raises ``ConfigurationError`` when the source root is unusable or the
        output directory lies outside it.
        """
        options = options or GenerateOptions()
        started = time.perf_counter()
        source_root, output_dir = self._resolve_directories()

        locked = self._lock_registry.locked_files()
        self._prepare_output_dir(output_dir, options, locked)

        inspector = self._inspector or AstProject(source_root)
        extractor = DependenciesExtractor(inspector)
        builder = PromptBuilder(SymbolResolver(inspector))
        post_processor = PostProcessor(inspector)

        targets = discover_targets(inspector, exclude=output_dir, files=options.files)
        if not targets:
            logger.warning("No AutoGen-marked attributes found under %s", source_root)
        else:
            logger.info("Found %d service(s) to generate.", len(targets))

        context = _RunContext(
            options=options,
            output_dir=output_dir,
            locked=locked,
            model=options.model or self._model or self._settings.default_model,
            semaphore=asyncio.Semaphore(self._settings.max_concurrency),
            write_lock=asyncio.Lock(),
        )
        for contract in targets:
            context.file_owners.setdefault(contract.impl_file_name, contract.identifier)
        worker = _TargetWorker(
            context,
            backend=self._backend,
            inspector=inspector,
            extractor=extractor,
            builder=builder,
            post_processor=post_processor,
            settings=self._settings,
        )
        outcomes = await asyncio.gather(*(worker.generate(contract) for contract in targets))

        file_stats = [stats for stats, _ in outcomes]
        artifacts = [artifact for _, artifact in outcomes if artifact is not None]
        artifacts.extend(
            _existing_artifacts(inspector, extractor, output_dir, artifacts, context.written),
        )
        container_path = self._synthesizer.write(output_dir, artifacts)

        result = GenerationResult(
            success=all(stats.status is not TargetStatus.ERROR for stats in file_stats),
            file_stats=file_stats,
            total_duration=time.perf_counter() - started,
            artifacts=artifacts,
            container_path=container_path,
        )
        logger.info("Generation complete: %d service(s) in container.", len(artifacts))
        return result

    def _resolve_directories(self) -> tuple[Path, Path]:
        source_root = self._settings.source_root.resolve()
        output_dir = self._settings.output_dir.resolve()
        if not source_root.is_dir():
            msg = f"Source root does not exist or is not a directory: {source_root}"
            raise ConfigurationError(msg)
        if not output_dir.is_relative_to(source_root):
            msg = f"Output directory {output_dir} must be inside the source root {source_root}"
            raise ConfigurationError(msg)
        return source_root, output_dir

    def _prepare_output_dir(
        self,
        output_dir: Path,
        options: GenerateOptions,
        locked: frozenset[Path],
    ) -> None:
        if options.force and not options.files and output_dir.exists():
            logger.info("  -> FORCE: Cleaning output directory %s", output_dir)
            for entry in sorted(output_dir.iterdir()):
                if entry.resolve() in locked:
                    logger.info("  -> Keeping locked file %s", entry)
                elif entry.is_dir():
                    if not any(path.is_relative_to(entry.resolve()) for path in locked):
                        shutil.rmtree(entry)
                else:
                    entry.unlink()
        output_dir.mkdir(parents=True, exist_ok=True)
        init_file = output_dir / "__init__.py"
        if not init_file.exists():
            init_file.write_text("", encoding="utf-8")


class _TargetWorker:
    """Moves one contract at a time through the generation states."""

    def __init__(
        self,
        context: _RunContext,
        *,
        backend: SynthesisBackend,
        inspector: SourceInspector,
        extractor: DependenciesExtractor,
        builder: PromptBuilder,
        post_processor: PostProcessor,
        settings: AutoImplSettings,
    ) -> None:
        self._context = context
        self._backend = backend
        self._inspector = inspector
        self._extractor = extractor
        self._builder = builder
        self._post_processor = post_processor
        self._settings = settings

    async def generate(
        self,
        contract: ServiceContract,
    ) -> tuple[FileStats, GeneratedArtifact | None]:
        started = time.perf_counter()
        stats = FileStats(interface_name=contract.identifier, status=TargetStatus.GENERATED)
        path = self._context.output_dir / contract.impl_file_name
        options = self._context.options

        owner = self._context.file_owners.get(contract.impl_file_name, contract.identifier)
        if owner != contract.identifier:
            stats.error = (
                f"implementation file {contract.impl_file_name} already belongs to '{owner}'"
            )
            logger.error("  -> Cannot generate %s: %s", contract.identifier, stats.error)
            return self._finish(stats, started, TargetStatus.ERROR, TargetState.FAILED), None
        if path.resolve() in self._context.locked:
            logger.info("  -> SKIPPED (locked): %s", path)
            return self._finish(stats, started, TargetStatus.LOCKED, TargetState.SKIPPED), None
        if options.force and options.files and path.exists():
            logger.info("  -> FORCE: Deleting existing file: %s", path)
            path.unlink()
        if path.exists():
            logger.info("  -> SKIPPED: %s already exists. Use --force to overwrite.", path)
            return self._finish(stats, started, TargetStatus.SKIPPED, TargetState.SKIPPED), None

        async with self._context.semaphore:
            logger.info("  -> Generating implementation for %s...", contract.identifier)
            prompt = self._builder.build(contract)
            stats.state = TargetState.PROMPT_BUILT
            try:
                stats.state = TargetState.BACKEND_INVOKED
                raw = await self._call_backend(prompt)
            except BackendError as error:
                return await self._persist_stub(contract, path, stats, started, str(error))
            stats.state = TargetState.SUCCEEDED

            module_name = self._inspector.module_name_for(path)
            try:
                code = await self._process_with_repair(contract, raw, module_name)
            except _RepairFailedError as failure:
                async with self._context.write_lock:
                    path.write_text(failure.best_effort, encoding="utf-8")
                    self._context.written.add(path.resolve())
                stats.error = str(failure.error)
                logger.error("  -> Failed to generate %s: %s", contract.identifier, failure.error)
                artifact = self._artifact_for(contract, path, failure.best_effort)
                finished = self._finish(stats, started, TargetStatus.ERROR, TargetState.PERSISTED)
                return finished, artifact
            stats.state = TargetState.POST_PROCESSED

            async with self._context.write_lock:
                path.write_text(code, encoding="utf-8")
                self._context.written.add(path.resolve())
            artifact = self._artifact_for(contract, path, code)
            self._finish(stats, started, TargetStatus.GENERATED, TargetState.PERSISTED)
            logger.info("  -> %s completed in %.2fs", contract.identifier, stats.duration)
            return stats, artifact

    async def _call_backend(self, prompt: str) -> str:
        timeout = self._settings.timeout
        try:
            raw = await asyncio.wait_for(
                self._backend.generate(prompt, model=self._context.model, timeout=timeout),
                timeout=timeout,
            )
        except asyncio.TimeoutError as error:
            msg = f"{self._backend.name} request timed out after {timeout:g}s"
            raise BackendError(msg) from error
        if not isinstance(raw, str) or not raw.strip():
            msg = f"{self._backend.name} returned an empty response"
            raise BackendError(msg)
        return raw

    async def _process_with_repair(
        self,
        contract: ServiceContract,
        raw: str,
        module_name: str,
    ) -> str:
        attempts = 0
        while True:
            try:
                code = self._post_processor.process(raw, contract, module_name=module_name)
                errors = self._post_processor.validate(code, contract)
            except PostProcessError as error:
                code = strip_code_fences(raw, contract.impl_name)
                errors = error.errors
            if not errors:
                return code

            if attempts >= self._settings.max_fix_attempts:
                raise _RepairFailedError(PostProcessError(contract.identifier, errors), code)
            attempts += 1
            logger.warning(
                "  -> Validation failed for %s (attempt %d/%d): %s",
                contract.identifier,
                attempts,
                self._settings.max_fix_attempts,
                "; ".join(errors),
            )
            fix_prompt = self._builder.build_fix(contract, code, errors)
            try:
                raw = await self._call_backend(fix_prompt)
            except BackendError as error:
                raise _RepairFailedError(error, code) from error

    async def _persist_stub(
        self,
        contract: ServiceContract,
        path: Path,
        stats: FileStats,
        started: float,
        reason: str,
    ) -> tuple[FileStats, GeneratedArtifact | None]:
        logger.error("  -> Backend failed for %s: %s", contract.identifier, reason)
        stats.state = TargetState.FAILED
        stats.error = reason
        stub = render_stub(contract, self._inspector, reason)
        async with self._context.write_lock:
            path.write_text(stub, encoding="utf-8")
            self._context.written.add(path.resolve())
        logger.info("  -> Wrote placeholder implementation to %s", path)
        artifact = self._artifact_for(contract, path, stub)
        return self._finish(stats, started, TargetStatus.ERROR, TargetState.FAILED), artifact

    def _artifact_for(
        self,
        contract: ServiceContract,
        path: Path,
        code: str,
    ) -> GeneratedArtifact | None:
        try:
            declarations = self._inspector.load_source(path, code)
        except SyntaxError:
            logger.warning("  -> %s does not parse; leaving it out of the container", path)
            return None
        impl = next((item for item in declarations if item.name == contract.impl_name), None)
        if impl is None:
            return None
        dependencies = self._extractor.extract(impl)
        return GeneratedArtifact(
            interface_name=contract.identifier,
            impl_name=contract.impl_name,
            file_path=path,
            dependencies=dependencies.edges(contract.identifier),
        )

    def _finish(
        self,
        stats: FileStats,
        started: float,
        status: TargetStatus,
        state: TargetState,
    ) -> FileStats:
        stats.status = status
        stats.state = state
        stats.duration = time.perf_counter() - started
        return stats


class _RepairFailedError(Exception):
    def __init__(self, error: Exception, best_effort: str) -> None:
        super().__init__(str(error))
        self.error = error
        self.best_effort = best_effort


def _existing_artifacts(
    inspector: SourceInspector,
    extractor: DependenciesExtractor,
    output_dir: Path,
    known: list[GeneratedArtifact],
    written: set[Path],
) -> list[GeneratedArtifact]:
    """Register implementation files that this run did not write.

    The identifier is the base class of the ``...Impl`` class, so casing
    survives the lower-cased file name.
    """
    identifiers = {artifact.interface_name for artifact in known}
    paths = {artifact.file_path.resolve() for artifact in known} | written
    found: list[GeneratedArtifact] = []
    for path in sorted(output_dir.glob(f"*{IMPL_FILE_SUFFIX}")):
        if path.resolve() in paths:
            continue
        try:
            declarations = inspector.load_source(path, path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, SyntaxError) as error:
            logger.warning("Could not analyze existing implementation %s: %s", path, error)
            continue
        impl = _impl_declaration(declarations)
        if impl is None:
            logger.warning("No implementation class found in %s", path)
            continue
        identifier = _base_identifier(impl) or impl.name.removesuffix(IMPL_SUFFIX)
        if identifier in identifiers:
            continue
        identifiers.add(identifier)
        found.append(
            GeneratedArtifact(
                interface_name=identifier,
                impl_name=impl.name,
                file_path=path,
                dependencies=extractor.extract(impl).edges(identifier),
            ),
        )
        logger.debug("Registered existing implementation %s for %s", impl.name, identifier)
    return found


def _impl_declaration(declarations: list[Declaration]) -> Declaration | None:
    for declaration in declarations:
        if declaration.name.endswith(IMPL_SUFFIX) and declaration.node.bases:
            return declaration
    return None


def _base_identifier(declaration: Declaration) -> str | None:
    for base in declaration.node.bases:
        name = dotted_name(base)
        if name is not None:
            return last_segment(name)
    return None
