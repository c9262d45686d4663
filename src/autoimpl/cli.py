from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from autoimpl.backends.registry import BackendRegistry
from autoimpl.config import (
    DEFAULT_CONFIG_FILE,
    AutoImplSettings,
    load_settings,
    write_default_config,
)
from autoimpl.exceptions import ConfigurationError
from autoimpl.generation.pipeline import GenerationPipeline
from autoimpl.generation.statistics import log_statistics
from autoimpl.locking import LockRegistry
from autoimpl.models import GenerateOptions

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autoimpl",
        description="Generate implementations of AutoGen-marked contracts and wire them together.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"settings file (default: ./{DEFAULT_CONFIG_FILE} when present)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="generate implementations and the container")
    generate.add_argument("files", nargs="*", help="only scan source files with these base names")
    generate.add_argument("-f", "--force", action="store_true", help="overwrite unlocked artifacts")
    generate.add_argument("-v", "--verbose", action="store_true", help="log prompts and responses")
    generate.add_argument("-m", "--model", default=None, help="model name for the backend")
    generate.add_argument("-p", "--provider", default=None, help="configured provider to use")

    lock = subparsers.add_parser("lock", help="protect files or directories from regeneration")
    lock.add_argument("paths", nargs="+", type=Path)

    unlock = subparsers.add_parser("unlock", help="allow files or directories to be regenerated")
    unlock.add_argument("paths", nargs="+", type=Path)

    init = subparsers.add_parser("init", help=f"write a default {DEFAULT_CONFIG_FILE}")
    init.add_argument("--force", action="store_true", help="overwrite an existing file")

    subparsers.add_parser("providers", help="list backend types and configured providers")
    return parser


def configure_logging(*, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s" if verbose else "%(message)s",
        force=True,
    )
    # keep transport chatter out of the status lines
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=getattr(args, "verbose", False))
    try:
        if args.command == "init":
            write_default_config(args.config or Path(DEFAULT_CONFIG_FILE), overwrite=args.force)
            return EXIT_OK
        settings = load_settings(args.config)
        if args.command == "generate":
            return run_generate(settings, args)
        if args.command == "lock":
            LockRegistry(settings.lock_file).lock(args.paths)
            return EXIT_OK
        if args.command == "unlock":
            LockRegistry(settings.lock_file).unlock(args.paths)
            return EXIT_OK
        return list_providers(settings)
    except ConfigurationError as error:
        logger.error("Configuration error: %s", error)
        return EXIT_CONFIG_ERROR


def run_generate(settings: AutoImplSettings, args: argparse.Namespace) -> int:
    options = GenerateOptions(
        force=args.force,
        files=tuple(args.files),
        verbose=args.verbose,
        model=args.model,
        provider=args.provider,
    )
    registry = BackendRegistry.from_settings(settings)
    backend, provider_config = registry.create(options.provider)
    model = options.model or provider_config.default_model or settings.default_model
    logger.info(
        "Using provider '%s' with model '%s'",
        options.provider or registry.default_provider,
        model,
    )

    pipeline = GenerationPipeline(settings, backend, model=model)
    result = asyncio.run(pipeline.run(options))
    log_statistics(result, verbose=options.verbose)
    return EXIT_OK if result.success else EXIT_FAILURE


def list_providers(settings: AutoImplSettings) -> int:
    registry = BackendRegistry.from_settings(settings)
    logger.info("Available backend types: %s", ", ".join(registry.available_types()))
    for name in registry.configured_providers():
        config = registry.get_provider_config(name)
        if config is None:
            continue
        marker = " (default)" if name == registry.default_provider else ""
        logger.info("  %s%s: type=%s model=%s", name, marker, config.type, config.default_model)
    return EXIT_OK


def entrypoint() -> None:
    sys.exit(main())
