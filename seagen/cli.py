# File: seagen/cli.py
"""
Seagen - Command-Line Interface
================================

Built on the standard-library ``argparse`` module.

Usage examples::

    # Generate every enabled layer into the current crate
    seagen -s schema.yaml

    # Another crate, overwrite conflicts after backing them up
    seagen -s schema.yaml -p ../shop --on-conflict backup

    # Only entities and DTOs, show what would change
    seagen -s schema.yaml --layers entity,dto --dry-run

    # Validate only (no file output)
    seagen -s schema.yaml --validate-only

    # Copy the built-in templates into the project for editing
    seagen --init-templates -p ../shop

Exit codes:
    0 — success
    1 — validation error
    2 — generation error
    3 — export error
    4 — input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence, Tuple

from seagen.errors import SeagenError
from seagen.exporters import PlannedWrite
from seagen.models import LAYER_IDS, CodegenSettings, ConflictResolution, ConflictStrategy, Dialect

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_EXPORT_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4

DEFAULT_TEMPLATE_DIR: str = CodegenSettings.model_fields["custom_template_path"].default


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root seagen logger.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter("%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s", datefmt="%H:%M:%S")
    )

    root_logger: logging.Logger = logging.getLogger("seagen")
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _layer_list(value: str) -> List[str]:
    layers: List[str] = _csv(value)
    unknown: List[str] = [lid for lid in layers if lid not in LAYER_IDS]
    if unknown:
        raise argparse.ArgumentTypeError(
            f"unknown layer(s) {', '.join(unknown)}; choose from {', '.join(LAYER_IDS)}"
        )
    return layers


def _build_parser() -> argparse.ArgumentParser:
    from seagen import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="seagen",
        description=(
            "Seagen — Sea-ORM / spring-rs layered code generator.\n\n"
            "Turns relational schema metadata (JSON/YAML) into entity, DTO, VO, "
            "service and route modules, merging safely into hand-edited code."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -s schema.yaml\n"
            "  %(prog)s -s schema.yaml -p ../shop --on-conflict backup\n"
            "  %(prog)s -s schema.yaml --layers entity,dto --dry-run\n"
            "  %(prog)s --init-templates -p ../shop\n"
        ),
    )

    parser.add_argument("--version", action="version", version=f"seagen v{__version__}")

    parser.add_argument(
        "-s", "--schema",
        type=str,
        default=None,
        metavar="PATH",
        help="Input file with 'tables' and optional 'settings' (JSON or YAML).",
    )
    parser.add_argument(
        "-p", "--project",
        type=str,
        default=".",
        metavar="DIR",
        help="Root of the target crate (where Cargo.toml lives). Default: current directory.",
    )

    # --- Modes ---
    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Only validate tables and overrides without generating code.",
    )
    mode_group.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Plan and classify every file but write nothing.",
    )
    mode_group.add_argument(
        "--init-templates",
        action="store_true",
        default=False,
        help=(
            "Copy built-in templates to the custom template directory of the -s input "
            f"(default <project>/{DEFAULT_TEMPLATE_DIR}) and exit."
        ),
    )

    # --- Settings overrides ---
    config_group = parser.add_argument_group("settings overrides")
    config_group.add_argument(
        "--on-conflict",
        type=str,
        default=None,
        choices=[s.value for s in ConflictStrategy],
        help="How to treat existing files that differ from the generated ones.",
    )
    config_group.add_argument(
        "--layers",
        type=_layer_list,
        default=None,
        metavar="LIST",
        help=f"Comma-separated layers to generate ({','.join(LAYER_IDS)}).",
    )
    config_group.add_argument(
        "--tables",
        type=_csv,
        default=None,
        metavar="LIST",
        help="Comma-separated table names to generate (default: all).",
    )
    config_group.add_argument(
        "--dialect",
        type=str,
        default=None,
        choices=[d.value for d in Dialect],
        help="SQL dialect for type mapping.",
    )
    config_group.add_argument(
        "--route-prefix",
        type=str,
        default=None,
        metavar="PREFIX",
        help="URL prefix for generated routes (e.g. '/api/v1').",
    )
    config_group.add_argument(
        "--table-prefix",
        type=str,
        default=None,
        metavar="PREFIX",
        help="Prefix stripped from table names when naming modules (e.g. 't_').",
    )
    config_group.add_argument(
        "--custom-templates",
        action="store_true",
        default=None,
        help="Use project templates from the custom template directory.",
    )

    # --- Behaviour flags ---
    behaviour_group = parser.add_argument_group("behaviour flags")
    behaviour_group.add_argument(
        "--strict",
        action="store_true",
        default=False,
        help="Abort on any validation error instead of skipping the affected tables.",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except the final report.",
    )

    return parser


# ---------------------------------------------------------------------------
# Settings override builder
# ---------------------------------------------------------------------------


def _build_settings_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.on_conflict is not None:
        overrides["conflict_strategy"] = args.on_conflict
    if args.tables is not None:
        overrides["selected_tables"] = args.tables
    if args.dialect is not None:
        overrides["dialect"] = args.dialect
    if args.route_prefix is not None:
        overrides["route_prefix"] = args.route_prefix
    if args.table_prefix is not None:
        overrides["table_name_prefix"] = args.table_prefix
    if args.custom_templates:
        overrides["use_custom_templates"] = True
    return overrides


# ---------------------------------------------------------------------------
# Interactive conflict prompt
# ---------------------------------------------------------------------------

_ANSWERS: Dict[str, ConflictResolution] = {
    "s": ConflictResolution.SKIP,
    "o": ConflictResolution.OVERWRITE,
    "b": ConflictResolution.BACKUP,
}


def prompt_conflict(planned: PlannedWrite) -> Tuple[ConflictResolution, bool]:
    """
    Ask how to resolve one conflict. An uppercase answer applies to all
    remaining conflicts. End of input skips everything left.
    """
    question: str = (
        f"\n{planned.path} exists and differs from the generated file.\n"
        "  [s]kip  [o]verwrite  [b]ackup+overwrite  (uppercase = apply to all) > "
    )
    while True:
        try:
            answer: str = input(question).strip()
        except EOFError:
            return ConflictResolution.SKIP, True
        if answer.lower() in _ANSWERS:
            return _ANSWERS[answer.lower()], answer.isupper()
        print("Please answer s, o or b.", file=sys.stderr)


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------


def _run_init_templates(project_root: Path, schema_path: Optional[Path]) -> int:
    """Copy the built-in templates into the directory the engine reads custom ones from."""
    from seagen.generator import load_input_file, parse_input
    from seagen.templates import init_templates

    template_dir: str = DEFAULT_TEMPLATE_DIR
    if schema_path is not None:
        try:
            _, settings = parse_input(load_input_file(schema_path))
        except SeagenError as exc:
            logger.error("Failed to load input: %s", exc)
            return EXIT_INPUT_ERROR
        template_dir = settings.custom_template_path

    target: Path = project_root / template_dir
    written: List[str] = init_templates(target)
    print(f"Templates in {target}: {len(written)} created.")
    for name in written:
        print(f"  + {name}")
    print("Enable them with --custom-templates or 'use_custom_templates: true'.")
    return EXIT_SUCCESS


def _run_validate_only(schema_path: Path, args: argparse.Namespace) -> int:
    from seagen.generator import CodeGenerator, load_input_file, parse_input
    from seagen.utils import Timer

    try:
        raw_tables, settings = parse_input(load_input_file(schema_path), _build_settings_overrides(args))
    except SeagenError as exc:
        logger.error("Failed to load input: %s", exc)
        return EXIT_INPUT_ERROR

    with Timer("validation") as t:
        result = CodeGenerator().validate_only(raw_tables, settings)

    print(f"\n{'=' * 50}")
    print("  Schema Validation Report")
    print(f"{'=' * 50}")
    print(f"  File:     {schema_path.name}")
    print(f"  Tables:   {len(raw_tables)}")
    print(f"  Time:     {t.elapsed:.3f}s")
    print(f"  Valid:    {'Yes' if result.is_valid else 'No'}")
    print(f"\n  {result.format_report(include_info=args.verbose > 0, indent='    ')}")
    print(f"{'=' * 50}\n")

    return EXIT_SUCCESS if result.is_valid else EXIT_VALIDATION_ERROR


def _run_generation(schema_path: Path, project_root: Path, args: argparse.Namespace) -> int:
    from seagen.generator import (
        STEP_EXPORT,
        STEP_GENERATE,
        STEP_VALIDATE,
        CodeGenerator,
        GenerationReport,
    )

    try:
        generator = CodeGenerator(
            strict_validation=args.strict,
            dry_run=args.dry_run,
            only_layers=args.layers or (),
            conflict_prompt=prompt_conflict,
        )
        report: GenerationReport = generator.generate_from_file(
            schema_path, project_root, settings_overrides=_build_settings_overrides(args)
        )
    except SeagenError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR

    print(report.summary())

    if report.success:
        return EXIT_SUCCESS
    return {
        STEP_VALIDATE: EXIT_VALIDATION_ERROR,
        STEP_GENERATE: EXIT_GENERATION_ERROR,
        STEP_EXPORT: EXIT_EXPORT_ERROR,
    }.get(report.failed_step or "", EXIT_GENERATION_ERROR)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Parse *argv*, run the selected mode and return its exit code."""
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        logging.disable(logging.CRITICAL)
        verbosity: int = -1
    else:
        verbosity = args.verbose
    _setup_logging(verbosity)

    project_root: Path = Path(args.project).resolve()
    if not project_root.is_dir():
        logger.error("Project directory not found: %s", project_root)
        return EXIT_INPUT_ERROR

    if args.init_templates:
        return _run_init_templates(project_root, Path(args.schema).resolve() if args.schema else None)

    if args.schema is None:
        logger.error("An input file is required. Use -s/--schema.")
        parser.print_usage(sys.stderr)
        return EXIT_INPUT_ERROR

    schema_path: Path = Path(args.schema).resolve()
    if not schema_path.is_file():
        logger.error("Schema file not found: %s", schema_path)
        return EXIT_INPUT_ERROR

    if args.validate_only:
        return _run_validate_only(schema_path, args)

    logger.info("Schema:  %s", schema_path)
    logger.info("Project: %s", project_root)
    exit_code: int = _run_generation(schema_path, project_root, args)
    if exit_code == EXIT_SUCCESS:
        logger.info("Generation completed successfully.")
    else:
        logger.error("Generation failed with exit code %d.", exit_code)
    return exit_code


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """Console-script entry point."""
    sys.exit(run(argv))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "run",
    "prompt_conflict",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("seagen.cli loaded.")
