from __future__ import annotations

"""
Command Line Interface (CLI) Application Controller.

Orchestrates the CLI lifecycle: logging bootstrap, configuration resolution
(defaults, persisted file, CLI overrides), template expansion or checking,
and result rendering. Exit codes: 0 success, 1 template error or problems
found, 2 missing input or usage error, 130 interrupted.
"""

import asyncio
import json
import os
import sys
from typing import Any, Dict, List, Optional

import yaml

from textui_templates.core.services.config_validator import validate_config
from textui_templates.core.services.dependency_tracker import extract_dependencies
from textui_templates.core.services.loader import parse_document
from textui_templates.core.services.template_service import TemplateService
from textui_templates.domain.config import get_default_config, load_config
from textui_templates.domain.errors import TemplateException
from textui_templates.infra.logging import LoggingConfig, configure_logging, get_logger
from textui_templates.interface.cli import args as cli_args

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# ENTRYPOINT ORCHESTRATOR
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """
    Execute the main CLI application workflow.

    Args:
        argv: Optional list of command line arguments. Defaults to sys.argv.

    Returns:
        int: Process exit code.
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8")

    # 1. Argument parsing phase
    parser = cli_args.build_parser()
    args = parser.parse_args(argv)

    # 2. Logging bootstrap (console stderr)
    log_level = "DEBUG" if args.debug else "INFO"
    configure_logging(LoggingConfig(level=log_level, console=True, log_file=None))

    logger.debug("CLI execution initiated. Resolving configuration hierarchy...")

    # 3. Resolve base configuration (defaults vs persisted state)
    if args.use_defaults:
        base_conf = get_default_config()
    else:
        base_conf = load_config(args.config_path)

    # 4. Merge overrides and validate
    raw_conf = _merge_config(base_conf, cli_args.args_to_overrides(args))
    clean_conf, warnings = validate_config(raw_conf, strict=False)
    for w in warnings:
        logger.warning(f"Configuration Constraint: {w}")

    if clean_conf["log_file"] or clean_conf["log_level"] != log_level:
        configure_logging(LoggingConfig.from_app_config(clean_conf), force=True)

    if args.dump_config:
        print(json.dumps(clean_conf, ensure_ascii=False, indent=2))
        return 0

    if not args.command:
        parser.print_usage(sys.stderr)
        return 2

    # 5. Pre-flight input verification
    input_path = os.path.abspath(args.file)
    if not os.path.isfile(input_path):
        msg = f"Input file does not exist: {input_path}"
        logger.error(msg)
        print(f"ERROR: {msg}", file=sys.stderr)
        return 2

    # 6. Execution phase
    service = TemplateService.from_config(clean_conf)
    try:
        if args.command == "expand":
            return asyncio.run(_run_expand(service, input_path, args.output_format, args.stats))
        return asyncio.run(_run_check(service, input_path))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user.")
        print("Interrupted.", file=sys.stderr)
        return 130

# -----------------------------------------------------------------------------
# COMMANDS
# -----------------------------------------------------------------------------

async def _run_expand(service: TemplateService, path: str, output_format: str, stats: bool) -> int:
    """Expand a document and print it to stdout."""
    try:
        result = await service.parse_file(path)
    except TemplateException as e:
        logger.error(f"Expansion failed: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        if stats:
            print(json.dumps(service.get_cache_stats().to_dict(), indent=2), file=sys.stderr)
        await service.dispose()

    print(_render(result, output_format))
    return 0


async def _run_check(service: TemplateService, path: str) -> int:
    """
    Report include cycles and missing include targets of one document.

    Returns:
        int: 0 when no problems are found, 1 otherwise.
    """
    problems: List[str] = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        parsed = parse_document(text, path)

        for cycle_path in service.detect_circular_references(text, path):
            problems.append(f"CIRCULAR: {cycle_path}")

        for dependency in sorted(extract_dependencies(parsed, path)):
            if not await service.validate_template_path(dependency, path):
                problems.append(f"MISSING: {dependency}")
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Cannot read {path}: {e}")
        print(f"ERROR: Cannot read {path}: {e}", file=sys.stderr)
        return 1
    except TemplateException as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        await service.dispose()

    if not problems:
        print(f"OK: {path}")
        return 0
    for line in problems:
        print(line)
    logger.info(f"Check found {len(problems)} problem(s) in {path}")
    return 1

# -----------------------------------------------------------------------------
# HELPERS
# -----------------------------------------------------------------------------

def _merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Shallow merge of known, non-None override values into the base configuration."""
    out = dict(base)
    for k in ("max_include_depth", "log_level"):
        if k in overrides and overrides[k] is not None:
            out[k] = overrides[k]
    return out


def _render(result: Any, output_format: str) -> str:
    if output_format == "json":
        return json.dumps(result, ensure_ascii=False, indent=2, default=str)
    return yaml.safe_dump(result, allow_unicode=True, sort_keys=False, default_flow_style=False).rstrip("\n")

# -----------------------------------------------------------------------------
# CLI ENTRYPOINT
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
