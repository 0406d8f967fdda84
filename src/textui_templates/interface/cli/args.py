from __future__ import annotations

"""
CLI Argument Definition and Mapping.

Defines the command-line schema (global flags plus the 'expand' and 'check'
subcommands) and translates the parsed namespace into configuration
overrides.
"""

import argparse
from typing import Any, Dict

# -----------------------------------------------------------------------------
# ARGUMENT DEFINITION
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """
    Construct the argument parser for the textui-templates CLI.

    Returns:
        argparse.ArgumentParser: Configured parser instance.
    """
    p = argparse.ArgumentParser(
        prog="textui-templates",
        description="Expand $include / $if / $foreach directives in TextUI YAML documents.",
    )

    # --- Configuration and Diagnostic Tools ---
    p.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to a JSON configuration file (defaults to the user data directory).",
    )
    p.add_argument(
        "--use-defaults",
        action="store_true",
        help="Ignore persisted configuration and use built-in defaults.",
    )
    p.add_argument(
        "--dump-config",
        action="store_true",
        help="Print the effective configuration as JSON and exit.",
    )
    p.add_argument(
        "--debug",
        action="store_true",
        help="Elevate logging verbosity to DEBUG.",
    )
    p.add_argument(
        "--max-include-depth",
        dest="max_include_depth",
        type=int,
        default=None,
        help="Override the maximum include nesting.",
    )

    sub = p.add_subparsers(dest="command")

    # --- expand ---
    expand = sub.add_parser("expand", help="Expand a document and print the result.")
    expand.add_argument("file", help="Document to expand.")
    expand.add_argument(
        "--format",
        dest="output_format",
        choices=("yaml", "json"),
        default="yaml",
        help="Output format (default: yaml).",
    )
    expand.add_argument(
        "--stats",
        action="store_true",
        help="Print template cache statistics to stderr after expansion.",
    )

    # --- check ---
    check = sub.add_parser(
        "check",
        help="Report circular includes and missing include targets without expanding.",
    )
    check.add_argument("file", help="Document to check.")

    return p

# -----------------------------------------------------------------------------
# ARGUMENT MAPPING
# -----------------------------------------------------------------------------

def args_to_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Translate the argparse Namespace into configuration overrides.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Dict[str, Any]: Configuration overrides subset.
    """
    overrides: Dict[str, Any] = {}

    if args.max_include_depth is not None:
        overrides["max_include_depth"] = args.max_include_depth
    if args.debug:
        overrides["log_level"] = "DEBUG"

    return overrides
