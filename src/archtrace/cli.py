"""
archtrace.cli - Command-line interface.

Main entry point for the archtrace CLI tool.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from archtrace import __version__
from archtrace.commands import generate, hooks, query, sync_cmd


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="archtrace",
        description="Architecture traces: module graphs, symbol tables and edit gating",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  archtrace generate --bootstrap      # Infer a starter module config
  archtrace generate                  # Regenerate every trace
  archtrace generate api              # Regenerate one module's trace
  archtrace sync                      # Apply document edits to the stores
  archtrace sync --dry-run            # Show what sync would change
  archtrace query --module api        # Dependencies and dependents
  archtrace query --impact src/x.ts   # Modules affected by a file
  archtrace check-stale               # Check staged files against traces

Editor hooks (read one JSON event from stdin, exit 2 to block):
  archtrace hook enforce              # Before edits
  archtrace hook track-read           # After reads
  archtrace hook check-stale          # Before shell commands (git commit)

For detailed command help: archtrace <command> --help
        """,
    )

    # Global options
    parser.add_argument(
        "--version",
        action="version",
        version=f"archtrace {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration file",
        metavar="PATH",
    )
    parser.add_argument(
        "--root",
        type=Path,
        help="Project root (default: config file directory or git top-level)",
        metavar="PATH",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-error output",
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # generate command
    generate_parser = subparsers.add_parser(
        "generate",
        help="Regenerate low-level and high-level traces",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  archtrace generate                    # All modules plus the high-level trace
  archtrace generate web                # One module plus the high-level trace
  archtrace generate --low-level-only   # Skip the high-level trace
  archtrace generate --bootstrap        # Write a starter modules.json
""",
    )
    generate_parser.add_argument(
        "module_id",
        nargs="?",
        help="Only regenerate this module",
        metavar="MODULE_ID",
    )
    generate_parser.add_argument(
        "--low-level-only",
        action="store_true",
        help="Do not rebuild the high-level trace",
    )
    generate_parser.add_argument(
        "--bootstrap",
        action="store_true",
        help="Infer a module config from the directory layout (refuses if one exists)",
    )
    generate_parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output the generation summary as JSON",
    )

    # sync command
    sync_parser = subparsers.add_parser(
        "sync",
        help="Apply edits made in trace documents to the JSON stores",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Documents whose metadata header no longer matches their store (the store
was regenerated after the document was rendered) produce conflicts and
are left untouched unless --force is given.
""",
    )
    sync_parser.add_argument(
        "--force",
        action="store_true",
        help="Let documents win conflicts, then re-render them",
    )
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report changes without writing anything",
    )
    sync_parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output the sync result as JSON",
    )

    # query command
    query_parser = subparsers.add_parser(
        "query",
        help="Query module dependencies or the impact of a file",
    )
    query_target = query_parser.add_mutually_exclusive_group(required=True)
    query_target.add_argument(
        "--module",
        help="Module id to describe",
        metavar="ID",
    )
    query_target.add_argument(
        "--impact",
        help="File whose change impact to analyze",
        metavar="FILE",
    )
    query_parser.add_argument(
        "--detail",
        action="store_true",
        help="Include the module's files from its low-level trace",
    )
    query_parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output as JSON",
    )

    # hook command
    hook_parser = subparsers.add_parser(
        "hook",
        help="Editor hooks (read a JSON event on stdin, exit 2 to block)",
    )
    hook_parser.add_argument(
        "hook_action",
        choices=sorted(hooks.HOOKS),
        help="Hook to run",
    )

    # check-stale command
    stale_parser = subparsers.add_parser(
        "check-stale",
        help="Check whether traces are older than their module sources",
    )
    stale_parser.add_argument(
        "files",
        nargs="*",
        help="Files to check (default: files staged for commit)",
        metavar="FILE",
    )
    stale_parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output the report as JSON",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()

    # Enable shell tab-completion if argcomplete is installed
    # Install with: pip install archtrace[completion]
    # Then activate: eval "$(register-python-argcomplete archtrace)"
    try:
        import argcomplete

        argcomplete.autocomplete(parser)
    except ImportError:
        pass

    args = parser.parse_args(argv)

    # Handle no command
    if not args.command:
        parser.print_help()
        return 0

    # Hooks handle their own failures and must never exit non-zero by accident
    if args.command == "hook":
        return hooks.run(args)

    try:
        # Dispatch to command handlers
        if args.command == "generate":
            return generate.run(args)
        elif args.command == "sync":
            return sync_cmd.run(args)
        elif args.command == "query":
            return query.run(args)
        elif args.command == "check-stale":
            return hooks.run_check_stale(args)
        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled.", file=sys.stderr)
        return 130
    except Exception as e:
        if args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
