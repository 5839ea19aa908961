"""
archtrace.commands.generate - Regenerate architecture traces.

Modes:
- ``archtrace generate``: every module plus the high-level trace
- ``archtrace generate MODULE_ID``: one module plus the high-level trace
- ``--low-level-only``: skip the high-level trace
- ``--bootstrap``: write a starter module config (refuses if one exists)
"""

from __future__ import annotations

import argparse
import json
import sys

from archtrace.core.generator import bootstrap_module_config, load_generator
from archtrace.core.store import open_project


def run(args: argparse.Namespace) -> int:
    """Run the generate command."""
    project = open_project(getattr(args, "root", None), getattr(args, "config", None))
    quiet = getattr(args, "quiet", False)

    if getattr(args, "bootstrap", False):
        config = bootstrap_module_config(project)
        if not quiet:
            print(
                f"Wrote {project.relative(project.module_config_path)} "
                f"with {len(config.modules)} module(s):"
            )
            for module in config.modules:
                print(f"  {module.id:<24} {', '.join(module.file_globs)}")
            print("Review the module boundaries, then run 'archtrace generate'.")
        return 0

    generator = load_generator(project)
    summary = generator.generate_all(
        target_module_id=getattr(args, "module_id", None),
        low_level_only=getattr(args, "low_level_only", False),
    )

    if getattr(args, "json", False):
        print(json.dumps(summary.to_dict(), indent=2))
        return 0

    for warning in summary.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    if not quiet:
        print(
            f"Generated {len(summary.modules_processed)} module trace(s), "
            f"{summary.files_generated} file(s) in {summary.duration_seconds:.2f}s"
        )
        if getattr(args, "verbose", False):
            for module_id in summary.modules_processed:
                print(f"  {project.relative(project.low_level_doc_path(module_id))}")
        if summary.high_level_version is not None:
            print(f"High-level trace updated to version {summary.high_level_version}")
    return 0
