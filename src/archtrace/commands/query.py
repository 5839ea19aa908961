"""
archtrace.commands.query - Ask the trace stores about modules and files.
"""

from __future__ import annotations

import argparse
import json
import sys

from archtrace.core.module_config import load_module_config
from archtrace.core.query import QueryEngine, format_impact_report, format_module_query
from archtrace.core.store import open_project


def run(args: argparse.Namespace) -> int:
    """Run the query command."""
    module_id = getattr(args, "module", None)
    impact = getattr(args, "impact", None)
    if not module_id and not impact:
        print("Usage: archtrace query --module ID [--detail] | --impact FILE", file=sys.stderr)
        return 1

    project = open_project(getattr(args, "root", None), getattr(args, "config", None))
    engine = QueryEngine(project, load_module_config(project))
    as_json = getattr(args, "json", False)

    if module_id:
        result = engine.query_module(module_id, detail=getattr(args, "detail", False))
        if as_json:
            print(
                json.dumps(
                    {
                        "module": result.module.to_dict(),
                        "files": [f.to_dict() for f in result.files]
                        if result.files is not None
                        else None,
                    },
                    indent=2,
                )
            )
        else:
            print(format_module_query(result))
        return 0

    report = engine.analyze_impact(impact)
    if as_json:
        print(
            json.dumps(
                {
                    "filePath": report.file_path,
                    "owningModule": report.owning_module,
                    "affectedModules": [e.to_dict() for e in report.affected_modules],
                    "fileDetail": report.file_detail.to_dict() if report.file_detail else None,
                },
                indent=2,
            )
        )
    else:
        print(format_impact_report(report))
    return 0
