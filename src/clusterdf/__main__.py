"""Entry point: python -m clusterdf, or the clusterdf console script."""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .cli import parse_args
from .columns import parse_cols
from .errors import ClusterDfError
from .pipeline import Report, run
from .renderers import EMPTY_HINT, RenderOptions, make_env
from .renderers.csv import render as render_csv
from .renderers.json import render as render_json
from .renderers.list_cols import render as render_list_cols
from .renderers.table import render as render_table
from .sorting import Sorting
from .units import Units


def _use_color(choice: str) -> bool:
    if choice == "yes":
        return True
    if choice == "no":
        return False
    return sys.stdout.isatty()


def _render_options(args: argparse.Namespace) -> RenderOptions:
    return RenderOptions(
        units=Units.parse(args.units),
        inodes=args.inodes,
        color=_use_color(args.color),
        ascii=args.ascii,
        csv_separator=args.csv_separator,
    )


def _run_pipeline(host_root: Path, args: argparse.Namespace) -> Report:
    """Turn parsed arguments into a pipeline run."""
    return run(
        host_root,
        path=args.path,
        show_all=args.all,
        cols=parse_cols(args.cols),
        sorting=Sorting.parse(args.sort) if args.sort else None,
        filter_expr=args.filter,
        inodes=args.inodes,
        remote_stats=args.remote_stats,
    )


def _output(report: Report, args: argparse.Namespace, options: RenderOptions) -> str:
    env = make_env()
    if args.csv:
        return render_csv(report, env, options)
    if args.json:
        return render_json(report, env, options)
    if not report.records:
        return EMPTY_HINT
    text = render_table(report, env, options)
    if args.show_duplicates and not report.duplicates.is_empty():
        text += "\n" + env.get_template("duplicates.txt").render(duplicates=report.duplicates.by_fs)
    return text


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        options = _render_options(args)
        if args.list_cols:
            print(render_list_cols(make_env(), options))
            return 0
        report = _run_pipeline(args.host_root, args)
    except ClusterDfError as e:
        print(f"clusterdf: {e}", file=sys.stderr)
        return 1
    text = _output(report, args, options)
    if text:
        print(text, end="" if text.endswith("\n") else "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
