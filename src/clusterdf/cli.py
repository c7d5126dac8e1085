"""Command-line arguments."""

import argparse
from pathlib import Path
from typing import List, Optional

from . import __version__


def _yes_no(text: str) -> bool:
    low = text.lower()
    if low in ("yes", "y", "true"):
        return True
    if low in ("no", "n", "false"):
        return False
    raise argparse.ArgumentTypeError(f"{text!r} is not yes or no")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="clusterdf",
        description="List mounted filesystems with space and inode usage, Lustre targets included.",
    )
    p.add_argument(
        "path",
        nargs="?",
        default=None,
        help="Only show the filesystem holding this path",
    )
    p.add_argument("-a", "--all", action="store_true", help="Show all mount points")
    p.add_argument(
        "-i", "--inodes",
        action="store_true",
        help="Show inode figures in the usage columns",
    )
    p.add_argument(
        "-c", "--cols",
        default="default",
        metavar="EXPR",
        help="Columns, e.g. 'fs+size+mp', '+dev-fs', 'all' (see --list-cols)",
    )
    p.add_argument(
        "-s", "--sort",
        default=None,
        metavar="SPEC",
        help="Sort column with optional direction, e.g. 'used-asc' (default: size-desc, or topology order in the cluster view)",
    )
    p.add_argument(
        "-f", "--filter",
        default="",
        metavar="EXPR",
        help="Filter rows, e.g. 'size>100G & remote=no'",
    )
    p.add_argument(
        "-u", "--units",
        default="SI",
        choices=["SI", "binary", "bytes"],
        help="Size units (default: SI)",
    )
    p.add_argument("--csv", action="store_true", help="Output as CSV")
    p.add_argument(
        "--csv-separator",
        default=",",
        metavar="C",
        help="CSV separator (default: ',')",
    )
    p.add_argument("-j", "--json", action="store_true", help="Output as JSON")
    p.add_argument(
        "--remote-stats",
        type=_yes_no,
        default=True,
        metavar="{yes,no}",
        help="Read stats of remote filesystems (default: yes)",
    )
    p.add_argument(
        "--color",
        default="auto",
        choices=["auto", "yes", "no"],
        help="Use ANSI colors in the table (default: auto)",
    )
    p.add_argument("--ascii", action="store_true", help="Draw the table with ASCII characters only")
    p.add_argument("--list-cols", action="store_true", help="List the available columns and exit")
    p.add_argument(
        "--show-duplicates",
        action="store_true",
        help="After the table, list the paths hidden by deduplication",
    )
    p.add_argument(
        "--host-root",
        type=Path,
        default=Path("/"),
        help="Root under which proc/, sys/ and dev/ are read (default: /)",
    )
    p.add_argument("--version", action="version", version=f"clusterdf {__version__}")
    return p


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    args = build_parser().parse_args(argv)
    if len(args.csv_separator) != 1:
        build_parser().error("--csv-separator must be a single character")
    return args
