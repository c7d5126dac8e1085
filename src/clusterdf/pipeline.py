"""
One request/response cycle: enumerate, discover, merge, narrow, deduplicate,
order and filter. Rendering is left to the caller.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .aggregate import deduplicate
from .columns import CLUSTER_VIEW_COLUMNS, Column, is_default_set, parse_cols
from .errors import IoError
from .executor import Executor, make_executor
from .filter import BoolFilter
from .inspectors import run_all
from .inspectors.lustre import is_lustre_path, lustre_available
from .inspectors.mounts import device_id_of, is_normal
from .lustreapi import LOV_ALL_STRIPES, ClusterClient, LustreApi
from .schema import ClusterMetaTable, DuplicatePaths, MountRecord, ReadOptions, base_mount_point
from .sorting import Sorting, sort_topology

_DEBUG = bool(os.environ.get("CLUSTERDF_DEBUG", ""))


def _debug(msg: str) -> None:
    if _DEBUG:
        print(f"[clusterdf] pipeline: {msg}", file=sys.stderr)


@dataclass
class Report:
    """Final ordered rows with everything the renderers need."""

    records: List[MountRecord]
    cols: List[Column]
    meta: ClusterMetaTable
    duplicates: DuplicatePaths = field(default_factory=DuplicatePaths)
    cluster_view: bool = False


def _under(path: str, base: str) -> bool:
    base = base.rstrip("/") or "/"
    if base == "/":
        return path.startswith("/")
    return path == base or path.startswith(base + "/")


def cluster_rows_for_path(path: str, records: List[MountRecord]) -> List[MountRecord]:
    """Lustre rows whose real mount directory holds path, matched by prefix."""
    return [r for r in records if r.is_cluster and _under(path, base_mount_point(r.mount_point))]


def _filter_by_path(
    path: str,
    records: List[MountRecord],
    on_cluster: bool,
) -> List[MountRecord]:
    if on_cluster:
        kept = cluster_rows_for_path(path, records)
    else:
        dev = device_id_of(Path(path))
        kept = [r for r in records if not r.is_cluster and r.device_id == dev]
    if not kept:
        raise IoError(f"{path!r} is not on any known mount")
    return kept


def run(
    host_root: Path,
    *,
    executor: Optional[Executor] = None,
    client: Optional[ClusterClient] = None,
    statfs: Optional[Callable] = None,
    path: Optional[str] = None,
    show_all: bool = False,
    cols: Optional[List[Column]] = None,
    sorting: Optional[Sorting] = None,
    filter_expr: str = "",
    inodes: bool = False,
    remote_stats: bool = True,
    ceiling: int = LOV_ALL_STRIPES,
) -> Report:
    """
    Build the report.

    When Lustre rows exist and --all wasn't given, only Lustre rows are kept
    (unless the requested path is on an ordinary mount), shown in topology
    order with the cluster column set. Otherwise the is_normal gate and the
    user sort apply. The gate runs after path narrowing: a path on a pseudo
    filesystem yields no rows rather than an error. An explicit sorting
    overrides topology order.
    """
    # Parsed up front so a bad expression fails before any host access
    bool_filter = BoolFilter.parse(filter_expr)
    host_root = Path(host_root)
    if executor is None:
        executor = make_executor(str(host_root))
    if client is None and lustre_available(executor):
        client = LustreApi.load()
    cols = list(cols) if cols is not None else parse_cols("default")

    records, meta = run_all(
        host_root,
        executor,
        ReadOptions(remote_stats=remote_stats),
        client=client,
        statfs=statfs,
        ceiling=ceiling,
    )
    _debug(f"{len(records)} records after merge, {len(meta)} with cluster meta")

    on_cluster = False
    if path is not None:
        path = os.path.abspath(path)
        on_cluster = bool(cluster_rows_for_path(path, records))
        if not on_cluster and client is not None:
            on_cluster = is_lustre_path(path, executor, client)

    has_cluster = any(r.is_cluster for r in records)
    cluster_view = has_cluster and not show_all and (path is None or on_cluster)
    if cluster_view:
        records = [r for r in records if r.is_cluster]
        if is_default_set(cols):
            cols = parse_cols(CLUSTER_VIEW_COLUMNS)
    if path is not None:
        records = _filter_by_path(path, records, on_cluster)
    if not cluster_view and not show_all:
        records = [r for r in records if is_normal(r)]

    records, duplicates = deduplicate(records)

    if cluster_view and sorting is None:
        records = sort_topology(records)
    else:
        records = (sorting or Sorting.default()).sort(records, meta)

    records = bool_filter.evaluate(records, meta, inodes)
    return Report(records=records, cols=cols, meta=meta, duplicates=duplicates, cluster_view=cluster_view)
