"""
Inspectors produce MountRecords from the host.

mounts reads the kernel mount table under host_root, lustre queries the native
Lustre client target by target. run_all merges both into one record list plus
the ClusterMeta table filled during discovery.
"""

from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..aggregate import drop_server_components, merge_discovered
from ..executor import Executor, make_executor
from ..lustreapi import LOV_ALL_STRIPES, ClusterClient
from ..schema import ClusterMetaTable, MountRecord, ReadOptions

from .lustre import run as run_lustre
from .mounts import read_mounts


def run_all(
    host_root: Path,
    executor: Optional[Executor] = None,
    options: Optional[ReadOptions] = None,
    client: Optional[ClusterClient] = None,
    statfs: Optional[Callable] = None,
    ceiling: int = LOV_ALL_STRIPES,
) -> Tuple[List[MountRecord], ClusterMetaTable]:
    """Catalog, drop Lustre server mounts, discover, merge."""
    host_root = Path(host_root)
    if executor is None:
        executor = make_executor(str(host_root))
    meta = ClusterMetaTable()
    catalog = drop_server_components(read_mounts(host_root, options, statfs))
    discovered = run_lustre(executor, meta, client=client, ceiling=ceiling)
    return merge_discovered(catalog, discovered), meta
