"""Lustre inspector: per-target discovery of MDTs and OSTs through the native client.

Every mounted Lustre instance yields one record per metadata target, one per
object target and one aggregate client record summing them. Missing tooling or
an unreadable instance degrades to fewer records, never to an error.
"""

import os
import sys
from enum import Enum
from typing import Callable, List, NamedTuple, Optional

from ..executor import Executor
from ..lustreapi import (
    LOV_ALL_STRIPES,
    RC_NO_DATA,
    RC_NO_DEVICE,
    RC_OK,
    RC_TRY_AGAIN,
    ClusterClient,
    LustreApi,
)
from ..schema import (
    CLIENT_COMPONENT,
    CLUSTER_FS_TYPE,
    ClusterMeta,
    ClusterMetaTable,
    DeviceId,
    Inodes,
    LayoutInfo,
    MountRecord,
    RecordKind,
    Stats,
    TargetFamily,
    TargetStatfs,
    component_path,
    parse_component_path,
)

_DEBUG = bool(os.environ.get("CLUSTERDF_DEBUG", ""))

# Layout values outside these bounds are reported as unknown
STRIPE_COUNT_RANGE = (1, 1000)
STRIPE_SIZE_RANGE = (64 * 1024, 1024 * 1024 * 1024)

DEFAULT_BSIZE = 4096

# Cached availability probe, reset by tests
_lfs_available: Optional[bool] = None
_lfs_version: Optional[str] = None

_FAMILY_MAJOR = {TargetFamily.MDT: 1, TargetFamily.OST: 2}


def _debug(msg: str) -> None:
    if _DEBUG:
        print(f"[clusterdf] lustre: {msg}", file=sys.stderr)


def lustre_available(executor: Executor) -> bool:
    """Whether the lfs tool runs. Probed once per process."""
    global _lfs_available, _lfs_version
    if _lfs_available is None:
        r = executor(["lfs", "--version"])
        _lfs_available = r.ok
        _lfs_version = _parse_version(r.stdout or r.stderr) if _lfs_available else None
        _debug(f"lfs available: {_lfs_available} (version {_lfs_version})")
    return _lfs_available


def lustre_version() -> Optional[str]:
    return _lfs_version


def _parse_version(text: str) -> Optional[str]:
    """'lfs 2.15.4' -> '2.15.4'."""
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "lfs":
            return parts[1]
    return None


# --- Per-index probe ---


class ProbeKind(str, Enum):
    TERMINATE = "terminate"
    SKIP = "skip"
    EMIT = "emit"


class Target(NamedTuple):
    """One discovered backend target. statfs is None for inactive targets."""

    family: TargetFamily
    index: int
    uuid: str
    statfs: Optional[TargetStatfs]


class Probe(NamedTuple):
    kind: ProbeKind
    target: Optional[Target] = None


def probe_target(client: ClusterClient, fd: int, family: TargetFamily, index: int) -> Probe:
    """Classify the native result code of one statistics query."""
    result = client.target_statfs(fd, family, index)
    if result.rc == RC_NO_DEVICE:
        return Probe(ProbeKind.TERMINATE)
    if result.rc == RC_TRY_AGAIN:
        return Probe(ProbeKind.SKIP)
    if result.rc in (RC_OK, RC_NO_DATA):
        statfs = result.statfs if result.rc == RC_OK else None
        return Probe(ProbeKind.EMIT, Target(family, index, result.uuid, statfs))
    _debug(f"{family.value} {index}: rc={result.rc}, skipped")
    return Probe(ProbeKind.SKIP)


def scan_family(
    probe: Callable[[int], Probe],
    ceiling: int = LOV_ALL_STRIPES,
) -> List[Target]:
    """Walk indexes from 0 until a terminal code or the ceiling."""
    targets = []
    for index in range(ceiling):
        outcome = probe(index)
        if outcome.kind == ProbeKind.TERMINATE:
            break
        if outcome.kind == ProbeKind.EMIT and outcome.target is not None:
            targets.append(outcome.target)
    return targets


# --- Record conversion ---


def component_record(mntdir: str, fsname: str, target: Target) -> MountRecord:
    name = target.uuid or f"{target.family.value}:{target.index:04x}"
    record = MountRecord(
        device_id=DeviceId(major=_FAMILY_MAJOR[target.family], minor=target.index),
        filesystem_name=name,
        filesystem_type=CLUSTER_FS_TYPE,
        mount_point=component_path(mntdir, target.family, target.index),
        label=f"{fsname}-{target.family.value}",
        uuid=target.uuid or None,
        is_remote=True,
        kind=RecordKind.COMPONENT,
    )
    st = target.statfs
    if st is None:
        record.unreachable = True
        return record
    record.stats = Stats(bsize=st.bsize, blocks=st.blocks, bfree=st.bfree, bavail=st.bavail)
    if st.files > 0:
        record.inodes = Inodes(files=st.files, ffree=st.ffree, favail=st.ffree)
    return record


def aggregate_record(mntdir: str, fsname: str, mdts: List[Target], osts: List[Target]) -> MountRecord:
    """Client view of the whole filesystem: space from OSTs, inodes from MDTs."""
    record = MountRecord(
        device_id=DeviceId(major=0, minor=0),
        filesystem_name=f"{fsname}@lustre",
        filesystem_type=CLUSTER_FS_TYPE,
        mount_point=mntdir,
        label=f"Lustre-{fsname}",
        is_remote=True,
        kind=RecordKind.AGGREGATE,
    )
    active_osts = [t.statfs for t in osts if t.statfs is not None]
    if not active_osts:
        record.unreachable = True
    else:
        record.stats = Stats(
            bsize=next((s.bsize for s in active_osts if s.bsize), DEFAULT_BSIZE),
            blocks=sum(s.blocks for s in active_osts),
            bfree=sum(s.bfree for s in active_osts),
            bavail=sum(s.bavail for s in active_osts),
        )
    files = sum(t.statfs.files for t in mdts if t.statfs is not None)
    ffree = sum(t.statfs.ffree for t in mdts if t.statfs is not None)
    if files > 0:
        record.inodes = Inodes(files=files, ffree=ffree, favail=ffree)
    return record


def _in_range(value: Optional[int], bounds) -> Optional[int]:
    if value is None:
        return None
    low, high = bounds
    if low <= value <= high:
        return value
    _debug(f"discarding out of range layout value {value}")
    return None


def cluster_meta_for(record: MountRecord, layout: Optional[LayoutInfo], version: Optional[str]) -> ClusterMeta:
    """Component type and index come from the synthesized path, layout only for the client."""
    meta = ClusterMeta(version=version)
    parsed = parse_component_path(record.mount_point)
    if parsed is None:
        meta.component_type = CLIENT_COMPONENT
    else:
        meta.component_type = parsed[0].value
        meta.component_index = parsed[1]
    if layout is not None:
        meta.stripe_count = _in_range(layout.stripe_count, STRIPE_COUNT_RANGE)
        meta.stripe_size = _in_range(layout.stripe_size, STRIPE_SIZE_RANGE)
        meta.pool_name = layout.pool_name or None
        meta.mirror_count = layout.mirror_count if layout.mirror_count else None
    return meta


# --- Discovery ---


def collect_instance(
    client: ClusterClient,
    mntdir: str,
    fsname: str,
    meta_table: ClusterMetaTable,
    ceiling: int = LOV_ALL_STRIPES,
) -> List[MountRecord]:
    """All target records plus the aggregate for one mounted instance. Raises OSError."""
    fd = client.open_mount(mntdir)
    try:
        families = {}
        for family in (TargetFamily.MDT, TargetFamily.OST):
            families[family] = scan_family(
                lambda index, family=family: probe_target(client, fd, family, index),
                ceiling,
            )
    finally:
        client.close_mount(fd)

    version = lustre_version()
    records = []
    for family in (TargetFamily.MDT, TargetFamily.OST):
        for target in families[family]:
            record = component_record(mntdir, fsname, target)
            meta_table.record(record.mount_point, cluster_meta_for(record, None, version))
            records.append(record)

    aggregate = aggregate_record(mntdir, fsname, families[TargetFamily.MDT], families[TargetFamily.OST])
    layout = client.layout_of(mntdir)
    meta_table.record(aggregate.mount_point, cluster_meta_for(aggregate, layout, version))
    records.append(aggregate)
    return records


def run(
    executor: Executor,
    meta_table: ClusterMetaTable,
    client: Optional[ClusterClient] = None,
    ceiling: int = LOV_ALL_STRIPES,
) -> List[MountRecord]:
    """Discover every mounted Lustre instance. Empty when Lustre isn't there."""
    if not lustre_available(executor):
        return []
    if client is None:
        client = LustreApi.load()
        if client is None:
            return []
    records: List[MountRecord] = []
    for index in range(ceiling):
        found = client.search_mounts(index)
        if found is None:
            break
        mntdir, fsname = found
        if not mntdir:
            continue
        try:
            records.extend(collect_instance(client, mntdir, fsname, meta_table, ceiling))
        except OSError as e:
            _debug(f"skipping {mntdir}: {e}")
    return records


def is_lustre_path(path: str, executor: Executor, client: Optional[ClusterClient] = None) -> bool:
    if not lustre_available(executor):
        return False
    if client is None:
        client = LustreApi.load()
        if client is None:
            return False
    return client.fsname_of(path) is not None
