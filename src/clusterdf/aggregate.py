"""
Merging of catalog and Lustre discovery records, then deduplication.

Catalog rows for Lustre server targets are dropped in favour of the discovered
component rows, catalog client rows are replaced by the discovered aggregate.
Ordinary filesystems reachable through several paths collapse to one row.
"""

from typing import Dict, List, Tuple

from .schema import DuplicatePaths, MountRecord, RecordKind


def is_server_component_path(mount_point: str) -> bool:
    """Heuristic: a Lustre mount that is an OST/MDT/MDS backing mount rather than a client."""
    path = mount_point
    if "-ost" in path or "-mdt" in path or "-mds" in path:
        return True
    hinted = "lustre" in path or "scratch" in path
    return hinted and ("ost" in path or "mdt" in path)


def drop_server_components(records: List[MountRecord]) -> List[MountRecord]:
    return [
        r for r in records
        if not (r.is_cluster and is_server_component_path(r.mount_point))
    ]


def merge_discovered(catalog: List[MountRecord], discovered: List[MountRecord]) -> List[MountRecord]:
    """Replace catalog client rows with discovered aggregates, append everything else."""
    merged = list(catalog)
    for record in discovered:
        if record.kind == RecordKind.COMPONENT:
            continue
        for pos, existing in enumerate(merged):
            if existing.is_cluster and existing.mount_point == record.mount_point:
                merged[pos] = record
                break
        else:
            merged.append(record)
    merged.extend(r for r in discovered if r.kind == RecordKind.COMPONENT)
    return merged


def _representative(group: List[MountRecord]) -> MountRecord:
    for record in group:
        if record.kind == RecordKind.AGGREGATE:
            return record
    for record in group:
        if record.mount_point == "/":
            return record
    return min(group, key=lambda r: (len(r.mount_point), r.mount_point))


def deduplicate(records: List[MountRecord]) -> Tuple[List[MountRecord], DuplicatePaths]:
    """One row per identity, in order of first appearance."""
    groups: Dict[Tuple, List[MountRecord]] = {}
    for record in records:
        groups.setdefault(record.identity, []).append(record)
    duplicates = DuplicatePaths()
    kept = []
    for group in groups.values():
        if len(group) == 1:
            kept.append(group[0])
            continue
        chosen = _representative(group)
        kept.append(chosen)
        for record in group:
            if record is not chosen:
                duplicates.add(chosen.filesystem_name, record.mount_point)
    return kept, duplicates
