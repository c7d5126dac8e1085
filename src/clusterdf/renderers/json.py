"""JSON renderer: one object per displayed record, all fields regardless of --cols."""

import json
from typing import Any, Dict

from jinja2 import Environment

from ..pipeline import Report
from ..schema import ClusterMetaTable, MountRecord
from . import RenderOptions, percent


def record_value(record: MountRecord, meta: ClusterMetaTable, options: RenderOptions) -> Dict[str, Any]:
    units = options.units
    out: Dict[str, Any] = {
        "id": record.id,
        "dev": {"major": record.device_id.major, "minor": record.device_id.minor},
        "fs": record.filesystem_name,
        "fs-label": record.label,
        "fs-type": record.filesystem_type,
        "mount-point": record.mount_point,
        "kind": record.kind.value,
        "remote": record.is_remote,
        "bound": record.is_bound,
        "unreachable": record.unreachable,
        "uuid": record.uuid,
        "part_uuid": record.part_uuid,
        "disk": None,
        "stats": None,
        "inodes": None,
    }
    if record.disk is not None:
        disk = record.disk.model_dump()
        disk["type"] = record.disk.disk_type()
        out["disk"] = disk
    if record.stats is not None:
        s = record.stats
        out["stats"] = {
            "bsize": s.bsize,
            "blocks": s.blocks,
            "bfree": s.bfree,
            "bavail": s.bavail,
            "size": units.fmt(s.size),
            "used": units.fmt(s.used),
            "used-percent": percent(s.use_share()),
            "available": units.fmt(s.available),
        }
    if record.inodes is not None:
        i = record.inodes
        out["inodes"] = {
            "files": i.files,
            "free": i.ffree,
            "avail": i.favail,
            "used-percent": percent(i.use_share()),
        }
    cluster = meta.get(record.mount_point)
    if cluster is not None:
        out["lustre"] = cluster.model_dump(exclude_none=True)
    return out


def render(report: Report, env: Environment, options: RenderOptions) -> str:
    return json.dumps(
        [record_value(r, report.meta, options) for r in report.records],
        indent=2,
    )
