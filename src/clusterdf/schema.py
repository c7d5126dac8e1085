"""
Mount record schema.

Strongly typed contract between the inspectors (mount table, Lustre discovery),
the aggregation/sorting stages and the renderers. Both data sources are
normalized into MountRecord; cluster-only metadata lives in ClusterMetaTable,
keyed by mount path.
"""

import os
import re
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


CLUSTER_FS_TYPE = "lustre"

# <mntdir>[MDT:0], <mntdir>[OST:12]
_COMPONENT_RE = re.compile(r"^(?P<base>.*)\[(?P<family>MDT|OST):(?P<index>\d+)\]$")


class RecordKind(str, Enum):
    ORDINARY = "ordinary"
    COMPONENT = "component"
    AGGREGATE = "aggregate"


class TargetFamily(str, Enum):
    """Lustre backend target families."""

    MDT = "MDT"
    OST = "OST"


CLIENT_COMPONENT = "CLIENT"


# --- Identity ---


class DeviceId(BaseModel):
    """(major, minor) pair of the device backing a mount."""

    major: int
    minor: int

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.major}:{self.minor}"

    @classmethod
    def parse(cls, text: str) -> "DeviceId":
        major, minor = text.split(":", 1)
        return cls(major=int(major), minor=int(minor))

    @classmethod
    def from_dev(cls, dev: int) -> "DeviceId":
        return cls(major=os.major(dev), minor=os.minor(dev))


# --- Usage figures ---


class Inodes(BaseModel):
    files: int
    ffree: int
    favail: int

    @property
    def used(self) -> int:
        return max(self.files - self.ffree, 0)

    def use_share(self) -> float:
        if self.files == 0:
            return 0.0
        return self.used / self.files


class Stats(BaseModel):
    """Space usage in blocks of bsize bytes."""

    bsize: int
    blocks: int
    bfree: int
    bavail: int

    @property
    def size(self) -> int:
        return self.bsize * self.blocks

    @property
    def used(self) -> int:
        return self.bsize * max(self.blocks - self.bfree, 0)

    @property
    def available(self) -> int:
        return self.bsize * self.bavail

    def use_share(self) -> float:
        """Used over used+available, like df. Never NaN."""
        denominator = self.used + self.available
        if denominator == 0:
            return 0.0
        return self.used / denominator


class Disk(BaseModel):
    """Physical storage behind an ordinary mount, as far as sysfs tells."""

    rotational: Optional[bool] = None
    removable: Optional[bool] = None
    ram: bool = False
    lvm: bool = False
    crypted: bool = False

    def disk_type(self) -> str:
        if self.ram:
            return "RAM"
        if self.crypted:
            return "crypt"
        if self.lvm:
            return "LVM"
        if self.removable:
            return "remov"
        if self.rotational is True:
            return "HDD"
        if self.rotational is False:
            return "SSD"
        return "unknown"


# --- Record ---


class MountRecord(BaseModel):
    """One row of the eventual display."""

    id: Optional[int] = None
    parent: Optional[int] = None
    device_id: DeviceId
    root: str = "/"
    filesystem_name: str
    filesystem_type: str
    mount_point: str
    label: Optional[str] = None
    uuid: Optional[str] = None
    part_uuid: Optional[str] = None
    is_remote: bool = False
    is_bound: bool = False
    stats: Optional[Stats] = None
    unreachable: bool = False  # stats were attempted and failed
    inodes: Optional[Inodes] = None
    disk: Optional[Disk] = None
    kind: RecordKind = RecordKind.ORDINARY

    @property
    def is_cluster(self) -> bool:
        return self.filesystem_type == CLUSTER_FS_TYPE

    @property
    def is_component(self) -> bool:
        return self.kind == RecordKind.COMPONENT or parse_component_path(self.mount_point) is not None

    @property
    def is_cluster_client(self) -> bool:
        """Aggregate row, or a catalog Lustre client mount that discovery did not replace."""
        return self.is_cluster and not self.is_component

    @property
    def identity(self) -> Tuple:
        if self.is_cluster:
            return ("cluster", self.filesystem_name, self.mount_point)
        return ("dev", self.device_id.major, self.device_id.minor)

    def display_fsname(self) -> str:
        """Lustre rows are named by their (synthesized) path, others by fs type."""
        if self.is_cluster:
            return self.mount_point
        return self.filesystem_type


# --- Lustre side table ---


class ClusterMeta(BaseModel):
    """Lustre-specific metadata for one discovered path."""

    stripe_count: Optional[int] = None
    stripe_size: Optional[int] = None  # bytes
    pool_name: Optional[str] = None
    version: Optional[str] = None
    component_type: Optional[str] = None  # MDT, OST or CLIENT
    component_index: Optional[int] = None
    mirror_count: Optional[int] = None


class ClusterMetaTable(BaseModel):
    """ClusterMeta by mount path. Written during discovery, read-only afterwards."""

    entries: Dict[str, ClusterMeta] = Field(default_factory=dict)

    def get(self, mount_point: str) -> Optional[ClusterMeta]:
        return self.entries.get(mount_point)

    def record(self, mount_point: str, meta: ClusterMeta) -> None:
        self.entries[mount_point] = meta

    def __len__(self) -> int:
        return len(self.entries)


# --- Native boundary results ---


class TargetStatfs(BaseModel):
    """Decoded per-target statistics."""

    bsize: int
    blocks: int
    bfree: int
    bavail: int
    files: int
    ffree: int


class LayoutInfo(BaseModel):
    """Default layout of a Lustre directory."""

    stripe_count: Optional[int] = None
    stripe_size: Optional[int] = None
    pool_name: Optional[str] = None
    mirror_count: Optional[int] = None


# --- Options / auxiliary output ---


class ReadOptions(BaseModel):
    remote_stats: bool = True


class DuplicatePaths(BaseModel):
    """Paths collapsed away by deduplication, by filesystem name."""

    by_fs: Dict[str, List[str]] = Field(default_factory=dict)

    def add(self, fs_name: str, path: str) -> None:
        self.by_fs.setdefault(fs_name, []).append(path)

    def is_empty(self) -> bool:
        return not self.by_fs


# --- Synthesized path annotation ---


def component_path(mntdir: str, family: TargetFamily, index: int) -> str:
    return f"{mntdir}[{family.value}:{index}]"


def parse_component_path(mount_point: str) -> Optional[Tuple[TargetFamily, int]]:
    """(family, index) from a synthesized component path, None for real paths."""
    m = _COMPONENT_RE.match(mount_point)
    if not m:
        return None
    return TargetFamily(m.group("family")), int(m.group("index"))


def base_mount_point(mount_point: str) -> str:
    """Real mount directory behind a possibly synthesized component path."""
    m = _COMPONENT_RE.match(mount_point)
    return m.group("base") if m else mount_point
