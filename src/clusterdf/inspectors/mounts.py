"""Mount catalog: mount table, statvfs, disk kind, labels and uuids. File-based under host_root."""

import os
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..errors import IoError
from ..schema import (
    CLUSTER_FS_TYPE,
    DeviceId,
    Disk,
    Inodes,
    MountRecord,
    ReadOptions,
    Stats,
)

_DEBUG = bool(os.environ.get("CLUSTERDF_DEBUG", ""))

REMOTE_FS_TYPES = frozenset({
    "9p", "afs", "ceph", "cifs", "fuse.glusterfs", "fuse.sshfs", "glusterfs",
    "lustre", "ncpfs", "nfs", "nfs4", "smb3", "smbfs", "sshfs", "beegfs", "gpfs",
})

# Virtual filesystems shown by default even though no disk backs them
ALWAYS_SHOWN_FS_TYPES = frozenset({"zfs"})

# Never shown by default (application bundles, snaps)
EXCLUDED_FS_TYPES = frozenset({"squashfs"})

StatFn = Callable[[str], os.statvfs_result]


def _debug(msg: str) -> None:
    if _DEBUG:
        print(f"[clusterdf] mounts: {msg}", file=sys.stderr)


def _safe_read(p: Path) -> str:
    try:
        return p.read_text().strip()
    except (PermissionError, OSError):
        return ""


def _safe_iterdir(d: Path) -> List[Path]:
    try:
        return sorted(d.iterdir())
    except (PermissionError, OSError):
        return []


def _unescape_octal(field: str) -> str:
    """mountinfo escapes space, tab, newline and backslash as \\ooo."""
    if "\\" not in field:
        return field
    out = []
    i = 0
    while i < len(field):
        chunk = field[i:i + 4]
        if len(chunk) == 4 and chunk[0] == "\\" and all(c in "01234567" for c in chunk[1:]):
            out.append(chr(int(chunk[1:], 8)))
            i += 4
        else:
            out.append(field[i])
            i += 1
    return "".join(out)


def _unescape_hex(name: str) -> str:
    """udev escapes by-label names as \\x20."""
    if "\\x" not in name:
        return name
    return name.encode("latin-1", "backslashreplace").decode("unicode_escape")


def parse_mountinfo_line(line: str) -> Optional[MountRecord]:
    """One /proc/self/mountinfo line to a record without stats. None if malformed."""
    parts = line.split()
    if "-" not in parts:
        return None
    sep = parts.index("-")
    if sep < 6 or len(parts) < sep + 3:
        return None
    try:
        mount_id = int(parts[0])
        parent_id = int(parts[1])
        device_id = DeviceId.parse(parts[2])
    except ValueError:
        return None
    root = _unescape_octal(parts[3])
    fs_type = parts[sep + 1]
    source = _unescape_octal(parts[sep + 2])
    return MountRecord(
        id=mount_id,
        parent=parent_id,
        device_id=device_id,
        root=root,
        filesystem_name=source,
        filesystem_type=fs_type,
        mount_point=_unescape_octal(parts[4]),
        is_remote=is_remote_source(fs_type, source),
    )


def _covers(outer: str, inner: str) -> bool:
    outer = outer.rstrip("/")
    return inner == outer or inner.startswith(outer + "/")


def mark_bind_mounts(records: List[MountRecord]) -> None:
    """
    Flag mounts whose subtree is already reachable through another mount of
    the same device: a mount rooted at an ancestor, or an earlier mount of the
    same root. Sibling btrfs subvolumes (/@, /@home) don't cover each other.
    """
    for i, record in enumerate(records):
        if record.root == "/":
            continue
        for j, other in enumerate(records):
            if j == i or other.device_id != record.device_id:
                continue
            if other.root == record.root:
                if j < i:
                    record.is_bound = True
                    break
            elif _covers(other.root, record.root):
                record.is_bound = True
                break


def is_remote_source(fs_type: str, source: str) -> bool:
    if fs_type in REMOTE_FS_TYPES:
        return True
    if source.startswith("//"):
        return True
    # host:/export (nfs), 10.0.0.1@tcp:/fs (lustre)
    head, sep, tail = source.partition(":")
    return bool(sep) and bool(head) and tail.startswith("/") and not source.startswith("/")


def _stats_from_statvfs(st: os.statvfs_result) -> Optional[Stats]:
    if st.f_blocks == 0:
        return None
    return Stats(
        bsize=st.f_frsize or st.f_bsize,
        blocks=st.f_blocks,
        bfree=st.f_bfree,
        bavail=st.f_bavail,
    )


def _inodes_from_statvfs(st: os.statvfs_result) -> Optional[Inodes]:
    if st.f_files == 0:
        return None
    return Inodes(files=st.f_files, ffree=st.f_ffree, favail=st.f_favail)


def _block_dir(host_root: Path, dev: DeviceId, source: str) -> Optional[Path]:
    """sysfs directory of the backing block device, by device id or else by source name.

    btrfs and other multi-device filesystems report an anonymous 0:N device id
    with no sysfs entry. Their source device still names the disk.
    """
    d = host_root / "sys/dev/block" / str(dev)
    if d.exists():
        return d
    if source.startswith("/dev/"):
        d = host_root / "sys/class/block" / Path(source).name
        if d.exists():
            return d
    return None


def _read_disk(host_root: Path, dev: DeviceId, source: str = "") -> Optional[Disk]:
    """Disk kind from sysfs. Partitions read queue/ from their parent device."""
    d = _block_dir(host_root, dev, source)
    if d is None:
        return None
    try:
        d = d.resolve()
    except (PermissionError, OSError):
        pass
    name = d.name
    disk = Disk(ram=name.startswith(("ram", "zram")))
    dm_uuid = _safe_read(d / "dm/uuid")
    disk.lvm = dm_uuid.startswith("LVM-")
    disk.crypted = dm_uuid.startswith("CRYPT-")
    for candidate in (d, d.parent):
        rotational = _safe_read(candidate / "queue/rotational")
        if rotational:
            disk.rotational = rotational == "1"
            removable = _safe_read(candidate / "removable")
            if removable:
                disk.removable = removable == "1"
            break
    return disk


def _read_by_links(host_root: Path, kind: str) -> Dict[str, str]:
    """Device name -> value from /dev/disk/by-<kind> symlinks."""
    out: Dict[str, str] = {}
    for link in _safe_iterdir(host_root / "dev/disk" / f"by-{kind}"):
        try:
            target = os.readlink(link)
        except (PermissionError, OSError):
            continue
        out[Path(target).name] = _unescape_hex(link.name)
    return out


def read_mountinfo(host_root: Path) -> List[MountRecord]:
    """Parse the mount table. Raises IoError when it can't be read."""
    path = Path(host_root) / "proc/self/mountinfo"
    try:
        text = path.read_text()
    except OSError as e:
        raise IoError(f"Can't read mount table {path}: {e}") from e
    records = []
    for line in text.splitlines():
        if not line.strip():
            continue
        record = parse_mountinfo_line(line)
        if record is None:
            _debug(f"skipping malformed mountinfo line: {line!r}")
            continue
        records.append(record)
    mark_bind_mounts(records)
    return records


def read_mounts(
    host_root: Path,
    options: Optional[ReadOptions] = None,
    statfs: Optional[StatFn] = None,
) -> List[MountRecord]:
    """Enumerate mounts with stats, disk kind and identity strings."""
    host_root = Path(host_root)
    options = options or ReadOptions()
    statfs = statfs or os.statvfs
    records = read_mountinfo(host_root)

    labels = _read_by_links(host_root, "label")
    uuids = _read_by_links(host_root, "uuid")
    part_uuids = _read_by_links(host_root, "partuuid")

    for record in records:
        if record.filesystem_name.startswith("/dev/"):
            dev_name = Path(record.filesystem_name).name
            record.label = labels.get(dev_name)
            record.uuid = uuids.get(dev_name)
            record.part_uuid = part_uuids.get(dev_name)
        if not record.is_remote:
            record.disk = _read_disk(host_root, record.device_id, record.filesystem_name)
        if record.is_remote and not options.remote_stats:
            continue
        try:
            st = statfs(record.mount_point)
        except OSError as e:
            _debug(f"{record.mount_point} unreachable: {e}")
            record.unreachable = True
            continue
        record.stats = _stats_from_statvfs(st)
        record.inodes = _inodes_from_statvfs(st)
    return records


def device_id_of(path: Path) -> DeviceId:
    try:
        st = os.stat(path)
    except OSError as e:
        raise IoError(f"Can't read {str(path)!r} : {e}") from e
    return DeviceId.from_dev(st.st_dev)


def is_normal(record: MountRecord) -> bool:
    """Whether the mount is listed without --all."""
    if record.filesystem_type == CLUSTER_FS_TYPE:
        return True
    return (
        (record.stats is not None or record.unreachable)
        and (
            record.disk is not None
            or record.filesystem_type in ALWAYS_SHOWN_FS_TYPES
            or record.is_remote
        )
        and not record.is_bound
        and record.filesystem_type not in EXCLUDED_FS_TYPES
    )
