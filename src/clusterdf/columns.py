"""
Displayable columns.

COLUMNS is the closed table of column descriptors. Each descriptor carries its
names, titles, alignment, a comparator over two records and the typed value the
renderers and the filter read. Cluster columns read ClusterMeta by mount path
from the table passed in, there is no global registry.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import ParseColumnError
from .schema import ClusterMeta, ClusterMetaTable, MountRecord


class Order(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Align(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class ValueKind(str, Enum):
    """How the filter reads literals compared with the column."""

    TEXT = "text"
    SIZE = "size"
    COUNT = "count"
    SHARE = "share"
    BOOL = "bool"


Comparator = Callable[[MountRecord, MountRecord, ClusterMetaTable], int]
ValueFn = Callable[[MountRecord, ClusterMetaTable, bool], Any]

U32_MAX = 2**32 - 1


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _cmp_optional(a: Any, b: Any, absent_first: bool) -> int:
    if a is not None and b is not None:
        return _cmp(a, b)
    if a is None and b is None:
        return 0
    a_first = (a is None) == absent_first
    return -1 if a_first else 1


def _by(key: Callable[[MountRecord], Any]) -> Comparator:
    return lambda a, b, meta: _cmp(key(a), key(b))


def _by_optional(key: Callable[[MountRecord], Any], absent_first: bool) -> Comparator:
    return lambda a, b, meta: _cmp_optional(key(a), key(b), absent_first)


def _stats(fn: Callable) -> Callable[[MountRecord], Any]:
    return lambda r: fn(r.stats) if r.stats is not None else None


def _inodes(fn: Callable) -> Callable[[MountRecord], Any]:
    return lambda r: fn(r.inodes) if r.inodes is not None else None


def _meta(record: MountRecord, meta: ClusterMetaTable) -> Optional[ClusterMeta]:
    return meta.get(record.mount_point)


def _meta_attr(attr: str) -> ValueFn:
    def value(record: MountRecord, meta: ClusterMetaTable, inodes_mode: bool = False) -> Any:
        entry = _meta(record, meta)
        return getattr(entry, attr) if entry is not None else None
    return value


def _by_meta(attr: str, missing: Any) -> Comparator:
    get = _meta_attr(attr)

    def compare(a: MountRecord, b: MountRecord, meta: ClusterMetaTable) -> int:
        va = get(a, meta)
        vb = get(b, meta)
        return _cmp(missing if va is None else va, missing if vb is None else vb)
    return compare


def _mode(byte_fn: Callable[[MountRecord], Any], inode_fn: Callable[[MountRecord], Any]) -> ValueFn:
    """Value following --inodes."""
    return lambda r, meta, inodes_mode=False: inode_fn(r) if inodes_mode else byte_fn(r)


def _plain(fn: Callable[[MountRecord], Any]) -> ValueFn:
    return lambda r, meta, inodes_mode=False: fn(r)


def _free_share(share: Optional[float]) -> Optional[float]:
    return None if share is None else 1.0 - share


@dataclass(frozen=True)
class Column:
    name: str
    aliases: Tuple[str, ...]
    title: str
    inode_title: str
    description: str
    compare: Comparator = field(repr=False, compare=False)
    value: ValueFn = field(repr=False, compare=False)
    kind: ValueKind = ValueKind.TEXT
    default: bool = False
    order: Order = Order.ASC
    content_align: Align = Align.CENTER
    header_align: Align = Align.CENTER

    def title_for(self, inodes_mode: bool) -> str:
        return self.inode_title if inodes_mode else self.title

    def names(self) -> Tuple[str, ...]:
        return (self.name,) + self.aliases

    def __str__(self) -> str:
        return self.name


_used = _stats(lambda s: s.used)
_share = _stats(lambda s: s.use_share())
_available = _stats(lambda s: s.available)
_size = _stats(lambda s: s.size)
_iused = _inodes(lambda i: i.used)
_ishare = _inodes(lambda i: i.use_share())
_ifree = _inodes(lambda i: i.favail)
_ifiles = _inodes(lambda i: i.files)


def _disk_type(r: MountRecord) -> Optional[str]:
    return r.disk.disk_type() if r.disk is not None else None


COLUMNS: Tuple[Column, ...] = (
    Column(
        "id", (), "id", "id", "mount point id",
        _by_optional(lambda r: r.id, absent_first=True), _plain(lambda r: r.id), ValueKind.COUNT,
    ),
    Column(
        "dev", ("device", "device_id"), "dev", "dev", "device id",
        _by(lambda r: (r.device_id.major, r.device_id.minor)), _plain(lambda r: str(r.device_id)),
    ),
    Column(
        "fs", ("filesystem",), "filesystem", "filesystem", "filesystem",
        _by(lambda r: r.filesystem_name), _plain(lambda r: r.filesystem_name),
        default=True, content_align=Align.LEFT,
    ),
    Column(
        "label", (), "label", "label", "volume label",
        _by_optional(lambda r: r.label, absent_first=False), _plain(lambda r: r.label),
        content_align=Align.LEFT, header_align=Align.LEFT,
    ),
    Column(
        "type", (), "type", "type", "filesystem type",
        _by(lambda r: r.filesystem_type), _plain(lambda r: r.filesystem_type),
    ),
    Column(
        "remote", ("rem",), "remote", "remote", "whether it's a remote filesystem",
        _by(lambda r: r.is_remote), _plain(lambda r: r.is_remote), ValueKind.BOOL, order=Order.DESC,
    ),
    Column(
        "disk", ("dsk",), "disk", "disk", "storage type",
        _by_optional(lambda r: (_disk_type(r) or "").lower() if r.disk is not None else None, absent_first=True),
        _plain(_disk_type),
    ),
    Column(
        "used", (), "bytes used", "inodes used", "bytes used (or inodes used with -i)",
        _by_optional(_used, absent_first=True), _mode(_used, _iused), ValueKind.SIZE, default=True,
    ),
    Column(
        "use", (), "use %", "use %", "usage graphical view (bytes or inodes with -i)",
        _by_optional(_share, absent_first=True), _mode(_share, _ishare), ValueKind.SHARE,
        default=True, order=Order.DESC,
    ),
    Column(
        "use_percent", (), "bytes %", "inodes %", "percentage used (bytes or inodes with -i)",
        _by_optional(_share, absent_first=True), _mode(_share, _ishare), ValueKind.SHARE,
    ),
    Column(
        "free", (), "bytes free", "inodes free", "free bytes (or free inodes with -i)",
        _by_optional(_available, absent_first=True), _mode(_available, _ifree), ValueKind.SIZE, default=True,
    ),
    Column(
        "free_percent", (), "bytes free %", "inodes free %", "percentage free (bytes or inodes with -i)",
        # descending share of use is ascending free share
        _by_optional(lambda r: _free_share(_share(r)), absent_first=True),
        _mode(lambda r: _free_share(_share(r)), lambda r: _free_share(_ishare(r))), ValueKind.SHARE,
        order=Order.DESC,
    ),
    Column(
        "size", (), "bytes total", "inodes total", "total size (bytes or inodes with -i)",
        _by_optional(_size, absent_first=True), _mode(_size, _ifiles), ValueKind.SIZE,
        default=True, order=Order.DESC,
    ),
    Column(
        "inodes_used", ("iused",), "used inodes", "used inodes", "number of inodes used",
        _by_optional(_iused, absent_first=True), _plain(_iused), ValueKind.COUNT,
    ),
    Column(
        "inodes", ("ino", "inodes_use", "iuse"), "inodes", "inodes", "graphical view of inodes usage",
        _by_optional(_ishare, absent_first=True), _plain(_ishare), ValueKind.SHARE,
    ),
    Column(
        "inodes_use_percent", ("iuse_percent",), "inodes%", "inodes%", "percentage of inodes used",
        _by_optional(_ishare, absent_first=True), _plain(_ishare), ValueKind.SHARE,
    ),
    Column(
        "inodes_free", ("ifree",), "free inodes", "free inodes", "number of free inodes",
        _by_optional(_ifree, absent_first=True), _plain(_ifree), ValueKind.COUNT,
    ),
    Column(
        "inodes_total", ("inodes_count", "itotal"), "inodes total", "inodes total", "total count of inodes",
        _by_optional(_ifiles, absent_first=True), _plain(_ifiles), ValueKind.COUNT,
    ),
    Column(
        "mount", ("mount_point", "mp"), "mount point", "mount point", "mount point",
        _by(lambda r: r.mount_point), _plain(lambda r: r.mount_point),
        default=True, content_align=Align.LEFT, header_align=Align.LEFT,
    ),
    Column(
        "fsname", ("fs_name",), "filesystem name", "fsname", "filesystem name",
        _by(lambda r: r.display_fsname()), _plain(lambda r: r.display_fsname()),
        content_align=Align.LEFT, header_align=Align.LEFT,
    ),
    Column(
        "uuid", (), "UUID", "UUID", "filesystem UUID",
        _by_optional(lambda r: r.uuid, absent_first=False), _plain(lambda r: r.uuid),
        content_align=Align.LEFT,
    ),
    Column(
        "partuuid", ("part_uuid",), "PARTUUID", "PARTUUID", "partition UUID",
        _by_optional(lambda r: r.part_uuid, absent_first=False), _plain(lambda r: r.part_uuid),
        content_align=Align.LEFT,
    ),
    Column(
        "stripe_count", ("stripes",), "stripe count", "stripe count",
        "number of OSTs file data is striped across",
        _by_meta("stripe_count", 0), _meta_attr("stripe_count"), ValueKind.COUNT, order=Order.DESC,
    ),
    Column(
        "stripe_size", (), "stripe size", "stripe size", "size of each stripe in bytes",
        _by_meta("stripe_size", 0), _meta_attr("stripe_size"), ValueKind.SIZE, order=Order.DESC,
    ),
    Column(
        "lustre_version", ("lus_ver",), "lustre version", "lustre version", "version of Lustre filesystem",
        _by_meta("version", ""), _meta_attr("version"),
    ),
    Column(
        "pool_name", ("pool",), "pool name", "pool name", "OST pool name for workload isolation",
        _by_meta("pool_name", ""), _meta_attr("pool_name"), content_align=Align.LEFT,
    ),
    Column(
        "component_type", ("comp_type",), "component type", "component type",
        "type of Lustre component (MDT/OST/CLIENT)",
        _by_meta("component_type", ""), _meta_attr("component_type"),
    ),
    Column(
        "component_index", ("comp_idx",), "component index", "component index",
        "index number of the component",
        _by_meta("component_index", U32_MAX), _meta_attr("component_index"), ValueKind.COUNT,
    ),
    Column(
        "mirror_count", ("mirrors",), "mirror count", "mirror count",
        "number of file mirrors for data replication",
        _by_meta("mirror_count", 0), _meta_attr("mirror_count"), ValueKind.COUNT, order=Order.DESC,
    ),
)

_BY_NAME: Dict[str, Column] = {name: col for col in COLUMNS for name in col.names()}

DEFAULT_COLUMNS: Tuple[Column, ...] = tuple(c for c in COLUMNS if c.default)

DEFAULT_SORT_COLUMN = "size"

# Used when only Lustre rows are shown and the user kept the default columns
CLUSTER_VIEW_COLUMNS = "fs+used+use+free+size+mp"


def column(token: str) -> Column:
    """Exact match on a name or an alias."""
    try:
        return _BY_NAME[token]
    except KeyError:
        raise ParseColumnError(token) from None


def _expand(token: str) -> Tuple[Column, ...]:
    if token == "all":
        return COLUMNS
    if token == "default":
        return DEFAULT_COLUMNS
    return (column(token),)


def parse_cols(expr: str) -> List[Column]:
    """
    Column set expression.

    "fs+size+mp" replaces the set, "+dev-fs" edits the default set,
    "default" and "all" name whole sets.
    """
    expr = expr.strip()
    if not expr:
        return []
    cols: List[Column] = list(DEFAULT_COLUMNS) if expr[0] in "+-" else []
    op = "+"
    for piece in re.split(r"([+-])", expr):
        piece = piece.strip()
        if piece in ("+", "-"):
            op = piece
            continue
        if not piece:
            continue
        for col in _expand(piece):
            if op == "+" and col not in cols:
                cols.append(col)
            elif op == "-" and col in cols:
                cols.remove(col)
    return cols


def format_cols(cols: List[Column]) -> str:
    return "+".join(col.name for col in cols)


def is_default_set(cols: List[Column]) -> bool:
    return tuple(cols) == DEFAULT_COLUMNS
