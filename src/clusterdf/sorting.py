"""Row ordering: user sort specs like 'size-desc', and the Lustre topology order."""

from functools import cmp_to_key
from typing import List, NamedTuple, Tuple

from .columns import DEFAULT_SORT_COLUMN, Column, Order, column
from .errors import ParseColumnError, ParseSortingError
from .schema import ClusterMetaTable, MountRecord, TargetFamily, parse_component_path


class Sorting(NamedTuple):
    col: Column
    order: Order

    @classmethod
    def default(cls) -> "Sorting":
        col = column(DEFAULT_SORT_COLUMN)
        return cls(col, col.order)

    @classmethod
    def parse(cls, text: str) -> "Sorting":
        """'size', 'size-asc', 'use_percent-desc'."""
        name, _, direction = text.strip().partition("-")
        try:
            col = column(name)
        except ParseColumnError as e:
            raise ParseSortingError(str(e)) from e
        if not direction:
            return cls(col, col.order)
        try:
            return cls(col, Order(direction.lower()))
        except ValueError:
            raise ParseSortingError(f"{direction!r} is not a sort direction; use asc or desc") from None

    def __str__(self) -> str:
        return f"{self.col.name}-{self.order.value}"

    def sort(self, records: List[MountRecord], meta: ClusterMetaTable) -> List[MountRecord]:
        """Stable sort."""
        compare = self.col.compare
        if self.order == Order.DESC:
            key = cmp_to_key(lambda a, b: compare(b, a, meta))
        else:
            key = cmp_to_key(lambda a, b: compare(a, b, meta))
        return sorted(records, key=key)


_FAMILY_RANK = {TargetFamily.MDT: 0, TargetFamily.OST: 1}


def topology_key(record: MountRecord) -> Tuple:
    """MDTs by index, then OSTs by index, then anything unparsed by name, client rows last."""
    parsed = parse_component_path(record.mount_point)
    if record.is_cluster_client:
        return (2, 0, 0, record.filesystem_name)
    if parsed is None:
        return (1, 0, 0, record.filesystem_name)
    family, index = parsed
    return (0, _FAMILY_RANK[family], index, record.filesystem_name)


def sort_topology(records: List[MountRecord]) -> List[MountRecord]:
    return sorted(records, key=topology_key)
