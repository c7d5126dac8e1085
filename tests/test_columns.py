"""
Column table, column-set expressions and sorting.
"""

import pytest

from clusterdf.columns import (
    COLUMNS,
    DEFAULT_COLUMNS,
    Order,
    column,
    format_cols,
    is_default_set,
    parse_cols,
)
from clusterdf.errors import ParseColumnError, ParseSortingError
from clusterdf.schema import (
    ClusterMeta,
    ClusterMetaTable,
    DeviceId,
    Disk,
    MountRecord,
    RecordKind,
    Stats,
)
from clusterdf.sorting import Sorting, sort_topology


def _record(mp, blocks=None, bavail=0, label=None, disk=None, fs_type="ext4", kind=RecordKind.ORDINARY):
    stats = Stats(bsize=1, blocks=blocks, bfree=bavail, bavail=bavail) if blocks is not None else None
    return MountRecord(
        device_id=DeviceId(major=8, minor=len(mp)),
        filesystem_name=mp,
        filesystem_type=fs_type,
        mount_point=mp,
        label=label,
        stats=stats,
        disk=disk,
        kind=kind,
    )


def test_column_count_and_unique_names():
    names = [name for col in COLUMNS for name in col.names()]
    assert len(COLUMNS) == 29
    assert len(names) == len(set(names))


@pytest.mark.parametrize("col", COLUMNS, ids=lambda c: c.name)
def test_every_name_and_alias_parses(col):
    for name in col.names():
        assert column(name) is col
        assert parse_cols(name) == [col]


def test_unknown_column_carries_token():
    with pytest.raises(ParseColumnError) as e:
        column("sizee")
    assert e.value.raw == "sizee"
    assert "sizee" in str(e.value)


def test_default_set():
    assert format_cols(list(DEFAULT_COLUMNS)) == "fs+used+use+free+size+mount"
    assert is_default_set(parse_cols("default"))


def test_edit_default_set():
    cols = parse_cols("+dev-fs")
    assert format_cols(cols) == "used+use+free+size+mount+dev"


def test_replace_set():
    assert format_cols(parse_cols("fs+size+mp")) == "fs+size+mount"
    assert format_cols(parse_cols("fs+fs")) == "fs"
    assert len(parse_cols("all")) == len(COLUMNS)
    assert parse_cols("") == []


def test_format_round_trips():
    cols = parse_cols("all-uuid")
    assert parse_cols(format_cols(cols)) == cols


def test_bad_token_in_set():
    with pytest.raises(ParseColumnError):
        parse_cols("fs+nope")


def test_titles_depend_on_mode():
    assert column("used").title_for(False) == "bytes used"
    assert column("used").title_for(True) == "inodes used"


def test_sort_default_directions():
    assert Sorting.parse("used").order == Order.ASC
    assert Sorting.parse("size").order == Order.DESC
    assert Sorting.default() == Sorting.parse("size-desc")
    assert str(Sorting.parse("mp-asc")) == "mount-asc"


def test_sort_parse_errors():
    with pytest.raises(ParseSortingError):
        Sorting.parse("nope")
    with pytest.raises(ParseSortingError):
        Sorting.parse("size-up")


def test_size_sort_puts_missing_stats_last_by_default():
    records = [_record("/a", blocks=10), _record("/nostats"), _record("/b", blocks=30)]
    ordered = Sorting.default().sort(records, ClusterMetaTable())
    assert [r.mount_point for r in ordered] == ["/b", "/a", "/nostats"]


def test_label_sort_puts_missing_last_ascending():
    records = [_record("/x"), _record("/b", label="zeta"), _record("/a", label="alpha")]
    ordered = Sorting.parse("label").sort(records, ClusterMetaTable())
    assert [r.label for r in ordered] == ["alpha", "zeta", None]


def test_disk_sort_puts_missing_first_ascending():
    records = [_record("/a", disk=Disk(rotational=True)), _record("/b"), _record("/c", disk=Disk(rotational=False))]
    ordered = Sorting.parse("disk-asc").sort(records, ClusterMetaTable())
    assert [r.mount_point for r in ordered] == ["/b", "/a", "/c"]


def test_sort_is_stable():
    records = [_record("/one", blocks=5), _record("/two", blocks=5), _record("/three", blocks=5)]
    ordered = Sorting.parse("size").sort(records, ClusterMetaTable())
    assert [r.mount_point for r in ordered] == ["/one", "/two", "/three"]


def test_cluster_column_sentinels():
    meta = ClusterMetaTable()
    meta.record("/mnt/l[OST:1]", ClusterMeta(component_index=1, stripe_count=2))
    meta.record("/mnt/l[OST:0]", ClusterMeta(component_index=0))
    records = [_record("/plain"), _record("/mnt/l[OST:1]"), _record("/mnt/l[OST:0]")]
    by_index = Sorting.parse("comp_idx").sort(records, meta)
    assert [r.mount_point for r in by_index] == ["/mnt/l[OST:0]", "/mnt/l[OST:1]", "/plain"]
    by_stripes = Sorting.parse("stripes").sort(records, meta)
    assert by_stripes[0].mount_point == "/mnt/l[OST:1]"


def test_use_share_is_never_nan():
    empty = _record("/e", blocks=0)
    assert empty.stats.use_share() == 0.0


def test_topology_order():
    lustre = dict(fs_type="lustre")
    records = [
        _record("/mnt/l", kind=RecordKind.AGGREGATE, **lustre),
        _record("/mnt/l[OST:10]", kind=RecordKind.COMPONENT, **lustre),
        _record("/mnt/l[OST:2]", kind=RecordKind.COMPONENT, **lustre),
        _record("/mnt/l[MDT:1]", kind=RecordKind.COMPONENT, **lustre),
        _record("/mnt/l[MDT:0]", kind=RecordKind.COMPONENT, **lustre),
    ]
    assert [r.mount_point for r in sort_topology(records)] == [
        "/mnt/l[MDT:0]", "/mnt/l[MDT:1]", "/mnt/l[OST:2]", "/mnt/l[OST:10]", "/mnt/l",
    ]
