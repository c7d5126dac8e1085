"""
Renderers turn a Report into text: table, CSV, JSON, and the column list.

All take the report (or nothing, for the column list), a jinja2 Environment
from make_env() and RenderOptions, and return the text to print.
"""

from typing import Optional

from jinja2 import DictLoader, Environment
from pydantic import BaseModel

from ..columns import Column, ValueKind
from ..schema import ClusterMetaTable, MountRecord
from ..units import Units

# Cells are padded and coloured before they reach the template
TABLE_TEMPLATE = """\
{{ top }}
{{ v }}{% for c in header %} {{ c }} {{ v }}{% endfor %}

{{ mid }}
{% for row in rows %}
{{ v }}{% for c in row %} {{ c }} {{ v }}{% endfor %}

{% endfor %}
{{ bottom }}
"""

DUPLICATES_TEMPLATE = """\
{% for fs, paths in duplicates | dictsort %}
{{ fs }} also mounted on:
{% for p in paths %}
    {{ p }}
{% endfor %}
{% endfor %}
"""

EMPTY_HINT = "no mount to display - try\n    clusterdf -a"

# Columns whose figures switch to inode counts in inode mode
_INODE_SWITCHED = frozenset({"used", "free", "size"})

# Columns drawn with a usage bar in the table
BAR_COLUMNS = frozenset({"use", "inodes"})


class RenderOptions(BaseModel):
    units: Units = Units.SI
    inodes: bool = False
    color: bool = False
    ascii: bool = False
    csv_separator: str = ","


def make_env() -> Environment:
    return Environment(
        loader=DictLoader({"table.txt": TABLE_TEMPLATE, "duplicates.txt": DUPLICATES_TEMPLATE}),
        autoescape=False,
        trim_blocks=True,
        keep_trailing_newline=False,
    )


def percent(share: float) -> str:
    return f"{100.0 * share:.0f}%"


def cell_text(
    col: Column,
    record: MountRecord,
    meta: ClusterMetaTable,
    options: RenderOptions,
    csv: bool = False,
) -> Optional[str]:
    """Display text of one cell, None when the record has no value for the column."""
    value = col.value(record, meta, options.inodes)
    if value is None:
        return None
    if col.kind == ValueKind.BOOL:
        if csv:
            return "yes" if value else "no"
        return "x" if value else ""
    if col.kind == ValueKind.SHARE:
        if csv and col.name in BAR_COLUMNS:
            return str(value)
        return percent(value)
    if col.kind == ValueKind.SIZE:
        if options.inodes and col.name in _INODE_SWITCHED:
            return str(value)
        if csv and col.name == "stripe_size":
            return str(value)
        return options.units.fmt(value)
    return str(value)


def use_error(col: Column, record: MountRecord, options: RenderOptions) -> Optional[str]:
    """Text shown in a usage column instead of figures, if any."""
    if col.name != "use":
        return None
    if record.stats is None and record.unreachable:
        return "unreachable"
    if options.inodes and record.stats is not None and record.inodes is None:
        return "no inodes data"
    return None
