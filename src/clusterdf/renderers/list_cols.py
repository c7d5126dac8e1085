"""--list-cols: every column with its aliases, default flag and description."""

from jinja2 import Environment

from ..columns import COLUMNS, Align
from . import RenderOptions
from .table import draw


def render(env: Environment, options: RenderOptions) -> str:
    rows = [
        [
            col.name,
            ", ".join(col.aliases),
            "x" if col.default else "",
            col.description,
        ]
        for col in COLUMNS
    ]
    return draw(
        env,
        ["column", "aliases", "default", "content"],
        rows,
        [Align.LEFT, Align.LEFT, Align.CENTER, Align.LEFT],
        [Align.CENTER] * 4,
        options.ascii,
    )
