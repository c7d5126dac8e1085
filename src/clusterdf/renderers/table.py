"""Terminal table renderer."""

from typing import List, Optional, Sequence

from jinja2 import Environment

from ..columns import Align, Column
from ..pipeline import Report
from ..schema import MountRecord, RecordKind
from . import BAR_COLUMNS, RenderOptions, cell_text, percent, use_error

# Readable on both dark and light backgrounds
USED_COLOR = 209
AVAI_COLOR = 65
SIZE_COLOR = 172

BAR_WIDTH = 5

_EIGHTHS = " ▏▎▍▌▋▊▉"

_BOX = {"h": "─", "v": "│", "tl": "┌", "tm": "┬", "tr": "┐", "ml": "├", "mm": "┼", "mr": "┤",
        "bl": "└", "bm": "┴", "br": "┘"}
_ASCII = {"h": "-", "v": "|", "tl": "+", "tm": "+", "tr": "+", "ml": "+", "mm": "+", "mr": "+",
          "bl": "+", "bm": "+", "br": "+"}


def _fg(text: str, color: int) -> str:
    return f"\x1b[38;5;{color}m{text}\x1b[0m"


def progress_bar(share: float, ascii: bool = False, width: int = BAR_WIDTH) -> str:
    """Fixed width bar. Unicode eighth blocks, or '#' and '-' in ASCII mode."""
    share = min(max(share, 0.0), 1.0)
    if ascii:
        count = round(share * width)
        return "#" * count + "-" * (width - count)
    eighths = round(share * width * 8)
    full, part = divmod(eighths, 8)
    bar = "█" * full
    if part and full < width:
        bar += _EIGHTHS[part]
    return bar.ljust(width)


def _pad(text: str, width: int, align: Align) -> str:
    if align == Align.LEFT:
        return text.ljust(width)
    if align == Align.RIGHT:
        return text.rjust(width)
    return text.center(width)


def _colorize(col: Column, text: str) -> str:
    if not text.strip():
        return text
    if col.name in ("used", "use_percent", "inodes_used", "inodes_use_percent"):
        return _fg(text, USED_COLOR)
    if col.name in ("free", "free_percent", "inodes_free"):
        return _fg(text, AVAI_COLOR)
    if col.name in ("size", "inodes_total"):
        return f"\x1b[1m{_fg(text, SIZE_COLOR)}"
    return text


def _use_cell(col: Column, record: MountRecord, report: Report, options: RenderOptions):
    """(plain, coloured) text of a bar column."""
    error = use_error(col, record, options)
    if error is not None:
        return error, _fg(error, USED_COLOR) if options.color else error
    share = col.value(record, report.meta, options.inodes)
    if share is None:
        return "", ""
    pct = f"{percent(share):>4}"
    bar = progress_bar(share, options.ascii)
    plain = f"{pct} {bar}"
    if not options.color:
        return plain, plain
    if options.ascii:
        count = bar.count("#")
        drawn = _fg(bar[:count], USED_COLOR) + _fg(bar[count:], AVAI_COLOR)
    else:
        drawn = f"\x1b[38;5;{USED_COLOR};48;5;{AVAI_COLOR}m{bar}\x1b[0m"
    return plain, f"{_fg(pct, USED_COLOR)} {drawn}"


def draw(
    env: Environment,
    titles: Sequence[str],
    rows: Sequence[Optional[Sequence]],
    content_aligns: Sequence[Align],
    header_aligns: Sequence[Align],
    ascii: bool = False,
) -> str:
    """
    Lay out a bordered table.

    Each row cell is either a plain string or a (plain, styled) pair, the plain
    text giving the width. A None row is drawn as a blank separator row.
    """
    norm: List[Optional[List[tuple]]] = []
    for row in rows:
        if row is None:
            norm.append(None)
            continue
        norm.append([c if isinstance(c, tuple) else (c, c) for c in row])
    widths = [len(t) for t in titles]
    for row in norm:
        for i, (plain, _) in enumerate(row or ()):
            widths[i] = max(widths[i], len(plain))

    chars = _ASCII if ascii else _BOX

    def rule(left: str, mid: str, right: str) -> str:
        return left + mid.join(chars["h"] * (w + 2) for w in widths) + right

    header = [_pad(t, w, a) for t, w, a in zip(titles, widths, header_aligns)]
    body = []
    for row in norm:
        if row is None:
            body.append([" " * w for w in widths])
            continue
        cells = []
        for (plain, styled), w, a in zip(row, widths, content_aligns):
            padded = _pad(plain, w, a)
            if styled != plain:
                padded = padded.replace(plain, styled, 1)
            cells.append(padded)
        body.append(cells)

    return env.get_template("table.txt").render(
        top=rule(chars["tl"], chars["tm"], chars["tr"]),
        mid=rule(chars["ml"], chars["mm"], chars["mr"]),
        bottom=rule(chars["bl"], chars["bm"], chars["br"]),
        v=chars["v"],
        header=header,
        rows=body,
    )


def render(report: Report, env: Environment, options: RenderOptions) -> str:
    cols = report.cols
    if not cols:
        return ""
    rows: List[Optional[list]] = []
    separated = False
    for record in report.records:
        if (
            report.cluster_view
            and len(report.records) > 1
            and not separated
            and record.kind == RecordKind.AGGREGATE
        ):
            rows.append(None)
            separated = True
        row = []
        for col in cols:
            if col.name in BAR_COLUMNS:
                row.append(_use_cell(col, record, report, options))
                continue
            text = cell_text(col, record, report.meta, options) or ""
            row.append((text, _colorize(col, text)) if options.color else text)
        rows.append(row)
    return draw(
        env,
        [c.title_for(options.inodes) for c in cols],
        rows,
        [c.content_align for c in cols],
        [c.header_align for c in cols],
        options.ascii,
    )
