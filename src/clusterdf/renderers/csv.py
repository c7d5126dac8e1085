"""CSV renderer. Every cell, the last one included, is followed by the separator."""

from typing import Any, List, Optional

from jinja2 import Environment

from ..pipeline import Report
from . import RenderOptions, cell_text


class Csv:
    """Accumulates CSV text, quoting cells that hold the separator, a quote or a newline."""

    def __init__(self, separator: str = ",") -> None:
        self.separator = separator
        self._parts: List[str] = []

    def cell(self, content: Any) -> None:
        s = str(content)
        if self.separator in s or '"' in s or "\n" in s:
            s = '"' + s.replace('"', '""') + '"'
        self._parts.append(s + self.separator)

    def cell_opt(self, content: Optional[Any]) -> None:
        if content is None:
            self._parts.append(self.separator)
        else:
            self.cell(content)

    def end_line(self) -> None:
        self._parts.append("\n")

    def text(self) -> str:
        return "".join(self._parts)


def render(report: Report, env: Environment, options: RenderOptions) -> str:
    csv = Csv(options.csv_separator)
    for col in report.cols:
        csv.cell(col.title_for(options.inodes))
    csv.end_line()
    for record in report.records:
        for col in report.cols:
            csv.cell_opt(cell_text(col, record, report.meta, options, csv=True))
        csv.end_line()
    return csv.text()
