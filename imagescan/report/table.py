"""Tabular output of scan reports."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from typing import TextIO

from ..types import SEVERITY_NAMES, DetectedVulnerability, Severity, colorize_severity
from .model import Report, Result

_ANSI = re.compile(r"\x1b\[[0-9;]*m")
_NUMERIC = re.compile(r"^-?(?:\d{1,3}(?:,\d{3})*|\d+)(?:\.\d+)?$")
_MAX_COL_WIDTH = 30
_JAR = "jar"


def _width(text: str) -> int:
    return len(_ANSI.sub("", text))


def _wrap(text: str) -> list[str]:
    lines: list[str] = []
    for para in text.split("\n"):
        words = para.split()
        if _width(para) <= _MAX_COL_WIDTH or not words:
            lines.append(para)
            continue
        limit = max(_MAX_COL_WIDTH, max(_width(w) for w in words))
        current = ""
        for word in words:
            if not current:
                current = word
            elif _width(current) + 1 + _width(word) <= limit:
                current += " " + word
            else:
                lines.append(current)
                current = word
        lines.append(current)
    return lines


def _pad(text: str, width: int, align: str) -> str:
    gap = width - _width(text)
    if align == "center":
        left = gap // 2
        return " " * left + text + " " * (gap - left)
    if align == "right":
        return " " * gap + text
    return text + " " * gap


def _render(header: list[str], rows: list[list[str]]) -> str:
    head_cells = [_wrap(h.replace("_", " ").upper()) for h in header]
    body = [[_wrap(c) for c in row] for row in rows]
    widths = [
        max([_width(line) for line in head_cells[col]] + [_width(line) for row in body for line in row[col]])
        for col in range(len(header))
    ]

    def separator(blank: list[bool]) -> str:
        parts = [(" " if b else "-") * (w + 2) for w, b in zip(widths, blank)]
        return "+" + "+".join(parts) + "+"

    def lines_of(cells: list[list[str]], align_for) -> list[str]:
        height = max(len(c) for c in cells)
        out = []
        for i in range(height):
            parts = []
            for col, cell in enumerate(cells):
                text = cell[i] if i < len(cell) else ""
                parts.append(" " + _pad(text, widths[col], align_for(text)) + " ")
            out.append("|" + "|".join(parts) + "|")
        return out

    def data_align(text: str) -> str:
        return "right" if _NUMERIC.match(_ANSI.sub("", text).strip()) else "left"

    no_merge = [False] * len(header)
    merged = [no_merge] + [
        [rows[i][c] == rows[i - 1][c] for c in range(len(header))] for i in range(1, len(rows))
    ]

    out = [separator(no_merge)]
    out += lines_of(head_cells, lambda _t: "center")
    out.append(separator(no_merge))
    for i, row in enumerate(body):
        cells = [[""] if merged[i][c] else cell for c, cell in enumerate(row)]
        out += lines_of(cells, data_align)
        out.append(separator(merged[i + 1] if i + 1 < len(body) else no_merge))
    return "\n".join(out) + "\n"


@dataclass
class TableWriter:
    """Writes reports as text tables."""

    output: TextIO
    severities: list[Severity] = field(default_factory=list)
    light: bool = False

    def write(self, report: Report) -> None:
        for result in report.results or []:
            if result.type == _JAR and not result.vulnerabilities:
                continue
            self._write_result(result)

    def _write_result(self, result: Result) -> None:
        vulns = result.vulnerabilities
        header = ["Library", "Vulnerability ID", "Severity", "Installed Version", "Fixed Version"]
        if not self.light:
            header.append("Title")
        counts: dict[str, int] = {}
        rows = [self._row(v, counts) for v in vulns]

        wanted = {str(s) for s in self.severities or []}
        summary = ", ".join(f"{name}: {counts.get(name, 0)}" for name in SEVERITY_NAMES if name in wanted)
        sys.stdout.write(f"\n{result.target}\n{'=' * len(result.target)}\nTotal: {len(vulns)} ({summary})\n\n")

        if not vulns:
            return
        self.output.write(_render(header, rows))

    def _row(self, v: DetectedVulnerability, counts: dict[str, int]) -> list[str]:
        counts[v.severity] = counts.get(v.severity, 0) + 1
        title = v.title or v.description
        words = title.split(" ")
        if len(words) >= 12:
            title = " ".join(words[:12]) + "..."
        if v.primary_url:
            url = v.primary_url.replace("https://", "", 1) if v.primary_url.startswith("https://") else v.primary_url
            url = url.replace("https://", "").replace("http://", "")
            title = f"{title} -->{url}"
        severity = colorize_severity(v.severity) if self.output is sys.stdout else v.severity
        row = [v.pkg_name, v.vulnerability_id, severity, v.installed_version, v.fixed_version]
        if not self.light:
            row.append(title.strip())
        return row