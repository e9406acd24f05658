"""Dispatch of report output to the requested format."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, TextIO

from ..types import Severity
from .json_writer import JSONWriter
from .model import Report
from .table import TableWriter
from .template import new_template_writer


class Writer(Protocol):
    """Anything that can write a report."""

    def write(self, report: Report) -> None: ...


def write(
    format: str,
    output: TextIO,
    severities: Sequence[Severity] | None,
    report: Report,
    output_template: str,
    light: bool,
) -> None:
    """Write the report in the given format ("table", "json" or "template")."""
    writer: Writer
    if format == "table":
        writer = TableWriter(output, list(severities or []), light)
    elif format == "json":
        writer = JSONWriter(output)
    elif format == "template":
        writer = new_template_writer(output, output_template)
    else:
        raise ValueError(f"unknown format: {format}")
    writer.write(report)