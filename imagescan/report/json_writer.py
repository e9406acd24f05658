"""JSON output of scan reports."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, TextIO

from ..log import get_logger
from .model import Report


def _dumps(value: Any) -> str:
    text = json.dumps(value, indent=2, ensure_ascii=False)
    return text.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


@dataclass
class JSONWriter:
    """Writes reports as indented JSON."""

    output: TextIO

    def write(self, report: Report) -> None:
        value: Any
        if os.environ.get("TRIVY_NEW_JSON_SCHEMA", ""):
            value = report.to_dict()
        else:
            get_logger().warning(
                "DEPRECATED: the current JSON schema is deprecated, "
                "set TRIVY_NEW_JSON_SCHEMA to use the new one."
            )
            value = [r.to_dict() for r in report.results] if report.results else None
        self.output.write(_dumps(value))