"""Reports rendered through user-supplied Jinja templates."""

from __future__ import annotations

import os
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TextIO

import jinja2

from . import model
from .model import Report

_PATH_RE = re.compile(r"(?P<path>.+?)(?:\s*\((?:.*?)\).*?)?$")

_OS_TYPES = {
    "ubuntu", "alpine", "redhat", "redhat-oval", "debian", "debian-oval", "fedora", "amazon",
    "oracle-oval", "suse-cvrf", "opensuse-cvrf", "photon", "centos",
}
_LANGUAGE_TYPES = {"npm", "yarn", "nuget", "pipenv", "poetry", "bundler", "cargo", "composer"}

_XML_ESCAPES = {
    '"': "&#34;", "'": "&#39;", "&": "&amp;", "<": "&lt;", ">": "&gt;",
    "\t": "&#x9;", "\n": "&#xA;", "\r": "&#xD;",
}
_HTML_ESCAPES = {"<": "&lt;", ">": "&gt;", "&": "&amp;", "'": "&#39;", '"': "&#34;"}


def escape_xml(text: str) -> str:
    """Escape text for use in XML character data and attributes."""
    return "".join(_XML_ESCAPES.get(ch, ch) for ch in text)


def _escape_html(text: str) -> str:
    return "".join(_HTML_ESCAPES.get(ch, ch) for ch in text)


def end_with_period(text: str) -> str:
    """Append a period unless the text already ends with one."""
    return text if text.endswith(".") else text + "."


def to_path_uri(text: str) -> str:
    """Drop a trailing ``(distro version)`` note and use forward slashes."""
    match = _PATH_RE.search(text)
    if match:
        text = match.group("path")
    return text.replace("\\", "/")


def _title(text: str) -> str:
    chars = []
    prev_sep = True
    for ch in text:
        chars.append(ch.upper() if prev_sep else ch)
        prev_sep = not (ch.isalnum() or ch == "_")
    return "".join(chars)


def to_sarif_rule_name(vulnerability_type: str) -> str:
    """Return the SARIF rule name for a result type."""
    if vulnerability_type in _OS_TYPES:
        rule = "OS Package Vulnerability"
    elif vulnerability_type in _LANGUAGE_TYPES:
        rule = "Programming Language Vulnerability"
    else:
        rule = "Other Vulnerability"
    return f"{rule} ({_title(vulnerability_type)})"


def to_sarif_error_level(severity: str) -> str:
    """Map a severity name to a SARIF level."""
    if severity in ("CRITICAL", "HIGH"):
        return "error"
    if severity == "MEDIUM":
        return "warning"
    if severity in ("LOW", "UNKNOWN"):
        return "note"
    return "none"


def _rfc3339_nano(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    nanos = moment.microsecond * 1000
    frac = "." + f"{nanos:09d}".rstrip("0") if nanos else ""
    return moment.strftime("%Y-%m-%dT%H:%M:%S") + frac + "Z"


@dataclass
class TemplateWriter:
    """Writes report results through a Jinja template; results are available as ``results``."""

    output: TextIO
    template: jinja2.Template
    clock: Callable[[], datetime] = field(default=model.now)

    def write(self, report: Report) -> None:
        results = [r.to_dict() for r in report.results or []]
        try:
            text = self.template.render(results=results, current_time=lambda: _rfc3339_nano(self.clock()))
        except jinja2.TemplateError as exc:
            raise ValueError(f"failed to write with template: {exc}") from exc
        self.output.write(text)


def new_template_writer(output: TextIO, output_template: str) -> TemplateWriter:
    """Build a writer from template text, or from a file when prefixed with ``@``."""
    if output_template.startswith("@"):
        try:
            output_template = Path(output_template[1:]).read_text()
        except OSError as exc:
            raise OSError(f"error retrieving template from path: {exc}") from exc

    env = jinja2.Environment(autoescape=False, keep_trailing_newline=True)
    helpers = {
        "escapeXML": escape_xml,
        "toSarifErrorLevel": to_sarif_error_level,
        "toSarifRuleName": to_sarif_rule_name,
        "endWithPeriod": end_with_period,
        "toLower": str.lower,
        "escapeString": _escape_html,
        "toPathUri": to_path_uri,
    }
    env.filters.update(helpers)
    env.globals.update(helpers)
    env.globals["getEnv"] = lambda key: os.environ.get(key, "")
    writer: TemplateWriter

    def get_current_time() -> str:
        return _rfc3339_nano(writer.clock())

    env.globals["getCurrentTime"] = get_current_time
    try:
        template = env.from_string(output_template)
    except jinja2.TemplateSyntaxError as exc:
        raise ValueError(f"error parsing template: {exc}") from exc
    writer = TemplateWriter(output=output, template=template)
    return writer