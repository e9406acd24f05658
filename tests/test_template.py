import io
from datetime import datetime, timezone

import pytest

from imagescan.report.model import Report, Result, Results
from imagescan.report.template import (
    end_with_period,
    escape_xml,
    new_template_writer,
    to_path_uri,
    to_sarif_error_level,
    to_sarif_rule_name,
)
from imagescan.types import DetectedVulnerability


def _render(template, vulns, clock=None):
    out = io.StringIO()
    writer = new_template_writer(out, template)
    if clock:
        writer.clock = clock
    writer.write(Report(results=Results([Result(target="foojunit", type="test", vulnerabilities=vulns)])))
    return out.getvalue()


def test_println_severity():
    vulns = [
        DetectedVulnerability(vulnerability_id="CVE-2019-0000", pkg_name="foo", severity="HIGH"),
        DetectedVulnerability(vulnerability_id="CVE-2019-0000", pkg_name="bar", severity="HIGH"),
        DetectedVulnerability(vulnerability_id="CVE-2019-0001", pkg_name="baz", severity="CRITICAL"),
    ]
    tpl = "{% for r in results %}{% for v in r.Vulnerabilities %}{{ v.VulnerabilityID }} {{ v.Severity }}\n{% endfor %}{% endfor %}"
    assert _render(tpl, vulns) == "CVE-2019-0000 HIGH\nCVE-2019-0000 HIGH\nCVE-2019-0001 CRITICAL\n"


def test_junit_escape_xml():
    vuln = DetectedVulnerability(
        vulnerability_id="123", pkg_name="foo \\ test", installed_version="1.2.3",
        title='gcc: POWER9 "DARN" RNG intrinsic produces repeated output',
        description="fixed in curl < 7.20.0 and curl >= 7.60.0.", severity="HIGH",
    )
    tpl = (
        '{% for r in results %}<testsuite name="{{ r.Target }}" type="{{ r.Type }}">'
        '{% for v in r.Vulnerabilities %}<testcase classname="{{ v.PkgName }}-{{ v.InstalledVersion }}" '
        'name="[{{ v.Severity }}] {{ v.VulnerabilityID }}"><failure message="{{ escapeXML(v.Title) }}">'
        "{{ v.Description | escapeXML }}</failure></testcase>{% endfor %}</testsuite>{% endfor %}"
    )
    assert _render(tpl, [vuln]) == (
        '<testsuite name="foojunit" type="test"><testcase classname="foo \\ test-1.2.3" name="[HIGH] 123">'
        '<failure message="gcc: POWER9 &#34;DARN&#34; RNG intrinsic produces repeated output">'
        "fixed in curl &lt; 7.20.0 and curl &gt;= 7.60.0.</failure></testcase></testsuite>"
    )


def test_end_with_period_and_escape_string():
    vulns = [
        DetectedVulnerability(vulnerability_id="CVE-2019-0000", description="without period"),
        DetectedVulnerability(vulnerability_id="CVE-2019-0000", description="with period."),
        DetectedVulnerability(
            vulnerability_id="CVE-2019-0000",
            description="with period and unescaped string curl: Use-after-free when closing 'easy' handle in Curl_close().",
        ),
    ]
    tpl = '{% for r in results %}{% for v in r.Vulnerabilities %}{{ v.VulnerabilityID }} "{{ endWithPeriod(escapeString(v.Description)) }}"{% endfor %}{% endfor %}'
    assert _render(tpl, vulns) == (
        'CVE-2019-0000 "without period."CVE-2019-0000 "with period."CVE-2019-0000 '
        '"with period and unescaped string curl: Use-after-free when closing &#39;easy&#39; handle in Curl_close()."'
    )


def test_counting():
    vulns = [
        DetectedVulnerability(severity="CRITICAL"),
        DetectedVulnerability(severity="CRITICAL"),
        DetectedVulnerability(severity="HIGH"),
    ]
    tpl = (
        "{% for r in results %}{% set vs = r.Vulnerabilities %}"
        "Critical: {{ vs | selectattr('Severity', 'eq', 'CRITICAL') | list | length }}, "
        "High: {{ vs | selectattr('Severity', 'eq', 'HIGH') | list | length }}{% endfor %}"
    )
    assert _render(tpl, vulns) == "Critical: 2, High: 1"


def test_env_and_current_time(monkeypatch):
    monkeypatch.setenv("AWS_ACCOUNT_ID", "123456789012")
    clock = lambda: datetime(2020, 8, 10, 7, 28, 17, 958601, tzinfo=timezone.utc)  # noqa: E731
    got = _render('{{ toLower(getEnv("AWS_ACCOUNT_ID")) }} {{ getCurrentTime() }}', [], clock)
    assert got == "123456789012 2020-08-10T07:28:17.958601Z"


def test_template_from_file(tmp_path):
    path = tmp_path / "t.tpl"
    path.write_text("{% for r in results %}{{ r.Target }}{% endfor %}")
    assert _render("@" + str(path), []) == "foojunit"


def test_missing_template_file(tmp_path):
    with pytest.raises(OSError, match="error retrieving template from path"):
        new_template_writer(io.StringIO(), "@" + str(tmp_path / "none.tpl"))


def test_bad_template():
    with pytest.raises(ValueError, match="error parsing template"):
        new_template_writer(io.StringIO(), "{% for %}")


@pytest.mark.parametrize(
    "vtype, want",
    [
        ("ubuntu", "OS Package Vulnerability (Ubuntu)"),
        ("alpine", "OS Package Vulnerability (Alpine)"),
        ("redhat", "OS Package Vulnerability (Redhat)"),
        ("redhat-oval", "OS Package Vulnerability (Redhat-Oval)"),
        ("debian", "OS Package Vulnerability (Debian)"),
        ("debian-oval", "OS Package Vulnerability (Debian-Oval)"),
        ("fedora", "OS Package Vulnerability (Fedora)"),
        ("amazon", "OS Package Vulnerability (Amazon)"),
        ("oracle-oval", "OS Package Vulnerability (Oracle-Oval)"),
        ("suse-cvrf", "OS Package Vulnerability (Suse-Cvrf)"),
        ("opensuse-cvrf", "OS Package Vulnerability (Opensuse-Cvrf)"),
        ("photon", "OS Package Vulnerability (Photon)"),
        ("centos", "OS Package Vulnerability (Centos)"),
        ("npm", "Programming Language Vulnerability (Npm)"),
        ("yarn", "Programming Language Vulnerability (Yarn)"),
        ("nuget", "Programming Language Vulnerability (Nuget)"),
        ("pipenv", "Programming Language Vulnerability (Pipenv)"),
        ("poetry", "Programming Language Vulnerability (Poetry)"),
        ("bundler", "Programming Language Vulnerability (Bundler)"),
        ("cargo", "Programming Language Vulnerability (Cargo)"),
        ("composer", "Programming Language Vulnerability (Composer)"),
        ("redis", "Other Vulnerability (Redis)"),
    ],
)
def test_sarif_rule_name(vtype, want):
    assert to_sarif_rule_name(vtype) == want


@pytest.mark.parametrize(
    "severity, want",
    [("CRITICAL", "error"), ("HIGH", "error"), ("MEDIUM", "warning"), ("LOW", "note"), ("UNKNOWN", "note"), ("OTHER", "none")],
)
def test_sarif_error_level(severity, want):
    assert to_sarif_error_level(severity) == want


def test_helpers():
    assert to_path_uri("alpine:3.10 (alpine 3.10)") == "alpine:3.10"
    assert to_path_uri("C:\\app\\Gemfile.lock") == "C:/app/Gemfile.lock"
    assert escape_xml("a\tb") == "a&#x9;b"
    assert end_with_period("x") == "x."
    assert end_with_period("x.") == "x."