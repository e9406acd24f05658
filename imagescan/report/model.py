"""Scan report model: results per target and their JSON-ready form."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..types import CVSS, DetectedVulnerability, Layer, Package, Severity


def now() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(timezone.utc)


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat().replace("+00:00", "Z")


def _parse_time(text: str | None) -> datetime | None:
    if not text:
        return None
    return datetime.fromisoformat(text.replace("Z", "+00:00"))


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value}


def _layer_to_dict(layer: Layer) -> dict[str, Any]:
    return _compact({"Digest": layer.digest, "DiffID": layer.diff_id})


def _layer_from_dict(data: dict[str, Any] | None) -> Layer:
    data = data or {}
    return Layer(digest=data.get("Digest", ""), diff_id=data.get("DiffID", ""))


def _package_to_dict(pkg: Package) -> dict[str, Any]:
    out = _compact(
        {
            "Name": pkg.name,
            "Version": pkg.version,
            "Release": pkg.release,
            "Epoch": pkg.epoch,
            "Arch": pkg.arch,
            "SrcName": pkg.src_name,
            "SrcVersion": pkg.src_version,
            "SrcRelease": pkg.src_release,
            "SrcEpoch": pkg.src_epoch,
        }
    )
    out["Layer"] = _layer_to_dict(pkg.layer)
    return out


def _package_from_dict(data: dict[str, Any]) -> Package:
    return Package(
        name=data.get("Name", ""),
        version=data.get("Version", ""),
        release=data.get("Release", ""),
        epoch=data.get("Epoch", 0),
        arch=data.get("Arch", ""),
        src_name=data.get("SrcName", ""),
        src_version=data.get("SrcVersion", ""),
        src_release=data.get("SrcRelease", ""),
        src_epoch=data.get("SrcEpoch", 0),
        layer=_layer_from_dict(data.get("Layer")),
    )


def _cvss_to_dict(cvss: CVSS) -> dict[str, Any]:
    return _compact(
        {
            "V2Vector": cvss.v2_vector,
            "V3Vector": cvss.v3_vector,
            "V2Score": cvss.v2_score,
            "V3Score": cvss.v3_score,
        }
    )


def _vuln_to_dict(vuln: DetectedVulnerability) -> dict[str, Any]:
    head = _compact(
        {
            "VulnerabilityID": vuln.vulnerability_id,
            "PkgName": vuln.pkg_name,
            "InstalledVersion": vuln.installed_version,
            "FixedVersion": vuln.fixed_version,
        }
    )
    head["Layer"] = _layer_to_dict(vuln.layer)
    tail = _compact(
        {
            "SeveritySource": vuln.severity_source,
            "PrimaryURL": vuln.primary_url,
            "Title": vuln.title,
            "Description": vuln.description,
            "Severity": vuln.severity,
            "CweIDs": list(vuln.cwe_ids),
            "VendorSeverity": {k: int(v) for k, v in vuln.vendor_severity.items()},
            "CVSS": {k: _cvss_to_dict(v) for k, v in vuln.cvss.items()},
            "References": list(vuln.references),
            "PublishedDate": _format_time(vuln.published_date) if vuln.published_date else None,
            "LastModifiedDate": _format_time(vuln.last_modified_date) if vuln.last_modified_date else None,
        }
    )
    return {**head, **tail}


def _vuln_from_dict(data: dict[str, Any]) -> DetectedVulnerability:
    return DetectedVulnerability(
        vulnerability_id=data.get("VulnerabilityID", ""),
        pkg_name=data.get("PkgName", ""),
        installed_version=data.get("InstalledVersion", ""),
        fixed_version=data.get("FixedVersion", ""),
        layer=_layer_from_dict(data.get("Layer")),
        severity_source=data.get("SeveritySource", ""),
        primary_url=data.get("PrimaryURL", ""),
        title=data.get("Title", ""),
        description=data.get("Description", ""),
        severity=data.get("Severity", ""),
        cwe_ids=list(data.get("CweIDs") or []),
        vendor_severity={k: Severity(v) for k, v in (data.get("VendorSeverity") or {}).items()},
        cvss={
            k: CVSS(
                v2_vector=v.get("V2Vector", ""),
                v3_vector=v.get("V3Vector", ""),
                v2_score=v.get("V2Score", 0.0),
                v3_score=v.get("V3Score", 0.0),
            )
            for k, v in (data.get("CVSS") or {}).items()
        },
        references=list(data.get("References") or []),
        published_date=_parse_time(data.get("PublishedDate")),
        last_modified_date=_parse_time(data.get("LastModifiedDate")),
    )


@dataclass
class Result:
    """A scan target with its detected vulnerabilities."""

    target: str = ""
    type: str = ""
    packages: list[Package] = field(default_factory=list)
    vulnerabilities: list[DetectedVulnerability] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"Target": self.target}
        if self.type:
            out["Type"] = self.type
        if self.packages:
            out["Packages"] = [_package_to_dict(p) for p in self.packages]
        if self.vulnerabilities:
            out["Vulnerabilities"] = [_vuln_to_dict(v) for v in self.vulnerabilities]
        return out


def result_from_dict(data: dict[str, Any]) -> Result:
    """Build a Result from its JSON form."""
    return Result(
        target=data.get("Target", ""),
        type=data.get("Type", ""),
        packages=[_package_from_dict(p) for p in data.get("Packages") or []],
        vulnerabilities=[_vuln_from_dict(v) for v in data.get("Vulnerabilities") or []],
    )


class Results(list):
    """A list of Result objects."""

    def failed(self) -> bool:
        """Return whether any result holds vulnerabilities."""
        return any(r.vulnerabilities for r in self)


@dataclass
class Report:
    """The outcome of scanning one artifact."""

    artifact_id: str = ""
    repo_tags: list[str] = field(default_factory=list)
    repo_digests: list[str] = field(default_factory=list)
    results: Results = field(default_factory=Results)

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "ArtifactID": self.artifact_id,
                "RepoTags": list(self.repo_tags),
                "RepoDigests": list(self.repo_digests),
                "Results": [r.to_dict() for r in self.results or []],
            }
        )