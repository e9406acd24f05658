"""Messages exchanged between the scan client, the scan server and the cache server."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum


class RPCSeverity(IntEnum):
    """Severity as carried on the wire."""

    UNKNOWN = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


@dataclass
class RPCPackage:
    name: str = ""
    version: str = ""
    release: str = ""
    epoch: int = 0
    arch: str = ""
    src_name: str = ""
    src_version: str = ""
    src_release: str = ""
    src_epoch: int = 0


@dataclass
class RPCLibrary:
    name: str = ""
    version: str = ""


@dataclass
class RPCLayer:
    digest: str = ""
    diff_id: str = ""


@dataclass
class RPCCVSS:
    v2_vector: str = ""
    v3_vector: str = ""
    v2_score: float = 0.0
    v3_score: float = 0.0


@dataclass
class RPCVulnerability:
    vulnerability_id: str = ""
    pkg_name: str = ""
    installed_version: str = ""
    fixed_version: str = ""
    title: str = ""
    description: str = ""
    severity: RPCSeverity = RPCSeverity.UNKNOWN
    references: list[str] = field(default_factory=list)
    layer: RPCLayer | None = None
    cvss: dict[str, RPCCVSS] = field(default_factory=dict)
    severity_source: str = ""
    cwe_ids: list[str] = field(default_factory=list)
    primary_url: str = ""
    last_modified_date: datetime | None = None
    published_date: datetime | None = None


@dataclass
class RPCOS:
    family: str = ""
    name: str = ""


@dataclass
class RPCPackageInfo:
    file_path: str = ""
    packages: list[RPCPackage] = field(default_factory=list)


@dataclass
class RPCApplication:
    type: str = ""
    file_path: str = ""
    libraries: list[RPCLibrary] = field(default_factory=list)


@dataclass
class RPCResult:
    target: str = ""
    vulnerabilities: list[RPCVulnerability] = field(default_factory=list)
    type: str = ""
    packages: list[RPCPackage] = field(default_factory=list)


@dataclass
class RPCScanOptions:
    vuln_type: list[str] = field(default_factory=list)
    security_checks: list[str] = field(default_factory=list)
    list_all_packages: bool = False


@dataclass
class ScanRequest:
    target: str = ""
    artifact_id: str = ""
    blob_ids: list[str] = field(default_factory=list)
    options: RPCScanOptions | None = None


@dataclass
class ScanResponse:
    os: RPCOS | None = None
    eosl: bool = False
    results: list[RPCResult] = field(default_factory=list)


@dataclass
class RPCArtifactInfo:
    schema_version: int = 0
    architecture: str = ""
    created: datetime | None = None
    docker_version: str = ""
    os: str = ""
    history_packages: list[RPCPackage] = field(default_factory=list)


@dataclass
class PutArtifactRequest:
    artifact_id: str = ""
    artifact_info: RPCArtifactInfo | None = None


@dataclass
class RPCBlobInfo:
    schema_version: int = 0
    digest: str = ""
    diff_id: str = ""
    os: RPCOS | None = None
    package_infos: list[RPCPackageInfo] = field(default_factory=list)
    applications: list[RPCApplication] = field(default_factory=list)
    opaque_dirs: list[str] = field(default_factory=list)
    whiteout_files: list[str] = field(default_factory=list)


@dataclass
class PutBlobRequest:
    diff_id: str = ""
    blob_info: RPCBlobInfo | None = None


@dataclass
class MissingBlobsRequest:
    artifact_id: str = ""
    blob_ids: list[str] = field(default_factory=list)


@dataclass
class MissingBlobsResponse:
    missing_artifact: bool = False
    missing_blob_ids: list[str] = field(default_factory=list)