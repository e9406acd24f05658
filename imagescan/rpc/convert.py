"""Conversion between scan types and RPC messages."""

from __future__ import annotations

from collections.abc import Iterable

from ..log import get_logger
from ..report.model import Result, Results
from ..types import (
    BLOB_JSON_SCHEMA_VERSION,
    CVSS,
    OS,
    Application,
    ArtifactInfo,
    BlobInfo,
    DetectedVulnerability,
    Layer,
    Library,
    LibraryInfo,
    Package,
    PackageInfo,
    Severity,
    parse_severity,
)
from .messages import (
    RPCCVSS,
    RPCOS,
    MissingBlobsRequest,
    PutArtifactRequest,
    PutBlobRequest,
    RPCApplication,
    RPCArtifactInfo,
    RPCBlobInfo,
    RPCLayer,
    RPCLibrary,
    RPCPackage,
    RPCPackageInfo,
    RPCResult,
    RPCSeverity,
    RPCVulnerability,
    ScanResponse,
)


def convert_to_rpc_pkgs(pkgs: Iterable[Package] | None) -> list[RPCPackage]:
    """Convert packages to RPC packages."""
    return [
        RPCPackage(
            name=p.name,
            version=p.version,
            release=p.release,
            epoch=p.epoch,
            arch=p.arch,
            src_name=p.src_name,
            src_version=p.src_version,
            src_release=p.src_release,
            src_epoch=p.src_epoch,
        )
        for p in pkgs or []
    ]


def convert_from_rpc_pkgs(rpc_pkgs: Iterable[RPCPackage] | None) -> list[Package]:
    """Convert RPC packages to packages."""
    return [
        Package(
            name=p.name,
            version=p.version,
            release=p.release,
            epoch=p.epoch,
            arch=p.arch,
            src_name=p.src_name,
            src_version=p.src_version,
            src_release=p.src_release,
            src_epoch=p.src_epoch,
        )
        for p in rpc_pkgs or []
    ]


def convert_from_rpc_libraries(rpc_libs: Iterable[RPCLibrary] | None) -> list[LibraryInfo]:
    """Convert RPC libraries to library infos."""
    return [LibraryInfo(library=Library(name=lib.name, version=lib.version)) for lib in rpc_libs or []]


def convert_to_rpc_libraries(libs: Iterable[Library] | None) -> list[RPCLibrary]:
    """Convert libraries to RPC libraries."""
    return [RPCLibrary(name=lib.name, version=lib.version) for lib in libs or []]


def _severity(name: str) -> Severity:
    try:
        return parse_severity(name)
    except ValueError as exc:
        get_logger().warning("%s", exc)
        return Severity.UNKNOWN


def convert_to_rpc_vulns(vulns: Iterable[DetectedVulnerability] | None) -> list[RPCVulnerability]:
    """Convert detected vulnerabilities to RPC vulnerabilities."""
    return [
        RPCVulnerability(
            vulnerability_id=v.vulnerability_id,
            pkg_name=v.pkg_name,
            installed_version=v.installed_version,
            fixed_version=v.fixed_version,
            title=v.title,
            description=v.description,
            severity=RPCSeverity(int(_severity(v.severity))),
            references=list(v.references),
            layer=convert_to_rpc_layer(v.layer),
            cvss={
                vendor: RPCCVSS(
                    v2_vector=c.v2_vector,
                    v3_vector=c.v3_vector,
                    v2_score=c.v2_score,
                    v3_score=c.v3_score,
                )
                for vendor, c in v.cvss.items()
            },
            severity_source=v.severity_source,
            cwe_ids=list(v.cwe_ids),
            primary_url=v.primary_url,
            last_modified_date=v.last_modified_date,
            published_date=v.published_date,
        )
        for v in vulns or []
    ]


def convert_to_rpc_layer(layer: Layer) -> RPCLayer:
    """Convert a layer to an RPC layer."""
    return RPCLayer(digest=layer.digest, diff_id=layer.diff_id)


def convert_from_rpc_results(rpc_results: Iterable[RPCResult] | None) -> Results:
    """Convert RPC results to report results."""
    return Results(
        Result(
            target=r.target,
            vulnerabilities=convert_from_rpc_vulns(r.vulnerabilities),
            type=r.type,
            packages=convert_from_rpc_pkgs(r.packages),
        )
        for r in rpc_results or []
    )


def convert_from_rpc_vulns(rpc_vulns: Iterable[RPCVulnerability] | None) -> list[DetectedVulnerability]:
    """Convert RPC vulnerabilities to detected vulnerabilities."""
    return [
        DetectedVulnerability(
            vulnerability_id=v.vulnerability_id,
            pkg_name=v.pkg_name,
            installed_version=v.installed_version,
            fixed_version=v.fixed_version,
            title=v.title,
            description=v.description,
            severity=RPCSeverity(v.severity).name,
            cvss={
                vendor: CVSS(
                    v2_vector=c.v2_vector,
                    v3_vector=c.v3_vector,
                    v2_score=c.v2_score,
                    v3_score=c.v3_score,
                )
                for vendor, c in v.cvss.items()
            },
            references=list(v.references),
            cwe_ids=list(v.cwe_ids),
            last_modified_date=v.last_modified_date,
            published_date=v.published_date,
            layer=convert_from_rpc_layer(v.layer),
            severity_source=v.severity_source,
            primary_url=v.primary_url,
        )
        for v in rpc_vulns or []
    ]


def convert_from_rpc_layer(rpc_layer: RPCLayer | None) -> Layer:
    """Convert an RPC layer to a layer."""
    if rpc_layer is None:
        return Layer()
    return Layer(digest=rpc_layer.digest, diff_id=rpc_layer.diff_id)


def convert_from_rpc_os(rpc_os: RPCOS | None) -> OS | None:
    """Convert an RPC OS to an OS, keeping ``None``."""
    if rpc_os is None:
        return None
    return OS(family=rpc_os.family, name=rpc_os.name)


def convert_from_rpc_package_infos(rpc_pkg_infos: Iterable[RPCPackageInfo] | None) -> list[PackageInfo]:
    """Convert RPC package infos to package infos."""
    return [
        PackageInfo(file_path=info.file_path, packages=convert_from_rpc_pkgs(info.packages))
        for info in rpc_pkg_infos or []
    ]


def convert_from_rpc_applications(rpc_apps: Iterable[RPCApplication] | None) -> list[Application]:
    """Convert RPC applications to applications."""
    return [
        Application(
            type=app.type,
            file_path=app.file_path,
            libraries=convert_from_rpc_libraries(app.libraries),
        )
        for app in rpc_apps or []
    ]


def convert_from_rpc_put_artifact_request(request: PutArtifactRequest) -> ArtifactInfo:
    """Extract the artifact info from a put-artifact request."""
    info = request.artifact_info or RPCArtifactInfo()
    return ArtifactInfo(
        schema_version=info.schema_version,
        architecture=info.architecture,
        created=info.created,
        docker_version=info.docker_version,
        os=info.os,
        history_packages=convert_from_rpc_pkgs(info.history_packages),
    )


def convert_from_rpc_put_blob_request(request: PutBlobRequest) -> BlobInfo:
    """Extract the blob info from a put-blob request."""
    info = request.blob_info or RPCBlobInfo()
    return BlobInfo(
        schema_version=info.schema_version,
        digest=info.digest,
        diff_id=info.diff_id,
        os=convert_from_rpc_os(info.os),
        package_infos=convert_from_rpc_package_infos(info.package_infos),
        applications=convert_from_rpc_applications(info.applications),
        opaque_dirs=list(info.opaque_dirs),
        whiteout_files=list(info.whiteout_files),
    )


def convert_to_rpc_os(fos: OS | None) -> RPCOS | None:
    """Convert an OS to an RPC OS, keeping ``None``."""
    if fos is None:
        return None
    return RPCOS(family=fos.family, name=fos.name)


def convert_to_rpc_artifact_info(image_id: str, image_info: ArtifactInfo) -> PutArtifactRequest:
    """Build a put-artifact request."""
    if image_info.created is None:
        get_logger().warning("invalid timestamp: no creation time")
    return PutArtifactRequest(
        artifact_id=image_id,
        artifact_info=RPCArtifactInfo(
            schema_version=image_info.schema_version,
            architecture=image_info.architecture,
            created=image_info.created,
            docker_version=image_info.docker_version,
            os=image_info.os,
            history_packages=convert_to_rpc_pkgs(image_info.history_packages),
        ),
    )


def convert_to_rpc_blob_info(diff_id: str, blob_info: BlobInfo) -> PutBlobRequest:
    """Build a put-blob request."""
    package_infos = [
        RPCPackageInfo(file_path=info.file_path, packages=convert_to_rpc_pkgs(info.packages))
        for info in blob_info.package_infos
    ]
    applications = [
        RPCApplication(
            type=app.type,
            file_path=app.file_path,
            libraries=[
                RPCLibrary(name=lib.library.name, version=lib.library.version) for lib in app.libraries
            ],
        )
        for app in blob_info.applications
    ]
    return PutBlobRequest(
        diff_id=diff_id,
        blob_info=RPCBlobInfo(
            schema_version=BLOB_JSON_SCHEMA_VERSION,
            digest=blob_info.digest,
            diff_id=blob_info.diff_id,
            os=convert_to_rpc_os(blob_info.os),
            package_infos=package_infos,
            applications=applications,
            opaque_dirs=list(blob_info.opaque_dirs),
            whiteout_files=list(blob_info.whiteout_files),
        ),
    )


def convert_to_missing_blobs_request(image_id: str, layer_ids: Iterable[str]) -> MissingBlobsRequest:
    """Build a missing-blobs request."""
    return MissingBlobsRequest(artifact_id=image_id, blob_ids=list(layer_ids))


def convert_to_rpc_scan_response(results: Iterable[Result] | None, os_found: OS | None, eosl: bool) -> ScanResponse:
    """Build a scan response from report results."""
    rpc_os = RPCOS()
    if os_found is not None:
        rpc_os.family = os_found.family
        rpc_os.name = os_found.name
    return ScanResponse(
        os=rpc_os,
        eosl=eosl,
        results=[
            RPCResult(
                target=r.target,
                type=r.type,
                vulnerabilities=convert_to_rpc_vulns(r.vulnerabilities),
                packages=convert_to_rpc_pkgs(r.packages),
            )
            for r in results or []
        ],
    )