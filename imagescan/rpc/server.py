"""Server side of remote scanning and of the remote blob cache."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from ..scanner.artifact_scanner import Driver
from ..types import ArtifactInfo, BlobInfo, DetectedVulnerability, ScanOptions
from .convert import (
    convert_from_rpc_put_artifact_request,
    convert_from_rpc_put_blob_request,
    convert_to_rpc_scan_response,
)
from .messages import (
    MissingBlobsRequest,
    MissingBlobsResponse,
    PutArtifactRequest,
    PutBlobRequest,
    RPCScanOptions,
    ScanRequest,
    ScanResponse,
)


class _VulnerabilityClient(Protocol):
    def fill_info(self, vulns: list[DetectedVulnerability], source: str) -> None: ...


class _Cache(Protocol):
    def put_artifact(self, artifact_id: str, artifact_info: ArtifactInfo) -> None: ...

    def put_blob(self, blob_id: str, blob_info: BlobInfo) -> None: ...

    def missing_blobs(self, artifact_id: str, blob_ids: Sequence[str]) -> tuple[bool, list[str]]: ...


@dataclass
class ScanServer:
    """Answers scan requests with a local scan driver."""

    local_scanner: Driver
    result_client: _VulnerabilityClient | None = None

    def scan(self, request: ScanRequest) -> ScanResponse:
        """Scan the requested artifact and return the results as a response."""
        rpc_options = request.options or RPCScanOptions()
        options = ScanOptions(
            vuln_type=list(rpc_options.vuln_type),
            security_checks=list(rpc_options.security_checks),
            list_all_packages=rpc_options.list_all_packages,
        )
        try:
            results, os_found, eosl = self.local_scanner.scan(
                request.target, request.artifact_id, list(request.blob_ids), options
            )
        except Exception as exc:
            raise RuntimeError(f"failed scan, {request.target}: {exc}") from exc

        if self.result_client is not None:
            for result in results:
                self.result_client.fill_info(result.vulnerabilities, result.type)
        return convert_to_rpc_scan_response(results, os_found, eosl)


@dataclass
class CacheServer:
    """Stores artifact and blob information sent by clients."""

    cache: _Cache

    def put_artifact(self, request: PutArtifactRequest) -> None:
        """Store the artifact information."""
        if request.artifact_info is None:
            raise ValueError("empty image info")
        info = convert_from_rpc_put_artifact_request(request)
        try:
            self.cache.put_artifact(request.artifact_id, info)
        except Exception as exc:
            raise RuntimeError(f"unable to store image info in cache: {exc}") from exc

    def put_blob(self, request: PutBlobRequest) -> None:
        """Store the blob information."""
        if request.blob_info is None:
            raise ValueError("empty layer info")
        info = convert_from_rpc_put_blob_request(request)
        try:
            self.cache.put_blob(request.diff_id, info)
        except Exception as exc:
            raise RuntimeError(f"unable to store layer info in cache: {exc}") from exc

    def missing_blobs(self, request: MissingBlobsRequest) -> MissingBlobsResponse:
        """Report whether the artifact and which blobs are missing from the cache."""
        try:
            missing_artifact, blob_ids = self.cache.missing_blobs(request.artifact_id, list(request.blob_ids))
        except Exception as exc:
            raise RuntimeError(f"failed to get missing blobs: {exc}") from exc
        return MissingBlobsResponse(missing_artifact=missing_artifact, missing_blob_ids=list(blob_ids))