"""Scanning of an artifact: inspect it, then hand it to a scan driver."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from ..log import get_logger
from ..report.model import Report, Results
from ..types import OS, ArtifactReference, ScanOptions


class Driver(Protocol):
    """Detects vulnerabilities in an inspected artifact."""

    def scan(
        self,
        target: str,
        image_id: str,
        layer_ids: Sequence[str],
        options: ScanOptions,
    ) -> tuple[Results, OS | None, bool]: ...


class Artifact(Protocol):
    """Something that can be inspected into a reference to its blobs."""

    def inspect(self) -> ArtifactReference: ...


@dataclass
class Scanner:
    """Combines an artifact and a driver into a full scan."""

    driver: Driver
    artifact: Artifact

    def scan_artifact(self, options: ScanOptions) -> Report:
        """Inspect the artifact, scan it and return the report."""
        try:
            reference = self.artifact.inspect()
        except Exception as exc:
            raise RuntimeError(f"failed analysis: {exc}") from exc

        try:
            results, os_found, eosl = self.driver.scan(
                reference.name, reference.id, list(reference.blob_ids), options
            )
        except Exception as exc:
            raise RuntimeError(f"scan failed: {exc}") from exc

        if eosl:
            logger = get_logger()
            family, name = (os_found.family, os_found.name) if os_found else ("", "")
            logger.warning("This OS version is no longer supported by the distribution: %s %s", family, name)
            logger.warning(
                "The vulnerability detection may be insufficient because security updates are not provided"
            )

        return Report(
            artifact_id=reference.id,
            repo_tags=list(reference.repo_tags),
            repo_digests=list(reference.repo_digests),
            results=Results(results or []),
        )