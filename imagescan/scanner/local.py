"""Local scanning: OS packages and application libraries of an analysed artifact."""

from __future__ import annotations

import posixpath
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from ..log import get_logger
from ..report.model import Result, Results
from ..types import (
    OS,
    SECURITY_CHECK_VULNERABILITY,
    VULN_TYPE_LIBRARY,
    VULN_TYPE_OS,
    Application,
    ArtifactDetail,
    DetectedVulnerability,
    LibraryInfo,
    Package,
    ScanOptions,
)


class UnknownOSError(Exception):
    """The OS of the artifact could not be detected; ``detail`` holds what was found."""

    def __init__(self, detail: ArtifactDetail | None = None, message: str = "unknown OS") -> None:
        super().__init__(message)
        self.detail = detail if detail is not None else ArtifactDetail()


class NoPackagesDetectedError(Exception):
    """No OS packages were detected; ``detail`` holds what was found."""

    def __init__(self, detail: ArtifactDetail | None = None, message: str = "no packages detected") -> None:
        super().__init__(message)
        self.detail = detail if detail is not None else ArtifactDetail()


class UnsupportedOSError(Exception):
    """The OS family is not supported by the OS package detector."""

    def __init__(self, message: str = "unsupported os") -> None:
        super().__init__(message)


class _Applier(Protocol):
    def apply_layers(self, artifact_id: str, blob_ids: list[str]) -> ArtifactDetail: ...


class _OSPackageDetector(Protocol):
    def detect(
        self,
        image_name: str,
        os_family: str,
        os_name: str,
        created: datetime | None,
        pkgs: list[Package],
    ) -> tuple[list[DetectedVulnerability], bool]: ...


LibraryDetector = Callable[[str, list[LibraryInfo]], list[DetectedVulnerability]]


def skipped(file_path: str, skip_files: Iterable[str] | None, skip_dirs: Iterable[str] | None) -> bool:
    """Return whether the file is one of the skipped files or lies in a skipped directory."""

    def clean(path: str) -> str:
        return posixpath.normpath(path or ".").lstrip("/")

    file_path = clean(file_path)
    if any(file_path == clean(skip_file) for skip_file in skip_files or []):
        return True
    for skip_dir in skip_dirs or []:
        rel = posixpath.relpath(file_path or ".", clean(skip_dir) or ".")
        if not rel.startswith(".."):
            return True
    return False


def merge_pkgs(pkgs: Sequence[Package], pkgs_from_commands: Iterable[Package]) -> list[Package]:
    """Append packages from commands whose names are not already present."""
    names = {pkg.name for pkg in pkgs}
    merged = list(pkgs)
    merged.extend(pkg for pkg in pkgs_from_commands if pkg.name not in names)
    return merged


@dataclass
class LocalScanner:
    """Detects vulnerabilities in the layers of an artifact."""

    applier: _Applier
    ospkg_detector: _OSPackageDetector
    library_detector: LibraryDetector = field(default=lambda _type, _libs: [])

    def scan(
        self,
        target: str,
        artifact_id: str,
        blob_ids: Sequence[str],
        options: ScanOptions,
    ) -> tuple[Results, OS | None, bool]:
        """Scan the artifact and return the results, the detected OS and the end-of-life flag."""
        logger = get_logger()
        try:
            detail = self.applier.apply_layers(artifact_id, list(blob_ids))
        except UnknownOSError as exc:
            logger.debug("OS is not detected and vulnerabilities in OS packages are not detected.")
            detail = exc.detail
        except NoPackagesDetectedError as exc:
            logger.warning(
                "No OS package is detected. Make sure you haven't deleted any files "
                "that contain information about the installed packages."
            )
            logger.warning('e.g. files under "/lib/apk/db/", "/var/lib/dpkg/" and "/var/lib/rpm"')
            detail = exc.detail
        except Exception as exc:
            raise RuntimeError(f"failed to apply layers: {exc}") from exc

        results = Results()
        eosl = False
        if SECURITY_CHECK_VULNERABILITY in options.security_checks:
            try:
                vuln_results, eosl = self._check_vulnerabilities(target, detail, options)
            except Exception as exc:
                raise RuntimeError(f"failed to detect vulnerabilities: {exc}") from exc
            results.extend(vuln_results)
        return results, detail.os, eosl

    def _check_vulnerabilities(
        self, target: str, detail: ArtifactDetail, options: ScanOptions
    ) -> tuple[Results, bool]:
        results = Results()
        eosl = False
        if VULN_TYPE_OS in options.vuln_type:
            try:
                result, eosl = self._scan_os_pkgs(target, detail, options)
            except Exception as exc:
                raise RuntimeError(f"unable to scan OS packages: {exc}") from exc
            if result is not None:
                results.append(result)

        if VULN_TYPE_LIBRARY in options.vuln_type:
            try:
                results.extend(self._scan_library(detail.applications, options))
            except Exception as exc:
                raise RuntimeError(f"failed to scan application libraries: {exc}") from exc
        return results, eosl

    def _scan_os_pkgs(
        self, target: str, detail: ArtifactDetail, options: ScanOptions
    ) -> tuple[Result | None, bool]:
        logger = get_logger()
        if detail.os is None:
            logger.info("Detected OS: unknown")
            return None, False
        logger.info("Detected OS: %s", detail.os.family)

        pkgs = list(detail.packages)
        if options.scan_removed_packages:
            pkgs = merge_pkgs(pkgs, detail.history_packages)

        try:
            result, eosl = self._detect_vulns_in_os_pkgs(target, detail.os.family, detail.os.name, pkgs)
        except Exception as exc:
            raise RuntimeError(f"failed to scan OS packages: {exc}") from exc
        if result is None:
            return None, eosl

        if options.list_all_packages:
            result.packages = sorted(pkgs, key=lambda p: p.name)
        return result, eosl

    def _detect_vulns_in_os_pkgs(
        self, target: str, os_family: str, os_name: str, pkgs: list[Package]
    ) -> tuple[Result | None, bool]:
        if not os_family:
            return None, False
        try:
            vulns, eosl = self.ospkg_detector.detect("", os_family, os_name, None, pkgs)
        except UnsupportedOSError:
            return None, False
        except Exception as exc:
            raise RuntimeError(f"failed vulnerability detection of OS packages: {exc}") from exc
        result = Result(
            target=f"{target} ({os_family} {os_name})",
            vulnerabilities=list(vulns or []),
            type=os_family,
        )
        return result, eosl

    def _scan_library(self, apps: Sequence[Application], options: ScanOptions) -> Results:
        logger = get_logger()
        logger.info("Number of PL dependency files: %d", len(apps))
        results = Results()
        printed_types: set[str] = set()
        for app in apps:
            if not app.libraries:
                continue
            if skipped(app.file_path, options.skip_files, options.skip_dirs):
                continue
            if app.type not in printed_types:
                logger.info("Detecting %s vulnerabilities...", app.type)
                printed_types.add(app.type)

            logger.debug("Detecting library vulnerabilities, type: %s, path: %s", app.type, app.file_path)
            try:
                vulns = self.library_detector(app.type, list(app.libraries))
            except Exception as exc:
                raise RuntimeError(f"failed vulnerability detection of libraries: {exc}") from exc

            result = Result(target=app.file_path, vulnerabilities=list(vulns or []), type=app.type)
            if options.list_all_packages:
                result.packages = sorted(
                    (
                        Package(name=lib.library.name, version=lib.library.version, layer=lib.layer)
                        for lib in app.libraries
                    ),
                    key=lambda p: p.name,
                )
            results.append(result)
        results.sort(key=lambda r: r.target)
        return results