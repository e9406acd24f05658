import pytest

from imagescan.report.model import Result
from imagescan.scanner.local import (
    LocalScanner,
    NoPackagesDetectedError,
    UnknownOSError,
    UnsupportedOSError,
    merge_pkgs,
    skipped,
)
from imagescan.types import (
    OS,
    Application,
    ArtifactDetail,
    DetectedVulnerability,
    Layer,
    Library,
    LibraryInfo,
    Package,
    ScanOptions,
)

LAYER_ID = "sha256:5216338b40a7b96416b8b9858974bbe4acc3096ee60acbc4dfb1ee02aecceb10"
MUSL_DIFF = "sha256:ebf12965380b39889c99a9c02e82ba465f887b45975b6e389d42e9e6a3857888"
AUSL_DIFF = "sha256:bbf12965380b39889c99a9c02e82ba465f887b45975b6e389d42e9e6a3857888"
RAILS_DIFF = "sha256:0ea33a93585cf1917ba522b2304634c3073654062d5282c1346322967790ef33"
OTHER_DIFF = "sha256:9922bc15eeefe1637b803ef2106f178152ce19a391f24aec838cbe2e48e73303"
GEMS_DIFF = "sha256:5cb2a5009179b1e78ecfef81a19756328bb266456cf9a9dbbcf9af8b83b735f0"

ADVISORIES = {
    ("rails", "4.0.2"): ("CVE-2014-0081", "4.0.3, 3.2.17"),
    ("laravel/framework", "6.0.0"): ("CVE-2021-21263", "8.22.1, 7.30.3, 6.20.12"),
}


def detect_libraries(app_type, libraries):
    vulns = []
    for lib in libraries:
        advisory = ADVISORIES.get((lib.library.name, lib.library.version))
        if advisory:
            vulns.append(
                DetectedVulnerability(
                    vulnerability_id=advisory[0],
                    pkg_name=lib.library.name,
                    installed_version=lib.library.version,
                    fixed_version=advisory[1],
                    layer=lib.layer,
                )
            )
    return vulns


def broken_library_detector(app_type, libraries):
    raise ValueError("broken advisory")


class FakeApplier:
    def __init__(self, detail=None, error=None):
        self.detail = detail if detail is not None else ArtifactDetail()
        self.error = error
        self.calls = []

    def apply_layers(self, artifact_id, blob_ids):
        self.calls.append((artifact_id, list(blob_ids)))
        if self.error is not None:
            raise self.error
        return self.detail


class FakeOSDetector:
    def __init__(self, vulns=(), eosl=False, error=None):
        self.vulns = list(vulns)
        self.eosl = eosl
        self.error = error
        self.calls = []

    def detect(self, image_name, os_family, os_name, created, pkgs):
        self.calls.append((os_family, os_name, list(pkgs)))
        if self.error is not None:
            raise self.error
        return self.vulns, self.eosl


def opts(*vuln_types, **kwargs):
    return ScanOptions(vuln_type=list(vuln_types), security_checks=["vuln"], **kwargs)


def musl():
    return Package(name="musl", version="1.2.3", layer=Layer(diff_id=MUSL_DIFF))


def musl_vuln():
    return DetectedVulnerability(
        vulnerability_id="CVE-2020-9999",
        pkg_name="musl",
        installed_version="1.2.3",
        fixed_version="1.2.4",
        layer=Layer(diff_id=MUSL_DIFF),
    )


def rails_app(diff=RAILS_DIFF, path="/app/Gemfile.lock", version="4.0.2"):
    return Application(
        type="bundler",
        file_path=path,
        libraries=[LibraryInfo(library=Library("rails", version), layer=Layer(diff_id=diff))],
    )


def laravel_app(path="/app/composer-lock.json"):
    return Application(
        type="composer",
        file_path=path,
        libraries=[LibraryInfo(library=Library("laravel/framework", "6.0.0"), layer=Layer(diff_id=OTHER_DIFF))],
    )


def rails_result(diff=RAILS_DIFF, packages=None):
    return Result(
        target="/app/Gemfile.lock",
        type="bundler",
        packages=packages or [],
        vulnerabilities=[
            DetectedVulnerability(
                vulnerability_id="CVE-2014-0081",
                pkg_name="rails",
                installed_version="4.0.2",
                fixed_version="4.0.3, 3.2.17",
                layer=Layer(diff_id=diff),
            )
        ],
    )


def laravel_result(path="/app/composer-lock.json"):
    return Result(
        target=path,
        type="composer",
        vulnerabilities=[
            DetectedVulnerability(
                vulnerability_id="CVE-2021-21263",
                pkg_name="laravel/framework",
                installed_version="6.0.0",
                fixed_version="8.22.1, 7.30.3, 6.20.12",
                layer=Layer(diff_id=OTHER_DIFF),
            )
        ],
    )


def make_scanner(applier, detector, library_detector=detect_libraries):
    return LocalScanner(applier=applier, ospkg_detector=detector, library_detector=library_detector)


def test_happy_path():
    applier = FakeApplier(
        ArtifactDetail(os=OS("alpine", "3.11"), packages=[musl()], applications=[rails_app()])
    )
    detector = FakeOSDetector(vulns=[musl_vuln()])
    results, os_found, eosl = make_scanner(applier, detector).scan(
        "alpine:latest", "", [LAYER_ID], opts("os", "library")
    )
    assert results == [
        Result(target="alpine:latest (alpine 3.11)", type="alpine", vulnerabilities=[musl_vuln()]),
        rails_result(),
    ]
    assert os_found == OS("alpine", "3.11")
    assert eosl is False
    assert applier.calls == [("", [LAYER_ID])]
    assert detector.calls == [("alpine", "3.11", [musl()])]


def test_list_all_packages():
    ausl = Package(name="ausl", version="1.2.3", layer=Layer(diff_id=AUSL_DIFF))
    applier = FakeApplier(
        ArtifactDetail(os=OS("alpine", "3.11"), packages=[musl(), ausl], applications=[rails_app()])
    )
    detector = FakeOSDetector(vulns=[musl_vuln()])
    results, os_found, _ = make_scanner(applier, detector).scan(
        "alpine:latest", "", [LAYER_ID], opts("os", "library", list_all_packages=True)
    )
    assert detector.calls == [("alpine", "3.11", [musl(), ausl])]
    assert results == [
        Result(
            target="alpine:latest (alpine 3.11)",
            type="alpine",
            packages=[ausl, musl()],
            vulnerabilities=[musl_vuln()],
        ),
        rails_result(packages=[Package(name="rails", version="4.0.2", layer=Layer(diff_id=RAILS_DIFF))]),
    ]
    assert os_found == OS("alpine", "3.11")


def test_empty_os():
    applier = FakeApplier(ArtifactDetail(os=OS(), applications=[rails_app(diff=OTHER_DIFF)]))
    detector = FakeOSDetector()
    results, os_found, eosl = make_scanner(applier, detector).scan(
        "alpine:latest", "", [LAYER_ID], opts("os", "library")
    )
    assert results == [rails_result(diff=OTHER_DIFF)]
    assert os_found == OS()
    assert eosl is False
    assert detector.calls == []


def test_no_package_detected():
    detail = ArtifactDetail(os=OS("alpine", "3.11"), applications=[rails_app()])
    applier = FakeApplier(error=NoPackagesDetectedError(detail))
    detector = FakeOSDetector()
    results, os_found, _ = make_scanner(applier, detector).scan(
        "alpine:latest", "", [LAYER_ID], opts("os", "library")
    )
    assert results == [Result(target="alpine:latest (alpine 3.11)", type="alpine"), rails_result()]
    assert os_found == OS("alpine", "3.11")
    assert detector.calls == [("alpine", "3.11", [])]


def test_unsupported_os():
    applier = FakeApplier(ArtifactDetail(os=OS("fedora", "27"), applications=[rails_app(diff=OTHER_DIFF)]))
    detector = FakeOSDetector(error=UnsupportedOSError())
    results, os_found, eosl = make_scanner(applier, detector).scan(
        "fedora:27", "", [LAYER_ID], opts("os", "library")
    )
    assert results == [rails_result(diff=OTHER_DIFF)]
    assert os_found == OS("fedora", "27")
    assert eosl is False


def test_scratch_image():
    applier = FakeApplier(error=UnknownOSError(ArtifactDetail(os=None)))
    detector = FakeOSDetector()
    results, os_found, eosl = make_scanner(applier, detector).scan(
        "busybox:latest", "", ["sha256:a6d5"], opts("os", "library")
    )
    assert results == []
    assert os_found is None
    assert eosl is False
    assert detector.calls == []


def test_only_library_detection():
    applier = FakeApplier(
        ArtifactDetail(
            os=OS("alpine", "3.11"),
            packages=[Package(name="musl", version="1.2.3")],
            applications=[rails_app(diff=GEMS_DIFF), laravel_app()],
        )
    )
    detector = FakeOSDetector()
    results, os_found, _ = make_scanner(applier, detector).scan(
        "alpine:latest", "", [LAYER_ID], opts("library")
    )
    assert results == [rails_result(diff=GEMS_DIFF), laravel_result()]
    assert os_found == OS("alpine", "3.11")
    assert detector.calls == []


def test_skip_directories():
    applier = FakeApplier(
        ArtifactDetail(
            os=OS("alpine", "3.11"),
            applications=[
                rails_app(
                    diff=GEMS_DIFF,
                    path="usr/lib/ruby/gems/2.5.0/gems/http_parser.rb-0.6.0/Gemfile.lock",
                    version="5.1",
                ),
                laravel_app(path="app/composer-lock.json"),
            ],
        )
    )
    results, _, _ = make_scanner(applier, FakeOSDetector()).scan(
        "alpine:latest", "", [LAYER_ID], opts("library", skip_dirs=["/usr/lib/ruby/gems", "/app/k8s"])
    )
    assert results == [laravel_result(path="app/composer-lock.json")]


def test_apply_layers_error():
    applier = FakeApplier(error=ValueError("error"))
    with pytest.raises(RuntimeError, match="failed to apply layers"):
        make_scanner(applier, FakeOSDetector()).scan("alpine:latest", "", [LAYER_ID], opts("os", "library"))


def test_os_detector_error():
    applier = FakeApplier(ArtifactDetail(os=OS("alpine", "3.11"), packages=[musl()]))
    detector = FakeOSDetector(error=ValueError("error"))
    with pytest.raises(RuntimeError, match="failed to scan OS packages"):
        make_scanner(applier, detector).scan("alpine:latest", "", [LAYER_ID], opts("os", "library"))


def test_library_detector_error():
    applier = FakeApplier(
        ArtifactDetail(
            os=OS("alpine", "3.11"),
            packages=[musl()],
            applications=[rails_app(version="6.0")],
        )
    )
    scanner = make_scanner(applier, FakeOSDetector(), broken_library_detector)
    with pytest.raises(RuntimeError, match="failed to scan application libraries"):
        scanner.scan("alpine:latest", "", [LAYER_ID], opts("library"))


def test_eosl_is_reported():
    applier = FakeApplier(ArtifactDetail(os=OS("alpine", "3.1"), packages=[musl()]))
    detector = FakeOSDetector(vulns=[musl_vuln()], eosl=True)
    results, _, eosl = make_scanner(applier, detector).scan("alpine:3.1", "", [LAYER_ID], opts("os"))
    assert eosl is True
    assert [r.target for r in results] == ["alpine:3.1 (alpine 3.1)"]


def test_no_vulnerability_check_gives_no_results():
    applier = FakeApplier(ArtifactDetail(os=OS("alpine", "3.11"), packages=[musl()], applications=[rails_app()]))
    detector = FakeOSDetector(vulns=[musl_vuln()])
    options = ScanOptions(vuln_type=["os", "library"], security_checks=[])
    results, os_found, eosl = make_scanner(applier, detector).scan("alpine:latest", "", [LAYER_ID], options)
    assert results == []
    assert os_found == OS("alpine", "3.11")
    assert eosl is False
    assert detector.calls == []


def test_scan_removed_packages_merges_history():
    bash = Package(name="bash", version="5.0")
    old_musl = Package(name="musl", version="1.0.0")
    applier = FakeApplier(
        ArtifactDetail(os=OS("alpine", "3.11"), packages=[musl()], history_packages=[old_musl, bash])
    )
    detector = FakeOSDetector()
    make_scanner(applier, detector).scan("alpine:latest", "", [LAYER_ID], opts("os", scan_removed_packages=True))
    assert detector.calls == [("alpine", "3.11", [musl(), bash])]


@pytest.mark.parametrize(
    "file_path, skip_files, skip_dirs, want",
    [
        ("app/Gemfile.lock", [], [], False),
        ("app/Gemfile.lock", [], ["/app"], True),
        ("usr/lib/ruby/gems/2.5.0/gems/http_parser.rb-0.6.0/Gemfile.lock", [], ["/usr/lib/ruby"], True),
        ("Gemfile.lock", ["/Gemfile.lock"], [], True),
        ("Gemfile.lock", ["Gemfile.lock"], [], True),
        ("usr/lib/ruby/gems/2.5.0/gems/http_parser.rb-0.6.0/Gemfile.lock", [], ["lib/ruby"], False),
    ],
)
def test_skipped(file_path, skip_files, skip_dirs, want):
    assert skipped(file_path, skip_files, skip_dirs) is want


def test_merge_pkgs_prefers_existing():
    first = Package(name="a", version="1")
    merged = merge_pkgs([first], [Package(name="a", version="2"), Package(name="b", version="3")])
    assert merged == [first, Package(name="b", version="3")]