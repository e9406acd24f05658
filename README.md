# imagescan

`imagescan` is a library for the work around a vulnerability scan of a
container image or of application dependency files. It holds the data types
of a scan and merges and filters detected packages. It writes reports as
tables, JSON or templates. It carries scan and cache requests between a client
and a server as plain message objects, and it loads, runs and removes
executable plugins.

## Installation

```
pip install imagescan
```

With the test dependencies:

```
pip install "imagescan[test]"
```

## Modules

- `imagescan.log`: the package-wide logger. Errors go to stderr and everything
  below error goes to stdout. `new_logger(debug, disable)` builds one.
  `init_logger(debug, disable)` replaces the shared logger, and `get_logger()`
  returns it. `fatal(err)` logs the error and exits with status 1.
- `imagescan.types`: the core data types. These are `Package`, `Library`,
  `LibraryInfo`, `Layer`, `OS`, `Application`, `PackageInfo`, `ArtifactInfo`,
  `BlobInfo`, `ArtifactDetail`, `ArtifactReference`, `CVSS`,
  `DetectedVulnerability`, `ScanOptions`, `DockerConfig`, `DockerOption`, and
  the `Severity` enum (UNKNOWN, LOW, MEDIUM, HIGH, CRITICAL). Helpers:
  - `parse_severity` raises `ValueError` on unknown names.
  - `compare_severity_string` compares two severity names.
  - `colorize_severity` wraps a severity name in its terminal colour.
  - `sort_by_severity` sorts by package name, installed version, severity
    (most severe first) and ID.
  - `new_vuln_type` returns `"os"` or `"library"`, otherwise `"unknown"`.
  - `new_security_check` returns `"vuln"`, otherwise `"unknown"`.
  - `load_docker_config(environ)` reads `TRIVY_USERNAME`, `TRIVY_PASSWORD`,
    `TRIVY_REGISTRY_TOKEN`, `TRIVY_INSECURE` and `TRIVY_NON_SSL`.
  - `get_docker_option(timeout)` does the same from the process environment.
- `imagescan.versions`: `format_version(pkg)` and `format_src_version(pkg)`
  format a version as `[epoch:]version[-release]`.
- `imagescan.report.model`: `Report`, `Result` and `Results`. `Results` is a
  list, and `Results.failed()` tells whether any result holds a
  vulnerability. `Report.to_dict()` and `Result.to_dict()` give the JSON form,
  and `result_from_dict` reads a result back from it.
- `imagescan.report.writer`: `write(format, output, severities, report,
  output_template, light)`, where the format is `"table"`, `"json"` or
  `"template"`. Any other format raises `ValueError`.
- `imagescan.rpc.messages`: the request, response and payload dataclasses.
  These are `ScanRequest`, `ScanResponse`, `PutArtifactRequest`,
  `PutBlobRequest`, `MissingBlobsRequest`, `MissingBlobsResponse`, and the
  `RPC*` types.
- `imagescan.rpc.convert`: `convert_to_rpc_*` and `convert_from_rpc_*`
  functions between the core types and the messages.
- `imagescan.rpc.retry`: `retry(func)` calls `func`. While it raises an
  `RPCError` with code `ErrorCode.UNAVAILABLE`, it retries up to 10 times
  with randomised exponential backoff. Any other error is raised at once.
- `imagescan.rpc.client`: `RemoteScanner(custom_headers, client)`.
  `RemoteScanner.scan(target, image_id, layer_ids, options)` builds a
  `ScanRequest` and sends it through `client.scan(ctx, request)` with
  `retry`. It returns `(results, os, eosl)`. `with_custom_headers` attaches
  headers to a `RequestContext`, but leaves the context unchanged when a
  reserved header (`Accept`, `Content-Type`, `Twirp-Version`) is given.
- `imagescan.rpc.server`: `ScanServer.scan(request)` runs a local scan driver
  and answers with a `ScanResponse`. `CacheServer` has `put_artifact`,
  `put_blob` and `missing_blobs`, which pass requests on to a cache object.
- `imagescan.scanner.local`: `LocalScanner(applier, ospkg_detector,
  library_detector)` scans OS packages and application libraries. It honours
  `ScanOptions` (vulnerability types, security checks, removed packages,
  listing all packages, skipped files and directories). `skipped` and
  `merge_pkgs` are available on their own. Appliers may raise
  `UnknownOSError` or `NoPackagesDetectedError`, which carry the detail found
  so far. Detectors may raise `UnsupportedOSError`.
- `imagescan.scanner.artifact_scanner`: `Scanner(driver, artifact)`.
  `Scanner.scan_artifact(options)` inspects the artifact, scans it and returns
  a `Report`.
- `imagescan.plugin`: plugin metadata and execution.

## Writing a report

```python
import sys

from imagescan.report.model import Report, Result, Results
from imagescan.report.writer import write
from imagescan.types import DetectedVulnerability, Severity

report = Report(
    results=Results([
        Result(
            target="alpine:3.11 (alpine 3.11)",
            type="alpine",
            vulnerabilities=[
                DetectedVulnerability(
                    vulnerability_id="CVE-2020-0001",
                    pkg_name="musl",
                    installed_version="1.2.3",
                    fixed_version="1.2.4",
                    title="DoS",
                    severity="HIGH",
                ),
            ],
        ),
    ])
)

write("table", sys.stdout, [Severity.HIGH, Severity.CRITICAL], report, "", False)
```

The table writer prints a heading for each result to standard output. The
heading holds the target and the counts of the requested severities. The
table itself then goes to `output`. With `light=True` the title column is
left out. Results of type `jar` with no vulnerabilities are skipped.

The JSON writer writes only the list of results by default, and logs a
deprecation warning. When `TRIVY_NEW_JSON_SCHEMA` is set, it writes the whole
report instead.

The template writer takes the template text. A value that starts with `@` is
read as the path of a template file. Templates are Jinja2 and receive the
results in their JSON form as `results`:

```python
write("template", sys.stdout, None, report,
      "{% for r in results %}{{ r.Target }}: {{ r.Vulnerabilities | length }}\n{% endfor %}",
      False)
```

Templates can use these helpers, both as functions and as filters:
`escapeXML`, `escapeString`, `endWithPeriod`, `toLower`, `toPathUri`,
`toSarifRuleName` and `toSarifErrorLevel`. They can also call the functions
`getEnv(key)` and `getCurrentTime()`, which returns UTC in RFC 3339 format.

## Plugins

Plugins live under `$XDG_DATA_HOME/.trivy/plugins`, or under
`~/.trivy/plugins` when that variable is not set. Each plugin has a directory
holding a `plugin.yaml` file.

```python
from imagescan.plugin import load_all, uninstall

for plugin in load_all():
    print(plugin.name, plugin.version, plugin.usage)

uninstall("kubectl")
```

- `load_metadata(directory)` reads one `plugin.yaml`.
- `load_all()` loads every plugin directory, and logs and skips broken ones.
- `is_installed(url)` finds a plugin by its repository.
- `Plugin.select_platform()` picks the first platform entry that matches the
  current OS and architecture. The `goos` and `goarch` fields override the
  detected ones.
- `Plugin.run(args)` executes the plugin's binary with the given arguments
  and raises `PluginError` when no platform matches or the process fails.

## What the package does not do

- It has no vulnerability database. `LocalScanner` finds no library
  vulnerabilities unless you give it a `library_detector`, and OS package
  detection comes from the detector you pass in.
- It does not analyse image layers itself. The applier and the artifact are
  objects you supply.
- It has no network transport. `RemoteScanner` needs a client object with a
  `scan(ctx, request)` method, and `ScanServer` and `CacheServer` are request
  handlers with no HTTP server around them.
- It does not download or install plugins. It only loads, runs and removes
  plugins that are already in the plugins directory.
- It provides no command-line program.