"""Client side of remote scanning."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Protocol

from ..log import get_logger
from ..report.model import Results
from ..types import OS, ScanOptions
from .convert import convert_from_rpc_os, convert_from_rpc_results
from .messages import RPCScanOptions, ScanRequest, ScanResponse
from .retry import retry

_RESERVED_HEADERS = {"accept", "content-type", "twirp-version"}


@dataclass(frozen=True)
class RequestContext:
    """Per-request settings, such as extra HTTP headers."""

    headers: Mapping[str, list[str]] | None = None


def with_custom_headers(ctx: RequestContext, custom_headers: Mapping[str, Sequence[str]]) -> RequestContext:
    """Return a context carrying the headers; on a reserved header, return ``ctx`` unchanged."""
    for key in custom_headers:
        if key.lower() in _RESERVED_HEADERS:
            get_logger().warning("twirp error setting headers: provided header cannot set %s", key)
            return ctx
    return replace(ctx, headers={key: list(values) for key, values in custom_headers.items()})


class _ScannerClient(Protocol):
    def scan(self, ctx: RequestContext, request: ScanRequest) -> ScanResponse: ...


@dataclass
class RemoteScanner:
    """Runs scans on a remote server."""

    custom_headers: Mapping[str, Sequence[str]] = field(default_factory=dict)
    client: _ScannerClient | None = None

    def scan(
        self,
        target: str,
        image_id: str,
        layer_ids: Sequence[str],
        options: ScanOptions,
    ) -> tuple[Results, OS | None, bool]:
        """Scan remotely and return the results, the detected OS and the end-of-life flag."""
        if self.client is None:
            raise RuntimeError("failed to detect vulnerabilities via RPC: no client configured")
        ctx = with_custom_headers(RequestContext(), self.custom_headers)
        client = self.client

        def call() -> ScanResponse:
            return client.scan(
                ctx,
                ScanRequest(
                    target=target,
                    artifact_id=image_id,
                    blob_ids=list(layer_ids),
                    options=RPCScanOptions(
                        vuln_type=list(options.vuln_type),
                        security_checks=list(options.security_checks),
                        list_all_packages=options.list_all_packages,
                    ),
                ),
            )

        try:
            response = retry(call)
        except Exception as exc:
            raise RuntimeError(f"failed to detect vulnerabilities via RPC: {exc}") from exc
        return convert_from_rpc_results(response.results), convert_from_rpc_os(response.os), response.eosl