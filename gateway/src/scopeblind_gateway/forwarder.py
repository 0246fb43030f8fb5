# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask
from starlette.requests import ClientDisconnect

from .headers import METADATA_HEADERS, PROOF_HEADERS, allow_origin, cors_headers
from .otel import start_client_span

logger = logging.getLogger(__name__)

_STRIP_REQUEST = {h.lower() for h in ("host",) + PROOF_HEADERS + METADATA_HEADERS}
_STRIP_RESPONSE = {b"connection", b"keep-alive", b"transfer-encoding"}

# Client closed request; never reaches the caller.
CLIENT_CLOSED_REQUEST = 499


def origin_target(request: Request, origin_url: str) -> httpx.URL:
    """Inbound raw path and query on the origin's scheme, host and port."""
    raw_path = request.scope.get("raw_path") or request.url.path.encode("utf-8")
    query = request.scope.get("query_string") or b""
    if query:
        raw_path += b"?" + query
    return httpx.URL(origin_url).copy_with(raw_path=raw_path)


def outbound_headers(inbound: List[Tuple[str, str]], metadata: Dict[str, str]) -> List[Tuple[str, str]]:
    headers = [(k, v) for k, v in inbound if k.lower() not in _STRIP_REQUEST]
    for name, value in metadata.items():
        if value:
            headers.append((name, value))
    return headers


def _has_body(request: Request) -> bool:
    return "content-length" in request.headers or "transfer-encoding" in request.headers


def upstream_error_response(request: Request, req_id: Optional[str] = None) -> JSONResponse:
    headers = cors_headers(request.headers)
    if req_id:
        headers["X-Request-ID"] = req_id
    return JSONResponse(
        status_code=502,
        content={"error": "upstream_error", "message": "Failed to reach backend."},
        headers=headers,
    )


async def forward_to_origin(
    request: Request,
    http: httpx.AsyncClient,
    origin_url: str,
    metadata: Dict[str, str],
    *,
    timeout_s: float,
    req_id: Optional[str] = None,
) -> Response:
    """Relay the request to the origin and stream its response back.

    Origin failures map to 502 whatever the gateway mode is.
    """
    url = origin_target(request, origin_url)
    headers = outbound_headers(request.headers.items(), metadata)
    content = request.stream() if _has_body(request) else None

    with start_client_span("scopeblind.forward") as span:
        span.set_attribute("http.method", request.method)
        span.set_attribute("http.url", str(url))
        try:
            upstream_req = http.build_request(
                request.method,
                url,
                headers=headers,
                content=content,
                timeout=httpx.Timeout(timeout_s),
            )
            upstream = await http.send(upstream_req, stream=True, follow_redirects=True)
        except (httpx.HTTPError, httpx.StreamError) as e:
            logger.error(f"[{req_id}] [GATEWAY] Origin unreachable ({request.method} {url}): {e!r}")
            return upstream_error_response(request, req_id)
        except ClientDisconnect:
            logger.info(f"[{req_id}] [GATEWAY] Client disconnected during upload ({request.method} {url.path})")
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        span.set_attribute("http.status_code", upstream.status_code)

    logger.info(f"[{req_id}] [GATEWAY] Origin responded {upstream.status_code} for {request.method} {url.path}")

    response = StreamingResponse(
        upstream.aiter_raw(),
        status_code=upstream.status_code,
        background=BackgroundTask(upstream.aclose),
    )
    response.raw_headers = [
        (k.lower(), v) for k, v in upstream.headers.raw if k.lower() not in _STRIP_RESPONSE
    ]
    response.headers["Access-Control-Allow-Origin"] = allow_origin(request.headers)
    return response
