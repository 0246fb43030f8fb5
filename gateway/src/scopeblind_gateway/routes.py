# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from .config import GatewayConfig, get_gateway_cfg
from .forwarder import forward_to_origin
from .headers import (
    HEALTH_PATH,
    client_identifier,
    cors_headers,
    extract_proof,
    preflight_headers,
)
from .policy import Reject, decide, requires_proof, skipped_decision
from .telemetry import build_event, emit_event
from .verifier import Unreachable, VerifierClient

logger = logging.getLogger(__name__)

# An empty method set matches every method, extension methods included.
GATEWAY_METHODS: List[str] = []

router = APIRouter(tags=["scopeblind-gateway"])


def get_http_client(request: Request) -> httpx.AsyncClient:
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="HTTP client not initialized")
    return client


def _request_origin(request: Request) -> str:
    return request.headers.get("Origin") or f"{request.url.scheme}://{request.url.netloc}"


def _client_ip(request: Request) -> str:
    peer = request.client.host if request.client else None
    return client_identifier(request.headers, peer)


def preflight_response(request: Request) -> Response:
    return Response(status_code=204, headers=preflight_headers(request.headers))


def health_payload(cfg: GatewayConfig) -> Dict[str, Any]:
    return {
        "ok": True,
        "mode": cfg.mode.value,
        "origin": cfg.origin_url,
        "verifier": cfg.verifier_url,
    }


def reject_response(request: Request, decision: Reject, req_id: str) -> JSONResponse:
    headers = cors_headers(request.headers)
    headers["X-Request-ID"] = req_id
    return JSONResponse(status_code=decision.status_code, content=decision.body, headers=headers)


@router.api_route("/{full_path:path}", methods=GATEWAY_METHODS, include_in_schema=False, operation_id="scopeblind_gateway")
async def gateway(
    request: Request,
    cfg: GatewayConfig = Depends(get_gateway_cfg),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    # Preflight is answered before anything else, the health path included.
    if request.method == "OPTIONS":
        return preflight_response(request)
    if request.url.path == HEALTH_PATH:
        return JSONResponse(content=health_payload(cfg))

    req_id = uuid.uuid4().hex
    method = request.method
    path = request.url.path

    if not requires_proof(method, cfg.protected_methods):
        return await forward_to_origin(
            request,
            http,
            cfg.origin_url,
            skipped_decision(cfg.mode).metadata,
            timeout_s=cfg.origin_timeout_s,
            req_id=req_id,
        )

    proof = extract_proof(request.headers)
    outcome = None
    if proof is not None:
        verifier = VerifierClient(http, cfg.verifier_url, cfg.verifier_timeout_s)
        outcome = await verifier.verify(proof, _request_origin(request))
        if isinstance(outcome, Unreachable):
            logger.warning(f"[{req_id}] [GATEWAY] Verifier unreachable: {outcome.cause}")

    decision = decide(cfg.mode, cfg.fallback, proof is not None, outcome)
    event = build_event(outcome, method=method, path=path, ip=_client_ip(request), request_id=req_id)
    emit_event(event)
    logger.info(f"[{req_id}] [GATEWAY] {method} {path}: {event.action.value} -> {type(decision).__name__}")

    if isinstance(decision, Reject):
        return reject_response(request, decision, req_id)
    return await forward_to_origin(
        request,
        http,
        cfg.origin_url,
        decision.metadata,
        timeout_s=cfg.origin_timeout_s,
        req_id=req_id,
    )
