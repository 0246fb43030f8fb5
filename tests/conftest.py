# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
import json
import logging
import os
import sys
from typing import Callable, Dict, List, Optional

import httpx
import pytest


def _add_project_paths_to_syspath() -> None:
    root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    for path in (root, os.path.join(root, "gateway", "src")):
        if path not in sys.path:
            sys.path.insert(0, path)


_add_project_paths_to_syspath()


# Import after adding to syspath
from fastapi.testclient import TestClient

from scopeblind_gateway import GatewayConfig, build_app
from tests.mock_origin import app as origin_app

ORIGIN_URL = "http://origin.test"
VERIFIER_URL = "http://verifier.test/v/tenant-123/verify"
TELEMETRY_LOGGER = "scopeblind_gateway.telemetry"

VerifierHandler = Callable[[httpx.Request], httpx.Response]


def verifier_json(payload: Dict, status_code: int = 200) -> VerifierHandler:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return handler


def verifier_raises(exc_type=httpx.ConnectError, message: str = "connection refused") -> VerifierHandler:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_type(message, request=request)

    return handler


class Upstreams(httpx.AsyncBaseTransport):
    """Routes gateway egress to an in-process verifier handler or the mock origin."""

    def __init__(self) -> None:
        self.origin = httpx.ASGITransport(app=origin_app)
        self.verifier: VerifierHandler = verifier_json({"verified": True, "remaining": 42})
        self.origin_down = False
        self.verifier_requests: List[httpx.Request] = []
        self.origin_requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host == httpx.URL(VERIFIER_URL).host:
            await request.aread()
            self.verifier_requests.append(request)
            return self.verifier(request)
        if host == httpx.URL(ORIGIN_URL).host:
            self.origin_requests.append(request)
            if self.origin_down:
                raise httpx.ConnectError("origin refused connection", request=request)
            return await self.origin.handle_async_request(request)
        raise httpx.ConnectError(f"unexpected host {host}", request=request)


def make_cfg(**overrides) -> GatewayConfig:
    values = {
        "origin_url": ORIGIN_URL,
        "verifier_url": VERIFIER_URL,
        "mode": "shadow",
        "fallback": "open",
        "protected_methods": "POST,PUT,DELETE,PATCH",
        "verifier_timeout_s": 2.0,
        "origin_timeout_s": 5.0,
    }
    values.update(overrides)
    return GatewayConfig(**values)


@pytest.fixture
def upstreams() -> Upstreams:
    return Upstreams()


@pytest.fixture
def gateway(upstreams: Upstreams):
    """Factory: gateway(mode=..., fallback=...) -> TestClient bound to `upstreams`."""
    clients: List[TestClient] = []

    def _make(**overrides) -> TestClient:
        client = TestClient(build_app(make_cfg(**overrides), transport=upstreams))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def telemetry(caplog) -> Callable[[], List[Dict]]:
    """Return the telemetry records emitted so far."""
    caplog.set_level(logging.INFO, logger=TELEMETRY_LOGGER)

    def _events() -> List[Dict]:
        return [
            json.loads(r.getMessage())
            for r in caplog.records
            if r.name == TELEMETRY_LOGGER
        ]

    return _events


@pytest.fixture
def clean_env(monkeypatch) -> None:
    """Remove gateway variables so config tests start from a blank slate."""
    for name in (
        "ORIGIN_URL",
        "SCOPEBLIND_VERIFIER_URL",
        "SCOPEBLIND_MODE",
        "SHADOW_MODE",
        "FALLBACK_MODE",
        "PROTECTED_METHODS",
        "SCOPEBLIND_VERIFIER_TIMEOUT_S",
        "ORIGIN_TIMEOUT_S",
    ):
        monkeypatch.delenv(name, raising=False)
