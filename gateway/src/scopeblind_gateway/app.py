# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI

from .config import GatewayConfig, get_gateway_cfg
from .routes import router

logger = logging.getLogger(__name__)


def build_app(
    cfg: Optional[GatewayConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create the gateway application.

    `cfg` defaults to the environment-backed config; `transport` lets tests
    route outbound calls to in-process stubs.
    """
    cfg = cfg or get_gateway_cfg()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.http_client = httpx.AsyncClient(transport=transport)
        logger.info(
            f"ScopeBlind gateway started: mode={cfg.mode.value} fallback={cfg.fallback.value} "
            f"origin={cfg.origin_url} verifier={cfg.verifier_url} "
            f"protected={','.join(sorted(cfg.protected_methods))}"
        )
        try:
            yield
        finally:
            await app.state.http_client.aclose()
            app.state.http_client = None

    app = FastAPI(
        title="ScopeBlind Gateway",
        description="Edge proxy that verifies ScopeBlind proofs before forwarding to the origin",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    def cfg_factory() -> GatewayConfig:
        return cfg

    app.dependency_overrides[get_gateway_cfg] = cfg_factory
    app.include_router(router)
    return app
