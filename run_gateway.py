#!/usr/bin/env python3
# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""
Standalone runner for the ScopeBlind Gateway.

Env:
  - ORIGIN_URL (required)
  - SCOPEBLIND_VERIFIER_URL (required)
  - SCOPEBLIND_MODE (shadow|enforce) or SHADOW_MODE (true|false)
  - FALLBACK_MODE (open|closed, default: open)
  - PROTECTED_METHODS (default: POST,PUT,DELETE,PATCH)
  - SCOPEBLIND_VERIFIER_TIMEOUT_S (default: 5)
  - ORIGIN_TIMEOUT_S (default: 30)
  - GATEWAY_HOST (default: 0.0.0.0)
  - GATEWAY_PORT (default: 8787)
"""

import logging
import os
import sys

# Add package source to Python path
repo_root = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.join(repo_root, "gateway", "src"))

# Load .env before the config is read
from dotenv import load_dotenv  # type: ignore
load_dotenv()

from scopeblind_gateway import build_app, get_gateway_cfg
from scopeblind_gateway.otel import setup_otel_from_env


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("scopeblind_gateway.runner")

if setup_otel_from_env():
    logger.info("OpenTelemetry tracing enabled")

app = build_app(get_gateway_cfg())


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("GATEWAY_HOST", "0.0.0.0")
    port = int(os.getenv("GATEWAY_PORT", "8787"))
    uvicorn.run("run_gateway:app", host=host, port=port, log_level="info")
