# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""ScopeBlind Gateway

Reverse proxy that verifies caller proofs against the ScopeBlind verifier
and forwards traffic to an origin, in shadow (measure only) or enforce mode.

Usage:
    from scopeblind_gateway import GatewayConfig, build_app

    app = build_app(GatewayConfig())
"""

from .app import build_app
from .config import FallbackPolicy, GatewayConfig, Mode, get_gateway_cfg
from .forwarder import forward_to_origin
from .policy import Decision, Forward, Reject, decide, requires_proof, skipped_decision
from .routes import router
from .telemetry import TelemetryAction, TelemetryEvent, build_event, emit_event, summarize_events
from .verifier import (
    Rejected,
    Unreachable,
    VerificationOutcome,
    Verified,
    VerifierClient,
)

__all__ = [
    "build_app",
    "router",
    "GatewayConfig",
    "Mode",
    "FallbackPolicy",
    "get_gateway_cfg",
    "VerifierClient",
    "VerificationOutcome",
    "Verified",
    "Rejected",
    "Unreachable",
    "Decision",
    "Forward",
    "Reject",
    "decide",
    "requires_proof",
    "skipped_decision",
    "forward_to_origin",
    "TelemetryAction",
    "TelemetryEvent",
    "build_event",
    "emit_event",
    "summarize_events",
]
