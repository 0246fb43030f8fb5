# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""Per-request verdicts.

`decide` is the single place where mode, fallback policy and verification
outcome are combined. It performs no I/O so every cell of the decision
table can be exercised directly.

    proof   outcome       shadow                      enforce
    -----   -----------   -------------------------   ---------------------------
    no      -             forward missing/would-block  401 proof_required
    yes     Rejected      forward failed/would-block   429 rate_limited
    yes     Unreachable   forward error/fallback-allow closed: 503, open: forward
    yes     Verified      forward true + remaining     forward true + remaining
"""
from __future__ import annotations

from typing import Any, Dict, FrozenSet, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .config import FallbackPolicy, Mode
from .headers import (
    ACTION_HEADER,
    ERROR_HEADER,
    MODE_HEADER,
    REMAINING_HEADER,
    VERIFIED_HEADER,
)
from .verifier import Rejected, Unreachable, VerificationOutcome, Verified

PROOF_REQUIRED_MESSAGE = "This endpoint requires a ScopeBlind proof. Include it in the X-Proof header."
RATE_LIMITED_MESSAGE = "Request quota exceeded or proof invalid."
UNAVAILABLE_MESSAGE = "Unable to verify request. Try again later."


class Forward(BaseModel):
    model_config = ConfigDict(frozen=True)

    metadata: Dict[str, str] = Field(default_factory=dict)


class Reject(BaseModel):
    model_config = ConfigDict(frozen=True)

    status_code: int
    body: Dict[str, Any]


Decision = Union[Forward, Reject]


def requires_proof(method: str, protected_methods: FrozenSet[str]) -> bool:
    """Request classifier; `protected_methods` is already upper-cased."""
    return method.upper() in protected_methods


def skipped_decision(mode: Mode) -> Forward:
    return Forward(metadata={MODE_HEADER: mode.value, VERIFIED_HEADER: "skipped"})


def _error_body(code: str, message: str, details: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": code, "message": message}
    if details is not None:
        body["details"] = details
    return body


def decide(
    mode: Mode,
    fallback: FallbackPolicy,
    proof_present: bool,
    outcome: Optional[VerificationOutcome] = None,
) -> Decision:
    shadow = mode is Mode.shadow

    if not proof_present:
        if shadow:
            return Forward(
                metadata={
                    MODE_HEADER: mode.value,
                    VERIFIED_HEADER: "missing",
                    ACTION_HEADER: "would-block",
                }
            )
        return Reject(status_code=401, body=_error_body("proof_required", PROOF_REQUIRED_MESSAGE))

    if outcome is None:
        raise ValueError("a verification outcome is required when a proof is present")

    if isinstance(outcome, Verified):
        remaining = "" if outcome.remaining is None else str(outcome.remaining)
        return Forward(
            metadata={
                MODE_HEADER: mode.value,
                VERIFIED_HEADER: "true",
                REMAINING_HEADER: remaining,
            }
        )

    if isinstance(outcome, Rejected):
        if shadow:
            return Forward(
                metadata={
                    MODE_HEADER: mode.value,
                    VERIFIED_HEADER: "failed",
                    ACTION_HEADER: "would-block",
                    ERROR_HEADER: outcome.reason,
                }
            )
        return Reject(
            status_code=429,
            body=_error_body("rate_limited", RATE_LIMITED_MESSAGE, details=outcome.reason),
        )

    if isinstance(outcome, Unreachable):
        if not shadow and fallback is FallbackPolicy.closed:
            return Reject(
                status_code=503,
                body=_error_body("verification_unavailable", UNAVAILABLE_MESSAGE),
            )
        return Forward(
            metadata={
                MODE_HEADER: mode.value,
                VERIFIED_HEADER: "error",
                ACTION_HEADER: "fallback-allow",
            }
        )

    raise TypeError(f"unhandled verification outcome: {type(outcome).__name__}")
