# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import logging
from typing import Any, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .otel import start_client_span, trace_headers

logger = logging.getLogger(__name__)


# -------------------------------
# Outcomes
# -------------------------------


class Verified(BaseModel):
    model_config = ConfigDict(frozen=True)

    remaining: Optional[int] = None


class Rejected(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str = "unknown"
    status_code: Optional[int] = None


class Unreachable(BaseModel):
    model_config = ConfigDict(frozen=True)

    cause: str


VerificationOutcome = Union[Verified, Rejected, Unreachable]


# -------------------------------
# Wire model
# -------------------------------


class VerifyResponse(BaseModel):
    """Body returned by the verification service."""

    model_config = ConfigDict(extra="allow")

    verified: bool = False
    remaining: Optional[int] = None
    error: Optional[str] = None
    receipt: Optional[Any] = None

    @field_validator("verified", mode="before")
    @classmethod
    def validate_verified(cls, v):
        # Only a JSON true counts; null or any other value is a failed verification.
        return v is True

    @field_validator("remaining", mode="before")
    @classmethod
    def validate_remaining(cls, v):
        # Quota is informational; a non-integral or non-numeric value is dropped.
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        if isinstance(v, float) and not v.is_integer():
            return None
        return int(v)

    @field_validator("error", mode="before")
    @classmethod
    def validate_error(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)


def interpret_response(resp: httpx.Response) -> VerificationOutcome:
    """Map a verifier HTTP response onto an outcome."""
    try:
        data = resp.json()
    except ValueError as e:
        return Unreachable(cause=f"invalid verifier response: {e}")
    if not isinstance(data, dict):
        return Unreachable(cause="invalid verifier response: expected a JSON object")
    try:
        body = VerifyResponse(**data)
    except ValidationError as e:
        return Unreachable(cause=f"invalid verifier response: {e.error_count()} validation error(s)")

    if resp.is_success and body.verified is True:
        return Verified(remaining=body.remaining)
    return Rejected(reason=body.error or "unknown", status_code=resp.status_code)


class VerifierClient:
    """Submits proof tokens to the remote verification endpoint.

    One POST per call, no retries and no caching; the configured timeout
    bounds the whole exchange and its expiry maps to Unreachable.
    """

    def __init__(self, http: httpx.AsyncClient, endpoint: str, timeout_s: float):
        if not endpoint:
            raise ValueError("endpoint required")
        self.http = http
        self.endpoint = endpoint
        self.timeout = httpx.Timeout(timeout_s)

    async def verify(self, proof: str, request_origin: str) -> VerificationOutcome:
        with start_client_span("scopeblind.verify") as span:
            span.set_attribute("http.url", self.endpoint)
            headers = {
                "Content-Type": "application/json",
                "Origin": request_origin,
                **trace_headers(),
            }
            try:
                # The proof header already carries a JSON document; it is sent as-is.
                resp = await self.http.post(
                    self.endpoint,
                    content=proof.encode("utf-8"),
                    headers=headers,
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                cause = str(e) or type(e).__name__
                span.set_attribute("scopeblind.outcome", "unreachable")
                return Unreachable(cause=cause)

            span.set_attribute("http.status_code", resp.status_code)
            outcome = interpret_response(resp)
            span.set_attribute("scopeblind.outcome", type(outcome).__name__.lower())
            logger.debug(f"Verifier responded {resp.status_code}: {type(outcome).__name__}")
            return outcome
