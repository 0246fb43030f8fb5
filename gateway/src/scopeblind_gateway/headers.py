# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

from typing import Dict, Mapping, Optional

PROOF_HEADERS = ("X-Proof", "X-ScopeBlind-Proof")

MODE_HEADER = "X-ScopeBlind-Mode"
VERIFIED_HEADER = "X-ScopeBlind-Verified"
ACTION_HEADER = "X-ScopeBlind-Action"
ERROR_HEADER = "X-ScopeBlind-Error"
REMAINING_HEADER = "X-ScopeBlind-Remaining"

METADATA_HEADERS = (MODE_HEADER, VERIFIED_HEADER, ACTION_HEADER, ERROR_HEADER, REMAINING_HEADER)

HEALTH_PATH = "/_scopeblind/health"

PREFLIGHT_ALLOW_METHODS = "GET, POST, PUT, DELETE, PATCH, OPTIONS"
PREFLIGHT_ALLOW_HEADERS = "Content-Type, Authorization, X-Proof, X-ScopeBlind-Proof"
PREFLIGHT_MAX_AGE = "86400"


def extract_proof(headers: Mapping[str, str]) -> Optional[str]:
    """Return the first non-empty proof header value, or None.

    `headers` must be case-insensitive (Starlette or httpx headers).
    """
    for name in PROOF_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return None


def allow_origin(headers: Mapping[str, str]) -> str:
    return headers.get("Origin") or "*"


def client_identifier(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    ip = headers.get("CF-Connecting-IP")
    if ip:
        return ip
    forwarded = headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",", 1)[0].strip()
        if first:
            return first
    return peer or "unknown"


def preflight_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": allow_origin(headers),
        "Access-Control-Allow-Methods": PREFLIGHT_ALLOW_METHODS,
        "Access-Control-Allow-Headers": PREFLIGHT_ALLOW_HEADERS,
        "Access-Control-Max-Age": PREFLIGHT_MAX_AGE,
    }


def cors_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Headers for responses generated by the gateway itself."""
    return {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": allow_origin(headers),
    }
