# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from typing import FrozenSet, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PROTECTED_METHODS = "POST,PUT,DELETE,PATCH"


class Mode(str, Enum):
    shadow = "shadow"
    enforce = "enforce"


class FallbackPolicy(str, Enum):
    open = "open"
    closed = "closed"


def _truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}


def _mode_from_env() -> str:
    explicit = os.getenv("SCOPEBLIND_MODE")
    if explicit:
        return explicit
    # SHADOW_MODE is the original boolean switch; anything but "true" enforces.
    return Mode.shadow.value if _truthy(os.getenv("SHADOW_MODE")) else Mode.enforce.value


def parse_methods(raw: str) -> FrozenSet[str]:
    """Normalize a comma-separated method list: trimmed, upper-case, unique."""
    return frozenset(m.strip().upper() for m in raw.split(",") if m.strip())


class GatewayConfig(BaseModel):
    """Process-wide gateway settings, read once at startup."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    origin_url: str = Field(default_factory=lambda: os.getenv("ORIGIN_URL", ""))
    verifier_url: str = Field(default_factory=lambda: os.getenv("SCOPEBLIND_VERIFIER_URL", ""))
    mode: Mode = Field(default_factory=_mode_from_env)
    fallback: FallbackPolicy = Field(
        default_factory=lambda: os.getenv("FALLBACK_MODE", FallbackPolicy.open.value)
    )
    protected_methods: FrozenSet[str] = Field(
        default_factory=lambda: os.getenv("PROTECTED_METHODS") or DEFAULT_PROTECTED_METHODS
    )
    verifier_timeout_s: float = Field(
        default_factory=lambda: float(os.getenv("SCOPEBLIND_VERIFIER_TIMEOUT_S", "5")), gt=0
    )
    origin_timeout_s: float = Field(
        default_factory=lambda: float(os.getenv("ORIGIN_TIMEOUT_S", "30")), gt=0
    )

    @field_validator("origin_url", "verifier_url")
    @classmethod
    def validate_absolute_url(cls, v: str) -> str:
        parsed = urlparse(v.strip())
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"expected an absolute http(s) URL, got {v!r}")
        return v.strip()

    @field_validator("mode", mode="before")
    @classmethod
    def validate_mode(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            # "observe" is accepted as a synonym; it is reported as "shadow".
            if v == "observe":
                return Mode.shadow
        return v

    @field_validator("fallback", mode="before")
    @classmethod
    def validate_fallback(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("protected_methods", mode="before")
    @classmethod
    def validate_methods(cls, v):
        if isinstance(v, str):
            return parse_methods(v)
        return frozenset(str(m).strip().upper() for m in v if str(m).strip())

    @property
    def is_shadow(self) -> bool:
        return self.mode is Mode.shadow


@lru_cache()
def get_gateway_cfg() -> GatewayConfig:
    return GatewayConfig()
