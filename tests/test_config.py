# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""
Test environment-backed gateway configuration.
"""

import pytest
from pydantic import ValidationError

from scopeblind_gateway.config import FallbackPolicy, GatewayConfig, Mode


@pytest.fixture
def base_env(monkeypatch, clean_env):
    monkeypatch.setenv("ORIGIN_URL", "https://api.example.com")
    monkeypatch.setenv("SCOPEBLIND_VERIFIER_URL", "https://api.scopeblind.com/v/abc123/verify")


class TestGatewayConfig:
    def test_defaults(self, base_env):
        cfg = GatewayConfig()
        assert cfg.origin_url == "https://api.example.com"
        assert cfg.mode is Mode.enforce
        assert cfg.fallback is FallbackPolicy.open
        assert cfg.protected_methods == frozenset({"POST", "PUT", "DELETE", "PATCH"})
        assert cfg.verifier_timeout_s == 5.0
        assert cfg.origin_timeout_s == 30.0

    def test_shadow_flag(self, base_env, monkeypatch):
        monkeypatch.setenv("SHADOW_MODE", "true")
        assert GatewayConfig().mode is Mode.shadow

    def test_shadow_flag_other_values_enforce(self, base_env, monkeypatch):
        monkeypatch.setenv("SHADOW_MODE", "false")
        assert GatewayConfig().mode is Mode.enforce

    def test_explicit_mode_wins(self, base_env, monkeypatch):
        monkeypatch.setenv("SHADOW_MODE", "true")
        monkeypatch.setenv("SCOPEBLIND_MODE", "Enforce")
        assert GatewayConfig().mode is Mode.enforce

    def test_observe_alias(self, base_env, monkeypatch):
        monkeypatch.setenv("SCOPEBLIND_MODE", "observe")
        assert GatewayConfig().mode is Mode.shadow

    def test_unknown_mode_rejected(self, base_env, monkeypatch):
        monkeypatch.setenv("SCOPEBLIND_MODE", "audit")
        with pytest.raises(ValidationError):
            GatewayConfig()

    def test_fallback_case_insensitive(self, base_env, monkeypatch):
        monkeypatch.setenv("FALLBACK_MODE", " CLOSED ")
        assert GatewayConfig().fallback is FallbackPolicy.closed

    def test_protected_methods_normalized(self, base_env, monkeypatch):
        monkeypatch.setenv("PROTECTED_METHODS", "post, get,POST, ")
        assert GatewayConfig().protected_methods == frozenset({"POST", "GET"})

    def test_timeouts_from_env(self, base_env, monkeypatch):
        monkeypatch.setenv("SCOPEBLIND_VERIFIER_TIMEOUT_S", "1.5")
        monkeypatch.setenv("ORIGIN_TIMEOUT_S", "10")
        cfg = GatewayConfig()
        assert cfg.verifier_timeout_s == 1.5
        assert cfg.origin_timeout_s == 10.0

    def test_missing_origin_rejected(self, base_env, monkeypatch):
        monkeypatch.delenv("ORIGIN_URL")
        with pytest.raises(ValidationError):
            GatewayConfig()

    @pytest.mark.parametrize("url", ["api.example.com", "/relative", "ftp://files.example.com"])
    def test_relative_or_non_http_urls_rejected(self, base_env, url):
        with pytest.raises(ValidationError):
            GatewayConfig(verifier_url=url)

    def test_immutable(self, base_env):
        cfg = GatewayConfig()
        with pytest.raises(ValidationError):
            cfg.mode = Mode.shadow

    def test_explicit_values(self, clean_env):
        cfg = GatewayConfig(
            origin_url="http://localhost:9000",
            verifier_url="http://localhost:9001/verify",
            mode="shadow",
            fallback="closed",
            protected_methods=["post", "delete"],
        )
        assert cfg.is_shadow
        assert cfg.protected_methods == frozenset({"POST", "DELETE"})
