"""
Tests for settings and base URL normalization.
"""

import pytest

from messleave.config import Settings, normalize_api_base_url


class TestNormalizeApiBaseUrl:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("https://mess.example.com", "https://mess.example.com/api"),
            ("https://mess.example.com/", "https://mess.example.com/api"),
            ("https://mess.example.com/api/", "https://mess.example.com/api"),
            ("http://localhost:5000/v2/api", "http://localhost:5000/v2/api"),
            ("/api/", "/api"),
            ("", "/api"),
        ],
    )
    def test_normalization(self, raw, expected):
        assert normalize_api_base_url(raw) == expected


class TestSettings:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("API_BASE_URL", "https://mess.example.com/")
        monkeypatch.setenv("API_TIMEOUT_SECONDS", "5")
        monkeypatch.setenv("CIRCUIT_BREAKER_FAILURE_THRESHOLD", "2")

        s = Settings()

        assert s.api_base_url == "https://mess.example.com/api"
        assert s.api_timeout_seconds == 5
        assert s.circuit_breaker_failure_threshold == 2

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("API_AUTH_TOKEN", raising=False)
        s = Settings(_env_file=None)

        assert s.api_timeout_seconds == 30
        assert s.max_sessions == 1000
