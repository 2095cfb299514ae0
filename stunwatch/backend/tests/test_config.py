"""
tests/test_config.py

Tests for config.py — Pydantic Settings validation and defaults.
"""

from __future__ import annotations

from stunwatch.backend.config import Settings


class TestSettingsDefaults:

    def test_interface_is_auto(self):
        assert Settings().INTERFACE == ""

    def test_bpf_filter_is_built(self):
        assert Settings().BPF_FILTER == ""

    def test_default_exclude_ports(self):
        assert Settings().EXCLUDE_PORTS == [53]

    def test_default_extra_local_ips(self):
        assert Settings().EXTRA_LOCAL_IPS == []

    def test_default_queue_size(self):
        assert Settings().CAPTURE_QUEUE_SIZE == 10_000

    def test_default_api(self):
        s = Settings()
        assert s.API_HOST == "127.0.0.1"
        assert s.API_PORT == 8080

    def test_default_log_level(self):
        assert Settings().LOG_LEVEL == "INFO"


class TestSettingsOverrides:

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("INTERFACE", "wlan0")
        monkeypatch.setenv("BPF_FILTER", "udp portrange 1024-65535")
        monkeypatch.setenv("API_PORT", "9000")
        s = Settings()
        assert s.INTERFACE == "wlan0"
        assert s.BPF_FILTER == "udp portrange 1024-65535"
        assert s.API_PORT == 9000

    def test_extra_local_ips_comma_list(self, monkeypatch):
        monkeypatch.setenv("EXTRA_LOCAL_IPS", "10.10.10.2, 10.10.10.3")
        assert Settings().EXTRA_LOCAL_IPS == ["10.10.10.2", "10.10.10.3"]

    def test_extra_local_ips_single_value(self, monkeypatch):
        monkeypatch.setenv("EXTRA_LOCAL_IPS", "10.10.10.2")
        assert Settings().EXTRA_LOCAL_IPS == ["10.10.10.2"]

    def test_exclude_ports_json_list(self, monkeypatch):
        monkeypatch.setenv("EXCLUDE_PORTS", "[53, 5353]")
        assert Settings().EXCLUDE_PORTS == [53, 5353]

    def test_exclude_ports_comma_list(self, monkeypatch):
        monkeypatch.setenv("EXCLUDE_PORTS", "53,137")
        assert Settings().EXCLUDE_PORTS == [53, 137]
