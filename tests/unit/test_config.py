"""
Unit tests for configuration and bind address parsing.
"""

import pytest

from chatserver.config import ServerConfig, parse_bind_address


class TestParseBindAddress:

    @pytest.mark.parametrize("address,expected", [
        ("127.0.0.1:8080", ("127.0.0.1", 8080)),
        ("0.0.0.0:80", ("0.0.0.0", 80)),
        ("localhost:0", ("localhost", 0)),
        ("[::1]:8080", ("::1", 8080)),
        ("  127.0.0.1:9000  ", ("127.0.0.1", 9000)),
    ])
    def test_valid(self, address, expected):
        assert parse_bind_address(address) == expected

    @pytest.mark.parametrize("address", [
        "",
        "127.0.0.1",
        "127.0.0.1:",
        ":8080",
        "127.0.0.1:http",
        "127.0.0.1:65536",
        "127.0.0.1:-1",
        "::1:8080",
        "[::1]8080",
        "[::1",
    ])
    def test_invalid(self, address):
        with pytest.raises(ValueError):
            parse_bind_address(address)


class TestServerConfig:

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.buffer_size == 1024
        assert config.max_connections == 256
        config.validate()

    def test_from_bind_address(self):
        config = ServerConfig.from_bind_address("0.0.0.0:80", timeout=5.0)

        assert (config.host, config.port, config.timeout) == ("0.0.0.0", 80, 5.0)

    def test_bind_address_roundtrip(self):
        assert ServerConfig(host="10.0.0.1", port=81).bind_address == "10.0.0.1:81"
        assert ServerConfig(host="::1", port=81).bind_address == "[::1]:81"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CHAT_HOST", "0.0.0.0")
        monkeypatch.setenv("CHAT_PORT", "3000")
        monkeypatch.setenv("CHAT_TIMEOUT", "2.5")
        monkeypatch.setenv("CHAT_MAX_CONNECTIONS", "0")
        monkeypatch.setenv("CHAT_HISTORY_LIMIT", "10")
        monkeypatch.setenv("CHAT_LOG_FORMAT", "json")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 3000
        assert config.timeout == 2.5
        assert config.max_connections is None
        assert config.history_limit == 10
        assert config.log_format == "json"

    def test_from_env_defaults(self, monkeypatch):
        for name in ("CHAT_HOST", "CHAT_PORT", "CHAT_TIMEOUT", "CHAT_MAX_CONNECTIONS"):
            monkeypatch.delenv(name, raising=False)

        config = ServerConfig.from_env()

        assert config.port == 8080
        assert config.max_connections == 256

    @pytest.mark.parametrize("overrides", [
        {"port": 70000},
        {"port": -1},
        {"backlog": 0},
        {"buffer_size": 0},
        {"buffer_size": 2048, "max_request_size": 1024},
        {"timeout": 0},
        {"timeout": -1.0},
        {"read_idle_timeout": 0},
        {"max_connections": -1},
        {"history_limit": -5},
        {"log_format": "xml"},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()

    def test_validate_accepts_unbounded(self):
        ServerConfig(timeout=None, max_connections=None, history_limit=None).validate()
