from pathlib import Path

import pytest

from linear_mcp.errors import ConfigError
from linear_mcp.linear.client import LINEAR_API_URL
from linear_mcp.paths import get_data_dir
from linear_mcp.server.config import (
    TOOL_CATEGORIES,
    LinearConfig,
    get_enabled_categories,
    get_enabled_tools,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "LINEAR_API_KEY",
        "LINEAR_API_URL",
        "LINEAR_MCP_TOOLS",
        "LINEAR_MCP_HEARTBEAT_INTERVAL",
        "LINEAR_MCP_API_TIMEOUT",
        "LINEAR_MCP_DEBUG",
        "LINEAR_MCP_DATA_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


class TestToolCategories:
    def test_default_is_every_category(self):
        assert get_enabled_categories() == set(TOOL_CATEGORIES)

    def test_all_keyword(self):
        assert get_enabled_categories("ALL") == set(TOOL_CATEGORIES)

    def test_parses_list(self):
        assert get_enabled_categories(" Issues, teams ,,") == {
            "issues",
            "teams",
        }

    def test_reads_env(self, monkeypatch):
        monkeypatch.setenv("LINEAR_MCP_TOOLS", "cycles")
        assert get_enabled_categories() == {"cycles"}

    def test_enabled_tools(self):
        tools = get_enabled_tools({"cycles", "status", "bogus"})
        assert tools == {"linear_manage_cycle", "linear_server_status"}


class TestLinearConfig:
    def test_defaults_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LINEAR_API_KEY", "lin_api_123")
        monkeypatch.setenv("LINEAR_MCP_HEARTBEAT_INTERVAL", "0")
        monkeypatch.setenv("LINEAR_MCP_DATA_DIR", str(tmp_path))

        config = LinearConfig()

        assert config.api_key == "lin_api_123"
        assert config.api_url == LINEAR_API_URL
        assert config.heartbeat_interval == 0
        assert config.api_timeout == 30.0
        assert config.max_reconnect_attempts == 3
        assert config.data_dir == tmp_path
        assert not config.debug
        config.validate()

    def test_bad_number_in_env(self, monkeypatch):
        monkeypatch.setenv("LINEAR_MCP_API_TIMEOUT", "soon")
        with pytest.raises(ConfigError, match="LINEAR_MCP_API_TIMEOUT"):
            LinearConfig()

    def test_missing_api_key(self):
        with pytest.raises(ConfigError, match="LINEAR_API_KEY"):
            LinearConfig().validate()

    def test_api_key_with_whitespace(self):
        with pytest.raises(ConfigError, match="whitespace"):
            LinearConfig(api_key="lin api").validate()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"api_timeout": 0},
            {"heartbeat_interval": -1},
            {"max_reconnect_attempts": -1},
            {"reconnect_delay": -0.5},
            {"grace_period": -1},
            {"cache_ttl": 0},
            {"cache_sweep_interval": 0},
        ],
    )
    def test_out_of_range(self, overrides):
        with pytest.raises(ConfigError):
            LinearConfig(api_key="k", **overrides).validate()

    def test_unknown_category(self):
        config = LinearConfig(api_key="k", tools="issues,widgets")
        with pytest.raises(ConfigError, match="widgets"):
            config.validate()

    def test_enabled_tools_property(self):
        config = LinearConfig(api_key="k", tools="teams")
        assert config.enabled_tools == TOOL_CATEGORIES["teams"]


class TestPaths:
    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LINEAR_MCP_DATA_DIR", str(tmp_path))
        assert get_data_dir() == tmp_path

    def test_xdg_cache(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
        assert get_data_dir() == Path(tmp_path) / "linear-mcp"
