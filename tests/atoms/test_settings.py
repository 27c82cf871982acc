import pytest

from browser_pool_mcp.atoms.errors.application_errors import ConfigurationError
from browser_pool_mcp.atoms.utils import config_constants
from browser_pool_mcp.atoms.utils.settings import PoolSettings


class TestPoolSettings:
    def test_defaults_match_constants(self):
        settings = PoolSettings()
        assert settings.base_port == config_constants.BASE_PORT
        assert settings.max_port == config_constants.BASE_PORT + config_constants.PORT_RANGE
        assert settings.max_instances == config_constants.MAX_INSTANCES
        assert settings.instance_timeout == config_constants.INSTANCE_TIMEOUT
        assert settings.ready_timeout == config_constants.READY_TIMEOUT
        assert settings.ready_poll_interval == config_constants.READY_POLL_INTERVAL

    def test_build_command_substitutes_port(self):
        settings = PoolSettings()
        assert settings.build_command(9005) == ["npx", "@playwright/mcp@latest", "--port", "9005", "--isolated"]

    def test_worker_command_string_is_split(self):
        settings = PoolSettings(worker_command="node server.js --listen={port} --isolated")
        assert settings.build_command(9001) == ["node", "server.js", "--listen=9001", "--isolated"]

    def test_worker_command_requires_port_placeholder(self):
        with pytest.raises(ValueError):
            PoolSettings(worker_command=["npx", "@playwright/mcp@latest"])

    def test_health_path_gets_leading_slash(self):
        assert PoolSettings(health_path="sse").health_path == "/sse"

    def test_from_env_reads_prefixed_variables(self):
        settings = PoolSettings.from_env(
            environ={
                "BROWSER_POOL_MAX_INSTANCES": "4",
                "BROWSER_POOL_BASE_PORT": "9500",
                "BROWSER_POOL_DEBUG": "1",
                "UNRELATED": "x",
            }
        )
        assert settings.max_instances == 4
        assert settings.base_port == 9500

    def test_overrides_win_over_env_and_none_is_ignored(self):
        settings = PoolSettings.from_env(
            environ={"BROWSER_POOL_MAX_INSTANCES": "4"},
            max_instances=7,
            base_port=None,
        )
        assert settings.max_instances == 7
        assert settings.base_port == config_constants.BASE_PORT

    def test_invalid_values_raise_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            PoolSettings.from_env(environ={"BROWSER_POOL_MAX_INSTANCES": "0"})
        assert exc_info.value.error_code == "configuration_error"

    def test_port_span_beyond_65535_is_rejected(self):
        with pytest.raises(ConfigurationError):
            PoolSettings.from_env(environ={}, base_port=65500, port_range=100)
