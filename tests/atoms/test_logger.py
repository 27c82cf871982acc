import logging

from browser_pool_mcp.atoms.logging.logger import DEBUG_LOG_FILE_NAME, get_logger


class TestLogger:
    def test_no_file_without_debug_switch(self, tmp_path, monkeypatch):
        monkeypatch.delenv("BROWSER_POOL_DEBUG", raising=False)
        logger = get_logger("test.logger.nofile", log_dir=tmp_path)

        logger.info("hello")

        assert logger.log_file_path is None
        assert not (tmp_path / DEBUG_LOG_FILE_NAME).exists()

    def test_debug_switch_appends_to_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BROWSER_POOL_DEBUG", "1")
        monkeypatch.delenv("MCP_LOG_LEVEL", raising=False)

        logger = get_logger("test.logger.file", log_dir=tmp_path)
        logger.debug("[browser-pool] first")
        get_logger("test.logger.file", log_dir=tmp_path).debug("[browser-pool] second")

        log_file = tmp_path / DEBUG_LOG_FILE_NAME
        assert logger.log_file_path == log_file
        contents = log_file.read_text()
        assert "[browser-pool] first" in contents
        assert "[browser-pool] second" in contents

    def test_console_level_follows_env(self, monkeypatch):
        monkeypatch.delenv("BROWSER_POOL_DEBUG", raising=False)
        monkeypatch.setenv("MCP_LOG_LEVEL", "WARNING")

        logger = get_logger("test.logger.level")

        assert logger.level == logging.WARNING
        assert logger.logger.handlers[0].level == logging.WARNING

    def test_verbose_env_enables_verbose_mode(self, monkeypatch):
        monkeypatch.setenv("MCP_LOG_LEVEL", "VERBOSE")
        logger = get_logger("test.logger.verbose")
        assert logger.level == logging.DEBUG
        assert logger.is_verbose()
