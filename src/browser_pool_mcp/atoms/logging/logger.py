import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional, Union

DEBUG_ENV_VAR = "BROWSER_POOL_DEBUG"
DEBUG_LOG_FILE_NAME = "debug.log"


def debug_logging_enabled() -> bool:
    """Check whether verbose file logging was requested through the environment."""
    return os.environ.get(DEBUG_ENV_VAR, "") == "1"


class Logger:
    """Custom logger that writes to stderr and, in debug mode, to an append-only file."""

    def __init__(
        self,
        name: str,
        log_dir: Optional[Union[str, Path]] = None,
        level: Optional[int] = None,
        verbose: bool = False,
    ):
        """
        Initialize the logger.

        Args:
            name: Logger name
            log_dir: Directory for the debug log file. Only used when BROWSER_POOL_DEBUG=1.
            level: Logging level (defaults to INFO, or DEBUG if MCP_LOG_LEVEL=DEBUG/VERBOSE)
            verbose: Enable verbose logging mode (applies if level is DEBUG)
        """
        self.name = name
        self._verbose = verbose
        self.log_file_path: Optional[Path] = None

        file_logging = debug_logging_enabled() and log_dir is not None

        env_log_level = os.environ.get("MCP_LOG_LEVEL", "").upper()
        if level is None:
            if env_log_level == "VERBOSE":
                level = logging.DEBUG
                self._verbose = True
            elif env_log_level == "DEBUG":
                level = logging.DEBUG
            elif env_log_level == "WARNING":
                level = logging.WARNING
            elif env_log_level == "ERROR":
                level = logging.ERROR
            else:
                level = logging.INFO

        self.level = level

        self.logger = logging.getLogger(name)
        # The file handler always records DEBUG, so the logger itself must let it through
        self.logger.setLevel(logging.DEBUG if file_logging else level)
        self.logger.propagate = False

        if self.logger.handlers:
            self.logger.handlers.clear()

        if level == logging.DEBUG and self._verbose:
            log_formatter = logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s (%(pathname)s:%(lineno)d): %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        elif level == logging.DEBUG:
            log_formatter = logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        else:
            log_formatter = logging.Formatter(
                "%(asctime)s [%(levelname)s] %(message)s",
                datefmt="%H:%M:%S",
            )

        # stdout carries the MCP stdio protocol, so the console handler must use stderr
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(log_formatter)
        console_handler.setLevel(level)
        self.logger.addHandler(console_handler)

        if file_logging:
            log_dir = Path(log_dir)  # type: ignore[arg-type]
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file_path = log_dir / DEBUG_LOG_FILE_NAME

            file_handler = logging.FileHandler(log_file_path, mode="a")
            file_handler.setFormatter(
                logging.Formatter("[%(asctime)s] %(name)s: %(message)s")
            )
            file_handler.setLevel(logging.DEBUG)
            self.logger.addHandler(file_handler)

            self.log_file_path = log_file_path

    def is_verbose(self) -> bool:
        """Check if verbose mode is enabled."""
        return self._verbose

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log a debug message."""
        self.logger.debug(message, **kwargs)

    def verbose(self, message: str, **kwargs: Any) -> None:
        """Log a message at DEBUG level only if verbose mode is enabled."""
        if self._verbose:
            self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log an info message."""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a warning message."""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log an error message."""
        self.logger.error(message, **kwargs)

    def critical(self, message: str, **kwargs: Any) -> None:
        """Log a critical message."""
        self.logger.critical(message, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log an exception message with traceback."""
        self.logger.exception(message, **kwargs)


_log_dir: Optional[Path] = None


def configure_log_dir(log_dir: Optional[Union[str, Path]]) -> None:
    """Set the directory used by loggers created after this call."""
    global _log_dir
    _log_dir = Path(log_dir) if log_dir is not None else None


def get_logger(
    name: str,
    log_dir: Optional[Union[str, Path]] = None,
    level: Optional[int] = None,
    verbose: bool = False,
) -> Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name
        log_dir: Directory for the debug log file (defaults to the configured directory, then ./logs)
        level: Logging level (optional, will check MCP_LOG_LEVEL env var)
        verbose: Enable verbose logging mode (applies if level is DEBUG)

    Returns:
        Configured Logger instance
    """
    if log_dir is None:
        log_dir = _log_dir if _log_dir is not None else Path("./logs")

    return Logger(
        name=name,
        log_dir=log_dir,
        level=level,
        verbose=verbose,
    )
