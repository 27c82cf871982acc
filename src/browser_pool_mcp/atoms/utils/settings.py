"""
Runtime settings for the browser pool.

Defaults come from config_constants; environment variables prefixed with
BROWSER_POOL_ and command line flags may override them.
"""

import os
import shlex
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from browser_pool_mcp.atoms.errors.application_errors import ConfigurationError
from browser_pool_mcp.atoms.utils import config_constants as defaults


class PoolSettings(BaseModel):
    """Tunable parameters of one pool manager process."""

    base_port: int = Field(default=defaults.BASE_PORT, ge=1, le=65535)
    port_range: int = Field(default=defaults.PORT_RANGE, ge=0)
    max_port_attempts: int = Field(default=defaults.MAX_PORT_ATTEMPTS, ge=1)
    max_instances: int = Field(default=defaults.MAX_INSTANCES, ge=1)
    instance_timeout: float = Field(default=defaults.INSTANCE_TIMEOUT, gt=0)
    reap_interval: float = Field(default=defaults.REAP_INTERVAL, gt=0)
    ready_timeout: float = Field(default=defaults.READY_TIMEOUT, gt=0)
    ready_poll_interval: float = Field(default=defaults.READY_POLL_INTERVAL, gt=0)
    startup_delay: float = Field(default=defaults.STARTUP_DELAY, ge=0)
    health_request_timeout: float = Field(default=defaults.HEALTH_REQUEST_TIMEOUT, gt=0)
    termination_timeout: float = Field(default=defaults.TERMINATION_TIMEOUT, gt=0)
    worker_host: str = defaults.WORKER_HOST
    health_path: str = defaults.HEALTH_PATH
    worker_command: List[str] = Field(default_factory=lambda: list(defaults.WORKER_COMMAND))
    log_dir: Optional[Path] = None

    @field_validator("worker_command", mode="before")
    @classmethod
    def _split_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            return shlex.split(value)
        return value

    @field_validator("worker_command")
    @classmethod
    def _require_port_placeholder(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("worker_command must not be empty")
        if not any("{port}" in part for part in value):
            raise ValueError("worker_command must contain a '{port}' placeholder")
        return value

    @field_validator("health_path")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"

    @model_validator(mode="after")
    def _check_port_span(self) -> "PoolSettings":
        if self.base_port + self.port_range > 65535:
            raise ValueError(
                f"port range {self.base_port}-{self.base_port + self.port_range} exceeds 65535"
            )
        return self

    @property
    def max_port(self) -> int:
        return self.base_port + self.port_range

    def build_command(self, port: int) -> List[str]:
        """Render the worker command for a given port."""
        return [part.replace("{port}", str(port)) for part in self.worker_command]

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        prefix: str = defaults.SETTINGS_ENV_PREFIX,
        **overrides: Any,
    ) -> "PoolSettings":
        """
        Build settings from environment variables, then apply explicit overrides.

        Variables are named after the fields, e.g. BROWSER_POOL_MAX_INSTANCES=5.
        Variables that do not match a field are ignored. Overrides whose value
        is None are skipped so unset CLI flags fall through to the environment.
        Nothing is logged here: the log directory is only known once settings exist.

        Raises:
            ConfigurationError: If any value fails validation.
        """
        environ = os.environ if environ is None else environ

        values: Dict[str, Any] = {}
        for key, raw in environ.items():
            if not key.startswith(prefix):
                continue
            field_name = key[len(prefix):].lower()
            if field_name in cls.model_fields:
                values[field_name] = raw

        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid browser pool settings: {e}", details={"errors": e.errors()}) from e
