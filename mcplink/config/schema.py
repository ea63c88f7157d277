"""Configuration schema using Pydantic.

One settings model describes how the tool server is launched and how long
the client waits on it. Values come from ~/.mcplink/config.json, from
MCPLINK_* environment variables, or from keyword arguments.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TransportConfig(BaseSettings):
    """Settings for the stdio transport client."""

    server_path: str = ""  # Executable of the tool server
    server_args: list[str] = Field(default_factory=list)  # Launched with no arguments unless set
    cwd: str | None = None
    env: dict[str, str] = Field(default_factory=dict)  # Merged over os.environ

    # Grace period after launch; best-effort only, see ready_line
    warmup_seconds: float = Field(default=0.05, ge=0)
    # When set, the server must print this exact line on stdout once it listens
    ready_line: str | None = None
    ready_timeout: float = Field(default=10.0, gt=0)

    request_timeout: float | None = None  # Default per-call timeout in seconds, None waits forever

    model_config = SettingsConfigDict(
        env_prefix="MCPLINK_",
        env_nested_delimiter="__",
    )

    @field_validator("server_path")
    @classmethod
    def _strip_server_path(cls, value: str) -> str:
        return (value or "").strip()

    @field_validator("request_timeout")
    @classmethod
    def _positive_timeout(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("request_timeout must be positive")
        return value

    @property
    def command(self) -> list[str]:
        """Full argv used to launch the server."""
        return [self.server_path, *self.server_args]
