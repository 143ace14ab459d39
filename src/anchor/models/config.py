"""Configuration models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentConfig(BaseModel):
    """Agent configuration."""
    log_level: str = Field(default="INFO")
    reconciliation_interval: int = Field(default=30, ge=5)
    manifest_path: str = Field(default="./manifest.json")
    stop_on_exit: bool = Field(default=False)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


class DockerConfig(BaseModel):
    """Docker daemon connection settings."""
    base_url: Optional[str] = Field(None, description="Daemon URL, defaults to DOCKER_HOST")
    timeout: Optional[int] = Field(None, ge=1, description="API timeout in seconds")
    platform: Optional[str] = Field(None, description="Pull platform, defaults to the daemon's os/arch")
    stop_timeout: int = Field(default=10, ge=0, description="Grace period before a stop is forced")


class AnchorConfig(BaseModel):
    """Main configuration model."""
    model_config = ConfigDict(extra="ignore")

    agent: AgentConfig = Field(default_factory=AgentConfig)
    docker: DockerConfig = Field(default_factory=DockerConfig)
