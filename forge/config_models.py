from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BackendConfig(BaseModel):
    """Model provider selection and transport retry knobs."""

    model_config = ConfigDict(extra="forbid")

    provider: Literal["groq", "openrouter", "openai"] = "groq"
    model: Optional[str] = "llama3-70b-8192"
    base_url: Optional[str] = None
    api_key_env: Optional[str] = None
    max_retries: int = 2
    initial_backoff_s: float = 1.0
    max_backoff_s: float = 10.0
    timeout_s: float = 60.0


class ExecutorConfig(BaseModel):
    """Self-correction loop settings."""

    model_config = ConfigDict(extra="forbid")

    max_attempts: int = 3

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("executor.max_attempts must be at least 1")
        return value


class LibraryConfig(BaseModel):
    """Where blueprint files are read from."""

    model_config = ConfigDict(extra="forbid")

    blueprints_dir: str = "profiles/blueprints"


class OutputConfig(BaseModel):
    """Artifact output locations for execution and test reports."""

    model_config = ConfigDict(extra="forbid")

    artifacts_dir: str = "artifacts"


class ForgeConfig(BaseModel):
    """Top-level strongly typed configuration."""

    model_config = ConfigDict(extra="forbid")

    backend: BackendConfig = Field(default_factory=BackendConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    library: LibraryConfig = Field(default_factory=LibraryConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
