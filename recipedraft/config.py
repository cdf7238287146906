from enum import Enum
from pathlib import Path
from typing import Self

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from recipedraft.errors import ConfigError


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


def read_key_file(path: Path) -> str:
    try:
        key = path.read_text().strip()
    except OSError as e:
        raise ConfigError(f"Failed to read API key file {path}: {e}") from e
    if not key:
        raise ConfigError(f"API key file {path} is empty.")
    return key


class Config(BaseSettings):
    """Settings for the pipeline, read from the environment once at startup.

    Every component takes the instance it needs in its constructor, so a bad
    key or url fails here rather than on the first outbound call.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: Env = Env.local
    log_level: str = "INFO"

    deepseek_api_key: str = ""
    deepseek_api_key_file: Path | None = None
    deepseek_api_url: str = "https://api.deepseek.com/v1/"
    generation_model: str = "deepseek-chat"

    openai_api_key: str = ""
    openai_api_key_file: Path | None = None
    embedding_model: str = "text-embedding-ada-002"
    image_model: str = "dall-e-3"
    image_size: str = "1024x1024"

    redis_url: str = "redis://localhost:6379/0"
    draft_ttl_seconds: int = 60 * 60 * 24

    max_attempts: int = 3
    short_timeout: float = 60
    long_timeout: float = 60 * 2
    image_timeout: float = 60

    @model_validator(mode="after")
    def resolve_keys(self) -> Self:
        if not self.deepseek_api_key and self.deepseek_api_key_file is not None:
            self.deepseek_api_key = read_key_file(self.deepseek_api_key_file)
        if not self.deepseek_api_key:
            raise ConfigError(
                "DEEPSEEK_API_KEY or DEEPSEEK_API_KEY_FILE must be set."
            )
        if not self.openai_api_key and self.openai_api_key_file is not None:
            self.openai_api_key = read_key_file(self.openai_api_key_file)
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1.")
        if self.draft_ttl_seconds <= 0:
            raise ConfigError("draft_ttl_seconds must be positive.")
        return self

    @property
    def has_openai(self) -> bool:
        return bool(self.openai_api_key)
