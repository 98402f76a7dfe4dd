"""Client configuration for the tgpic uploader and dedup tools.

Settings come from environment variables prefixed with ``TGPIC_`` (nested
sections use ``__``), a ``.env`` file, or direct initialization.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from tgpic.utils import tracing
from tgpic.utils.hasher import CHUNK_SIZE

logger = tracing.get_logger("config")

MIB = 1024 * 1024


class ServerConfig(BaseModel):
    """Where the tgpic server lives."""
    url: str = Field(default="http://localhost:8000", description="Server base URL")
    api_prefix: str = Field(default="/api", description="Route prefix the server mounts its API under")
    timeout: float = Field(default=120.0, description="HTTP timeout in seconds")

    @property
    def api_base(self) -> str:
        return self.url.rstrip("/") + "/" + self.api_prefix.strip("/")


class UploadConfig(BaseModel):
    """Upload pipeline tuning."""
    concurrency: int = Field(default=3, ge=1, le=5, description="Parallel upload workers (1-5)")
    max_bytes: int = Field(default=10 * MIB, description="Largest payload the server accepts")
    compress: bool = Field(default=True, description="Re-encode oversized images before upload")
    max_dimension: int = Field(default=1600, description="Longest edge after compression, in pixels")
    quality_start: int = Field(default=70, ge=1, le=100, description="First JPEG/WEBP quality tried")
    quality_floor: int = Field(default=20, ge=1, le=100, description="Lowest quality tried")
    quality_step: int = Field(default=10, ge=1, description="Quality decrement per attempt")
    chunk_size: int = Field(default=CHUNK_SIZE, description="Hashing read size in bytes")
    default_tag: str = Field(default="默认", description="Tag used when none is given")
    max_attempts: int = Field(default=3, ge=1, description="Upload attempts when rate limited")

    @field_validator("quality_floor")
    @classmethod
    def _floor_below_start(cls, v: int, info) -> int:
        start = info.data.get("quality_start")
        if start is not None and v > start:
            raise ValueError("quality_floor must not exceed quality_start")
        return v


class DedupConfig(BaseModel):
    """Client-orchestrated dedup settings."""
    concurrency: int = Field(default=6, ge=1, description="Parallel fetch+hash workers")
    page_size: int = Field(default=100, ge=1, le=100, description="History page size")


class ClientConfig(BaseSettings):
    """Main client configuration.

    Examples:
        TGPIC_SERVER__URL=https://img.example.com
        TGPIC_UPLOAD__CONCURRENCY=5
        TGPIC_DEDUP__CONCURRENCY=4
    """

    log_level: str = Field(default="INFO", description="Logging level")

    server: ServerConfig = Field(default_factory=ServerConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)

    model_config = {
        "env_prefix": "TGPIC_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "extra": "ignore",
        "case_sensitive": False,
    }


# Global configuration instance
_config: Optional[ClientConfig] = None


def get_config() -> ClientConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = ClientConfig()
        logger.debug(f"Configuration loaded: server={_config.server.url}, concurrency={_config.upload.concurrency}")
    return _config


def set_config(config: ClientConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Drop the cached configuration so the next access reloads it."""
    global _config
    _config = None
