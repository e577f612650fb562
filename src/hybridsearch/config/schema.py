"""Configuration schema using Pydantic.

Why this exists:
- Type-safe configuration with validation
- Environment variable support
- Multiple deployment profiles (local, server, cloud)
- Clear documentation of all settings

How to extend:
1. Add new fields to existing config classes
2. Create new config classes for new components
3. Document the new settings in the example TOML file
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EmbeddingProviderType(str, Enum):
    """Supported embedding providers."""

    OPENAI = "openai"
    GEMINI = "gemini"
    SILICONFLOW = "siliconflow"
    OLLAMA = "ollama"
    LOCAL = "local"


class StorageType(str, Enum):
    """Supported storage backends."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MEMORY = "memory"


class MergeStrategy(str, Enum):
    """How vector and keyword results are fused."""

    WEIGHTED = "weighted"
    RRF = "rrf"


class EmbeddingConfig(BaseModel):
    """Embedding provider configuration."""

    provider: EmbeddingProviderType = EmbeddingProviderType.OPENAI
    model_name: str = "text-embedding-3-small"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    batch_size: int = Field(default=32, gt=0)
    extra_params: dict[str, Any] = Field(default_factory=dict)


class StorageConfig(BaseModel):
    """Storage backend configuration.

    ``connection_string`` is a SQLite path (``sqlite:///path/to.db`` or a
    bare path) or a PostgreSQL DSN, depending on ``store_type``.
    """

    store_type: StorageType = StorageType.SQLITE
    connection_string: Optional[str] = None
    table_prefix: str = ""
    vector_dimension: int = Field(default=1536, gt=0)
    extra_params: dict[str, Any] = Field(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        """Expand ~ in connection string."""
        if self.connection_string and "~" in self.connection_string:
            self.connection_string = self.connection_string.replace(
                "~", str(Path.home())
            )


class ChunkingConfig(BaseModel):
    """Document chunking configuration.

    Chunks are line-aligned windows measured in whitespace-delimited tokens:
    - tokens_per_chunk: 512 tokens per window
    - overlap_tokens: up to 50 tokens of trailing lines repeated in the next window
    """

    model_config = ConfigDict(frozen=True)

    tokens_per_chunk: int = Field(default=512, gt=0, description="Token budget per chunk")
    overlap_tokens: int = Field(default=50, ge=0, description="Token budget for the overlap suffix")


class HybridConfig(BaseModel):
    """Weights for fusing vector and keyword results.

    The weights are independent multipliers and do not need to sum to 1.
    """

    model_config = ConfigDict(frozen=True)

    vector_weight: float = Field(default=0.7, ge=0.0)
    text_weight: float = Field(default=0.3, ge=0.0)
    strategy: MergeStrategy = MergeStrategy.WEIGHTED
    rrf_k: int = Field(default=60, gt=0)


class SearchOptions(BaseModel):
    """Per-query result bounds."""

    model_config = ConfigDict(frozen=True)

    max_results: int = Field(default=10, ge=0)
    min_score: float = Field(default=0.0, ge=0.0)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    json_logs: bool = False
    log_dir: Optional[Path] = None
    enable_file: bool = False
    max_days: int = Field(default=30, gt=0)

    def model_post_init(self, __context: Any) -> None:
        """Expand ~ in paths."""
        if self.log_dir:
            self.log_dir = self.log_dir.expanduser()


class AppConfig(BaseSettings):
    """Main application configuration.

    Loads from:
    1. Config file (TOML)
    2. Environment variables (prefixed with HYBRIDSEARCH_)
    3. .env file
    """

    model_config = SettingsConfigDict(
        env_prefix="HYBRIDSEARCH_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    # Indexed documents
    docs_dir: Path = Field(default=Path("."))
    include: str = "**/*.md"

    # Component configurations
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    hybrid: HybridConfig = Field(default_factory=HybridConfig)
    search: SearchOptions = Field(default_factory=SearchOptions)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over values loaded from the TOML file
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    def model_post_init(self, __context: Any) -> None:
        """Post-initialization: expand ~ in docs_dir."""
        self.docs_dir = self.docs_dir.expanduser()
