"""Core configuration module using Pydantic Settings."""
from dataclasses import dataclass
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class PagingConfig:
    """
    Immutable paging configuration handed to a Pager.

    Invariants:
    - page_size > 0
    - prefetch_distance >= 0
    - initial_load_size, when given, > 0
    """
    page_size: int
    prefetch_distance: Optional[int] = None
    enable_placeholders: bool = True
    initial_load_size: Optional[int] = None

    def __post_init__(self):
        """Validate invariants and fill derived defaults."""
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if self.prefetch_distance is None:
            object.__setattr__(self, "prefetch_distance", self.page_size)
        elif self.prefetch_distance < 0:
            raise ValueError(
                f"prefetch_distance cannot be negative, got {self.prefetch_distance}"
            )
        if self.initial_load_size is None:
            object.__setattr__(self, "initial_load_size", self.page_size)
        elif self.initial_load_size <= 0:
            raise ValueError(
                f"initial_load_size must be positive, got {self.initial_load_size}"
            )


class Settings(BaseSettings):
    """
    Application shell settings loaded from environment variables.

    Only the bootstrap wiring reads these; the engine itself is configured
    through PagingConfig.
    """

    model_config = SettingsConfigDict(
        env_prefix="PAGESYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./pagesync_cache.db",
        description="SQLAlchemy URL of the local page cache"
    )

    collection: str = Field(
        default="default",
        description="Name of the cached remote collection"
    )

    remote_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the remote collection API"
    )
    remote_items_path: str = Field(
        default="/items",
        description="Path of the paged items endpoint"
    )
    remote_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout applied to each remote page request"
    )

    page_size: int = Field(
        default=20,
        gt=0,
        description="Items requested per page"
    )
    prefetch_distance: int = Field(
        default=20,
        ge=0,
        description="Distance from a cached edge that triggers a boundary load"
    )
    enable_placeholders: bool = Field(
        default=True,
        description="Expose placeholder counts for not yet loaded items"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    def paging_config(self) -> PagingConfig:
        """Build the immutable engine configuration from these settings."""
        return PagingConfig(
            page_size=self.page_size,
            prefetch_distance=self.prefetch_distance,
            enable_placeholders=self.enable_placeholders
        )


settings = Settings()
