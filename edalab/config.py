import os
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_threads() -> int:
    # leave one core free for everything else running on the machine
    return max(1, (os.cpu_count() or 2) - 1)


class Settings(BaseSettings):
    """
    Central config loaded from environment variables and optionally .env (local).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------
    # Local persistence
    # data_dir holds the dataset parquet cache and persistent duckdb files,
    # output_dir holds saved figures.
    # -------------------------
    data_dir: str = Field("./data", alias="DATA_DIR")
    output_dir: str = Field("./output", alias="OUTPUT_DIR")
    dataset_cache: bool = Field(True, alias="DATASET_CACHE")

    # -------------------------
    # DuckDB
    # An empty path means a temporary in-memory database that is gone on close.
    # -------------------------
    duckdb_path: str = Field("", alias="DUCKDB_PATH")
    duckdb_threads: int = Field(default_factory=_default_threads, alias="DUCKDB_THREADS")
    duckdb_memory_limit: str = Field("1GB", alias="DUCKDB_MEMORY_LIMIT")

    # -------------------------
    # Figures
    # -------------------------
    figure_width: float = Field(7.0, alias="FIGURE_WIDTH")
    figure_height: float = Field(5.0, alias="FIGURE_HEIGHT")
    figure_dpi: int = Field(150, alias="FIGURE_DPI")
    plot_style: str = Field("whitegrid", alias="PLOT_STYLE")

    # -------------------------
    # API
    # -------------------------
    max_query_rows: int = Field(10000, alias="MAX_QUERY_ROWS")
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    def model_post_init(self, __context) -> None:
        """
        Clamp values that would make DuckDB refuse to start.
        """
        if self.duckdb_threads < 1:
            self.duckdb_threads = 1
        self.log_level = self.log_level.strip().upper() or "INFO"


settings = Settings()
