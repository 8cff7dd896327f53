"""Configuration for BubbleTasks."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Uploaded images are capped at 5 MiB
DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def _get_env_files() -> list[Path]:
    """Get list of .env files to load (current directory only)."""
    cwd_env = Path(".env")
    return [cwd_env] if cwd_env.exists() else []


class Settings(BaseSettings):
    """Application settings loaded from BUBBLETASKS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BUBBLETASKS_",
        env_file=_get_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Storage
    # ==========================================================================

    storage_backend: Literal["memory", "json", "sql"] = Field(
        default="json",
        description="Task store: 'memory' (process only), 'json' (file) or 'sql' (one table)",
    )
    data_dir: str = Field(
        default="",
        description="Base directory for tasks and uploads (default: ~/.bubbletasks)",
    )
    tasks_file: str = Field(
        default="",
        description="JSON task file for the 'json' backend (default: <data_dir>/tasks.json)",
    )
    database_url: str = Field(
        default="",
        description="SQLAlchemy URL for the 'sql' backend (default: sqlite in data_dir)",
    )

    # ==========================================================================
    # Uploads
    # ==========================================================================

    uploads_dir: str = Field(
        default="",
        description="Directory for uploaded images (default: <data_dir>/uploads)",
    )
    max_upload_bytes: int = Field(
        default=DEFAULT_MAX_UPLOAD_BYTES,
        gt=0,
        description="Maximum size of an uploaded image",
    )

    # ==========================================================================
    # Tasks
    # ==========================================================================

    default_est_minutes: int = Field(
        default=25,
        gt=0,
        description="Estimate used when a task is created without one",
    )

    # ==========================================================================
    # HTTP server
    # ==========================================================================

    api_host: str = Field(default="127.0.0.1", description="Host to bind the API server")
    api_port: int = Field(default=3001, description="Port for the API server")
    public_base_url: str = Field(
        default="",
        description="Base URL used in upload responses (default: http://localhost:<api_port>)",
    )
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:5174",
            "http://127.0.0.1:5174",
        ],
        description="Origins allowed to call the API from a browser",
    )
    log_level: str = Field(default="INFO", description="Root log level")

    def get_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        return Path.home() / ".bubbletasks"

    def get_tasks_file(self) -> Path:
        if self.tasks_file:
            return Path(self.tasks_file).expanduser()
        return self.get_data_dir() / "tasks.json"

    def get_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.get_data_dir() / 'tasks.db'}"

    def get_uploads_dir(self) -> Path:
        if self.uploads_dir:
            return Path(self.uploads_dir).expanduser()
        return self.get_data_dir() / "uploads"

    def get_public_base_url(self) -> str:
        """Base URL for links handed back to clients, without trailing slash."""
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        return f"http://localhost:{self.api_port}"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset cached settings (useful for testing)."""
    global _settings
    _settings = None
