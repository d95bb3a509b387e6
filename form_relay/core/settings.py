"""Unified settings for form-relay."""

import tomllib
from pathlib import Path
from typing import ClassVar

from pydantic_settings import BaseSettings, SettingsConfigDict

from form_relay.models.core import RelayConfig


def read_pyproject(pyproject_path: Path) -> dict:
    """Read pyproject.toml into a dict, empty when it is not shipped alongside the package."""
    if not pyproject_path.is_file():
        return {}
    with pyproject_path.open("rb") as file_handle:
        return tomllib.load(file_handle)


def get_version(base_dir: Path) -> str:
    """Get version from git tags or fallback to package metadata."""
    try:
        import git

        repo = git.Repo(base_dir, search_parent_directories=True)
        latest_tag = max(repo.tags, key=lambda t: t.commit.committed_datetime, default=None)
        return str(latest_tag) if latest_tag else "0.0.0"
    except Exception:
        try:
            import importlib.metadata

            return importlib.metadata.version("form-relay")
        except Exception:
            return "0.0.0"


class Settings(BaseSettings):
    """Process-wide settings, read once at startup."""

    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    BASE_DIR: ClassVar[Path] = Path(__file__).parent.parent.parent
    PROJECT: ClassVar[dict] = read_pyproject(BASE_DIR / "pyproject.toml")
    API_NAME: ClassVar[str] = PROJECT.get("project", {}).get("name", "form-relay")
    API_DESCRIPTION: ClassVar[str] = PROJECT.get("project", {}).get("description", "Multipart form relay")
    API_VERSION: ClassVar[str] = get_version(BASE_DIR)

    # Server
    API_HOST: str = "0.0.0.0"
    PORT: int = 8080
    ALLOWED_ORIGIN: str = "http://localhost:4321"

    # Downstream webhook
    N8N_WEBHOOK_URL: str | None = None
    WEBHOOK_TIMEOUT_SECONDS: float = 300.0

    # Inbound uploads
    MAX_BODY_BYTES: int = 200 * 1024 * 1024
    UPLOAD_DIR: Path | None = None

    @property
    def api_url(self) -> str:
        return f"http://{self.API_HOST}:{self.PORT}"

    def relay_config(self) -> RelayConfig:
        """Freeze the relay-related values; the webhook URL is mandatory."""
        if not self.N8N_WEBHOOK_URL:
            raise ValueError("N8N_WEBHOOK_URL must be set to the downstream webhook URL")
        return RelayConfig(
            webhook_url=self.N8N_WEBHOOK_URL,
            timeout_seconds=self.WEBHOOK_TIMEOUT_SECONDS,
            max_body_bytes=self.MAX_BODY_BYTES,
            upload_dir=self.UPLOAD_DIR,
        )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()  # type: ignore
