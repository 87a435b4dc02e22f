from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


def _load_version() -> str:
    version_path = Path(__file__).resolve().parent / "VERSION"
    try:
        return version_path.read_text().strip()
    except FileNotFoundError:
        return "0.1.0"


class Settings(BaseSettings):
    """Application configuration using Pydantic settings."""

    # Database
    DATABASE_URL: str = "sqlite:///./data/auth.db"

    # Application
    APP_NAME: str = "Graphēon Auth"
    APP_VERSION: str = _load_version()
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Authorization core ─────────────────────────────────────────────
    # Graph namespace served by a manager; one store per tenant graph
    GRAPH_NAME: str = "hugegraph"

    # Identity / verified-credential / resolved-role caches (24h)
    AUTH_CACHE_EXPIRE_SECONDS: int = 24 * 3600

    # Endpoint recorded on the target created for each project
    PROJECT_TARGET_URL: str = "localhost:8080"

    # Local admin bootstrap (used by scripts/seed_demo_data.py)
    LOCAL_ADMIN_USERNAME: Optional[str] = None
    LOCAL_ADMIN_PASSWORD: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
