"""Engine configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Stress engine defaults.

    Every field can be overridden with a ``STRESS_ENGINE_`` prefixed
    environment variable (or a ``.env`` file).  Computation functions only
    consult these values when the caller passes ``None``.
    """

    DEFAULT_CONFIDENCE: float = 0.95
    ANNUALIZATION_FACTOR: int = 252
    MC_DEFAULT_PATHS: int = 1000
    MC_DEFAULT_PATH_LENGTH: int = 252
    MC_MAX_WORKERS: int = 1
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(
        env_prefix="STRESS_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
