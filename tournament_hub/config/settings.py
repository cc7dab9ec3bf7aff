"""
Settings Configuration

Centralized runtime settings for the backend.
All settings are loaded from environment variables (optionally via .env).
"""
import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

load_dotenv(dotenv_path=ENV_FILE)


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable, falling back on bad input."""
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class TieBreakPolicy:
    """Ordering applied to standings with equal points."""
    STATS = "stats"
    INSERTION = "insertion"

    ALL = (STATS, INSERTION)


class DispatchMode:
    """How post-commit events reach their handlers."""
    BACKGROUND = "background"
    INLINE = "inline"

    ALL = (BACKGROUND, INLINE)


class Settings:
    """
    Runtime settings for the application.

    Values are read once at import time. Tests mutate the singleton
    directly instead of touching the environment.
    """

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./tournament_hub.db")

    # Auth
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = get_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 60)
    BCRYPT_ROUNDS: int = get_int_env("BCRYPT_ROUNDS", 12)
    # Comma-separated emails granted the admin role on registration
    ADMIN_EMAILS: str = os.getenv("ADMIN_EMAILS", "")

    # Object storage
    STORAGE_ROOT: str = os.getenv("STORAGE_ROOT", str(PROJECT_ROOT / "storage"))
    SIGNED_URL_EXPIRE_SECONDS: int = get_int_env("SIGNED_URL_EXPIRE_SECONDS", 60 * 60)

    # Qualification engine
    QUALIFICATION_TIEBREAK: str = os.getenv("QUALIFICATION_TIEBREAK", TieBreakPolicy.STATS)
    DEFAULT_TEAMS_PER_GROUP_QUALIFY: int = get_int_env("DEFAULT_TEAMS_PER_GROUP_QUALIFY", 2)
    QUALIFICATION_RECOMPUTE_ATTEMPTS: int = get_int_env("QUALIFICATION_RECOMPUTE_ATTEMPTS", 1)

    # Event dispatch
    EVENT_DISPATCH_MODE: str = os.getenv("EVENT_DISPATCH_MODE", DispatchMode.BACKGROUND)

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = get_int_env("PORT", 8000)
    ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "")

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    def __init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Reject values the qualification engine and event bus cannot run with.

        Raises:
            ValueError: unknown tie-break policy or dispatch mode, or a
                default qualify count below 1
        """
        if self.QUALIFICATION_TIEBREAK not in TieBreakPolicy.ALL:
            raise ValueError(
                f"Unknown QUALIFICATION_TIEBREAK '{self.QUALIFICATION_TIEBREAK}'. "
                f"Must be one of: {', '.join(TieBreakPolicy.ALL)}"
            )
        if self.EVENT_DISPATCH_MODE not in DispatchMode.ALL:
            raise ValueError(
                f"Unknown EVENT_DISPATCH_MODE '{self.EVENT_DISPATCH_MODE}'. "
                f"Must be one of: {', '.join(DispatchMode.ALL)}"
            )
        if self.DEFAULT_TEAMS_PER_GROUP_QUALIFY < 1:
            raise ValueError(
                f"DEFAULT_TEAMS_PER_GROUP_QUALIFY must be at least 1, got {self.DEFAULT_TEAMS_PER_GROUP_QUALIFY}"
            )

    @property
    def admin_emails(self) -> set:
        return {e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()}


# Singleton instance for easy importing
settings = Settings()
