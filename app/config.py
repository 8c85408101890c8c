"""Application settings for the repeating task engine.

Values are read from the environment (a local .env file is honoured).
"""

import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings read from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./repeating_tasks.db")

    # Periodic materialization
    MATERIALIZE_ON_STARTUP: bool = os.getenv("MATERIALIZE_ON_STARTUP", "false").lower() == "true"
    MATERIALIZE_INTERVAL_SECONDS: int = int(os.getenv("MATERIALIZE_INTERVAL_SECONDS", "3600"))

    # Upper bound on forward steps when a rule has been due for many periods
    MAX_CATCHUP_STEPS: int = int(os.getenv("MAX_CATCHUP_STEPS", "1000"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Auth
    AUTH_SECRET: str = os.getenv("AUTH_SECRET", "dev-secret-change-me")
    AUTH_ALGORITHM: str = os.getenv("AUTH_ALGORITHM", "HS256")


# Create global settings instance
settings = Settings()
