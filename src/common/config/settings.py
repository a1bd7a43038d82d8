"""Application settings and environment variables."""

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file


class Settings:
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_DATABASE: str = os.getenv("DB_NAME", "stock_ledger_db")
    DB_USER: str = os.getenv("DB_USER", "user")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "password")

    # "mysql" for the transactional store, "memory" for local runs without a database
    LEDGER_BACKEND: str = os.getenv("LEDGER_BACKEND", "mysql")

    HISTORY_DEFAULT_LIMIT: Optional[int] = (
        int(os.getenv("HISTORY_DEFAULT_LIMIT")) if os.getenv("HISTORY_DEFAULT_LIMIT") else None
    )

    # Logging settings
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")  # INFO, DEBUG, WARNING, ERROR, CRITICAL
    LOG_FILE: Optional[str] = os.getenv("LOG_FILE")


settings = Settings()
