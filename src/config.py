"""Configuration module for the learning marketplace auth service.

This module provides centralized configuration management, including directory
paths, API server settings, token lifetimes, and mail delivery settings.
All configuration values can be overridden via environment variables.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.resolve()

# Data directory name
DATA_DIR_NAME = "data"
DATA_DIR = ROOT_DIR / DATA_DIR_NAME

APP_ENV: str = os.getenv("APP_ENV", "development")

# --- Database Configuration ---

DATABASE_URL: str = os.getenv(
    "DATABASE_URL", f"sqlite:///{DATA_DIR}/marketplace_auth.db"
)

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# CORS allowed origins (comma-separated list)
_CORS_ALLOWED_ORIGINS_STR: str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,"
    "http://127.0.0.1:3000",
)
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]

# Frontend base URL, used to build password reset links
CLIENT_URL: str = os.getenv("CLIENT_URL", "http://localhost:5173").rstrip("/")

PLATFORM_NAME: str = os.getenv("PLATFORM_NAME", "Volt-Ed")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# --- Session Token Configuration ---

DEFAULT_JWT_SECRET_KEY = "change-me-in-production"
JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", DEFAULT_JWT_SECRET_KEY)
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# The cookie outlives the token it carries (3 days vs 1 hour).
TOKEN_COOKIE_NAME: str = os.getenv("TOKEN_COOKIE_NAME", "token")
TOKEN_COOKIE_EXPIRE_DAYS: int = int(os.getenv("TOKEN_COOKIE_EXPIRE_DAYS", "3"))
COOKIE_SECURE: bool = _get_bool("COOKIE_SECURE", default=False)

# Compare the presented token with the one stored on the user record
ENFORCE_SINGLE_SESSION: bool = _get_bool("ENFORCE_SINGLE_SESSION", default=False)

# --- Password Configuration ---

BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "10"))

# --- OTP Configuration ---

OTP_LENGTH: int = int(os.getenv("OTP_LENGTH", "6"))
OTP_TTL_SECONDS: int = int(os.getenv("OTP_TTL_SECONDS", "300"))
OTP_MAX_GENERATION_ATTEMPTS: int = int(os.getenv("OTP_MAX_GENERATION_ATTEMPTS", "50"))
OTP_SINGLE_USE: bool = _get_bool("OTP_SINGLE_USE", default=True)

# --- Password Reset Configuration ---

RESET_TOKEN_TTL_SECONDS: int = int(os.getenv("RESET_TOKEN_TTL_SECONDS", "300"))
RESET_TOKEN_BYTES: int = int(os.getenv("RESET_TOKEN_BYTES", "20"))

# --- Mail Configuration ---

# "console" logs outgoing mail, "smtp" delivers it
MAIL_BACKEND: str = os.getenv("MAIL_BACKEND", "console").lower()
MAIL_FROM: str = os.getenv("MAIL_FROM", "no-reply@volt-ed.local")
SMTP_HOST: str = os.getenv("SMTP_HOST", "localhost")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER: str = os.getenv("SMTP_USER", "")
SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS: bool = _get_bool("SMTP_USE_TLS", default=True)
SMTP_TIMEOUT_SECONDS: float = float(os.getenv("SMTP_TIMEOUT_SECONDS", "10"))


def validate_runtime_config() -> None:
    """Refuse to start a production deployment with unsafe defaults.

    Raises:
        ConfigurationError: If a required production setting is missing.
    """
    from core.exceptions import ConfigurationError

    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == DEFAULT_JWT_SECRET_KEY:
        raise ConfigurationError("JWT_SECRET_KEY must be set in production.")
    if MAIL_BACKEND not in {"console", "smtp"}:
        raise ConfigurationError(
            f"Unknown MAIL_BACKEND: {MAIL_BACKEND}. Must be 'console' or 'smtp'."
        )
