from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

# A 32-symbol alphabet gives 5 bits per character; 10 characters is the
# floor for a public, unauthenticated lookup key.
MIN_VERIFICATION_CODE_LENGTH = 10
# Width of the verification_code column.
MAX_VERIFICATION_CODE_LENGTH = 32


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getenv_int(name: str, default: str) -> int:
    raw = _getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    verify_base_url: str = "http://localhost:5173"
    jwt_public_key_file: str | None = None
    jwt_issuer: str = "auth-service"
    jwt_audience: str = "certificate-service"
    verification_code_length: int = 12
    code_generation_max_attempts: int = 5
    verify_rate_limit: int = 30

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    port = _getenv_int("PORT", "8000")
    code_length = _getenv_int("VERIFICATION_CODE_LENGTH", "12")
    max_attempts = _getenv_int("CODE_GENERATION_MAX_ATTEMPTS", "5")
    verify_rate_limit = _getenv_int("VERIFY_RATE_LIMIT", "30")

    if code_length < MIN_VERIFICATION_CODE_LENGTH:
        raise ValueError(
            "VERIFICATION_CODE_LENGTH must be at least "
            f"{MIN_VERIFICATION_CODE_LENGTH} (got {code_length})"
        )
    if code_length > MAX_VERIFICATION_CODE_LENGTH:
        raise ValueError(
            "VERIFICATION_CODE_LENGTH must be at most "
            f"{MAX_VERIFICATION_CODE_LENGTH} (got {code_length})"
        )
    if max_attempts < 1:
        raise ValueError(
            f"CODE_GENERATION_MAX_ATTEMPTS must be >= 1 (got {max_attempts})"
        )
    if verify_rate_limit < 1:
        raise ValueError(f"VERIFY_RATE_LIMIT must be >= 1 (got {verify_rate_limit})")

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None
    verify_base_url = _getenv("VERIFY_BASE_URL", "http://localhost:5173").rstrip("/")
    jwt_public_key_file = _getenv("JWT_PUBLIC_KEY_FILE", "") or None
    jwt_issuer = _getenv("JWT_ISSUER", "auth-service")
    jwt_audience = _getenv("JWT_AUDIENCE", "certificate-service")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        verify_base_url=verify_base_url,
        jwt_public_key_file=jwt_public_key_file,
        jwt_issuer=jwt_issuer,
        jwt_audience=jwt_audience,
        verification_code_length=code_length,
        code_generation_max_attempts=max_attempts,
        verify_rate_limit=verify_rate_limit,
    )


SETTINGS = load_settings()
