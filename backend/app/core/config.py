# backend/app/core/config.py

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from pydantic_settings import BaseSettings, SettingsConfigDict


def _strip_asyncpg_unsupported_params(url: str) -> str:
    """
    asyncpg does NOT accept sslmode or channel_binding as connect kwargs.
    Hosted Postgres URLs often carry them; drop them before create_async_engine.
    """
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = parse_qsl(parts.query, keep_blank_values=True)
    filtered = [(k, v) for (k, v) in params if k not in {"sslmode", "channel_binding"}]
    new_query = urlencode(filtered, doseq=True)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, new_query, parts.fragment))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -----------------------------
    # Environment
    # -----------------------------
    # Use: development | staging | production
    ENVIRONMENT: str = "development"

    # -----------------------------
    # DB
    # -----------------------------
    DATABASE_URL_ASYNC: str

    # -----------------------------
    # JWT
    # -----------------------------
    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # -----------------------------
    # Logging
    # -----------------------------
    LOG_LEVEL: str = "INFO"
    # text | json
    LOG_FORMAT: str = "text"

    # -----------------------------
    # HTTP
    # -----------------------------
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @property
    def DATABASE_URL_ASYNC_CLEAN(self) -> str:
        return _strip_asyncpg_unsupported_params(self.DATABASE_URL_ASYNC)

    @property
    def is_production(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"prod", "production"}

    def model_post_init(self, __context) -> None:  # pydantic v2 hook
        env = (self.ENVIRONMENT or "").strip().lower()

        # Never run staging/production with a placeholder secret.
        if env in {"staging", "production"}:
            if not self.JWT_SECRET or self.JWT_SECRET.strip() == "dev-secret-change-me":
                raise ValueError("JWT_SECRET must be set to a strong value in staging/production.")
            if len(self.JWT_SECRET.strip()) < 32:
                raise ValueError("JWT_SECRET is too short; use at least 32 characters in staging/production.")

        if self.JWT_ALGORITHM not in {"HS256"}:
            raise ValueError(f"Unsupported JWT_ALGORITHM={self.JWT_ALGORITHM!r}. Allowed: HS256")

        if self.LOG_FORMAT.strip().lower() not in {"text", "json"}:
            raise ValueError(f"Unsupported LOG_FORMAT={self.LOG_FORMAT!r}. Allowed: text, json")


settings = Settings()
