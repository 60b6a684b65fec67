from __future__ import annotations

from typing import Annotated, List, Any, Literal
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import Field, AnyUrl, AliasChoices, field_validator, model_validator


class Settings(BaseSettings):
    # Read from .env; unknown keys are rejected to catch typos
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="forbid",
    )

    # General
    APP_NAME: str = "TriviaQuest Backend"
    API_V1_PREFIX: str = "/api/v1"
    APP_ENV: str = Field(
        "dev",
        validation_alias=AliasChoices("APP_ENV", "app_env"),
        description="Application environment: dev|staging|prod",
    )
    BACKEND_PORT: int = Field(
        8000,
        validation_alias=AliasChoices("BACKEND_PORT", "app_port"),
        description="Backend port to bind",
    )
    LOG_LEVEL: str = Field(
        "INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "log_level"),
    )

    # Storage backends
    SESSION_BACKEND: Literal["memory", "redis"] = Field(
        "memory",
        validation_alias=AliasChoices("SESSION_BACKEND", "session_backend"),
        description="Where in-progress quizzes are kept",
    )
    HISTORY_BACKEND: Literal["memory", "supabase"] = Field(
        "memory",
        validation_alias=AliasChoices("HISTORY_BACKEND", "history_backend"),
        description="Where completed quiz results are kept",
    )
    IDENTITY_BACKEND: Literal["local", "supabase"] = Field(
        "local",
        validation_alias=AliasChoices("IDENTITY_BACKEND", "identity_backend"),
        description="Who resolves bearer tokens into users",
    )

    # Supabase
    SUPABASE_URL: AnyUrl | None = Field(
        None,
        validation_alias=AliasChoices("SUPABASE_URL", "supabase_url"),
        description="Your Supabase project URL",
    )
    SUPABASE_SERVICE_ROLE_KEY: str | None = Field(
        None,
        validation_alias=AliasChoices("SUPABASE_SERVICE_ROLE_KEY", "supabase_service_role_key"),
        description="Service role key (server-side)",
    )
    SUPABASE_ANON_KEY: str | None = Field(
        None,
        validation_alias=AliasChoices("SUPABASE_ANON_KEY", "supabase_anon_key"),
        description="Public anon key",
    )
    SUPABASE_SCHEMA: str = Field(
        "public",
        validation_alias=AliasChoices("SUPABASE_SCHEMA", "supabase_schema"),
        description="Supabase schema name",
    )

    # Redis
    REDIS_URL: str | None = Field(
        None,
        validation_alias=AliasChoices("REDIS_URL", "redis_url"),
        description="redis:// or rediss:// URL for session storage",
    )
    SESSION_TTL_SECONDS: int = Field(6 * 60 * 60, ge=60)

    # Trivia provider
    TRIVIA_API_URL: str = "https://opentdb.com/api.php"
    TRIVIA_QUESTION_COUNT: int = Field(10, ge=1, le=50)
    TRIVIA_ENCODING: Literal["base64", "url3986", "none"] = "base64"
    TRIVIA_TIMEOUT_SECONDS: float = Field(10.0, gt=0)

    # Quiz behaviour
    TIME_LIMIT_CHOICES: Annotated[List[int], NoDecode] = [60, 180, 300, 600]
    DEFAULT_TIME_LIMIT: int | None = 300
    AUTO_ADVANCE_DELAY_MS: int | None = Field(
        None,
        ge=0,
        description="Delay before moving on after an answer; unset disables auto-advance",
    )
    HISTORY_LIST_LIMIT: int | None = Field(20, ge=1)
    SHUFFLE_SEED: int | None = None

    # CORS origins
    FRONTEND_ORIGINS: Annotated[List[str], NoDecode] = [
        "http://localhost:9002",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @field_validator("FRONTEND_ORIGINS", "TIME_LIMIT_CHOICES", mode="before")
    @classmethod
    def _parse_list(cls, v: Any) -> Any:
        """
        Accepts list values from .env as either:
        - a JSON array: ["http://localhost:3000","http://localhost:9002"]
        - or a string: http://localhost:3000,http://localhost:9002
        - or with ; as separator
        """
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    return json.loads(s)
                except ValueError:
                    # broken JSON falls through to the split below
                    pass
            return [item.strip() for item in s.strip("[]").replace(";", ",").split(",") if item.strip()]
        return v

    @model_validator(mode="after")
    def _check_backends(self) -> "Settings":
        needs_supabase = self.HISTORY_BACKEND == "supabase" or self.IDENTITY_BACKEND == "supabase"
        if needs_supabase and (self.SUPABASE_URL is None or not self.SUPABASE_SERVICE_ROLE_KEY):
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for the supabase backend")
        if self.SESSION_BACKEND == "redis" and not self.REDIS_URL:
            raise ValueError("REDIS_URL is required for the redis session backend")
        if self.DEFAULT_TIME_LIMIT is not None and self.DEFAULT_TIME_LIMIT not in self.TIME_LIMIT_CHOICES:
            raise ValueError("DEFAULT_TIME_LIMIT must be one of TIME_LIMIT_CHOICES or empty")
        return self

    @property
    def auto_advance_delay(self) -> float | None:
        if self.AUTO_ADVANCE_DELAY_MS is None:
            return None
        return self.AUTO_ADVANCE_DELAY_MS / 1000.0


settings = Settings()
