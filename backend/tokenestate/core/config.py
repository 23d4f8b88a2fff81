from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
import json
from pathlib import Path


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./tokenestate.db"

    # CORS - can be JSON string or comma-separated string
    CORS_ORIGINS: str = '["http://localhost:3000", "http://localhost:5173"]'

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # OpenAI inference service (optional - missing key means "unavailable")
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_TIMEOUT_SECONDS: float = 20.0

    # Recommendation request limits
    RECOMMENDATION_DEFAULT_LIMIT: int = 5
    RECOMMENDATION_MAX_LIMIT: int = 20

    # Fallback scorer knobs
    SCORING_BASE_SCORE: float = 50.0
    SCORING_BUDGET_BONUS: float = 20.0
    SCORING_TYPE_BONUS: float = 15.0
    SCORING_LOCATION_BONUS: float = 15.0
    SCORING_RISK_BONUS: float = 10.0
    SCORING_LIQUIDITY_BONUS: float = 10.0
    SCORING_MIN_SCORE: Optional[float] = None  # None = return every scored candidate
    SCORING_MATCH_FLOOR: float = 0.0
    SCORING_MATCH_CEILING: float = 100.0

    model_config = SettingsConfigDict(
        # Load from backend/.env (relative to this file's parent's parent)
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.DATABASE_URL or self.DATABASE_URL.strip() == "":
            raise RuntimeError(
                "DATABASE_URL is empty. Set it in backend/.env, e.g. DATABASE_URL=sqlite:///./tokenestate.db"
            )

        if self.RECOMMENDATION_DEFAULT_LIMIT < 1 or self.RECOMMENDATION_MAX_LIMIT < 1:
            raise RuntimeError("RECOMMENDATION_DEFAULT_LIMIT and RECOMMENDATION_MAX_LIMIT must be positive")

        if self.RECOMMENDATION_DEFAULT_LIMIT > self.RECOMMENDATION_MAX_LIMIT:
            raise RuntimeError("RECOMMENDATION_DEFAULT_LIMIT cannot exceed RECOMMENDATION_MAX_LIMIT")

        if not (0.0 <= self.SCORING_MATCH_FLOOR <= self.SCORING_MATCH_CEILING <= 100.0):
            raise RuntimeError(
                "SCORING_MATCH_FLOOR/SCORING_MATCH_CEILING must satisfy 0 <= floor <= ceiling <= 100"
            )

        # Blank key in .env is the same as no key
        if self.OPENAI_API_KEY is not None and self.OPENAI_API_KEY.strip() == "":
            self.OPENAI_API_KEY = None

    def get_masked_database_url(self) -> str:
        """Return DATABASE_URL with password masked for logging."""
        if "@" not in self.DATABASE_URL:
            # sqlite and other credential-less URLs
            return self.DATABASE_URL
        try:
            from urllib.parse import urlparse, urlunparse
            parsed = urlparse(self.DATABASE_URL)
            masked_netloc = f"{parsed.username}:***@{parsed.hostname}"
            if parsed.port:
                masked_netloc += f":{parsed.port}"
            return urlunparse((
                parsed.scheme,
                masked_netloc,
                parsed.path,
                parsed.params,
                parsed.query,
                parsed.fragment
            ))
        except ValueError:
            return f"{self.DATABASE_URL.split('://')[0]}://<user>:***@{self.DATABASE_URL.split('@')[-1]}"

    @property
    def inference_enabled(self) -> bool:
        return self.OPENAI_API_KEY is not None

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS from JSON string or comma-separated string."""
        if not self.CORS_ORIGINS:
            return ["http://localhost:3000", "http://localhost:5173"]

        try:
            parsed = json.loads(self.CORS_ORIGINS)
            if isinstance(parsed, list):
                return parsed
            return [str(parsed)]
        except (json.JSONDecodeError, TypeError):
            origins = [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
            return origins if origins else ["http://localhost:3000", "http://localhost:5173"]


settings = Settings()
