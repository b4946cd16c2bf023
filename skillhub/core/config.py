from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables.

    Build one instance per process and hand it to the components that need it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    # AI
    DEFAULT_GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_API_KEY: str | None = None
    GENERATION_TIMEOUT_SECONDS: float = 20.0
    PRICE_CURRENCY: str = "ZAR"

    # Profile repository
    REDIS_URL: str | None = None
    REDIS_PROFILE_KEY: str = "skillhub:profile:"
    # Maximum number of connections Redis client will open per process
    REDIS_MAX_CONNECTIONS: int = 20

    # Remote mirror (spreadsheet bridge or any webhook accepting profile rows)
    MIRROR_URL: str | None = None
    MIRROR_TIMEOUT_SECONDS: float = 10.0
    MIRROR_MAX_RETRIES: int = 2
    MIRROR_BACKOFF_SECONDS: float = 0.5

    # Moderation
    AUTO_FLAG_CONFIDENCE: float = 0.7
    LOW_ENGAGEMENT_IDLE_DAYS: int = 30
    POOR_CONVERSION_MIN_VIEWS: int = 100
    POOR_CONVERSION_RATE: float = 2.0  # percent

    # Ranking weights, see RankingEngine
    RANK_WEIGHT_VIEWS: float = 0.40
    RANK_WEIGHT_ENGAGEMENT: float = 0.25
    RANK_WEIGHT_SENTIMENT: float = 0.15
    RANK_WEIGHT_CONVERSIONS: float = 0.20
