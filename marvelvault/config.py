from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "MarvelVault"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "postgresql+asyncpg://localhost:5432/marvelvault"

    cors_allow_origins: list[str] = ["*"]

    # Default number of cards returned by the sample-cards preview
    sample_cards_limit: int = 12

    # Upper bound on set listings in the migration console pickers
    set_list_limit: int = 200


settings = Settings()


# =============================================================================
# MIGRATION CONSOLE LIMITS
# =============================================================================

# Hard cap on the sample-cards preview regardless of the requested limit
MAX_SAMPLE_CARDS = 50

# Accepted range for a set's release year on promotion
MIN_SET_YEAR = 1900
MAX_SET_YEAR = 2100
