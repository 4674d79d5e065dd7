from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    LOG_LEVEL: str = "INFO"
    PORT: int = 10000
    LISTINGS_DB_URL: str = "sqlite+aiosqlite:///./listings.db"

    # Send: X-API-Key: <key>  (only guards the /runs debug routes)
    API_KEY: str | None = None

    # --- Planner / guardrails (OpenAI) ---
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT_S: float = 60.0
    GUARDRAILS_ENABLED: bool = True
    MODERATION_MODEL: str = "omni-moderation-latest"

    # --- Search provider (SerpAPI) ---
    SERPAPI_KEY: str | None = None
    SERPAPI_URL: str = "https://serpapi.com/search.json"

    # --- Outbound HTTP ---
    HTTP_TIMEOUT_S: float = 15.0
    HTTP_MAX_RETRIES: int = 1
    HTTP_BACKOFF_BASE_S: float = 0.5
    HTTP_CIRCUIT_FAIL_THRESHOLD: int = 3
    HTTP_CIRCUIT_RESET_S: float = 60.0
    TOOL_TIMEOUT_S: float = 20.0
    FETCH_MAX_BYTES: int = 2_000_000
    FETCH_VERIFY_SSL: bool = True
    FETCH_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120 Safari/537.36"
    )

    # --- Orchestration budget (per run) ---
    MAX_TURNS: int = 6
    MAX_SEARCH_CALLS: int = 1
    MAX_SEARCH_RESULTS: int = 3
    MAX_FETCH_CALLS: int = 3
    MAX_NORMALIZE_CALLS: int = 1
    LISTING_CAP: int = 12
    HTML_MAX_CHARS: int = 2000


settings = Settings()
