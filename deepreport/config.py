from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "google/gemini-2.0-flash-001"
    openrouter_model: str = ""
    # comma separated "id=Label" pairs exposed through /api/models
    model_catalog: str = (
        "google/gemini-2.0-flash-001=Gemini Flash,"
        "openai/gpt-4o=GPT-4o,"
        "openai/o1-mini=o1-mini,"
        "anthropic/claude-3.7-sonnet=Claude 3.7 Sonnet"
    )
    llm_max_tokens: int = 8192

    # Search provider
    search_provider: str = "brave"  # brave | tavily
    brave_api_key: str = ""
    tavily_api_key: str = ""
    search_fallback_to_tavily: bool = True
    search_results_per_page: int = 10
    search_default_time_filter: str = "all"  # all | 24h | week | month | year
    search_timeout_seconds: float = 30.0

    # Selection
    max_selectable_results: int = 3
    min_source_score: float = 0.5

    # Backoff for upstream calls
    backoff_max_attempts: int = 3
    backoff_base_delay_seconds: float = 1.0

    # Content fetching
    content_fetcher: str = "direct"  # direct | jina_reader
    jina_api_key: str = ""
    jina_reader_base_url: str = "https://r.jina.ai"
    content_fetch_timeout_seconds: float = 30.0
    content_max_chars: int = 60000
    upload_max_bytes: int = 10 * 1024 * 1024

    # Per-operation rate limits (requests per minute)
    rate_limits_enabled: bool = True
    rate_limit_search: int = 10
    rate_limit_content_fetch: int = 20
    rate_limit_report_generation: int = 5
    rate_limit_agent_optimizations: int = 10

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def model_list(self) -> list[tuple[str, str]]:
        models: list[tuple[str, str]] = []
        for entry in self.model_catalog.split(","):
            entry = entry.strip()
            if not entry:
                continue
            model_id, _, label = entry.partition("=")
            models.append((model_id.strip(), label.strip() or model_id.strip()))
        return models

    @property
    def rate_limit_table(self) -> dict[str, int]:
        return {
            "search": self.rate_limit_search,
            "content_fetch": self.rate_limit_content_fetch,
            "report_generation": self.rate_limit_report_generation,
            "agent_optimizations": self.rate_limit_agent_optimizations,
        }


settings = Settings()
