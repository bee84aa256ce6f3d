from pydantic_settings import BaseSettings

PLACEHOLDER_KEYS = {
    "your_anthropic_api_key_here",
    "your_gemini_api_key_here",
    "your_google_api_key_here",
}


class Settings(BaseSettings):
    # Anthropic (credibility, chat, secondary summary)
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    anthropic_max_tokens: int = 1024

    # Gemini via its OpenAI-compatible endpoint (summary, topics, connections)
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    gemini_model: str = "gemini-2.5-flash"
    gemini_max_tokens: int = 2048

    # Search (fact checking, author research)
    search_provider: str = "brave"  # brave | tavily | none
    brave_api_key: str = ""
    tavily_api_key: str = ""
    search_fallback_to_tavily: bool = True
    search_max_results: int = 3
    fact_check_max_claims: int = 5

    # Orchestration
    provider_timeout_seconds: float = 60.0
    content_max_tokens: int = 8000
    prompt_content_chars: int = 6000
    stream_chunk_chars: int = 80

    # Article memory
    memory_candidate_window: int = 20
    memory_max_connections: int = 5
    history_limit: int = 50

    # App
    cors_origins: str = "*"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


def credential(value: str | None) -> str:
    """Return a usable credential or an empty string for unset/placeholder values."""
    cleaned = (value or "").strip()
    if not cleaned or cleaned.lower() in PLACEHOLDER_KEYS:
        return ""
    return cleaned


settings = Settings()
