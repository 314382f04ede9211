from pydantic_settings import BaseSettings

from myai.core.errors import ConfigurationError


class Settings(BaseSettings):
    app_name: str = "MyAI Gateway"
    app_version: str = "0.1.0"
    api_key: str = "dev-api-key-12345"
    db_path: str = "data/myai.db"
    preserve_old_db: bool = False
    log_level: str = "INFO"

    # Upstream aggregator
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_timeout_seconds: float = 60.0
    openrouter_max_retries: int = 3
    openrouter_retry_delay_seconds: float = 1.0
    openrouter_app_url: str = "http://localhost:3000"
    openrouter_app_title: str = "MyAI Platform"

    default_chat_model: str = "openai/gpt-3.5-turbo"
    default_embedding_model: str = "openai/text-embedding-ada-002"
    default_completion_model: str = "openai/gpt-3.5-turbo-instruct"

    # Caches
    pricing_cache_enabled: bool = True
    pricing_cache_ttl_seconds: float = 3600
    model_catalog_ttl_seconds: float = 3600

    chat_max_history_length: int = 20

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def require_openrouter_credentials(self) -> None:
        """Fail fast when the upstream API key is not configured"""
        if not self.openrouter_api_key.strip():
            raise ConfigurationError("OPENROUTER_API_KEY is required")


settings = Settings()
