from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # API Keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # Server
    server_host: str = "0.0.0.0"
    server_port: int = 3001
    cors_origin: str = "*"

    # Application
    debug: bool = False

    # API defaults
    default_model: str = "gpt-4.1-mini"
    default_temperature: float = 0.0
    default_max_tokens: int = 4096

    # Report API (the aggregation endpoints served next to the chat)
    # Empty means "this service, on its own listen port"
    report_api_base_url: str = ""
    report_request_timeout: float = 15.0  # seconds
    report_cache_ttl_seconds: int = 30  # 0 disables response caching
    report_max_array_items: int = 20

    # Conversation pipeline
    chat_memory_max_messages: int = 5  # Per role (user / assistant)
    chat_batch_window_ms: int = 500
    chat_batch_fallback_ms: int = 100
    chat_max_message_length: int = 4000

    # Tool loop
    chat_tool_max_retries: int = 3  # Provider retries per model step
    chat_max_tool_calls: int = 2  # Stop once more tool calls than this were made
    chat_max_steps: int = 5

    class Config:
        env_file = ".env"
        extra = "ignore"

    def get_report_api_base_url(self) -> str:
        """Base URL of the report API, defaulting to this service's own port."""
        if self.report_api_base_url:
            return self.report_api_base_url.rstrip("/")
        return f"http://127.0.0.1:{self.server_port}"

    def get_cors_origins(self) -> List[str]:
        """Parse CORS_ORIGIN (comma separated) into a list."""
        return [origin.strip() for origin in self.cors_origin.split(",") if origin.strip()]


settings = Settings()
