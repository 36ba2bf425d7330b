"""Configuration module for toolbridge using pydantic-settings."""

from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ToolBridgeSettings(BaseSettings):
    """Main configuration settings for toolbridge.

    All settings can be overridden via environment variables with the
    TOOLBRIDGE_ prefix. For example, TOOLBRIDGE_PORT will override the port
    setting. The model API key is also picked up from OPENAI_API_KEY.
    """

    # Provider identity
    server_name: str = "toolbridge"
    server_version: str = "0.1.0"
    server_instructions: str | None = None

    # Provider HTTP endpoint
    host: str = "127.0.0.1"
    port: int = 3000
    http_path: str = "/mcp"
    sse_ping_interval: int = 15
    # seconds without requests or an open stream before a session is ended
    session_idle_timeout: float | None = 1800.0

    # Consumer: how to reach the provider
    server_command: str | None = None
    server_args: list[str] = Field(default_factory=list)
    server_url: str | None = None

    # Consumer: timing
    handshake_timeout: float = 30.0
    request_timeout: float = 30.0
    stream_reconnect_delay: float = 1.0
    stream_max_reconnects: int = 5

    # Model
    llm_backend: Literal["ollama", "openai"] = "ollama"
    llm_model: str | None = None
    ollama_host: str = "http://localhost:11434"
    openai_base_url: str = "https://api.deepseek.com"
    llm_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "llm_api_key", "TOOLBRIDGE_LLM_API_KEY", "OPENAI_API_KEY"
        ),
    )
    system_prompt: str = (
        "You are a helpful assistant. You can use tools to complete calculations."
    )

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="TOOLBRIDGE_", populate_by_name=True)

    @property
    def has_llm_credentials(self) -> bool:
        """Whether an API key for the model service is configured."""
        return self.llm_api_key is not None and bool(
            self.llm_api_key.get_secret_value()
        )

    @property
    def model_name(self) -> str:
        """Configured model, or the default for the selected backend."""
        if self.llm_model:
            return self.llm_model
        return "deepseek-chat" if self.llm_backend == "openai" else "llama3.2:latest"
