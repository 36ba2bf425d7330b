"""Model clients used by the conversation controller."""

from toolbridge.config import ToolBridgeSettings
from toolbridge.llm.base import ModelClient, ModelReply
from toolbridge.llm.ollama_client import OllamaModelClient
from toolbridge.llm.openai_client import OpenAIModelClient


def create_model_client(settings: ToolBridgeSettings) -> ModelClient:
    """Build the model client selected by ``settings.llm_backend``."""
    api_key = (
        settings.llm_api_key.get_secret_value() if settings.llm_api_key else None
    )
    if settings.llm_backend == "openai":
        return OpenAIModelClient(
            model=settings.model_name,
            api_key=api_key,
            base_url=settings.openai_base_url,
        )
    return OllamaModelClient(
        host=settings.ollama_host,
        model=settings.model_name,
        api_key=api_key,
    )


__all__ = [
    "ModelClient",
    "ModelReply",
    "OllamaModelClient",
    "OpenAIModelClient",
    "create_model_client",
]
