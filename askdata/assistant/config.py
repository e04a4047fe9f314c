"""
Assistant Configuration Module
Centralized configuration for the chat model and chart settings
"""
import os
from typing import Literal
from pydantic import BaseModel, Field


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        return float(raw) if raw not in (None, "") else default
    except ValueError:
        return default


class LLMProviderConfig(BaseModel):
    """Configuration for LLM providers"""

    provider: Literal["gateway", "openai"] = Field(
        default_factory=lambda: os.getenv("LLM_PROVIDER", "gateway").strip().lower()
    )

    # Chat gateway (bearer credential rotated by the refresh job)
    api_base: str = Field(
        default_factory=lambda: os.getenv(
            "LLM_API_BASE", "https://api.horizon.elevancehealth.com/v2"
        ).rstrip("/")
    )
    api_key_env: str = "LLM_API_KEY"
    model: str = Field(
        default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4-turbo-preview")
    )
    timeout_seconds: float = Field(
        default_factory=lambda: _env_float("LLM_TIMEOUT_SECONDS", 60.0)
    )
    token_refresh_minutes: float = Field(
        default_factory=lambda: _env_float("LLM_TOKEN_REFRESH_MINUTES", 14.0)
    )

    # OpenAI Configuration
    openai_api_key: str = Field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY", "")
    )
    openai_model: str = Field(
        default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    )


class CompletionOptions(BaseModel):
    """Sampling options for a single chat completion request"""

    temperature: float
    max_tokens: int


class ChatbotConfig(BaseModel):
    """General chatbot configuration"""

    # Conversation settings
    max_conversation_history: int = 20
    chat_options: CompletionOptions = CompletionOptions(temperature=0.7, max_tokens=2000)

    # Visualization suggestion settings
    visualization_options: CompletionOptions = CompletionOptions(temperature=0.3, max_tokens=1000)
    visualization_sample_rows: int = 5

    # Chart settings
    chart_color_palette: list[str] = [
        "#8b5cf6",  # Violet
        "#10b981",  # Emerald
        "#f59e0b",  # Amber
        "#ef4444",  # Red
        "#3b82f6",  # Blue
        "#ec4899",  # Pink
        "#14b8a6",  # Teal
        "#f97316",  # Orange
        "#8b5cf6",  # Violet
        "#a855f7",  # Purple
        "#06b6d4",  # Cyan
        "#84cc16",  # Lime
    ]


# Global config instances
llm_config = LLMProviderConfig()
chatbot_config = ChatbotConfig()
