"""Pydantic models for budgetcoach.yaml configuration."""

from typing import Literal

from pydantic import BaseModel, Field

ProviderName = Literal["gemini", "openai", "anthropic"]


class GeminiConfig(BaseModel):
    """Google Gemini provider configuration."""

    api_key: str | None = Field(default=None, description="Gemini API key (or GEMINI_API_KEY)")
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com",
        description="Generative Language API base URL",
    )
    models: list[str] = Field(
        default=["gemini-2.5-flash", "gemini-2.0-flash", "gemini-2.0-flash-lite"],
        description="Models to try, in priority order",
        min_length=1,
    )
    timeout: int = Field(default=60, description="Request timeout in seconds", ge=1)


class OpenAIConfig(BaseModel):
    """OpenAI-compatible provider configuration (OpenAI, DeepSeek, OpenRouter, ...)."""

    api_key: str | None = Field(default=None, description="API key (or OPENAI_API_KEY)")
    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible endpoint (must include /v1)",
    )
    models: list[str] = Field(
        default=["gpt-4o-mini", "gpt-4.1-nano"],
        description="Models to try, in priority order",
        min_length=1,
    )
    timeout: int = Field(default=60, description="Request timeout in seconds", ge=1)


class AnthropicConfig(BaseModel):
    """Anthropic Messages API configuration."""

    api_key: str | None = Field(default=None, description="Anthropic API key (or ANTHROPIC_API_KEY)")
    base_url: str = Field(default="https://api.anthropic.com", description="Anthropic API base URL")
    models: list[str] = Field(
        default=["claude-sonnet-4-20250514", "claude-3-5-haiku-20241022"],
        description="Models to try, in priority order",
        min_length=1,
    )
    timeout: int = Field(default=60, description="Request timeout in seconds", ge=1)


class ProvidersConfig(BaseModel):
    """All LLM provider sections."""

    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    anthropic: AnthropicConfig = Field(default_factory=AnthropicConfig)


class GatewayConfig(BaseModel):
    """Provider selection and generation defaults."""

    default_provider: ProviderName | None = Field(
        default=None,
        description="Preferred provider; None means 'whichever API key is present'",
    )
    fallback_provider: ProviderName | None = Field(
        default=None,
        description="Provider to fall back to once the preferred one is exhausted",
    )
    temperature: float = Field(default=0.7, description="Sampling temperature", ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=2048, description="Max tokens for chat replies", ge=1)


class LearningConfig(BaseModel):
    """Policy parameters for the learning pipeline."""

    confidence_weight_existing: float = Field(
        default=0.7,
        description="Weight of the stored confidence when merging a profile update",
        ge=0.0,
        le=1.0,
    )
    confidence_weight_new: float = Field(
        default=0.3,
        description="Weight of the newly reported confidence when merging",
        ge=0.0,
        le=1.0,
    )
    default_reported_confidence: int = Field(
        default=50,
        description="Confidence assumed when the model omits one",
        ge=0,
        le=100,
    )
    profile_context_min_confidence: int = Field(
        default=30,
        description="Profiles at or below this confidence are left out of the prompt context",
        ge=0,
        le=100,
    )
    insight_lookback_days: int = Field(default=90, description="Insight analysis window", ge=1)
    top_category_share: float = Field(
        default=40.0,
        description="Percent of spend above which the top category is flagged",
        gt=0.0,
        le=100.0,
    )
    small_purchase_amount: float = Field(
        default=50.0,
        description="Amount below which an expense counts as a small purchase",
        gt=0.0,
    )
    small_purchase_count: int = Field(
        default=20,
        description="Number of small purchases above which a savings insight is emitted",
        ge=0,
    )


class StorageConfig(BaseModel):
    """Persistence configuration."""

    path: str = Field(
        default="~/.budgetcoach/coach.db",
        description="Path to SQLite database",
    )


class ServerConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)
    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins",
    )


class CoachConfig(BaseModel):
    """Root configuration model for budgetcoach."""

    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    currency: str = Field(default="RM", description="Currency label used in prompts and insights")
