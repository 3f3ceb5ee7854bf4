"""LLM provider factory.

Supports:
- Anthropic (default): Claude models via langchain-anthropic
- OpenAI: Direct OpenAI API access
- OpenRouter / Ollama: OpenAI-compatible APIs
- Any OpenAI-compatible API: Set LLM_BASE_URL

Environment variables:
- LLM_PROVIDER: anthropic (default), openai, openrouter, ollama
- LLM_MODEL: Model name (e.g., claude-sonnet-4-20250514, gpt-4o)
- LLM_API_KEY: API key for the provider (ANTHROPIC_API_KEY / OPENAI_API_KEY also accepted)
- LLM_BASE_URL: Custom base URL for OpenAI-compatible APIs
- LLM_TEMPERATURE: Generation temperature (0.0-2.0)
"""

from collections.abc import Sequence
from typing import Any

from langchain_core.language_models import BaseChatModel

from toolstream.exceptions import LLMError
from toolstream.settings import get_settings

# Provider base URLs
PROVIDER_BASE_URLS = {
    "openrouter": "https://openrouter.ai/api/v1",
    "openai": "https://api.openai.com/v1",
    "ollama": "http://localhost:11434/v1",
}


def get_llm(
    temperature: float | None = None,
    model: str | None = None,
    provider: str | None = None,
    **kwargs: Any,
) -> BaseChatModel:
    """Get LLM instance based on configured provider.

    Args:
        temperature: Override default temperature
        model: Override default model name
        provider: Override default provider
        **kwargs: Additional provider-specific arguments

    Returns:
        Configured chat model

    Raises:
        LLMError: If the provider is unknown or its API key is missing
    """
    settings = get_settings()
    model_name = model or settings.llm_model
    temp = temperature if temperature is not None else settings.llm_temperature
    provider = provider or settings.llm_provider
    api_key = settings.llm_api_key.get_secret_value()

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        if not api_key:
            raise LLMError("LLM_API_KEY is required when using anthropic provider", provider=provider)
        anthropic_kwargs: dict[str, Any] = {
            "model": model_name,
            "temperature": temp,
            "api_key": api_key,
            **kwargs,
        }
        if settings.llm_base_url:
            anthropic_kwargs["base_url"] = settings.llm_base_url
        return ChatAnthropic(**anthropic_kwargs)

    # OpenAI-compatible providers
    from langchain_openai import ChatOpenAI

    if not api_key and provider != "ollama":
        raise LLMError(f"LLM_API_KEY is required when using {provider} provider", provider=provider)

    base_url = settings.llm_base_url or PROVIDER_BASE_URLS.get(provider)
    if base_url is None:
        raise LLMError(
            f"Unknown provider '{provider}'. Set LLM_BASE_URL for custom providers.",
            provider=provider,
        )

    llm_kwargs: dict[str, Any] = {
        "model": model_name,
        "temperature": temp,
        "base_url": base_url,
        "api_key": api_key or "ollama",
        "streaming": True,
        **kwargs,
    }
    return ChatOpenAI(**llm_kwargs)


def bind_tools(llm: BaseChatModel, tools: Sequence[Any]) -> Any:
    """Advertise tools to the model; returns the model unchanged when there are none."""
    if not tools:
        return llm
    return llm.bind_tools(list(tools))
