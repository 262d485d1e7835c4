from __future__ import annotations

from typing import TYPE_CHECKING

from contentai.config import settings

if TYPE_CHECKING:
    from langchain_core.language_models.chat_models import BaseChatModel

# Valid provider identifiers
VALID_PROVIDERS = ("openrouter", "openai", "ollama", "anthropic")

# Module-level cache, cleared when settings change
_llm_cache: dict[str, BaseChatModel] = {}


def clear_llm_cache() -> None:
    """Drop all cached LLM instances so they're recreated on next call."""
    _llm_cache.clear()


# ---------------------------------------------------------------------------
# Internal constructors (lazy imports to avoid hard dep on unused packages)
# ---------------------------------------------------------------------------

def _create_chat_model(
    provider: str,
    *,
    openrouter_model: str,
    openai_model: str,
    ollama_model: str,
    anthropic_model: str,
    temperature: float,
    max_tokens: int | None = None,
    json_mode: bool = False,
) -> BaseChatModel:
    if provider == "openrouter":
        from langchain_openai import ChatOpenAI

        if not settings.OPENROUTER_API_KEY:
            raise ValueError("OPENROUTER_API_KEY is required when using the openrouter provider")
        kwargs: dict = dict(
            model=openrouter_model,
            temperature=temperature,
            api_key=settings.OPENROUTER_API_KEY,
            base_url=settings.OPENROUTER_BASE_URL,
            default_headers={"X-Title": settings.OPENROUTER_APP_TITLE},
        )
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}
        return ChatOpenAI(**kwargs)

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        if not settings.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY is required when using the openai provider")
        kwargs = dict(
            model=openai_model,
            temperature=temperature,
            api_key=settings.OPENAI_API_KEY,
        )
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}
        return ChatOpenAI(**kwargs)

    if provider == "ollama":
        from langchain_ollama import ChatOllama

        kwargs = dict(
            base_url=settings.OLLAMA_BASE_URL,
            model=ollama_model,
            temperature=temperature,
        )
        if json_mode:
            kwargs["format"] = "json"
        return ChatOllama(**kwargs)

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        if not settings.ANTHROPIC_API_KEY:
            raise ValueError("ANTHROPIC_API_KEY is required when using the anthropic provider")
        # No JSON response mode; the prompt asks for JSON and decoding falls back to raw text
        kwargs = dict(
            model=anthropic_model,
            temperature=temperature,
            api_key=settings.ANTHROPIC_API_KEY,
        )
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        return ChatAnthropic(**kwargs)

    raise ValueError(f"Unknown provider: {provider!r}. Valid: {VALID_PROVIDERS}")


# ---------------------------------------------------------------------------
# Public factory functions
# ---------------------------------------------------------------------------

def get_editor_llm() -> BaseChatModel:
    """Editor Engine. Used for: selection rewrites, expansions and summaries."""
    key = "editor"
    if key not in _llm_cache:
        _llm_cache[key] = _create_chat_model(
            settings.LLM_PROVIDER_EDITOR,
            openrouter_model=settings.OPENROUTER_MODEL_EDITOR,
            openai_model=settings.OPENAI_MODEL_EDITOR,
            ollama_model=settings.OLLAMA_MODEL_EDITOR,
            anthropic_model=settings.ANTHROPIC_MODEL_EDITOR,
            temperature=settings.EDITOR_TEMPERATURE,
            max_tokens=settings.EDITOR_MAX_TOKENS,
            json_mode=True,
        )
    return _llm_cache[key]
