"""
Chat-completion providers behind one call.

Providers register a factory under a name; the factory imports the provider
module on first use. ``query_ai_engine`` resolves ``engine`` (or
``settings.AI_ENGINE``), records the call through ``log_ai_request`` and turns
any provider failure into ``AIEngineError``.

A provider module exposes ``async query_<name>(prompt, system_prompt=None, **kwargs)``
and a factory for it is registered here with ``@register_ai_engine``.
"""

import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from aetherra.core.config import settings
from aetherra.core.exceptions import AIEngineError
from aetherra.core.logging import ai_logger, log_ai_request

AIEngineFactory = Callable[[], Callable[..., Awaitable[str]]]

# name -> factory returning the provider coroutine function
_ENGINE_REGISTRY: Dict[str, AIEngineFactory] = {}


def register_ai_engine(name: str):
    """Register ``factory_func`` as the provider called ``name``."""
    def decorator(factory_func: AIEngineFactory) -> AIEngineFactory:
        if name in _ENGINE_REGISTRY:
            ai_logger.warning(f"Overwriting existing AI engine: {name}")
        _ENGINE_REGISTRY[name] = factory_func
        ai_logger.debug(f"Registered AI engine: {name}")
        return factory_func
    return decorator


def get_available_engines() -> List[str]:
    return list(_ENGINE_REGISTRY.keys())


@register_ai_engine("openai")
def get_openai_engine():
    """Factory function for the OpenAI engine."""
    from aetherra.services.openai_engine import query_openai
    return query_openai


@register_ai_engine("deepseek")
def get_deepseek_engine():
    """Factory function for the DeepSeek engine."""
    from aetherra.services.deepseek_engine import query_deepseek
    return query_deepseek


async def query_ai_engine(
    prompt: str,
    engine: Optional[str] = None,
    system_prompt: Optional[str] = None,
    prompt_type: str = "analysis",
    user_id: Optional[str] = None,
    temperature: float = 0.7,
    max_tokens: int = 1000,
) -> str:
    """
    Query an AI engine with the given prompt.

    Args:
        prompt: The prompt to send to the AI engine
        engine: The engine to use (default: from settings)
        system_prompt: Optional system message override
        prompt_type: Label recorded in the AI request log
        user_id: Caller recorded in the AI request log
        temperature: Temperature parameter for generation
        max_tokens: Maximum number of tokens to generate

    Returns:
        The raw text returned by the engine

    Raises:
        AIEngineError: unknown engine, missing credentials or provider failure
    """
    start_time = time.time()
    engine_name = engine or settings.AI_ENGINE

    if engine_name not in _ENGINE_REGISTRY:
        available = ", ".join(get_available_engines())
        ai_logger.error(f"Unknown AI engine: {engine_name}. Available: {available}")
        raise AIEngineError(engine_name, f"Unknown AI engine: {engine_name}. Available: {available}")

    engine_func = _ENGINE_REGISTRY[engine_name]()

    try:
        result = await engine_func(
            prompt,
            system_prompt=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except AIEngineError as e:
        log_ai_request(engine_name, prompt_type, len(prompt.split()), time.time() - start_time, user_id, error=e.detail)
        raise
    except Exception as e:
        log_ai_request(engine_name, prompt_type, len(prompt.split()), time.time() - start_time, user_id, error=str(e))
        raise AIEngineError(engine_name, f"AI engine error: {e}") from e

    tokens = len(prompt.split()) + len(result.split())
    log_ai_request(engine_name, prompt_type, tokens, time.time() - start_time, user_id)
    return result


async def get_current_ai_engine() -> Dict[str, Any]:
    """
    Get information about the current AI engine configuration.

    Returns:
        Dict with engine information
    """
    engine = settings.AI_ENGINE
    available_engines = get_available_engines()

    return {
        "current_engine": engine,
        "available_engines": available_engines,
        "is_valid": engine in available_engines
    }
