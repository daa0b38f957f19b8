import httpx
from typing import Optional

from aetherra.core.config import settings
from aetherra.core.exceptions import AIEngineError

DEFAULT_SYSTEM_PROMPT = (
    "You are a specialized AI for Carbon Management and Sustainability Analysis. "
    "Output strictly in JSON."
)


async def post_chat_completion(
    engine: str,
    url: str,
    api_key: str,
    model: str,
    prompt: str,
    system_prompt: Optional[str] = None,
    temperature: float = 0.7,
    max_tokens: int = 1000,
) -> str:
    """Call an OpenAI-compatible chat-completions endpoint and return the message text."""
    if not api_key:
        raise AIEngineError(engine, f"Missing {engine} API key in environment variables.")

    payload = {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt or DEFAULT_SYSTEM_PROMPT},
            {"role": "user", "content": prompt}
        ],
        "temperature": temperature,
        "max_tokens": max_tokens,
        "response_format": {"type": "json_object"}
    }

    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json"
    }

    try:
        async with httpx.AsyncClient(timeout=settings.AI_TIMEOUT_SECONDS) as client:
            response = await client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as e:
        raise AIEngineError(engine, f"{engine} request failed: {e}") from e

    if response.status_code != 200:
        raise AIEngineError(engine, f"{engine} API error {response.status_code}: {response.text}")

    try:
        content = response.json()["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise AIEngineError(engine, f"Malformed {engine} response: {e}") from e
    return (content or "").strip()


async def query_openai(prompt: str, system_prompt: Optional[str] = None, **kwargs) -> str:
    return await post_chat_completion(
        "openai",
        settings.OPENAI_API_URL,
        settings.OPENAI_API_KEY,
        settings.OPENAI_MODEL,
        prompt,
        system_prompt=system_prompt,
        **kwargs,
    )
