from typing import Optional

from aetherra.core.config import settings
from aetherra.services.openai_engine import post_chat_completion


async def query_deepseek(prompt: str, system_prompt: Optional[str] = None, **kwargs) -> str:
    # DeepSeek exposes the same chat-completions contract as OpenAI
    return await post_chat_completion(
        "deepseek",
        settings.DEEPSEEK_API_URL,
        settings.DEEPSEEK_API_KEY,
        settings.DEEPSEEK_MODEL,
        prompt,
        system_prompt=system_prompt,
        **kwargs,
    )
