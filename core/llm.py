"""
Text generation through LiteLLM.

One-shot, non-streaming completions used for the daily devotional and
broadcast summaries. The provider is chosen with LLM_PROVIDER.
"""

import asyncio
import logging
import os

from litellm import acompletion

from core.notifications.errors import ContentGenerationError

logger = logging.getLogger(__name__)


# Default provider - can be overridden per-call or via environment
DEFAULT_PROVIDER = os.environ.get("LLM_PROVIDER", "deepseek/deepseek-chat")


async def generate_text(
    prompt: str,
    timeout_seconds: float,
    system: str | None = None,
    provider: str | None = None,
    max_tokens: int = 300,
    temperature: float = 0.7,
) -> str:
    """
    Generate a short completion.

    Args:
        prompt: User prompt
        timeout_seconds: Hard ceiling on the whole call
        system: Optional system prompt
        provider: Model string like "deepseek/deepseek-chat" or "anthropic/claude-sonnet-4-6"
        max_tokens: Maximum tokens in response
        temperature: Sampling temperature

    Returns:
        The stripped completion text

    Raises:
        ContentGenerationError: On provider error, timeout or empty output
    """
    model = provider or DEFAULT_PROVIDER

    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    kwargs = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    api_key = os.environ.get("LLM_API_KEY")
    if api_key:
        kwargs["api_key"] = api_key

    try:
        response = await asyncio.wait_for(acompletion(**kwargs), timeout=timeout_seconds)
    except asyncio.TimeoutError as e:
        raise ContentGenerationError(
            f"{model} did not respond within {timeout_seconds}s"
        ) from e
    except Exception as e:
        raise ContentGenerationError(f"{model} request failed: {e}") from e

    choices = getattr(response, "choices", None) or []
    content = choices[0].message.content if choices else None
    if not content or not content.strip():
        raise ContentGenerationError(f"{model} returned an empty completion")

    return content.strip()
