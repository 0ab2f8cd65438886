"""
LLM client for narrative forecast insights using Anthropic Claude.

Model-agnostic from the caller's point of view: one system prompt, one user
message, plain text back.
"""
from typing import Optional

import anthropic
from anthropic import AsyncAnthropic

from core.config import config
from core.exceptions import InsightGenerationError
from core.observability import get_logger

logger = get_logger(__name__)


class LLMClient:
    """Async client for Claude text completions."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        timeout: float = 15.0,
        max_tokens: int = 600,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._client: Optional[AsyncAnthropic] = None

    @property
    def client(self) -> AsyncAnthropic:
        """Lazy-initialize Anthropic client."""
        if self._client is None:
            self._client = AsyncAnthropic(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=1,
            )
        return self._client

    @property
    def is_available(self) -> bool:
        """Check if LLM is configured."""
        return bool(self.api_key)

    async def complete(self, system: str, user: str, max_tokens: Optional[int] = None) -> str:
        """
        Send a system+user message pair and return the text response.

        Raises:
            InsightGenerationError: If the client is unconfigured or the API call fails
        """
        if not self.is_available:
            raise InsightGenerationError("LLM not configured", "ANTHROPIC_API_KEY is not set")

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens or self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise InsightGenerationError("Text generation failed", str(e)) from e

        text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )
        logger.debug(
            "LLM completion received",
            extra={
                "model": self.model,
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        )
        return text

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        if self._client is not None:
            await self._client.close()
            self._client = None


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLETON INSTANCE
# ═══════════════════════════════════════════════════════════════════════════════

_llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get singleton LLM client instance."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient(
            api_key=config.insights.anthropic_api_key if config.insights.enabled else "",
            model=config.insights.model,
            timeout=config.insights.timeout_seconds,
            max_tokens=config.insights.max_tokens,
        )
    return _llm_client


async def close_llm_client() -> None:
    """Close singleton LLM client."""
    global _llm_client
    if _llm_client is not None:
        await _llm_client.close()
        _llm_client = None
