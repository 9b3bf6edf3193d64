"""Chat-completion clients for the hosted language model.

Two providers share one interface: an OpenAI-compatible AI gateway called
over HTTP, and Anthropic's Messages API through the official SDK. Each call
is a single request/response exchange with no retries.
"""

import logging

import requests
from anthropic import Anthropic, APIConnectionError, APIStatusError

from .config import Settings, get_settings
from .errors import CompletionServiceError

logger = logging.getLogger(__name__)


class CompletionClient:
    """Base interface for completion providers."""

    def complete_messages(self, system_prompt: str, messages: list[dict]) -> str:
        """Send a system prompt plus role-tagged messages, return the reply text.

        Args:
            system_prompt: Instruction for the system role.
            messages: List of {"role": "user"|"assistant", "content": str}.

        Raises:
            CompletionServiceError: If the service is unreachable or returns non-2xx.
        """
        raise NotImplementedError

    def complete(self, system_prompt: str, user_message: str) -> str:
        """Single system/user exchange."""
        return self.complete_messages(
            system_prompt, [{"role": "user", "content": user_message}]
        )


# =============================================================================
# AI gateway (OpenAI-compatible chat completions)
# =============================================================================


class GatewayCompletionClient(CompletionClient):
    """Client for an OpenAI-compatible /chat/completions endpoint."""

    def __init__(self, api_key: str, url: str, model: str, timeout: float = 60.0):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout

    def complete_messages(self, system_prompt: str, messages: list[dict]) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = requests.post(
                self.url, json=payload, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"AI gateway unreachable ({self.model}): {e}")
            raise CompletionServiceError(f"AI gateway unreachable: {e}") from e

        if not response.ok:
            logger.error(f"AI gateway error ({self.model}): {response.status_code} {response.text}")
            raise CompletionServiceError(
                f"AI gateway error: {response.status_code}",
                status=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
            text = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Unexpected AI gateway payload: {response.text[:500]}")
            raise CompletionServiceError("AI gateway returned an unexpected payload") from e

        return _require_text(text, "AI gateway", self.model)


# =============================================================================
# Anthropic Messages API
# =============================================================================


class AnthropicCompletionClient(CompletionClient):
    """Client for Anthropic's Messages API."""

    def __init__(self, api_key: str, model: str, max_tokens: int = 2048, timeout: float = 60.0):
        self.client = Anthropic(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout

    def complete_messages(self, system_prompt: str, messages: list[dict]) -> str:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                system=system_prompt,
                messages=messages,
            )
        except APIStatusError as e:
            logger.error(f"Anthropic API error ({self.model}): {e.status_code} {e.message}")
            raise CompletionServiceError(
                f"Anthropic API error: {e.status_code}",
                status=e.status_code,
                body=str(e.message),
            ) from e
        except APIConnectionError as e:
            logger.error(f"Anthropic API unreachable ({self.model}): {e}")
            raise CompletionServiceError(f"Anthropic API unreachable: {e}") from e

        logger.debug(
            f"Anthropic response ({self.model}): stop_reason={response.stop_reason}, "
            f"{response.usage.input_tokens} in, {response.usage.output_tokens} out"
        )
        return _require_text(_extract_text_from_response(response), "Anthropic API", self.model)


def _extract_text_from_response(response) -> str:
    """Extract text content from a Messages API response."""
    for block in response.content:
        if hasattr(block, "text"):
            return block.text
    block_types = [type(b).__name__ for b in response.content]
    logger.warning(f"No text in response, block types: {block_types}")
    return ""


def _require_text(text: str | None, service: str, model: str) -> str:
    """Reject an empty or whitespace-only reply.

    Raises:
        CompletionServiceError: If the reply has no text.
    """
    if not text or not text.strip():
        logger.error(f"{service} returned no text ({model})")
        raise CompletionServiceError(f"{service} returned no text")
    return text


# =============================================================================
# Factory
# =============================================================================


def build_completion_client(settings: Settings) -> CompletionClient:
    """Create the client for the configured provider.

    Raises:
        ConfigurationError: If the provider's API key is not set.
    """
    if settings.completion_provider == "anthropic":
        return AnthropicCompletionClient(
            api_key=settings.require("anthropic_api_key"),
            model=settings.anthropic_model,
            max_tokens=settings.completion_max_tokens,
            timeout=settings.completion_timeout,
        )
    return GatewayCompletionClient(
        api_key=settings.require("ai_gateway_api_key"),
        url=settings.ai_gateway_url,
        model=settings.ai_model,
        timeout=settings.completion_timeout,
    )


def get_completion_client() -> CompletionClient:
    """FastAPI dependency resolving the client from current settings."""
    return build_completion_client(get_settings())
