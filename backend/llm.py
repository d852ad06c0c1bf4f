import html
import json
import logging
import re
from typing import Optional

import anthropic

import config
from models import TaskSummary

logger = logging.getLogger(__name__)

PLACEHOLDER_KEY = "your-api-key-here"
BOLD_PATTERN = re.compile(r"\*\*(.+?)\*\*", re.DOTALL)


class ModelError(Exception):
    """Raised when the language model call fails or returns nothing usable."""


def render_bold(text: str) -> str:
    """Escape text for HTML and turn **bold** markup into <strong> tags."""
    return BOLD_PATTERN.sub(r"<strong>\1</strong>", html.escape(text))


def tasks_as_json(tasks: list[TaskSummary]) -> str:
    return json.dumps([task.model_dump(mode="json") for task in tasks], ensure_ascii=False)


class LLMGateway:
    """Single request/response calls to the language model."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = config.ANTHROPIC_MODEL,
        max_tokens: int = config.LLM_MAX_TOKENS,
        client=None
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.api_key and self.api_key != PLACEHOLDER_KEY)

    @property
    def client(self):
        if self._client is None:
            if not self.configured:
                raise ModelError("API key not configured")
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def complete(
        self,
        system: str,
        prompt: str,
        tasks: Optional[list[TaskSummary]] = None
    ) -> str:
        """Send one user turn, with the task list as an extra JSON block, and return the reply text."""
        content = [{"type": "text", "text": prompt}]
        if tasks is not None:
            content.append({"type": "text", "text": tasks_as_json(tasks)})

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": content}]
            )
        except anthropic.APIError as e:
            logger.exception("Model call failed")
            raise ModelError(f"API error: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise ModelError("Model returned an empty response")
        logger.debug("Model response: %s", text)
        return text


def gateway_for(api_key: Optional[str] = None) -> LLMGateway:
    """Gateway using a user's personal key when set, the server key otherwise."""
    return LLMGateway(api_key=api_key or config.ANTHROPIC_API_KEY)


async def validate_api_key(api_key: str, client=None) -> bool:
    """Check a provider key with one authenticated model listing request."""
    client = client or anthropic.AsyncAnthropic(api_key=api_key)
    try:
        await client.models.list(limit=1)
    except anthropic.APIStatusError as e:
        logger.info("API key rejected with status %s", e.status_code)
        return False
    except anthropic.APIConnectionError as e:
        raise ModelError(f"Could not reach provider: {e}") from e
    return True
