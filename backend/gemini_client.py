import logging
from typing import Any, AsyncIterator, Optional

import httpx
from google import genai
from google.genai import errors, types

from settings import GEMINI_API_KEY, GEMINI_BASE_URL, GEMINI_MODEL, GEMINI_TIMEOUT

logger = logging.getLogger(__name__)

EMPTY_ANALYSIS = "Unable to generate analysis at this time."

# What the SDK lets escape on a failed call: API errors plus raw transport errors.
_SERVICE_ERRORS = (errors.APIError, httpx.HTTPError)


class GeminiError(Exception):
    pass


class MissingCredentialError(GeminiError):
    """No API key configured; raised before any network attempt."""


class GeminiServiceError(GeminiError):
    """Transport failure, API error status or an unusable response."""


class GeminiChat:
    """One multi-turn conversation. The SDK chat keeps the turn history and
    only records a turn once its stream has completed."""

    def __init__(self, chat: Any):
        self._chat = chat

    async def stream(self, message: str) -> AsyncIterator[str]:
        """Yield text increments of the model's reply to ``message``."""
        try:
            async for chunk in await self._chat.send_message_stream(message):
                if chunk.text:
                    yield chunk.text
        except _SERVICE_ERRORS as e:
            logger.exception("Gemini chat stream error")
            raise GeminiServiceError("Chat stream failed.") from e


class GeminiClient:
    """Async access to Gemini through the google-genai SDK."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = GEMINI_MODEL,
        sdk: Optional[Any] = None,
    ):
        self.api_key = GEMINI_API_KEY if api_key is None else api_key
        self.model = model
        self._sdk = sdk

    def require_key(self) -> str:
        if not self.api_key:
            raise MissingCredentialError("API Key is missing.")
        return self.api_key

    def _client(self) -> Any:
        api_key = self.require_key()
        if self._sdk is None:
            options = types.HttpOptions(timeout=int(GEMINI_TIMEOUT * 1000))
            if GEMINI_BASE_URL:
                options.base_url = GEMINI_BASE_URL
            self._sdk = genai.Client(api_key=api_key, http_options=options)
        return self._sdk

    async def generate(self, prompt: str, search: bool = True) -> str:
        """One-shot completion, grounded with Google Search by default."""
        client = self._client()
        config = types.GenerateContentConfig(
            tools=[types.Tool(google_search=types.GoogleSearch())] if search else None,
        )
        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )
        except _SERVICE_ERRORS as e:
            logger.exception("Gemini API error")
            raise GeminiServiceError("Failed to fetch analysis. Please try again.") from e
        return response.text or EMPTY_ANALYSIS

    def open_chat(self, system_instruction: str) -> GeminiChat:
        client = self._client()
        chat = client.aio.chats.create(
            model=self.model,
            config=types.GenerateContentConfig(system_instruction=system_instruction),
        )
        return GeminiChat(chat)
