"""Chat completion collaborator backed by the OpenAI API."""
import logging
from typing import Dict, Optional

from openai import APIError, APITimeoutError, OpenAI

from app.services.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class CompletionClient:
    """
    Thin wrapper around `chat.completions.create`.

    A single request per call: timeouts and API errors surface as
    ExternalServiceError so callers can fall back.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-3.5-turbo",
        timeout: float = 30.0,
        client: Optional[OpenAI] = None,
    ):
        self.model = model
        self.timeout = timeout
        self._client = client
        self._api_key = api_key

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self._api_key:
                raise ExternalServiceError("Chat completion is not configured")
            self._client = OpenAI(api_key=self._api_key, max_retries=0)
        return self._client

    def complete(self, system_prompt: str, messages: list[Dict[str, str]]) -> str:
        """
        Return the assistant reply for the given history.

        Args:
            system_prompt: Instruction placed before the history
            messages: Ordered [{"role": ..., "content": ...}] entries

        Raises:
            ExternalServiceError: On API error, timeout or empty reply
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    *messages,
                ],
                timeout=self.timeout,
            )
        except APITimeoutError as e:
            raise ExternalServiceError("Chat completion timed out") from e
        except APIError as e:
            raise ExternalServiceError(f"Chat completion failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ExternalServiceError("Chat completion returned an empty reply")
        return content

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
