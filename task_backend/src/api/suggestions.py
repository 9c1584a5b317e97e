from __future__ import annotations

import logging
from threading import Lock
from typing import Any, List, Optional

import httpx
import openai
from openai import OpenAI
from pydantic import BaseModel, StrictStr
from pydantic import ValidationError as PayloadError

from .errors import ProviderDegraded
from .settings import Settings

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3

SYSTEM_PROMPT = (
    "You are a helpful task management assistant. Given a task, suggest 3 related or "
    "follow-up tasks that would help complete the overall goal. Respond with a JSON object "
    'of the form {"suggestions": ["...", "...", "..."]} and nothing else.'
)


class SuggestionPayload(BaseModel):
    """Expected shape of the provider's JSON answer."""

    suggestions: List[StrictStr]


# PUBLIC_INTERFACE
def fallback_suggestions(task: str) -> List[str]:
    """
    Deterministic suggestions used whenever the provider is unconfigured or fails.
    """
    text = task.strip()
    return [
        f"Review {text}",
        f"Follow up on {text}",
        f"Schedule time for {text}",
    ][:MAX_SUGGESTIONS]


def _is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return isinstance(exc, openai.APIStatusError) and exc.status_code == 429


def _is_connection_error(exc: BaseException) -> bool:
    return isinstance(exc, (openai.APIConnectionError, httpx.TransportError, TimeoutError))


# PUBLIC_INTERFACE
class SuggestionEngine:
    """
    Produce up to three follow-up task titles for a task description.

    Behavior:
    - No API key -> templated fallback, no network call.
    - Provider answer that is not {"suggestions": [str, ...]} -> fallback.
    - Provider error of any kind (network, timeout, non-2xx, rate limit) -> fallback.
    suggest() never raises.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o",
        base_url: Optional[str] = None,
        timeout_seconds: float = 20.0,
        client: Any = None,
    ) -> None:
        self._api_key = (api_key or "").strip() or None
        self._model = model
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds
        self._client = client
        self._client_lock = Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SuggestionEngine":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.suggestion_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return self._api_key is not None

    def _get_client(self) -> Any:
        """
        Lazily create and cache the OpenAI client.

        Automatic retries are disabled so a failing provider degrades to the
        fallback within a single timeout.
        """
        with self._client_lock:
            if self._client is None:
                self._client = OpenAI(
                    api_key=self._api_key,
                    base_url=self._base_url,
                    timeout=httpx.Timeout(self._timeout_seconds, connect=5.0),
                    max_retries=0,
                )
            return self._client

    def _request(self, task: str) -> Optional[str]:
        """
        Send one chat completion request and return the message content.

        Raises:
            ProviderDegraded: the call failed for any reason.
        """
        try:
            response = self._get_client().chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": task},
                ],
                response_format={"type": "json_object"},
                timeout=self._timeout_seconds,
            )
            return response.choices[0].message.content
        except Exception as e:
            if _is_rate_limit_error(e):
                logger.warning("Suggestion provider rate limit exceeded or quota exhausted")
            elif _is_connection_error(e):
                logger.warning("Suggestion provider unreachable or timed out (%s)", e.__class__.__name__)
            else:
                logger.error("Suggestion provider call failed (%s): %s", e.__class__.__name__, e)
            raise ProviderDegraded(str(e)) from e

    def _parse(self, content: Optional[str]) -> Optional[List[str]]:
        if not content:
            logger.error("Empty response from suggestion provider")
            return None
        try:
            payload = SuggestionPayload.model_validate_json(content)
        except PayloadError as e:
            logger.error("Unexpected suggestion payload shape: %s", e.errors(include_url=False))
            return None
        cleaned = [s.strip() for s in payload.suggestions if s.strip()]
        return cleaned[:MAX_SUGGESTIONS]

    def suggest(self, task_description: str) -> List[str]:
        """Return 0..3 suggestions for ``task_description``."""
        if not self.configured:
            logger.info("Suggestion provider API key not configured, using fallback suggestions")
            return fallback_suggestions(task_description)

        try:
            content = self._request(task_description)
        except ProviderDegraded:
            return fallback_suggestions(task_description)

        suggestions = self._parse(content)
        if suggestions is None:
            return fallback_suggestions(task_description)
        return suggestions
