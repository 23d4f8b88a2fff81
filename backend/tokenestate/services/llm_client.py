"""
Thin wrapper around the OpenAI Chat Completions API.

Every failure mode (missing key, network error, timeout, rate limit or quota,
empty reply, invalid JSON) surfaces as InferenceError so callers have a single
exception to fall back on. The client never retries: one attempt, then the
caller's fallback path takes over.
"""
import json
import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from openai import OpenAI, OpenAIError

from tokenestate.core.config import settings
from tokenestate.utils.timing import time_operation

logger = logging.getLogger(__name__)


class InferenceError(Exception):
    """Raised when the inference service is unavailable or its reply is unusable."""
    pass


class InferenceClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o",
        timeout_seconds: float = 20.0,
    ):
        self.model = model
        self._client: Optional[OpenAI] = None
        if api_key:
            self._client = OpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)

    def _chat(self, label: str, messages: list, temperature: float, json_mode: bool) -> str:
        if self._client is None:
            raise InferenceError("OpenAI API key is not configured")

        logger.debug("openai.%s model=%s json_mode=%s", label, self.model, json_mode)

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            with time_operation(f"openai.{label}"):
                completion = self._client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            raise InferenceError(f"{type(e).__name__}: {e}") from e

        if not completion.choices:
            raise InferenceError("Model returned no choices")
        return completion.choices[0].message.content or ""

    def complete_json(self, label: str, system_prompt: str, user_prompt: str, temperature: float) -> Dict[str, Any]:
        """Request a JSON object reply and decode it."""
        raw = self._chat(
            label,
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature,
            json_mode=True,
        )
        if not raw.strip():
            raise InferenceError("Model returned empty content")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InferenceError(f"Model JSON decode failed: {e}") from e
        if not isinstance(data, dict):
            raise InferenceError(f"Expected a JSON object, got {type(data).__name__}")
        return data

    def complete_text(self, label: str, system_prompt: str, user_prompt: str, temperature: float) -> str:
        """Request a free-text reply. Empty content is returned as an empty string."""
        return self._chat(
            label,
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature,
            json_mode=False,
        )


@lru_cache
def get_inference_client() -> InferenceClient:
    """FastAPI dependency: one shared client built from settings (overridden in tests)."""
    return InferenceClient(
        api_key=settings.OPENAI_API_KEY,
        model=settings.OPENAI_MODEL,
        timeout_seconds=settings.OPENAI_TIMEOUT_SECONDS,
    )
