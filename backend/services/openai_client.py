"""OpenAI SDK wrapper shared by the vision classifier and the review summarizer."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from openai import OpenAI

from domain.errors import ErrorCode, ResolutionError, UpstreamError
from settings import settings

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def parse_json_content(content: Optional[str]) -> Dict[str, Any]:
    """
    Parse a model reply that should be a JSON object.

    Strips markdown code fences some models add despite instructions.

    Raises:
        ValueError: if the content is empty or not a JSON object.
    """
    if not content or not content.strip():
        raise ValueError("empty model response")
    cleaned = _FENCE_RE.sub("", content.strip()).strip()
    parsed = json.loads(cleaned)
    if not isinstance(parsed, dict):
        raise ValueError("model response is not a JSON object")
    return parsed


class OpenAIClient:
    """
    Thin wrapper over the OpenAI chat completions API.

    Calls are blocking; the pipeline runs them in a worker thread.
    """

    def __init__(self, api_key: Optional[str] = None, client: Optional[Any] = None):
        key = api_key if api_key is not None else settings.OPENAI_API_KEY
        if client is not None:
            self.client = client
        elif key:
            self.client = OpenAI(api_key=key)
        else:
            logger.warning("OPENAI_API_KEY not set; AI classification and summaries are unavailable")
            self.client = None

    def complete_json(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        max_tokens: int = 500,
        temperature: Optional[float] = None,
        error_code: ErrorCode = ErrorCode.CLASSIFICATION_FAILED,
    ) -> Dict[str, Any]:
        """
        Run a chat completion and return the reply parsed as a JSON object.

        Raises:
            ResolutionError(CONFIGURATION_ERROR) when no API key is configured.
            UpstreamError(error_code) when the call fails or the reply is not JSON.
        """
        if self.client is None:
            raise ResolutionError(
                code=ErrorCode.CONFIGURATION_ERROR,
                message="OpenAI API key not configured. Set OPENAI_API_KEY.",
            )

        kwargs: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            logger.debug("Calling %s", model)
            response = self.client.chat.completions.create(**kwargs)
            content = response.choices[0].message.content
        except Exception as exc:
            raise UpstreamError(error_code, f"OpenAI API call failed: {exc}") from exc

        try:
            return parse_json_content(content)
        except ValueError as exc:
            raise UpstreamError(error_code, f"Failed to parse AI response: {exc}") from exc


_default_openai_client: Optional[OpenAIClient] = None


def get_default_openai_client() -> OpenAIClient:
    global _default_openai_client
    if _default_openai_client is None:
        _default_openai_client = OpenAIClient()
    return _default_openai_client
