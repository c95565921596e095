import json
import os
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from forge.errors import TransportFailure


@dataclass
class GenerationResult:
    """Raw completion text; `content` is None when the provider sent nothing."""

    content: Optional[str]
    model: Optional[str] = None


def completion_text(body: Dict[str, Any]) -> Optional[str]:
    """First choice's message text, or None when the payload carries no usable text."""

    choices = body.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None


class ModelBackend:
    """Interface for model backends."""

    def generate(
        self,
        messages: List[Dict[str, Any]],
        decoding: Optional[Dict[str, Any]] = None,
    ) -> GenerationResult:
        raise NotImplementedError


class ChatCompletionsBackend(ModelBackend):
    """OpenAI-compatible `/chat/completions` client (Groq, OpenRouter, OpenAI)."""

    _RETRYABLE_400_MARKERS = (
        "provider returned error",
        "no providers available",
        "temporarily unavailable",
        "upstream error",
        "try again",
    )

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: str = "https://api.groq.com/openai/v1",
        api_key_env: str = "GROQ_API_KEY",
        max_retries: int = 2,
        initial_backoff_s: float = 1.0,
        max_backoff_s: float = 10.0,
        timeout_s: float = 60.0,
        event_logger: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.api_key = api_key or os.getenv(api_key_env)
        self.model = model or os.getenv("FORGE_MODEL")
        self.base_url = base_url.rstrip("/")
        self.max_retries = max(0, int(max_retries))
        self.initial_backoff_s = max(0.0, float(initial_backoff_s))
        self.max_backoff_s = max(0.0, float(max_backoff_s))
        self.timeout_s = float(timeout_s)
        self.event_logger = event_logger
        if not self.api_key:
            raise ValueError(f"{api_key_env} is required")
        if not self.model:
            raise ValueError("backend.model or FORGE_MODEL is required")

    def generate(
        self,
        messages: List[Dict[str, Any]],
        decoding: Optional[Dict[str, Any]] = None,
    ) -> GenerationResult:
        payload: Dict[str, Any] = {"model": self.model, "messages": messages}
        if decoding:
            payload.update({k: v for k, v in decoding.items() if v is not None})

        response = self._post_with_retries(payload)
        try:
            body = response.json()
        except json.JSONDecodeError as exc:
            raise TransportFailure("Model provider returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise TransportFailure("Model provider returned a non-object body")
        return GenerationResult(content=completion_text(body), model=body.get("model"))

    def _post_with_retries(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        url = f"{self.base_url}/chat/completions"
        with httpx.Client(timeout=httpx.Timeout(self.timeout_s)) as client:
            attempt = 0
            while True:
                try:
                    response = client.post(url, json=payload, headers=headers)
                except httpx.RequestError as exc:
                    if attempt >= self.max_retries:
                        raise
                    self._log(f"transport retry attempt={attempt + 1} reason={exc.__class__.__name__}")
                else:
                    if response.status_code < 400:
                        return response
                    detail = response.text[:2000]
                    retryable = self._is_retryable_status(response.status_code, detail)
                    if not retryable or attempt >= self.max_retries:
                        raise httpx.HTTPStatusError(
                            f"Model provider error {response.status_code} "
                            f"after {attempt + 1} request(s): {detail}",
                            request=response.request,
                            response=response,
                        )
                    self._log(f"transport retry attempt={attempt + 1} status={response.status_code}")
                self._sleep_before_retry(attempt)
                attempt += 1

    @classmethod
    def _is_retryable_status(cls, status_code: int, detail: str) -> bool:
        if status_code in {408, 409, 425, 429} or status_code >= 500:
            return True
        if status_code != 400:
            return False
        lowered = detail.lower()
        return any(marker in lowered for marker in cls._RETRYABLE_400_MARKERS)

    def _sleep_before_retry(self, attempt: int) -> None:
        wait_s = min(self.max_backoff_s, self.initial_backoff_s * (2**attempt))
        if wait_s <= 0:
            return
        time.sleep(wait_s + random.uniform(0.0, min(1.0, wait_s * 0.25)))

    def _log(self, message: str) -> None:
        if self.event_logger is not None:
            self.event_logger(message)
