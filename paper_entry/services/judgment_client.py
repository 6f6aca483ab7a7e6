"""
Client for the language-model judgment service (OpenAI-compatible chat API).
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class JudgmentServiceError(Exception):
    """Judgment service call failed."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status: Optional[int] = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status = status
        self.retryable = retryable


class JudgmentClient:
    """
    Send a single prompt to a chat-completions endpoint and return the reply text.

    Args:
        api_key: Bearer token; optional for self-hosted gateways
        base_url: API root, ``/chat/completions`` is appended
        model: Model name sent with every request
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = "https://openrouter.ai/api/v1",
        model: str = "doubao-seed-1.6",
        temperature: float = 0.0,
        connect_timeout: float = 10.0,
        read_timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.url = f"{base_url.rstrip('/')}/chat/completions"
        self.model = model
        self.temperature = temperature
        self._timeout = (connect_timeout, read_timeout)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> JudgmentClient:
        cfg = config.get("judgment") or {}
        timeout_cfg = cfg.get("request_timeout_seconds") or {}
        return cls(
            api_key=cfg.get("api_key"),
            base_url=cfg.get("base_url") or "https://openrouter.ai/api/v1",
            model=cfg.get("model") or "doubao-seed-1.6",
            temperature=float(cfg.get("temperature", 0.0)),
            connect_timeout=float(timeout_cfg.get("connect", 10)),
            read_timeout=float(timeout_cfg.get("read", 120)),
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def chat(self, prompt: str, system_message: Optional[str] = None) -> str:
        """
        Ask the model and return its stripped reply.

        Raises:
            JudgmentServiceError: On network errors, HTTP errors or malformed replies
        """
        messages = []
        if system_message:
            messages.append({"role": "system", "content": system_message})
        messages.append({"role": "user", "content": prompt})
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }

        try:
            resp = requests.post(
                self.url,
                headers=self._headers(),
                data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise JudgmentServiceError(
                f"Network error: {e}", code="network_error", retryable=True
            ) from e

        if not resp.ok:
            status = resp.status_code
            retryable = status == 429 or status >= 500
            raise JudgmentServiceError(
                f"Judgment service error {status}: {resp.text[:200]}",
                code=f"http_{status}",
                status=status,
                retryable=retryable,
            )

        try:
            data = resp.json()
        except ValueError as e:
            logger.warning(f"Malformed judgment response (invalid JSON): {resp.text[:200]}")
            raise JudgmentServiceError(
                "Malformed response (invalid JSON)", code="invalid_json", retryable=True
            ) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.warning(f"Malformed judgment response (missing content): {str(data)[:200]}")
            raise JudgmentServiceError(
                "Malformed response (missing content)", code="invalid_payload", retryable=True
            ) from e

        if not isinstance(content, str) or not content.strip():
            raise JudgmentServiceError(
                "Malformed response (empty content)", code="empty_content", retryable=True
            )

        return content.strip()
