"""Model provider gateway: the only code that talks to an LLM vendor."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

_TRANSIENT_HTTP_CODES = frozenset({408, 409, 425, 429, 500, 502, 503, 504})


@dataclass(slots=True)
class GatewayResponse:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0


class GatewayError(RuntimeError):
    """Provider call failed. ``transient`` marks transport and rate-limit failures."""

    def __init__(
        self,
        message: str,
        *,
        transient: bool = True,
        status_code: int | None = None,
        input_tokens: int = 0,
        output_tokens: int = 0,
    ) -> None:
        super().__init__(message)
        self.transient = transient
        self.status_code = status_code
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens


class GatewayTimeout(GatewayError):
    """The per-call timeout elapsed before the provider answered."""

    def __init__(self, message: str) -> None:
        super().__init__(message, transient=True)


class ModelGateway(Protocol):
    """Protocol for pluggable model providers."""

    def call(
        self,
        model_id: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
    ) -> GatewayResponse:
        """Return the raw completion text and billed token counts."""


@dataclass(slots=True)
class OpenRouterGateway:
    """OpenAI-compatible chat completions client using stdlib HTTP."""

    api_key: str
    base_url: str = "https://openrouter.ai/api/v1"
    timeout_seconds: int = 120
    app_title: str = "AI Assessor Agent"

    def call(
        self,
        model_id: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
    ) -> GatewayResponse:
        payload: dict[str, Any] = {
            "model": model_id,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if temperature is not None:
            payload["temperature"] = temperature
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        req = urllib_request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "X-Title": self.app_title,
            },
        )

        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise GatewayError(
                f"Provider HTTP {exc.code}: {detail}",
                transient=exc.code in _TRANSIENT_HTTP_CODES,
                status_code=exc.code,
            ) from exc
        except TimeoutError as exc:
            raise GatewayTimeout(f"Provider call exceeded {self.timeout_seconds}s") from exc
        except urllib_error.URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise GatewayTimeout(f"Provider call exceeded {self.timeout_seconds}s") from exc
            raise GatewayError(f"Provider request failed: {exc.reason}") from exc

        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise GatewayError("Provider returned a non-JSON envelope") from exc

        usage = decoded.get("usage") or {}
        input_tokens = int(usage.get("prompt_tokens") or 0)
        output_tokens = int(usage.get("completion_tokens") or 0)
        if decoded.get("error"):
            raise GatewayError(
                f"Provider error: {decoded['error']}",
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )
        try:
            content = decoded["choices"][0]["message"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise GatewayError(
                "Provider returned an unexpected response shape",
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            ) from exc
        if isinstance(content, list):
            content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
        return GatewayResponse(
            text=content if isinstance(content, str) else "",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
