"""OpenAI-compatible chat-completions HTTP client.

Responsibilities:
- Send chat-completions requests over a caller-supplied `requests.Session`.
- Parse responses into `ChatCompletionResponse` with token usage.
- Raise `OpenAIProviderError` with a deterministic `failure_kind`.

This is the client that `InstrumentedClient` wraps. It knows nothing about
telemetry; proxy routing is applied by mounting an adapter on its session.
"""

from __future__ import annotations

from concurrent.futures import Future, wait as wait_for_futures
import json
import re
import socket
import threading
from typing import Any

import requests

from ..models.datatypes import CallContext, ChatCompletionRequest, ChatCompletionResponse, Usage


class OpenAIProviderError(RuntimeError):
    """Raised when a provider request fails or returns malformed output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_code = provider_code


class OpenAIChatClient:
    """Minimal requests-based chat-completions client."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180
    _CANCEL_POLL_SECONDS = 0.05

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session if session is not None else requests.Session()

    def create_chat_completion(
        self,
        request: ChatCompletionRequest,
        context: CallContext | None = None,
    ) -> ChatCompletionResponse:
        """Send one chat-completions request and return the parsed response."""

        self._require_api_key()
        raw_payload = self._post_json(
            endpoint_path="/chat/completions",
            payload=request.to_payload(),
            context=context,
        )
        return self._parse_chat_completion(raw_payload)

    def chat_completion_text(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
    ) -> str:
        """Return the first assistant text for a system/user prompt pair."""

        self._require_api_key()
        raw_payload = self._post_json(
            endpoint_path="/chat/completions",
            payload={
                "model": model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "temperature": temperature,
            },
        )
        text = self._parse_chat_completion(raw_payload).text.strip()
        if not text:
            raise OpenAIProviderError("OpenAI response message content is empty.")
        return text

    def list_models(self) -> list[str]:
        """Return model identifiers visible to the configured API key."""

        self._require_api_key()
        url = f"{self.base_url}/models"
        try:
            response = self.session.get(
                url,
                headers=self._auth_headers(),
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(exc) from exc
        except requests.RequestException as exc:
            raise self._transport_error(exc) from exc
        except ValueError as exc:
            raise OpenAIProviderError("OpenAI returned invalid JSON payload.") from exc

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            return []
        return [item["id"] for item in data if isinstance(item, dict) and "id" in item]

    def close(self) -> None:
        self.session.close()

    def _require_api_key(self) -> None:
        if not self.api_key:
            raise OpenAIProviderError(
                "Missing OpenAI API key. Pass `api_key` to the client.",
                failure_kind="invalid_api_key",
            )

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _post_json(
        self,
        *,
        endpoint_path: str,
        payload: dict[str, Any],
        context: CallContext | None = None,
    ) -> str:
        """Execute a JSON POST and map failures to `OpenAIProviderError`."""

        if context is not None and context.cancelled:
            raise OpenAIProviderError("OpenAI request cancelled.", failure_kind="cancelled")

        timeout = self.timeout_seconds
        if context is not None and context.timeout_seconds is not None:
            timeout = context.timeout_seconds

        try:
            response = self._send_post(
                f"{self.base_url}{endpoint_path}",
                payload=payload,
                timeout=timeout,
                context=context,
            )
            response.raise_for_status()
            body = bytes(response.content).decode("utf-8")
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(exc) from exc
        except requests.RequestException as exc:
            raise self._transport_error(exc) from exc
        except TimeoutError as exc:
            raise OpenAIProviderError("OpenAI request timed out.", failure_kind="timeout") from exc

        if context is not None and context.cancelled:
            raise OpenAIProviderError("OpenAI request cancelled.", failure_kind="cancelled")
        return body

    def _send_post(
        self,
        url: str,
        *,
        payload: dict[str, Any],
        timeout: float,
        context: CallContext | None,
    ) -> requests.Response:
        """POST `payload`, returning early with a cancelled error when the caller cancels.

        Without a cancel event the POST runs on the calling thread. Otherwise
        it runs on a daemon thread while this thread watches the cancel event;
        a response that arrives after cancellation is closed and discarded.
        """

        cancel_event = context.cancel_event if context is not None else None
        if cancel_event is None:
            return self.session.post(
                url,
                headers=self._auth_headers(),
                json=payload,
                timeout=timeout,
            )

        outcome: Future[requests.Response] = Future()

        def _run() -> None:
            if not outcome.set_running_or_notify_cancel():
                return
            try:
                outcome.set_result(
                    self.session.post(
                        url,
                        headers=self._auth_headers(),
                        json=payload,
                        timeout=timeout,
                    )
                )
            except BaseException as exc:  # noqa: BLE001
                outcome.set_exception(exc)

        threading.Thread(target=_run, name="langmesh-chat-send", daemon=True).start()
        while not wait_for_futures([outcome], timeout=self._CANCEL_POLL_SECONDS).done:
            if cancel_event.is_set():
                outcome.add_done_callback(_discard_response)
                raise OpenAIProviderError("OpenAI request cancelled.", failure_kind="cancelled")
        return outcome.result()

    @classmethod
    def _parse_chat_completion(cls, raw_payload: str) -> ChatCompletionResponse:
        """Parse a chat-completions JSON body."""

        try:
            payload = json.loads(raw_payload)
        except json.JSONDecodeError as exc:
            raise OpenAIProviderError("OpenAI returned invalid JSON payload.") from exc
        if not isinstance(payload, dict):
            raise OpenAIProviderError("OpenAI response must be a JSON object.")

        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            raise OpenAIProviderError("OpenAI response missing non-empty `choices` list.")

        texts: list[str] = []
        for choice in choices:
            message = choice.get("message") if isinstance(choice, dict) else None
            if not isinstance(message, dict):
                raise OpenAIProviderError("OpenAI response choice is missing `message`.")
            texts.append(cls._message_content_to_text(message.get("content")))

        return ChatCompletionResponse(
            id=str(payload.get("id", "")),
            model=str(payload.get("model", "")),
            choices=tuple(texts),
            usage=cls._parse_usage(payload.get("usage")),
            raw=payload,
        )

    @staticmethod
    def _parse_usage(raw_usage: Any) -> Usage | None:
        """Parse a usage block, deriving `total_tokens` when omitted."""

        if not isinstance(raw_usage, dict):
            return None

        def _count(key: str) -> int:
            value = raw_usage.get(key)
            if isinstance(value, bool) or not isinstance(value, int):
                return 0
            return max(0, value)

        prompt_tokens = _count("prompt_tokens")
        completion_tokens = _count("completion_tokens")
        total_tokens = _count("total_tokens") or prompt_tokens + completion_tokens
        return Usage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
        )

    @staticmethod
    def _message_content_to_text(content: Any) -> str:
        """Convert message content variants into plain text."""

        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "".join(
                item["text"]
                for item in content
                if isinstance(item, dict)
                and item.get("type") == "text"
                and isinstance(item.get("text"), str)
            )
        return ""

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        redacted = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
        return re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            redacted,
        )

    @classmethod
    def _short_message(cls, text: str) -> str:
        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> tuple[str, str | None]:
        """Extract a concise error message and optional provider error code."""

        if not body:
            return "", None
        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body)), None

        provider_code: str | None = None
        message = body
        error_payload = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error_payload, dict):
            code_value = error_payload.get("code")
            if isinstance(code_value, str) and code_value.strip():
                provider_code = code_value.strip()
            message_value = error_payload.get("message")
            if isinstance(message_value, str) and message_value.strip():
                message = message_value.strip()
        return cls._short_message(cls._redact_sensitive_tokens(message)), provider_code

    @staticmethod
    def _classify_http_failure(
        status_code: int,
        provider_message: str,
        provider_code: str | None,
    ) -> str:
        """Classify HTTP errors into deterministic failure kinds."""

        message_lower = provider_message.lower()
        normalized_code = provider_code.lower() if provider_code is not None else ""

        if status_code == 401 or "api key" in message_lower:
            return "invalid_api_key"
        if normalized_code == "insufficient_quota" or (
            status_code == 429 and "quota" in message_lower
        ):
            return "insufficient_quota"
        if normalized_code == "model_not_found" or (
            "model" in message_lower
            and any(phrase in message_lower for phrase in ("not found", "does not exist"))
        ):
            return "invalid_model"
        if status_code in {408, 504} or "timed out" in message_lower:
            return "timeout"
        return "http_error"

    @classmethod
    def _http_error_to_provider_error(cls, exc: requests.HTTPError) -> OpenAIProviderError:
        response = exc.response
        status_code = response.status_code if response is not None else 0
        body = ""
        if response is not None:
            body = bytes(response.content).decode("utf-8", errors="replace").strip()
        provider_message, provider_code = cls._extract_provider_message(body)
        failure_kind = cls._classify_http_failure(status_code, provider_message, provider_code)

        headline = {
            "invalid_api_key": "OpenAI authentication failed",
            "insufficient_quota": "OpenAI quota is insufficient for this request",
            "invalid_model": "OpenAI rejected the selected model",
            "timeout": "OpenAI request timed out",
        }.get(failure_kind, "OpenAI request failed")
        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        return OpenAIProviderError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            provider_code=provider_code,
        )

    @classmethod
    def _transport_error(cls, exc: requests.RequestException) -> OpenAIProviderError:
        if isinstance(exc, (requests.Timeout, socket.timeout)):
            return OpenAIProviderError("OpenAI request timed out.", failure_kind="timeout")
        return OpenAIProviderError(
            f"OpenAI request transport error: {cls._short_message(str(exc))}",
            failure_kind="transport",
        )


def _discard_response(outcome: Future[requests.Response]) -> None:
    """Close a response that arrived after its call was cancelled."""

    if outcome.cancelled() or outcome.exception() is not None:
        return
    outcome.result().close()
