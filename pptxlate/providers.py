"""Translation client abstractions."""

from __future__ import annotations

import json
import os
import sys
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Mapping

import httpx

from .errors import (
    ProviderError,
    TranslationProviderConfigurationError,
)

if TYPE_CHECKING:  # pragma: no cover
    from .configuration import PptxlateConfig

PAPAGO_URL = "https://openapi.naver.com/v1/papago/n2mt"
DEFAULT_TIMEOUT = 30.0


class TranslationClient(ABC):
    """Translates one run of text at a time."""

    name = "abstract"

    @abstractmethod
    def translate(
        self,
        text: str,
        *,
        source_language: str,
        target_language: str,
    ) -> str:
        """Return ``text`` translated, or raise :class:`ProviderError`."""

    def close(self) -> None:
        """Release any held connections."""


class EchoTranslationClient(TranslationClient):
    """A client that returns the original text (useful for testing)."""

    name = "echo"

    def translate(
        self,
        text: str,
        *,
        source_language: str,
        target_language: str,
    ) -> str:
        return text


class _DebugMixin:
    debug: bool = False

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not self.debug:
            return
        try:
            if isinstance(payload, (dict, list)):
                message = json.dumps(payload, ensure_ascii=False, indent=2)
            else:
                message = str(payload)
        except (TypeError, ValueError):
            message = repr(payload)
        print(f"[pptxlate][provider-debug] {label}:\n{message}", file=sys.stderr)


class PapagoTranslationClient(_DebugMixin, TranslationClient):
    """Client for the Naver Papago neural machine translation API."""

    name = "papago"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        endpoint: str = PAPAGO_URL,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.Client | None = None,
        debug: bool = False,
    ) -> None:
        if not client_id or not client_secret:
            raise TranslationProviderConfigurationError(
                "Papago configuration missing. Provide a client id and client secret."
            )
        self.endpoint = endpoint
        self.debug = debug
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)
        self._headers = {
            "X-Naver-Client-Id": client_id,
            "X-Naver-Client-Secret": client_secret,
            "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
        }

    def translate(
        self,
        text: str,
        *,
        source_language: str,
        target_language: str,
    ) -> str:
        if not text or not text.strip():
            return text or ""

        form = {"source": source_language, "target": target_language, "text": text}
        self._log_debug("provider.request.form", form)
        try:
            response = self._http.post(self.endpoint, headers=self._headers, data=form)
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"Papago request failed: {exc}", status_code=None, body=str(exc)
            ) from exc

        self._log_debug("provider.response.raw", f"{response.status_code} {response.text}")
        if not response.is_success:
            raise ProviderError(
                f"Papago {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            translated = response.json()["message"]["result"]["translatedText"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ProviderError(
                "Papago response malformed: translatedText not found.",
                status_code=response.status_code,
                body=response.text,
            ) from exc
        if not isinstance(translated, str):
            raise ProviderError(
                "Papago response malformed: translatedText is not a string.",
                status_code=response.status_code,
                body=response.text,
            )
        return translated

    def close(self) -> None:
        if self._owns_client:
            self._http.close()


class OpenAITranslationClient(_DebugMixin, TranslationClient):
    """Translation client that uses OpenAI or Azure OpenAI chat models."""

    name = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"

    SYSTEM_PROMPT = (
        "You are a professional translator. Return only JSON. "
        "Translate the provided text run into the requested language. "
        "Preserve placeholders, numbers, and surrounding whitespace. "
        'Respond strictly with an object shaped as {"translated": "..."}. '
        "Do not add commentary. Do not wrap the JSON in markdown code fences."
    )

    def __init__(
        self,
        *,
        provider_kind: str = "openai",
        api_key: str | None = None,
        model: str | None = None,
        azure_endpoint: str | None = None,
        azure_api_version: str | None = None,
        azure_deployment: str | None = None,
        client: Any = None,
        debug: bool = False,
    ) -> None:
        self.debug = debug
        self.provider_kind = provider_kind
        if client is not None:
            self._client, self._model = client, model or self.DEFAULT_MODEL
        elif provider_kind == "azure_openai":
            self._client, self._model = self._build_azure_client(
                api_key, azure_endpoint, azure_api_version, azure_deployment
            )
        else:
            self._client, self._model = self._build_openai_client(api_key, model)

    def _build_openai_client(
        self, api_key: str | None, model: str | None
    ) -> tuple[Any, str]:
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise TranslationProviderConfigurationError(
                "OpenAI configuration missing. Set OPENAI_API_KEY or choose a "
                "different provider."
            )
        from openai import OpenAI

        return OpenAI(api_key=api_key), model or self.DEFAULT_MODEL

    def _build_azure_client(
        self,
        api_key: str | None,
        endpoint: str | None,
        api_version: str | None,
        deployment_name: str | None,
    ) -> tuple[Any, str]:
        missing = [
            name
            for name, value in {
                "AZURE_OPENAI_API_KEY": api_key,
                "AZURE_OPENAI_ENDPOINT": endpoint,
                "AZURE_OPENAI_API_VERSION": api_version,
                "AZURE_OPENAI_DEPLOYMENT_NAME": deployment_name,
            }.items()
            if not value
        ]
        if missing:
            raise TranslationProviderConfigurationError(
                "Azure OpenAI configuration incomplete. Please set: "
                + ", ".join(missing)
                + "."
            )
        from openai import AzureOpenAI

        client = AzureOpenAI(
            api_key=api_key,
            api_version=api_version,
            azure_endpoint=endpoint,
        )
        return client, deployment_name  # type: ignore[return-value]

    def translate(
        self,
        text: str,
        *,
        source_language: str,
        target_language: str,
    ) -> str:
        if not text or not text.strip():
            return text or ""

        user_payload = {
            "source_language": source_language,
            "target_language": target_language,
            "text": text,
        }
        self._log_debug("provider.request.payload", user_payload)

        try:
            response = self._client.chat.completions.create(
                model=self._model,
                temperature=0,
                messages=[
                    {"role": "system", "content": self.SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": json.dumps(user_payload, ensure_ascii=False),
                    },
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            status_code = getattr(exc, "status_code", None)
            raise ProviderError(
                f"Translation service temporarily unavailable: {exc}",
                status_code=status_code,
                body=str(exc),
            ) from exc

        content = self._message_content(response)
        self._log_debug("provider.response.content", content)
        return self._parse_translation(content)

    def _message_content(self, response: Any) -> str:
        for choice in getattr(response, "choices", None) or []:
            message = getattr(choice, "message", None)
            content = getattr(message, "content", None)
            if content:
                return str(content)
        raise ProviderError("Translation provider response empty or unrecognised.")

    def _strip_code_fence(self, text: str) -> str:
        """Remove leading/trailing markdown code fences if present."""

        stripped = text.strip()
        if not stripped.startswith("```"):
            return stripped

        first_newline = stripped.find("\n")
        if first_newline == -1:
            return stripped
        body = stripped[first_newline + 1 :]
        closing_index = body.rfind("```")
        if closing_index != -1:
            body = body[:closing_index]
        return body.strip()

    def _parse_translation(self, content: str) -> str:
        try:
            payload = json.loads(self._strip_code_fence(content))
        except json.JSONDecodeError as exc:
            raise ProviderError(
                f"Translation provider returned invalid JSON: {exc}", body=content
            ) from exc
        translated = payload.get("translated") if isinstance(payload, dict) else None
        if not isinstance(translated, str):
            raise ProviderError(
                "Translation provider response malformed: missing 'translated'.",
                body=content,
            )
        return translated


def build_client(
    name: str | None,
    *,
    settings: "PptxlateConfig | None" = None,
    credentials: Mapping[str, str] | None = None,
    debug: bool = False,
) -> TranslationClient:
    """Factory to create translation clients by name.

    ``credentials`` (``client_id`` / ``client_secret``) take precedence over
    configured Papago credentials.
    """

    normalized = (name or getattr(settings, "TRANSLATION_PROVIDER", None) or "papago")
    normalized = normalized.strip().lower().replace("-", "_")
    timeout = float(getattr(settings, "PPTXLATE_HTTP_TIMEOUT", DEFAULT_TIMEOUT))

    if normalized in {"papago", "naver", "default"}:
        credentials = credentials or {}
        return PapagoTranslationClient(
            credentials.get("client_id") or getattr(settings, "PAPAGO_CLIENT_ID", None) or "",
            credentials.get("client_secret")
            or getattr(settings, "PAPAGO_CLIENT_SECRET", None)
            or "",
            endpoint=getattr(settings, "PAPAGO_API_URL", None) or PAPAGO_URL,
            timeout=timeout,
            debug=debug,
        )
    if normalized in {"openai", "gpt"}:
        return OpenAITranslationClient(
            api_key=getattr(settings, "OPENAI_API_KEY", None),
            model=getattr(settings, "OPENAI_MODEL", None),
            debug=debug,
        )
    if normalized in {"azure_openai", "azure"}:
        return OpenAITranslationClient(
            provider_kind="azure_openai",
            api_key=getattr(settings, "AZURE_OPENAI_API_KEY", None),
            azure_endpoint=getattr(settings, "AZURE_OPENAI_ENDPOINT", None),
            azure_api_version=getattr(settings, "AZURE_OPENAI_API_VERSION", None),
            azure_deployment=getattr(settings, "AZURE_OPENAI_DEPLOYMENT_NAME", None),
            debug=debug,
        )
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationClient()
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )
