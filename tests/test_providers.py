from __future__ import annotations

from types import SimpleNamespace
from urllib.parse import parse_qs

import httpx
import pytest

from pptxlate.errors import ProviderError, TranslationProviderConfigurationError
from pptxlate.providers import (
    PAPAGO_URL,
    EchoTranslationClient,
    OpenAITranslationClient,
    PapagoTranslationClient,
    build_client,
)


def _papago(handler, **kwargs):
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return PapagoTranslationClient("my-id", "my-secret", http_client=http_client, **kwargs)


def test_papago_posts_form_and_returns_translated_text():
    captured = []

    def handler(request):
        captured.append(request)
        return httpx.Response(
            200, json={"message": {"result": {"translatedText": "Bonjour"}}}
        )

    client = _papago(handler)

    result = client.translate("Hello", source_language="en", target_language="fr")

    assert result == "Bonjour"
    (request,) = captured
    assert request.method == "POST"
    assert str(request.url) == PAPAGO_URL
    assert request.headers["X-Naver-Client-Id"] == "my-id"
    assert request.headers["X-Naver-Client-Secret"] == "my-secret"
    assert parse_qs(request.content.decode("utf-8")) == {
        "source": ["en"],
        "target": ["fr"],
        "text": ["Hello"],
    }


def test_papago_error_status_carries_status_and_body():
    client = _papago(lambda request: httpx.Response(401, text='{"errorCode":"024"}'))

    with pytest.raises(ProviderError) as excinfo:
        client.translate("Hello", source_language="en", target_language="fr")

    assert excinfo.value.status_code == 401
    assert excinfo.value.body == '{"errorCode":"024"}'
    assert "Papago 401" in str(excinfo.value)


def test_papago_network_error_becomes_provider_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _papago(handler)

    with pytest.raises(ProviderError) as excinfo:
        client.translate("Hello", source_language="en", target_language="fr")

    assert excinfo.value.status_code is None


def test_papago_malformed_response_is_a_provider_error():
    client = _papago(lambda request: httpx.Response(200, json={"message": {}}))

    with pytest.raises(ProviderError):
        client.translate("Hello", source_language="en", target_language="fr")


def test_papago_non_string_translation_is_a_provider_error():
    client = _papago(
        lambda request: httpx.Response(
            200, json={"message": {"result": {"translatedText": None}}}
        )
    )

    with pytest.raises(ProviderError) as excinfo:
        client.translate("Hello", source_language="en", target_language="fr")

    assert excinfo.value.status_code == 200
    assert "not a string" in str(excinfo.value)


def test_papago_blank_text_makes_no_request():
    def handler(request):  # pragma: no cover - must not be called
        raise AssertionError("unexpected request")

    client = _papago(handler)

    assert client.translate("", source_language="en", target_language="fr") == ""
    assert client.translate("  ", source_language="en", target_language="fr") == "  "


def test_papago_debug_output_goes_to_stderr(capsys):
    client = _papago(
        lambda request: httpx.Response(
            200, json={"message": {"result": {"translatedText": "Hallo"}}}
        ),
        debug=True,
    )

    client.translate("Hello", source_language="en", target_language="de")

    captured = capsys.readouterr()
    assert "[pptxlate][provider-debug] provider.request.form" in captured.err
    assert "my-secret" not in captured.err
    assert captured.out == ""


def test_papago_requires_credentials():
    with pytest.raises(TranslationProviderConfigurationError):
        PapagoTranslationClient("", "secret")


def test_echo_client_returns_input():
    client = EchoTranslationClient()

    assert client.translate("Hola", source_language="es", target_language="es") == "Hola"


def _fake_openai(content):
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    completions = SimpleNamespace(create=create)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), calls


def test_openai_client_parses_fenced_json():
    fake, calls = _fake_openai('```json\n{"translated": "Hola"}\n```')
    client = OpenAITranslationClient(client=fake, model="test-model")

    result = client.translate("Hello", source_language="en", target_language="es")

    assert result == "Hola"
    assert calls[0]["model"] == "test-model"
    assert '"text": "Hello"' in calls[0]["messages"][1]["content"]


def test_openai_client_rejects_unexpected_payloads():
    fake, _ = _fake_openai('{"something": "else"}')
    client = OpenAITranslationClient(client=fake)

    with pytest.raises(ProviderError):
        client.translate("Hello", source_language="en", target_language="es")


def test_openai_client_requires_an_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(TranslationProviderConfigurationError):
        OpenAITranslationClient()


def test_azure_client_lists_missing_settings():
    with pytest.raises(TranslationProviderConfigurationError) as excinfo:
        OpenAITranslationClient(provider_kind="azure_openai", api_key="key")

    assert "AZURE_OPENAI_ENDPOINT" in str(excinfo.value)


def test_build_client_selects_providers():
    assert isinstance(build_client("echo"), EchoTranslationClient)

    client = build_client(
        "papago", credentials={"client_id": "id", "client_secret": "secret"}
    )
    try:
        assert isinstance(client, PapagoTranslationClient)
    finally:
        client.close()


def test_build_client_falls_back_to_configured_settings():
    settings = SimpleNamespace(
        TRANSLATION_PROVIDER="papago",
        PAPAGO_CLIENT_ID="cfg-id",
        PAPAGO_CLIENT_SECRET="cfg-secret",
        PAPAGO_API_URL="https://papago.example/n2mt",
        PPTXLATE_HTTP_TIMEOUT=5.0,
    )

    client = build_client(None, settings=settings)
    try:
        assert isinstance(client, PapagoTranslationClient)
        assert client.endpoint == "https://papago.example/n2mt"
    finally:
        client.close()


def test_build_client_rejects_unknown_names():
    with pytest.raises(TranslationProviderConfigurationError):
        build_client("telepathy")
