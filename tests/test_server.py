from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest

from conftest import RecordingClient, SCENARIO_TRANSLATIONS, read_archive, slide_texts
from pptxlate import server
from pptxlate.errors import InputError
from pptxlate.server import PPTX_MIMETYPE, create_app, fetch_source, parse_request

VALID_BODY = {
    "file_url": "https://files.example/deck.pptx",
    "source_lang": "en",
    "dest_lang": "fr",
    "client_id": "id",
    "client_secret": "secret",
}


@pytest.fixture
def harness(scenario_archive):
    state = SimpleNamespace(credentials=[], urls=[], clients=[], fail_on=set())

    def client_factory(credentials):
        state.credentials.append(dict(credentials))
        client = RecordingClient(SCENARIO_TRANSLATIONS, fail_on=state.fail_on)
        state.clients.append(client)
        return client

    def fetcher(url):
        state.urls.append(url)
        return scenario_archive

    app = create_app(client_factory=client_factory, fetcher=fetcher)
    state.client = app.test_client()
    return state


@pytest.mark.parametrize("method", ["get", "put", "delete", "patch", "options"])
def test_only_post_is_accepted(harness, method):
    response = getattr(harness.client, method)("/api/translate", json=VALID_BODY)

    assert response.status_code == 405
    assert response.get_json() == {"error": "POST only"}
    assert harness.urls == []
    assert harness.credentials == []


def test_unrouted_methods_get_the_same_json_error(harness):
    response = harness.client.open("/api/translate", method="TRACE")

    assert response.status_code == 405
    assert response.get_json() == {"error": "POST only"}
    assert harness.urls == []


def test_missing_fields_are_rejected(harness):
    response = harness.client.post("/api/translate", json={"file_url": "https://x"})

    assert response.status_code == 400
    message = response.get_json()["error"]
    assert message.startswith("Missing fields")
    assert "source_lang" in message and "client_secret" in message
    assert harness.urls == []


def test_non_json_body_is_rejected(harness):
    response = harness.client.post("/api/translate", data="file_url=x")

    assert response.status_code == 400


def test_successful_request_returns_translated_presentation(harness):
    response = harness.client.post("/api/translate", json=VALID_BODY)

    assert response.status_code == 200
    assert response.mimetype == PPTX_MIMETYPE
    parts = read_archive(response.data)
    assert slide_texts(parts["ppt/slides/slide1.xml"]) == ["Bonjour", "", "Monde"]
    assert slide_texts(parts["ppt/slides/slide2.xml"]) == ["Fou"]
    assert harness.urls == [VALID_BODY["file_url"]]
    assert harness.credentials == [{"client_id": "id", "client_secret": "secret"}]
    assert harness.clients[0].closed


def test_nested_credentials_and_source_url_alias(harness):
    body = {
        "source_url": "https://files.example/other.pptx",
        "source_lang": "en",
        "dest_lang": "fr",
        "credentials": {"client_id": "nested-id", "client_secret": "nested-secret"},
    }

    response = harness.client.post("/api/translate", json=body)

    assert response.status_code == 200
    assert harness.urls == ["https://files.example/other.pptx"]
    assert harness.credentials == [
        {"client_id": "nested-id", "client_secret": "nested-secret"}
    ]


def test_provider_failure_returns_an_error_and_no_document(harness):
    harness.fail_on.add("World")

    response = harness.client.post("/api/translate", json=VALID_BODY)

    assert response.status_code == 502
    payload = response.get_json()
    assert "World" in payload["error"]
    assert payload["part"] == "ppt/slides/slide1.xml"
    assert payload["provider_status"] == 429
    assert harness.clients[0].texts == ["Hello", "World"]
    assert harness.clients[0].closed


def test_fetch_failure_is_reported_as_bad_request():
    def fetcher(url):
        raise InputError("Fetch PPTX failed 404")

    app = create_app(client_factory=lambda credentials: RecordingClient(), fetcher=fetcher)

    response = app.test_client().post("/api/translate", json=VALID_BODY)

    assert response.status_code == 400
    assert response.get_json() == {"error": "Fetch PPTX failed 404"}


def test_invalid_archive_is_reported_as_bad_request():
    app = create_app(
        client_factory=lambda credentials: RecordingClient(),
        fetcher=lambda url: b"definitely not a zip",
    )

    response = app.test_client().post("/api/translate", json=VALID_BODY)

    assert response.status_code == 400


def test_credentials_are_optional_when_the_provider_does_not_need_them(scenario_archive):
    settings = SimpleNamespace(TRANSLATION_PROVIDER="echo", PPTXLATE_HTTP_TIMEOUT=5.0)
    app = create_app(settings, fetcher=lambda url: scenario_archive)
    body = {k: v for k, v in VALID_BODY.items() if not k.startswith("client_")}

    response = app.test_client().post("/api/translate", json=body)

    assert response.status_code == 200
    parts = read_archive(response.data)
    assert slide_texts(parts["ppt/slides/slide1.xml"]) == ["Hello", "", "World"]


def test_parse_request_requires_an_object():
    with pytest.raises(InputError):
        parse_request(["not", "an", "object"])


def test_fetch_source_downloads_bytes(monkeypatch):
    def fake_get(url, **kwargs):
        assert kwargs["follow_redirects"] is True
        return httpx.Response(200, content=b"PK-bytes", request=httpx.Request("GET", url))

    monkeypatch.setattr(server.httpx, "get", fake_get)

    assert fetch_source("https://files.example/deck.pptx") == b"PK-bytes"


def test_fetch_source_rejects_error_statuses(monkeypatch):
    monkeypatch.setattr(
        server.httpx,
        "get",
        lambda url, **kwargs: httpx.Response(404, request=httpx.Request("GET", url)),
    )

    with pytest.raises(InputError, match="Fetch PPTX failed 404"):
        fetch_source("https://files.example/missing.pptx")


def test_fetch_source_wraps_network_errors(monkeypatch):
    def fake_get(url, **kwargs):
        raise httpx.ConnectError("no route to host")

    monkeypatch.setattr(server.httpx, "get", fake_get)

    with pytest.raises(InputError):
        fetch_source("https://files.example/deck.pptx")
