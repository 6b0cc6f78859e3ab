"""HTTP boundary: ``POST /api/translate`` returns the translated presentation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional

import httpx
from flask import Flask, Response, jsonify, request

from .errors import (
    InputError,
    PackageFailure,
    PptxlateError,
    ProviderError,
    TranslationFailure,
    TranslationProviderConfigurationError,
)
from .logger import get_logger
from .providers import DEFAULT_TIMEOUT, TranslationClient, build_client
from .translator import PackageTranslator

if TYPE_CHECKING:  # pragma: no cover
    from .configuration import PptxlateConfig

PPTX_MIMETYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
ROUTE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

logger = get_logger(__name__)

SourceFetcher = Callable[[str], bytes]
ClientFactory = Callable[[Mapping[str, str]], TranslationClient]


@dataclass
class TranslateRequest:
    """Validated fields of one translation request."""

    file_url: str
    source_language: str
    target_language: str
    credentials: Dict[str, str]


def parse_request(data: Any, *, require_credentials: bool = True) -> TranslateRequest:
    """Validate the JSON body; raises :class:`InputError` on missing fields."""

    if not isinstance(data, dict):
        raise InputError("Request body must be a JSON object.")

    nested = data.get("credentials")
    nested = nested if isinstance(nested, dict) else {}
    fields = {
        "file_url": data.get("file_url") or data.get("source_url"),
        "source_lang": data.get("source_lang"),
        "dest_lang": data.get("dest_lang"),
    }
    credentials = {
        "client_id": data.get("client_id") or nested.get("client_id"),
        "client_secret": data.get("client_secret") or nested.get("client_secret"),
    }
    if require_credentials:
        fields.update(credentials)

    missing = [name for name, value in fields.items() if not isinstance(value, str) or not value]
    if missing:
        raise InputError("Missing fields: " + ", ".join(missing))

    return TranslateRequest(
        file_url=fields["file_url"],  # type: ignore[arg-type]
        source_language=fields["source_lang"],  # type: ignore[arg-type]
        target_language=fields["dest_lang"],  # type: ignore[arg-type]
        credentials={k: v for k, v in credentials.items() if isinstance(v, str) and v},
    )


def fetch_source(url: str, *, timeout: float = DEFAULT_TIMEOUT) -> bytes:
    """Download the source presentation."""

    try:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
    except (httpx.HTTPError, ValueError) as exc:
        raise InputError(f"Fetch PPTX failed: {exc}") from exc
    if not response.is_success:
        raise InputError(f"Fetch PPTX failed {response.status_code}")
    return response.content


def create_app(
    settings: "PptxlateConfig | None" = None,
    *,
    client_factory: Optional[ClientFactory] = None,
    fetcher: Optional[SourceFetcher] = None,
) -> Flask:
    """Create the Flask application serving the translation endpoint."""

    app = Flask(__name__)
    app.json.ensure_ascii = False  # type: ignore[attr-defined]

    timeout = float(getattr(settings, "PPTXLATE_HTTP_TIMEOUT", DEFAULT_TIMEOUT))
    provider = getattr(settings, "TRANSLATION_PROVIDER", None) or "papago"
    debug = bool(getattr(settings, "PPTXLATE_PROVIDER_DEBUG", False))
    configured_papago = bool(
        getattr(settings, "PAPAGO_CLIENT_ID", None)
        and getattr(settings, "PAPAGO_CLIENT_SECRET", None)
    )
    require_credentials = provider == "papago" and not configured_papago

    def default_client_factory(credentials: Mapping[str, str]) -> TranslationClient:
        return build_client(provider, settings=settings, credentials=credentials, debug=debug)

    def default_fetcher(url: str) -> bytes:
        return fetch_source(url, timeout=timeout)

    make_client = client_factory or default_client_factory
    fetch = fetcher or default_fetcher

    def error(message: str, status: int, **extra: Any):
        return jsonify({"error": message, **extra}), status

    @app.errorhandler(405)
    def method_not_allowed(_exc):
        return error("POST only", 405)

    @app.route(
        "/api/translate",
        methods=ROUTE_METHODS,
        provide_automatic_options=False,
    )
    def translate_presentation():
        if request.method != "POST":
            return error("POST only", 405)

        try:
            job = parse_request(
                request.get_json(silent=True),
                require_credentials=require_credentials,
            )
            source = fetch(job.file_url)
        except InputError as exc:
            logger.warning("Rejected translation request: %s", exc)
            return error(str(exc), 400)

        client: TranslationClient | None = None
        try:
            client = make_client(job.credentials)
            translator = PackageTranslator(
                client,
                source_language=job.source_language,
                target_language=job.target_language,
            )
            output = translator.translate(source)
        except InputError as exc:
            return error(str(exc), 400)
        except TranslationProviderConfigurationError as exc:
            logger.error("Provider configuration error: %s", exc)
            return error(str(exc), 500)
        except PackageFailure as exc:
            extra: Dict[str, Any] = {"part": exc.part_path}
            failure = exc.cause
            if isinstance(failure, TranslationFailure) and isinstance(failure.cause, ProviderError):
                extra["provider_status"] = failure.cause.status_code
            return error(str(exc), 502, **extra)
        except PptxlateError as exc:
            return error(str(exc), 500)
        except Exception as exc:  # pragma: no cover - unexpected failure
            logger.exception("Unexpected error while translating %s", job.file_url)
            return error(str(exc), 500)
        finally:
            if client is not None:
                client.close()

        logger.info(
            "Translated %s (%s -> %s).",
            job.file_url,
            job.source_language,
            job.target_language,
        )
        return Response(output, status=200, mimetype=PPTX_MIMETYPE)

    return app


def run_server(
    settings: "PptxlateConfig | None" = None,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
) -> None:
    """Serve the translation endpoint with Flask's built-in server."""

    app = create_app(settings)
    logger.info("Serving POST /api/translate on %s:%d", host, port)
    app.run(host=host, port=port)
