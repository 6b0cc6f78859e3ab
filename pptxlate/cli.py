"""Command line interface for the pptxlate translator."""

from __future__ import annotations

import argparse
import pathlib
import re
import sys
from typing import TYPE_CHECKING, Iterable, Optional

from .errors import (
    ConfigurationNotFoundError,
    InputError,
    OverwriteRefusedError,
    PackageFailure,
    PptxlateError,
    TranslationProviderConfigurationError,
    UnsupportedFileTypeError,
)
from .logger import configure_logging
from .providers import build_client
from .translator import TranslationRunner, TranslationSummary, validate_paths

if TYPE_CHECKING:  # pragma: no cover
    from .configuration import PptxlateConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pptxlate",
        description=(
            "Translate the slide text of PowerPoint (.pptx) presentations, "
            "leaving every other part of the file untouched."
        ),
    )
    parser.add_argument(
        "input_file",
        nargs="?",
        help="Path to the .pptx file to translate.",
    )
    parser.add_argument(
        "-t",
        "--target-language",
        help="Destination language code (for example 'en', 'ko', 'ja').",
    )
    parser.add_argument(
        "-s",
        "--source-language",
        help="Source language code of the presentation.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending the target language code.",
    )
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider identifier (papago, openai, azure_openai, echo).",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show per-slide progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the HTTP endpoint (POST /api/translate) instead of translating a file.",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address for --serve.")
    parser.add_argument("--port", type=int, default=8000, help="Port for --serve.")
    return parser


def sanitise_language_for_filename(language: str) -> str:
    """Generate a filesystem-friendly suffix from a language descriptor."""

    collapsed = re.sub(r"\s+", "-", language.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9\-]+", "", ascii_only)
    return cleaned or "translated"


def derive_output_path(input_path: pathlib.Path, language: str) -> pathlib.Path:
    addition = sanitise_language_for_filename(language)
    return input_path.with_name(f"{input_path.stem}_{addition}{input_path.suffix}")


def execute_translation(
    *,
    input_file: str,
    output_file: str | None,
    target_language: str,
    source_language: str,
    provider: str | None,
    force_overwrite: bool,
    verbose: bool,
    provider_debug: bool,
    settings: "PptxlateConfig | None" = None,
) -> tuple[int, TranslationSummary | None, str | None]:
    """Execute a translation run and return the exit code, summary, and message."""

    input_path = pathlib.Path(input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(output_file).expanduser().resolve()
        if output_file
        else derive_output_path(input_path, target_language)
    )

    try:
        validate_paths(input_path, output_path, force_overwrite=force_overwrite)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except PptxlateError as exc:
        return 1, None, str(exc)

    try:
        client = build_client(provider, settings=settings, debug=provider_debug)
    except TranslationProviderConfigurationError as exc:
        return 1, None, str(exc)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    runner = TranslationRunner(
        input_path=input_path,
        output_path=output_path,
        client=client,
        source_language=source_language,
        target_language=target_language,
        verbose=verbose,
    )

    try:
        summary = runner.run()
    except (UnsupportedFileTypeError, InputError, OverwriteRefusedError) as exc:
        return 1, None, str(exc)
    except PackageFailure as exc:
        return 2, None, f"Translation failed, no output written. {exc}"
    except PptxlateError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."
    except Exception as exc:  # pragma: no cover - defensive catch
        error_message = (
            f"{exc}\n"
            "An unexpected error occurred. Please rerun with --verbose for more details."
        )
        return 1, None, error_message
    finally:
        client.close()

    return 0, summary, None


def print_summary(summary: TranslationSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nTranslation complete.")
    print(f"  Input file:      {summary.input_path}")
    print(f"  Output file:     {summary.output_path}")
    print(f"  Slides:          {summary.slide_parts}")
    print(
        "  Text runs:       "
        f"{summary.translated_runs} translated / {summary.total_runs} total "
        f"({summary.skipped_runs} blank)"
    )
    print(f"  Provider:        {summary.provider_name}")
    print(f"  Languages:       {summary.source_language} -> {summary.target_language}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")


def load_settings() -> "PptxlateConfig":
    from .configuration import get_settings

    return get_settings()


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        settings = load_settings()
    except TranslationProviderConfigurationError as exc:
        # The server takes Papago credentials per request; echo needs none.
        missing = isinstance(exc, ConfigurationNotFoundError)
        echo = not args.serve and args.provider in {"echo", "noop", "mock"}
        if not (echo or (args.serve and missing)):
            print(exc)
            return 1
        settings = None

    configure_logging(getattr(settings, "PPTXLATE_LOG_LEVEL", "INFO"))
    provider_debug = bool(args.debug_provider) or bool(
        getattr(settings, "PPTXLATE_PROVIDER_DEBUG", False)
    )

    if args.serve:
        from .server import run_server

        run_server(settings, host=args.host, port=args.port)
        return 0

    if args.input_file is None:
        parser.error("the following arguments are required: input_file")
    if not args.target_language:
        parser.error("the following arguments are required: -t/--target-language")
    if not args.source_language:
        parser.error("the following arguments are required: -s/--source-language")

    exit_code, summary, message = execute_translation(
        input_file=args.input_file,
        output_file=args.output,
        target_language=args.target_language,
        source_language=args.source_language,
        provider=args.provider,
        force_overwrite=args.force,
        verbose=args.verbose,
        provider_debug=provider_debug,
        settings=settings,
    )

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
