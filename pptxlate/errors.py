"""Error definitions for the pptxlate translator."""

from __future__ import annotations

from typing import Optional


class PptxlateError(Exception):
    """Base exception for all custom errors."""


class InputError(PptxlateError):
    """Raised when request fields are missing or the source cannot be fetched."""


class UnsupportedFileTypeError(PptxlateError):
    """Raised when a given file extension is not supported."""


class OverwriteRefusedError(PptxlateError):
    """Raised when attempting to overwrite an output without consent."""


class TranslationProviderConfigurationError(PptxlateError):
    """Raised when the translation provider is misconfigured."""


class ConfigurationNotFoundError(TranslationProviderConfigurationError):
    """Raised when no configuration layer supplied any setting."""


class ProviderError(PptxlateError):
    """Raised when a single translation call fails."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedPartError(PptxlateError):
    """Raised when a selected part is not well-formed XML."""


class TranslationFailure(PptxlateError):
    """Raised when a part cannot be translated; names the failing leaf."""

    def __init__(
        self,
        cause: Exception,
        *,
        leaf_index: int,
        location: str,
        part_path: str | None = None,
    ) -> None:
        where = f"{part_path} " if part_path else ""
        super().__init__(
            f"Translation failed at {where}{location} (run {leaf_index + 1}): {cause}"
        )
        self.cause = cause
        self.leaf_index = leaf_index
        self.location = location
        self.part_path = part_path


class PackageFailure(PptxlateError):
    """Raised when any selected part fails; no output archive is produced."""

    def __init__(
        self,
        message: str,
        *,
        part_path: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.part_path = part_path
        self.cause = cause
