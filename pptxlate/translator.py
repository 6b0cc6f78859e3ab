"""High-level orchestration for presentation translation."""

from __future__ import annotations

import pathlib
import time
from dataclasses import dataclass, field
from typing import Callable, List

from . import codec
from .archive import is_slide_part, open_archive, write_archive
from .errors import (
    MalformedPartError,
    OverwriteRefusedError,
    PackageFailure,
    PptxlateError,
    ProviderError,
    TranslationFailure,
    UnsupportedFileTypeError,
)
from .locator import TEXT_MARKER, locate
from .logger import get_logger
from .providers import TranslationClient
from .structures import ArchivePart, Node

logger = get_logger(__name__)

PartSelector = Callable[[str], bool]


class PartTranslator:
    """Translates the text runs of one document tree, one run at a time."""

    def __init__(
        self,
        client: TranslationClient,
        *,
        source_language: str,
        target_language: str,
        marker: str = TEXT_MARKER,
    ) -> None:
        self.client = client
        self.source_language = source_language
        self.target_language = target_language
        self.marker = marker
        self.leaves = 0
        self.translated = 0
        self.skipped = 0

    def translate(self, tree: Node, *, part_path: str | None = None) -> Node:
        """Mutate ``tree`` in place and return it.

        Runs are requested strictly in traversal order and each result is
        written back before the next request. Blank runs are left as they are
        without a provider call. The first failure raises
        :class:`TranslationFailure`; runs already written stay written.
        """

        leaves = locate(tree, self.marker)
        self.leaves += len(leaves)

        for index, leaf in enumerate(leaves):
            text = leaf.original_text
            if not text or not text.strip():
                self.skipped += 1
                continue
            try:
                translated = self.client.translate(
                    text,
                    source_language=self.source_language,
                    target_language=self.target_language,
                )
            except ProviderError as exc:
                raise TranslationFailure(
                    exc,
                    leaf_index=index,
                    location=leaf.location,
                    part_path=part_path,
                ) from exc
            leaf.setter(translated)
            self.translated += 1

        return tree


def translate_part(
    tree: Node,
    source_language: str,
    target_language: str,
    client: TranslationClient,
) -> Node:
    """Translate every text run in ``tree``; see :class:`PartTranslator`."""

    translator = PartTranslator(
        client,
        source_language=source_language,
        target_language=target_language,
    )
    return translator.translate(tree)


@dataclass
class PackageSummary:
    """Counters collected while translating one archive."""

    total_parts: int = 0
    selected_parts: List[str] = field(default_factory=list)
    total_runs: int = 0
    translated_runs: int = 0
    skipped_runs: int = 0
    elapsed_seconds: float = 0.0


class PackageTranslator:
    """Translates every selected part of an archive, all or nothing."""

    def __init__(
        self,
        client: TranslationClient,
        *,
        source_language: str,
        target_language: str,
        selector: PartSelector = is_slide_part,
        verbose: bool = False,
    ) -> None:
        self.client = client
        self.source_language = source_language
        self.target_language = target_language
        self.selector = selector
        self.verbose = verbose
        self.summary = PackageSummary()

    def translate(self, archive_bytes: bytes) -> bytes:
        start_time = time.time()
        parts = open_archive(archive_bytes)
        part_translator = PartTranslator(
            self.client,
            source_language=self.source_language,
            target_language=self.target_language,
        )

        self.summary = PackageSummary(total_parts=len(parts))
        output: List[ArchivePart] = []
        for part in parts:
            if not self.selector(part.path):
                output.append(part)
                continue
            self.summary.selected_parts.append(part.path)
            output.append(self._translate_part(part, part_translator))

        self.summary.total_runs = part_translator.leaves
        self.summary.translated_runs = part_translator.translated
        self.summary.skipped_runs = part_translator.skipped
        self.summary.elapsed_seconds = time.time() - start_time
        logger.info(
            "Translated %d runs across %d slide parts (%d blank runs kept).",
            self.summary.translated_runs,
            len(self.summary.selected_parts),
            self.summary.skipped_runs,
        )
        return write_archive(output)

    def _translate_part(
        self, part: ArchivePart, part_translator: PartTranslator
    ) -> ArchivePart:
        try:
            tree = codec.parse(part.data)
            part_translator.translate(tree, part_path=part.path)
            data = codec.serialize(tree)  # type: ignore[arg-type]
        except TranslationFailure as exc:
            logger.error("Aborting package: %s", exc)
            raise PackageFailure(str(exc), part_path=part.path, cause=exc) from exc
        except MalformedPartError as exc:
            logger.error("Aborting package: %s is malformed: %s", part.path, exc)
            raise PackageFailure(
                f"Could not process {part.path}: {exc}", part_path=part.path, cause=exc
            ) from exc

        if self.verbose:
            print(f"Translated {part.path}.")
        logger.debug("Translated %s.", part.path)
        return ArchivePart(path=part.path, data=data, info=part.info)


def translate_package(
    archive_bytes: bytes,
    source_language: str,
    target_language: str,
    client: TranslationClient,
) -> bytes:
    """Translate every slide part of ``archive_bytes``; see :class:`PackageTranslator`."""

    translator = PackageTranslator(
        client,
        source_language=source_language,
        target_language=target_language,
    )
    return translator.translate(archive_bytes)


@dataclass
class TranslationSummary:
    """Report returned after processing a presentation file."""

    input_path: pathlib.Path
    output_path: pathlib.Path
    slide_parts: int
    total_runs: int
    translated_runs: int
    skipped_runs: int
    provider_name: str
    target_language: str
    source_language: str
    elapsed_seconds: float


class TranslationRunner:
    """Translates a presentation file on disk."""

    def __init__(
        self,
        *,
        input_path: pathlib.Path,
        output_path: pathlib.Path,
        client: TranslationClient,
        source_language: str,
        target_language: str,
        verbose: bool = False,
    ) -> None:
        self.input_path = input_path
        self.output_path = output_path
        self.client = client
        self.source_language = source_language
        self.target_language = target_language
        self.verbose = verbose

    def run(self) -> TranslationSummary:
        start_time = time.time()
        if self.input_path.suffix.lower() != ".pptx":
            raise UnsupportedFileTypeError(
                "This file type isn't supported. Please use a .pptx presentation."
            )

        translator = PackageTranslator(
            self.client,
            source_language=self.source_language,
            target_language=self.target_language,
            verbose=self.verbose,
        )
        output = translator.translate(self.input_path.read_bytes())
        self.output_path.write_bytes(output)

        summary = translator.summary
        return TranslationSummary(
            input_path=self.input_path,
            output_path=self.output_path,
            slide_parts=len(summary.selected_parts),
            total_runs=summary.total_runs,
            translated_runs=summary.translated_runs,
            skipped_runs=summary.skipped_runs,
            provider_name=self.client.name,
            target_language=self.target_language,
            source_language=self.source_language,
            elapsed_seconds=time.time() - start_time,
        )


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(
            "Input file not found. Please provide a readable .pptx file."
        )
    if not input_path.is_file():
        raise PptxlateError("Input path must be a file.")

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input document. Refusing to overwrite the source file."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists. Rename it or use the overwrite flag."
        )
