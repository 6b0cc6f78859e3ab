"""Reading and writing the presentation zip container."""

from __future__ import annotations

import io
import zipfile
from typing import Iterable, List

from .errors import InputError
from .structures import ArchivePart


def open_archive(data: bytes) -> List[ArchivePart]:
    """Return every entry of the archive, in the archive's own order."""

    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            return [
                ArchivePart(path=info.filename, data=archive.read(info), info=info)
                for info in archive.infolist()
            ]
    except zipfile.BadZipFile as exc:
        raise InputError(f"The document is not a valid zip archive: {exc}") from exc


def write_archive(parts: Iterable[ArchivePart]) -> bytes:
    """Rebuild an archive from ``parts``, keeping each entry's metadata."""

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for part in parts:
            if part.info is None:
                archive.writestr(part.path, part.data)
                continue
            info = zipfile.ZipInfo(part.path, date_time=part.info.date_time)
            info.compress_type = part.info.compress_type
            info.external_attr = part.info.external_attr
            info.create_system = part.info.create_system
            info.comment = part.info.comment
            archive.writestr(info, part.data)
    return buffer.getvalue()


def is_slide_part(path: str) -> bool:
    """Select slide markup parts such as ``ppt/slides/slide3.xml``."""

    return path.startswith("ppt/slides/slide") and path.endswith(".xml")
