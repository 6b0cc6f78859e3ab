from __future__ import annotations

import io
import zipfile
from typing import Dict, Iterable, List, Sequence, Tuple
from xml.sax.saxutils import escape

import pytest
from lxml import etree

from pptxlate.errors import ProviderError
from pptxlate.providers import TranslationClient

NAMESPACES = {
    "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
    "p": "http://schemas.openxmlformats.org/presentationml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
}

SLIDE_TEMPLATE = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    '<p:sld xmlns:a="{a}" xmlns:r="{r}" xmlns:p="{p}">'
    "<p:cSld><p:spTree>"
    '<p:nvGrpSpPr><p:cNvPr id="1" name=""/><p:cNvGrpSpPr/><p:nvPr/></p:nvGrpSpPr>'
    "<p:grpSpPr/>"
    "<p:sp>"
    '<p:nvSpPr><p:cNvPr id="2" name="Title 1"/>'
    '<p:cNvSpPr><a:spLocks noGrp="1"/></p:cNvSpPr>'
    '<p:nvPr><p:ph type="title"/></p:nvPr></p:nvSpPr>'
    '<p:spPr><a:xfrm><a:off x="838200" y="365125"/><a:ext cx="10515600" cy="1325563"/></a:xfrm></p:spPr>'
    "<p:txBody><a:bodyPr/><a:lstStyle/><a:p>{runs}</a:p></p:txBody>"
    "</p:sp>"
    "</p:spTree></p:cSld>"
    "<p:clrMapOvr><a:masterClrMapping/></p:clrMapOvr>"
    "</p:sld>"
)

RUN_TEMPLATE = '<a:r><a:rPr lang="en-US" sz="2400" b="1" dirty="0"/><a:t>{text}</a:t></a:r>'

CONTENT_TYPES = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="xml" ContentType="application/xml"/>'
    "</Types>"
)


def make_slide_xml(texts: Sequence[str]) -> bytes:
    runs = "".join(RUN_TEMPLATE.format(text=escape(text)) for text in texts)
    return SLIDE_TEMPLATE.format(runs=runs, **NAMESPACES).encode("utf-8")


def build_archive(entries: Iterable[Tuple[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for path, data in entries:
            archive.writestr(path, data)
    return buffer.getvalue()


def read_archive(data: bytes) -> Dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return {info.filename: archive.read(info) for info in archive.infolist()}


def slide_texts(xml: bytes) -> List[str]:
    root = etree.fromstring(xml)
    return [node.text or "" for node in root.iter(f"{{{NAMESPACES['a']}}}t")]


def canonical(xml: bytes) -> bytes:
    return etree.tostring(etree.fromstring(xml), method="c14n")


class RecordingClient(TranslationClient):
    """Test double that records every call and checks calls never overlap."""

    name = "recording"

    def __init__(self, translations: Dict[str, str] | None = None, fail_on: Iterable[str] = ()):
        self.translations = translations or {}
        self.fail_on = set(fail_on)
        self.calls: List[Tuple[str, str, str]] = []
        self.events: List[Tuple[str, str]] = []
        self.in_flight = 0
        self.closed = False

    def translate(self, text, *, source_language, target_language):
        assert self.in_flight == 0, "translation calls overlapped"
        self.in_flight += 1
        self.events.append(("start", text))
        try:
            self.calls.append((text, source_language, target_language))
            if text in self.fail_on:
                raise ProviderError(
                    f"Provider refused {text!r}", status_code=429, body="rate limited"
                )
            return self.translations.get(text, text.upper())
        finally:
            self.events.append(("end", text))
            self.in_flight -= 1

    def close(self) -> None:
        self.closed = True

    @property
    def texts(self) -> List[str]:
        return [text for text, _, _ in self.calls]


SCENARIO_TRANSLATIONS = {"Hello": "Bonjour", "World": "Monde", "Foo": "Fou"}


@pytest.fixture
def scenario_archive() -> bytes:
    return build_archive(
        [
            ("[Content_Types].xml", CONTENT_TYPES.encode("utf-8")),
            ("ppt/slides/slide1.xml", make_slide_xml(["Hello", "", "World"])),
            ("ppt/slides/_rels/slide1.xml.rels", b"<Relationships/>"),
            ("ppt/slides/slide2.xml", make_slide_xml(["Foo"])),
            ("ppt/slideLayouts/slideLayout1.xml", make_slide_xml(["Layout title"])),
            ("ppt/notesSlides/notesSlide1.xml", make_slide_xml(["Speaker note"])),
            ("ppt/media/image1.png", b"\x89PNG\r\n\x1a\n\x00\x00binary"),
        ]
    )


@pytest.fixture
def scenario_client() -> RecordingClient:
    return RecordingClient(SCENARIO_TRANSLATIONS)
