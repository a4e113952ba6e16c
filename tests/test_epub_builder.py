from __future__ import annotations

import io
import re
import xml.etree.ElementTree as ET
import zipfile
from pathlib import Path

from bs4 import BeautifulSoup

from epubengine.epub_builder import EpubWriter
from epubengine.epub_reader import ChapterExtractor, EpubReader
from epubengine.models import ExportRequest
from epubengine.utils import suggested_filename


def _open(data: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(data))


def _opf(data: bytes) -> BeautifulSoup:
    with _open(data) as zf:
        return BeautifulSoup(zf.read("OEBPS/content.opf"), "xml")


def _chapter(data: bytes) -> str:
    with _open(data) as zf:
        return zf.read("OEBPS/chapter.xhtml").decode("utf-8")


def test_mimetype_is_first_and_stored() -> None:
    data = EpubWriter().generate(ExportRequest(title="T", paragraphs=["a", "b"]))

    with _open(data) as zf:
        first = zf.infolist()[0]
        assert first.filename == "mimetype"
        assert first.compress_type == zipfile.ZIP_STORED
        assert zf.read("mimetype") == b"application/epub+zip"

    # local file header: the name starts at byte 30, the stored content follows it
    assert data[30:38] == b"mimetype"
    assert data[38:58] == b"application/epub+zip"


def test_container_points_at_package_descriptor() -> None:
    data = EpubWriter().generate(ExportRequest(title="T", paragraphs=["a"]))

    with _open(data) as zf:
        container = BeautifulSoup(zf.read("META-INF/container.xml"), "xml")
        full_path = container.find("rootfile")["full-path"]
        assert full_path == "OEBPS/content.opf"
        assert full_path in zf.namelist()
        assert "OEBPS/style.css" in zf.namelist()


def test_package_descriptor_metadata_and_spine() -> None:
    data = EpubWriter(language="en").generate(ExportRequest(title="Fish & Chips", paragraphs=["a"]))
    opf = _opf(data)

    assert opf.find("title").get_text() == "Fish & Chips"
    assert opf.find("language").get_text() == "en"
    assert opf.find("identifier").get_text().startswith("urn:uuid:")
    modified = opf.find("meta", attrs={"property": "dcterms:modified"}).get_text()
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", modified)

    itemrefs = opf.find_all("itemref")
    assert [ref["idref"] for ref in itemrefs] == ["chapter"]
    manifest = {item["id"]: (item["href"], item["media-type"]) for item in opf.find_all("item")}
    assert manifest["chapter"] == ("chapter.xhtml", "application/xhtml+xml")
    assert manifest["style"] == ("style.css", "text/css")


def test_identifier_is_unique_per_package() -> None:
    writer = EpubWriter()
    request = ExportRequest(title="T", paragraphs=["a"])

    first = _opf(writer.generate(request)).find("identifier").get_text()
    second = _opf(writer.generate(request)).find("identifier").get_text()

    assert first != second


def test_paragraph_audio_manifest_matches_document_references() -> None:
    request = ExportRequest(
        title="Audio",
        paragraphs=["zero", "one", "two"],
        paragraph_audio={0: b"RIFF-r0", 2: b"RIFF-r2"},
    )
    data = EpubWriter().generate(request)

    audio_items = [item for item in _opf(data).find_all("item") if item["media-type"] == "audio/wav"]
    assert sorted(item["id"] for item in audio_items) == ["audio_p0", "audio_p2"]

    document = BeautifulSoup(_chapter(data).encode("utf-8"), "xml")
    sources = [source["src"] for source in document.find_all("source")]
    assert sources == ["audio_p0.wav", "audio_p2.wav"]

    with _open(data) as zf:
        assert zf.read("OEBPS/audio_p0.wav") == b"RIFF-r0"
        assert zf.read("OEBPS/audio_p2.wav") == b"RIFF-r2"
        assert zf.getinfo("OEBPS/audio_p0.wav").compress_type == zipfile.ZIP_DEFLATED
        assert "OEBPS/audio_p1.wav" not in zf.namelist()


def test_chapter_audio_is_embedded_before_paragraphs() -> None:
    request = ExportRequest(title="Audio", paragraphs=["zero"], chapter_audio=b"RIFF-chapter")
    data = EpubWriter().generate(request)

    audio_ids = [item["id"] for item in _opf(data).find_all("item") if item["media-type"] == "audio/wav"]
    assert audio_ids == ["audio_chapter"]

    document = _chapter(data)
    assert 'src="audio_chapter.wav"' in document
    assert document.index("chapter-audio-container") < document.index("original-text")
    with _open(data) as zf:
        assert zf.read("OEBPS/audio_chapter.wav") == b"RIFF-chapter"


def test_no_audio_means_no_audio_entries() -> None:
    data = EpubWriter().generate(ExportRequest(title="Quiet", paragraphs=["a", "b"]))

    assert not [item for item in _opf(data).find_all("item") if item["media-type"] == "audio/wav"]
    assert "<audio" not in _chapter(data)


def test_translations_and_analyses_render_only_for_present_indices() -> None:
    request = ExportRequest(
        title="Study",
        paragraphs=["first", "second"],
        translations={1: "deuxième"},
        analyses={0: "## Vocabulary\n**first**: the earliest"},
    )
    document = BeautifulSoup(_chapter(EpubWriter().generate(request)).encode("utf-8"), "xml")

    wrappers = document.find_all("div", class_="paragraph-wrapper")
    assert len(wrappers) == 2
    assert wrappers[0].find("div", class_="translation-container") is None
    assert wrappers[1].find("div", class_="translation-container").get_text() == "deuxième"

    analysis = wrappers[0].find("div", class_="analysis-content")
    assert analysis.find("h2").get_text() == "Vocabulary"
    assert analysis.find("strong").get_text() == "first"
    assert wrappers[1].find("div", class_="analysis-container") is None


def test_out_of_range_keys_are_ignored() -> None:
    request = ExportRequest(
        title="Range",
        paragraphs=["only"],
        translations={0: "seule", 5: "ghost"},
        analyses={-1: "ghost"},
        paragraph_audio={7: b"RIFF-ghost"},
    )
    data = EpubWriter().generate(request)

    document = _chapter(data)
    assert "ghost" not in document
    assert "audio_p7" not in document
    with _open(data) as zf:
        assert "OEBPS/audio_p7.wav" not in zf.namelist()
    assert not [item for item in _opf(data).find_all("item") if item["media-type"] == "audio/wav"]


def test_content_document_is_well_formed_xml() -> None:
    request = ExportRequest(
        title="<Tricky> & \"quoted\"",
        paragraphs=["Fish & chips <3", "plain"],
        translations={0: "a < b"},
        analyses={1: "> quote & `code`\n---\n* not a list *"},
        paragraph_audio={1: b"RIFF"},
    )
    root = ET.fromstring(_chapter(EpubWriter().generate(request)).encode("utf-8"))

    assert root.tag == "{http://www.w3.org/1999/xhtml}html"


def test_overlapping_inline_markers_keep_document_well_formed() -> None:
    request = ExportRequest(
        title="T",
        paragraphs=["x"],
        analyses={0: "use `a*b` and *c*\n**a *b** c*"},
    )
    root = ET.fromstring(_chapter(EpubWriter().generate(request)).encode("utf-8"))

    ns = {"x": "http://www.w3.org/1999/xhtml"}
    assert [code.text for code in root.iterfind(".//x:code", ns)] == ["a*b"]
    assert [em.text for em in root.iterfind(".//x:em", ns)] == ["c"]


def test_round_trip_recovers_title_and_paragraphs() -> None:
    data = EpubWriter().generate(
        ExportRequest(title="T", paragraphs=["a", "b"], translations={}, analyses={}, paragraph_audio={})
    )

    title, content = ChapterExtractor().extract(_chapter(data).encode("utf-8"), 1)

    assert title == "T"
    # the chapter heading comes first, followed by the original paragraphs
    assert content.split("\n\n") == ["T", "a", "b"]


def test_round_trip_through_reader() -> None:
    paragraphs = ["The first paragraph of the chapter.", "The second paragraph of the chapter."]
    data = EpubWriter().generate(
        ExportRequest(title="Round Trip", paragraphs=paragraphs, translations={0: "Translated text"})
    )

    chapters = EpubReader().parse(data)

    assert len(chapters) == 1
    assert chapters[0].id == 1
    assert chapters[0].title == "Round Trip"
    assert chapters[0].paragraphs() == ["Round Trip"] + paragraphs


def test_create_epub_writes_file(tmp_path: Path) -> None:
    output_path = tmp_path / suggested_filename("My Chapter")

    result = EpubWriter().create_epub(ExportRequest(title="My Chapter", paragraphs=["a"]), output_path)

    assert result == output_path
    assert output_path.name == "My Chapter.epub"
    assert zipfile.is_zipfile(output_path)


def test_validate_epub_skips_without_epubcheck(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    epub_path = tmp_path / "out.epub"
    epub_path.write_bytes(EpubWriter().generate(ExportRequest(title="T", paragraphs=["a"])))

    assert EpubWriter().validate_epub(epub_path, tmp_path / "missing.jar") is False
