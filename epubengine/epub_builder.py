"""
EPUB 3 writer for single-chapter study packages with embedded audio
"""

import io
import logging
import shutil
import uuid
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple, TypeVar

from .content_document import ContentDocumentAssembler
from .manifest import CSS_MEDIA_TYPE, XHTML_MEDIA_TYPE, ManifestBuilder
from .models import ExportRequest
from .utils import run_command

MIMETYPE = "application/epub+zip"
PACKAGE_DIR = "OEBPS"
PACKAGE_PATH = f"{PACKAGE_DIR}/content.opf"
CONTENT_ID = "chapter"
CONTENT_HREF = "chapter.xhtml"
STYLE_ID = "style"
STYLE_HREF = "style.css"
CHAPTER_AUDIO_ID = "audio_chapter"

T = TypeVar("T")

CONTAINER_XML = f'''<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
    <rootfiles>
        <rootfile full-path="{PACKAGE_PATH}" media-type="application/oebps-package+xml"/>
    </rootfiles>
</container>'''

STYLESHEET = """/* Study edition styles */

body {
    font-family: "Noto Serif SC", "Source Han Serif SC", serif;
    padding: 5% 8%;
    line-height: 1.85;
    color: #1e293b;
}

h1.chapter-title {
    text-align: center;
    font-size: 2.2em;
    margin: 1em 0 1.2em 0;
    border-bottom: 2px solid #e2e8f0;
    padding-bottom: 0.5em;
}

.chapter-audio-container {
    background-color: #f0f7ff;
    padding: 20px;
    margin-bottom: 40px;
    border: 1px solid #bfdbfe;
    text-align: center;
}

.audio-label {
    font-weight: bold;
    margin-bottom: 12px;
    color: #1d4ed8;
}

.paragraph-wrapper {
    margin-bottom: 50px;
    padding-bottom: 30px;
    border-bottom: 1px solid #f1f5f9;
}

.original-text {
    font-size: 1.2em;
    color: #0f172a;
    margin-bottom: 15px;
}

.paragraph-audio-container {
    margin: 10px 0 15px 0;
}

.translation-container {
    color: #475569;
    font-style: italic;
    background-color: #f8fafc;
    padding: 18px;
    margin-bottom: 20px;
    border-left: 4px solid #cbd5e1;
}

.analysis-container {
    font-size: 0.95em;
    background-color: #fffbeb;
    padding: 24px;
    border: 1px solid #fef3c7;
    color: #451a03;
}

.analysis-header {
    font-weight: bold;
    color: #92400e;
    margin-bottom: 15px;
    border-bottom: 1px solid #fde68a;
    padding-bottom: 8px;
}

.analysis-h1, .analysis-h2, .analysis-h3, .analysis-h4 {
    color: #78350f;
}

.analysis-quote {
    border-left: 4px solid #f59e0b;
    padding: 10px 15px;
    font-style: italic;
    margin: 15px 0;
}

.analysis-rule {
    border: none;
    border-top: 2px dashed #fde68a;
    margin: 25px 0;
}

code {
    background: #fef3c7;
    font-family: monospace;
}

audio {
    width: 100%;
}

.p-audio {
    max-width: 320px;
}"""


def paragraph_audio_id(idx: int) -> str:
    return f"audio_p{idx}"


class EpubWriter:
    """Builds a single-chapter EPUB package in memory"""

    def __init__(self, language: str = "zh", compress_level: int = 6):
        self.language = language
        self.compress_level = compress_level
        self.logger = logging.getLogger(__name__)

    def create_epub(self, request: ExportRequest, output_path: Path) -> Path:
        """Generate the package and write it to output_path"""
        output_path = Path(output_path)
        output_path.write_bytes(self.generate(request))
        self.logger.info(f"EPUB created: {output_path}")
        return output_path

    def generate(self, request: ExportRequest) -> bytes:
        """Return the bytes of a package for one chapter"""
        self.logger.info(f"Building EPUB for '{request.title}' ({len(request.paragraphs)} paragraphs)")
        request = self._drop_out_of_range(request)

        manifest = ManifestBuilder()
        manifest.add(CONTENT_ID, CONTENT_HREF, XHTML_MEDIA_TYPE)
        manifest.add(STYLE_ID, STYLE_HREF, CSS_MEDIA_TYPE)

        audio_files = self._collect_audio(request, manifest)
        chapter_audio_href = f"{CHAPTER_AUDIO_ID}.wav" if request.chapter_audio is not None else None
        paragraph_audio_hrefs = {
            idx: f"{paragraph_audio_id(idx)}.wav" for idx in sorted(request.paragraph_audio)
        }

        assembler = ContentDocumentAssembler(stylesheet_href=STYLE_HREF, language=self.language)
        chapter_xhtml = assembler.assemble(request, chapter_audio_href, paragraph_audio_hrefs)

        content_opf = manifest.render(
            identifier=str(uuid.uuid4()),
            title=request.title,
            language=self.language,
            spine=[CONTENT_ID],
        )

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED, compresslevel=self.compress_level) as zf:
            # mimetype must come first and stay uncompressed
            zf.writestr('mimetype', MIMETYPE, compress_type=zipfile.ZIP_STORED)
            zf.writestr('META-INF/container.xml', CONTAINER_XML)
            zf.writestr(f'{PACKAGE_DIR}/{STYLE_HREF}', STYLESHEET)
            zf.writestr(f'{PACKAGE_DIR}/{CONTENT_HREF}', chapter_xhtml)
            for href, data in audio_files:
                self.logger.debug(f"Adding audio: {href} ({len(data)} bytes)")
                zf.writestr(f'{PACKAGE_DIR}/{href}', data)
            zf.writestr(PACKAGE_PATH, content_opf)

        self.logger.info(f"Packaged {len(audio_files)} audio files")
        return buffer.getvalue()

    def _collect_audio(self, request: ExportRequest, manifest: ManifestBuilder) -> List[Tuple[str, bytes]]:
        """Register every audio asset and return (href, data) pairs in archive order"""
        audio_files = []

        if request.chapter_audio is not None:
            href = f"{CHAPTER_AUDIO_ID}.wav"
            manifest.add_audio(CHAPTER_AUDIO_ID, href)
            audio_files.append((href, bytes(request.chapter_audio)))

        for idx in sorted(request.paragraph_audio):
            item_id = paragraph_audio_id(idx)
            href = f"{item_id}.wav"
            manifest.add_audio(item_id, href)
            audio_files.append((href, bytes(request.paragraph_audio[idx])))

        return audio_files

    def _drop_out_of_range(self, request: ExportRequest) -> ExportRequest:
        """Return a request whose sparse maps only hold valid paragraph indices"""
        count = len(request.paragraphs)
        return ExportRequest(
            title=request.title,
            paragraphs=list(request.paragraphs),
            translations=self._in_range(request.translations, count, "translation"),
            analyses=self._in_range(request.analyses, count, "analysis"),
            chapter_audio=request.chapter_audio,
            paragraph_audio=self._in_range(request.paragraph_audio, count, "paragraph audio"),
        )

    def _in_range(self, mapping: Dict[int, T], count: int, label: str) -> Dict[int, T]:
        kept = {}
        for idx, value in mapping.items():
            if isinstance(idx, int) and 0 <= idx < count:
                kept[idx] = value
            else:
                self.logger.warning(f"Ignoring {label} for paragraph {idx!r}: only {count} paragraphs")
        return kept

    def validate_epub(self, epub_path: Path, epubcheck_jar_path: Optional[Path] = None) -> bool:
        """Validate EPUB using epubcheck if available"""
        jar_path = None

        if epubcheck_jar_path and Path(epubcheck_jar_path).exists():
            jar_path = Path(epubcheck_jar_path)
        else:
            possible_paths = [
                Path.cwd() / "epubcheck.jar",
                Path.cwd() / "test-resources" / "epubcheck-5.1.0" / "epubcheck.jar",
            ]
            for path in possible_paths:
                if path.exists():
                    jar_path = path
                    break

        if not jar_path:
            self.logger.info("epubcheck not found, skipping validation")
            return False

        if not shutil.which("java"):
            self.logger.warning("Java not found, cannot run epubcheck validation")
            return False

        try:
            run_command(["java", "-jar", str(jar_path), str(epub_path)], capture_output=False)
        except Exception as e:
            self.logger.warning(f"EPUB validation failed: {e}")
            return False

        self.logger.info("EPUB validation completed successfully")
        return True
