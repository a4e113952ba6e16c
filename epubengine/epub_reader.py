"""
EPUB reader: recovers an ordered chapter list from raw package bytes
"""

import io
import logging
import posixpath
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple
from urllib.parse import unquote

from bs4 import BeautifulSoup

from .models import Chapter

CONTAINER_PATH = "META-INF/container.xml"
HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]


class FormatError(ValueError):
    """The archive or one of its descriptors is missing or malformed"""


@dataclass
class PackageDocument:
    """Manifest and reading order of a package descriptor"""

    manifest: Dict[str, str]
    spine: List[str]
    base_dir: str = ""

    def resolve(self, idref: str) -> Optional[str]:
        """Archive path of a manifest item, relative to the archive root"""
        href = self.manifest.get(idref)
        if href is None:
            return None
        href = unquote(href.split("#", 1)[0])
        path = posixpath.join(self.base_dir, href) if self.base_dir else href
        return posixpath.normpath(path)


class ContainerResolver:
    """Locates the package descriptor inside a container archive"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def resolve(self, archive: zipfile.ZipFile) -> str:
        """Return the rootfile full-path declared by META-INF/container.xml"""
        try:
            container_xml = archive.read(CONTAINER_PATH)
        except KeyError:
            raise FormatError("missing container descriptor") from None

        soup = BeautifulSoup(container_xml, "xml")
        rootfile = soup.find("rootfile")
        full_path = rootfile.get("full-path") if rootfile is not None else None
        if not full_path:
            raise FormatError("missing rootfile pointer")

        self.logger.debug(f"Package descriptor at {full_path}")
        return full_path


class PackageDocumentParser:
    """Parses a package descriptor into a manifest and a reading order"""

    def parse(self, opf_xml: bytes, package_path: str) -> PackageDocument:
        soup = BeautifulSoup(opf_xml, "xml")

        manifest = {}
        for item in soup.find_all("item"):
            item_id = item.get("id")
            href = item.get("href")
            if item_id and href:
                manifest[item_id] = href

        spine = [ref.get("idref") for ref in soup.find_all("itemref") if ref.get("idref")]

        return PackageDocument(
            manifest=manifest,
            spine=spine,
            base_dir=posixpath.dirname(package_path),
        )


class ChapterExtractor:
    """Turns one chapter document into a title and cleaned paragraph text.

    Documents are parsed with the lenient lxml HTML parser so that real-world
    markup with structural defects still yields text.
    """

    def extract(self, markup: bytes, position: int) -> Tuple[str, str]:
        """Return (title, content) for the document at 1-based reading position"""
        soup = BeautifulSoup(markup, "lxml")
        return self._extract_title(soup, position), self._extract_content(soup)

    def _extract_title(self, soup: BeautifulSoup, position: int) -> str:
        for candidate in (soup.find("title"), soup.find(["h1", "h2", "h3"])):
            text = candidate.get_text().strip() if candidate is not None else ""
            if text:
                return text

        return f"Chapter {position}"

    def _extract_content(self, soup: BeautifulSoup) -> str:
        root = soup.body or soup

        blocks = []
        for element in root.find_all(["p"] + HEADING_TAGS):
            text = element.get_text().strip()
            if text:
                blocks.append(text)

        if blocks:
            return "\n\n".join(blocks)

        # No paragraph markup at all, use the raw body text
        return re.sub(r"\n\s*\n", "\n\n", root.get_text()).strip()


class EpubReader:
    """Reads EPUB bytes into an ordered, filtered chapter list"""

    def __init__(self, min_content_length: int = 10):
        self.min_content_length = min_content_length
        self.logger = logging.getLogger(__name__)
        self.container_resolver = ContainerResolver()
        self.package_parser = PackageDocumentParser()
        self.chapter_extractor = ChapterExtractor()

    def parse_file(self, epub_path: Path) -> List[Chapter]:
        """Read an EPUB file from disk and parse it"""
        epub_path = Path(epub_path)
        self.logger.info(f"Reading EPUB: {epub_path}")
        return self.parse(epub_path.read_bytes())

    def parse(self, data: bytes) -> List[Chapter]:
        """Parse raw archive bytes into chapters"""
        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile:
            raise FormatError("not a valid container") from None

        with archive:
            package_path = self.container_resolver.resolve(archive)
            try:
                opf_xml = archive.read(package_path)
            except KeyError:
                raise FormatError("missing package descriptor") from None

            package = self.package_parser.parse(opf_xml, package_path)
            self.logger.debug(
                f"Manifest has {len(package.manifest)} items, reading order has {len(package.spine)}"
            )

            extracted = self._extract_spine(archive, package)

        chapters = [
            Chapter(id=number, title=title, content=content)
            for number, (title, content) in enumerate(extracted, start=1)
        ]
        self.logger.info(f"Parsed {len(chapters)} chapters")
        return chapters

    def _extract_spine(self, archive: zipfile.ZipFile, package: PackageDocument) -> List[Tuple[str, str]]:
        """Extract (title, content) for every usable reading-order entry"""
        names: Set[str] = set(archive.namelist())
        extracted = []

        for position, idref in enumerate(package.spine, start=1):
            path = package.resolve(idref)
            if path is None:
                self.logger.debug(f"Skipping reading-order entry without manifest item: {idref}")
                continue
            if path not in names:
                self.logger.debug(f"Skipping reading-order entry missing from archive: {path}")
                continue

            title, content = self.chapter_extractor.extract(archive.read(path), position)
            content = content.strip()
            if len(content) <= self.min_content_length:
                self.logger.debug(f"Dropping short chapter {position} ({title}): {len(content)} chars")
                continue

            extracted.append((title, content))

        return extracted
