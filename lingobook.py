#!/usr/bin/env python3
"""
Lingobook - bilingual study EPUB generator

Reads chapters from an EPUB or plain-text book and exports a single chapter as
an EPUB 3 package with translations, language analyses and WAV narration.
"""

import argparse
import json
import logging
import re
import sys
from pathlib import Path
from typing import Dict, List

from epubengine.epub_builder import EpubWriter
from epubengine.epub_reader import EpubReader
from epubengine.models import Chapter, ExportRequest
from epubengine.pipeline import ChapterSplitter, merge_wav
from epubengine.text_splitter import TextSplitter
from epubengine.utils import setup_logging, suggested_filename


def load_chapters(input_path: Path) -> List[Chapter]:
    """Load chapters from an .epub or plain-text file"""
    if input_path.suffix.lower() == ".epub":
        return EpubReader().parse_file(input_path)
    splitter: ChapterSplitter = TextSplitter()
    return splitter.split(input_path.read_text(encoding="utf-8"))


def load_sparse_map(path: Path) -> Dict[int, str]:
    """Read a JSON list (index-aligned) or an object keyed by paragraph index"""
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(payload, list):
        return {idx: text for idx, text in enumerate(payload) if text}
    if isinstance(payload, dict):
        return {int(key): text for key, text in payload.items() if text}
    raise ValueError(f"Expected a JSON list or object in {path}")


def load_paragraph_audio(audio_dir: Path) -> Dict[int, bytes]:
    """Collect WAV files keyed by the trailing number of their file name"""
    audio = {}
    for wav_path in sorted(Path(audio_dir).glob("*.wav")):
        match = re.search(r"(\d+)$", wav_path.stem)
        if not match:
            logging.getLogger(__name__).warning(f"Skipping audio without paragraph index: {wav_path.name}")
            continue
        audio[int(match.group(1))] = wav_path.read_bytes()
    return audio


def list_chapters(args) -> None:
    chapters = load_chapters(Path(args.input))
    if args.json:
        print(json.dumps(
            [{"id": c.id, "title": c.title, "content": c.content} for c in chapters],
            ensure_ascii=False, indent=2,
        ))
        return
    for chapter in chapters:
        print(f"{chapter.id:3d}  {chapter.title}  ({len(chapter.content)} chars)")


def export_chapter(args) -> None:
    logger = logging.getLogger(__name__)

    chapters = load_chapters(Path(args.input))
    if not chapters:
        raise ValueError(f"No chapters found in {args.input}")

    matching = [c for c in chapters if c.id == args.chapter]
    if not matching:
        raise ValueError(f"Chapter {args.chapter} not found (book has {len(chapters)} chapters)")
    chapter = matching[0]
    logger.info(f"Exporting chapter {chapter.id}: {chapter.title}")

    request = ExportRequest(title=chapter.title, paragraphs=chapter.paragraphs())
    if args.translations:
        request.translations = load_sparse_map(Path(args.translations))
    if args.analyses:
        request.analyses = load_sparse_map(Path(args.analyses))
    if args.chapter_audio:
        request.chapter_audio = Path(args.chapter_audio).read_bytes()
    if args.paragraph_audio_dir:
        request.paragraph_audio = load_paragraph_audio(Path(args.paragraph_audio_dir))
        clips = [request.paragraph_audio[idx] for idx in sorted(request.paragraph_audio)
                 if 0 <= idx < len(request.paragraphs)]
        if request.chapter_audio is None and clips:
            logger.info(f"Merging {len(clips)} paragraph clips into chapter audio")
            request.chapter_audio = merge_wav(clips)

    output_path = Path(args.output) if args.output else Path(suggested_filename(chapter.title))
    writer = EpubWriter(language=args.language)
    epub_path = writer.create_epub(request, output_path)

    if args.epubcheck_jar:
        logger.info("Validating EPUB...")
        writer.validate_epub(epub_path, Path(args.epubcheck_jar))
    else:
        logger.info("Skipping EPUB validation (use --epubcheck-jar to enable)")


def main():
    parser = argparse.ArgumentParser(description="Lingobook - bilingual study EPUB generator")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--debug", action="store_true", help="Maximum debug output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    chapters_parser = subparsers.add_parser("chapters", help="List the chapters of an EPUB or text file")
    chapters_parser.add_argument("input", help="Path to .epub or .txt file")
    chapters_parser.add_argument("--json", action="store_true", help="Print chapters as JSON")
    chapters_parser.set_defaults(handler=list_chapters)

    export_parser = subparsers.add_parser("export", help="Export one chapter as a study EPUB")
    export_parser.add_argument("input", help="Path to .epub or .txt file")
    export_parser.add_argument("-o", "--output", help="Output EPUB filename (default: '<title>.epub')")
    export_parser.add_argument("--chapter", type=int, default=1, help="Chapter id to export")
    export_parser.add_argument("--translations", help="JSON file with paragraph translations")
    export_parser.add_argument("--analyses", help="JSON file with paragraph analyses (markdown)")
    export_parser.add_argument("--chapter-audio", help="WAV narration for the whole chapter")
    export_parser.add_argument("--paragraph-audio-dir", help="Directory of per-paragraph WAV files")
    export_parser.add_argument("--language", default="zh", help="Language tag for the package")
    export_parser.add_argument("--epubcheck-jar", help="Path to epubcheck.jar for EPUB validation (optional)")
    export_parser.set_defaults(handler=export_chapter)

    args = parser.parse_args()

    setup_logging(verbose=args.verbose or args.debug, debug=args.debug)
    logger = logging.getLogger(__name__)

    try:
        args.handler(args)
    except Exception as e:
        logger.error(f"Error: {e}")
        if args.verbose or args.debug:
            logger.exception("Full traceback:")
        sys.exit(1)


if __name__ == "__main__":
    main()
