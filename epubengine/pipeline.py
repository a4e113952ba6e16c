"""
Export pipeline: turns a chapter plus optional AI collaborators into an ExportRequest.

The collaborators (speech synthesis, translation, analysis) live outside this
package; only their call shapes are fixed here.
"""

import io
import logging
from typing import Dict, List, Optional, Protocol

from pydub import AudioSegment

from .models import Chapter, ExportRequest

logger = logging.getLogger(__name__)


class SpeechSynthesizer(Protocol):
    def synthesize(self, text: str) -> bytes:
        """Return WAV bytes for text"""
        ...


class Translator(Protocol):
    def translate(self, paragraphs: List[str]) -> List[str]:
        """Return one translation per paragraph, index-aligned"""
        ...


class Analyzer(Protocol):
    def analyze(self, text: str) -> str:
        """Return a markdown-subset analysis of text"""
        ...


class ChapterSplitter(Protocol):
    def split(self, text: str) -> List[Chapter]:
        ...


def merge_wav(chunks: List[bytes]) -> bytes:
    """Concatenate WAV clips in order into one WAV.

    Clips with differing rates, widths or channel counts are converted to the
    richest format among them before joining.
    """
    if not chunks:
        raise ValueError("No audio to merge")

    combined = AudioSegment.from_wav(io.BytesIO(chunks[0]))
    for chunk in chunks[1:]:
        combined += AudioSegment.from_wav(io.BytesIO(chunk))

    buffer = io.BytesIO()
    combined.export(buffer, format="wav")
    logger.debug(f"Merged {len(chunks)} clips into {len(combined)} ms of audio")
    return buffer.getvalue()


def build_export_request(chapter: Chapter,
                         translator: Optional[Translator] = None,
                         analyzer: Optional[Analyzer] = None,
                         synthesizer: Optional[SpeechSynthesizer] = None,
                         merge_chapter_audio: bool = True) -> ExportRequest:
    """Run the available collaborators over a chapter's paragraphs.

    A failing collaborator call leaves that paragraph without the enrichment;
    the export keeps whatever succeeded.
    """
    paragraphs = chapter.paragraphs()
    logger.info(f"Preparing export for '{chapter.title}' ({len(paragraphs)} paragraphs)")

    translations: Dict[int, str] = {}
    if translator is not None and paragraphs:
        try:
            results = translator.translate(paragraphs)
        except Exception as e:
            logger.error(f"Translation failed: {e}")
        else:
            if len(results) != len(paragraphs):
                logger.warning(f"Translator returned {len(results)} results for {len(paragraphs)} paragraphs")
            translations = {idx: text for idx, text in enumerate(results[:len(paragraphs)]) if text}

    analyses: Dict[int, str] = {}
    if analyzer is not None:
        for idx, paragraph in enumerate(paragraphs):
            try:
                analysis = analyzer.analyze(paragraph)
            except Exception as e:
                logger.warning(f"Analysis failed for paragraph {idx}: {e}")
                continue
            if analysis:
                analyses[idx] = analysis

    paragraph_audio: Dict[int, bytes] = {}
    if synthesizer is not None:
        for idx, paragraph in enumerate(paragraphs):
            try:
                paragraph_audio[idx] = synthesizer.synthesize(paragraph)
            except Exception as e:
                logger.warning(f"Speech synthesis failed for paragraph {idx}: {e}")
            else:
                logger.debug(f"Synthesized paragraph {idx + 1}/{len(paragraphs)}")

    chapter_audio = None
    if merge_chapter_audio and paragraph_audio:
        chapter_audio = merge_wav([paragraph_audio[idx] for idx in sorted(paragraph_audio)])

    return ExportRequest(
        title=chapter.title,
        paragraphs=paragraphs,
        translations=translations,
        analyses=analyses,
        chapter_audio=chapter_audio,
        paragraph_audio=paragraph_audio,
    )
