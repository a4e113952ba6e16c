"""
Content document assembly for the single exported chapter
"""

from typing import Dict, List, Optional
from xml.sax.saxutils import escape, quoteattr

from .markdown_fragments import MarkdownFragmentRenderer
from .models import ExportRequest


class ContentDocumentAssembler:
    """Renders chapter.xhtml with original text, translations, analyses and audio"""

    def __init__(self, stylesheet_href: str = "style.css", language: str = "zh",
                 chapter_audio_label: str = "Chapter narration",
                 analysis_label: str = "Language analysis"):
        self.stylesheet_href = stylesheet_href
        self.language = language
        self.chapter_audio_label = chapter_audio_label
        self.analysis_label = analysis_label
        self.markdown = MarkdownFragmentRenderer()

    def assemble(self, request: ExportRequest, chapter_audio_href: Optional[str] = None,
                 paragraph_audio_hrefs: Optional[Dict[int, str]] = None) -> str:
        """Build the XHTML document.

        Only paragraph indices present in the sparse maps get translation,
        analysis or audio blocks; audio hrefs are chosen by the caller.
        """
        paragraph_audio_hrefs = paragraph_audio_hrefs or {}
        title = escape(request.title)
        lang = quoteattr(self.language)

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops" lang={lang} xml:lang={lang}>',
            '<head>',
            f'    <title>{title}</title>',
            f'    <link rel="stylesheet" type="text/css" href={quoteattr(self.stylesheet_href)}/>',
            '</head>',
            '<body>',
            f'    <h1 class="chapter-title">{title}</h1>',
        ]

        if chapter_audio_href:
            lines.extend([
                '    <div class="chapter-audio-container">',
                f'        <div class="audio-label">{escape(self.chapter_audio_label)}</div>',
            ])
            lines.extend(self._audio_element(chapter_audio_href, indent=8))
            lines.append('    </div>')

        for idx, paragraph in enumerate(request.paragraphs):
            lines.extend(self._paragraph_block(
                paragraph,
                audio_href=paragraph_audio_hrefs.get(idx),
                translation=request.translations.get(idx),
                analysis=request.analyses.get(idx),
            ))

        lines.extend([
            '</body>',
            '</html>',
        ])
        return '\n'.join(lines)

    def _paragraph_block(self, paragraph: str, audio_href: Optional[str],
                         translation: Optional[str], analysis: Optional[str]) -> List[str]:
        lines = [
            '    <div class="paragraph-wrapper">',
            f'        <p class="original-text">{escape(paragraph)}</p>',
        ]

        if audio_href:
            lines.append('        <div class="paragraph-audio-container">')
            lines.extend(self._audio_element(audio_href, indent=12, css_class="p-audio"))
            lines.append('        </div>')

        if translation:
            lines.append(f'        <div class="translation-container">{escape(translation)}</div>')

        if analysis:
            lines.extend([
                '        <div class="analysis-container">',
                f'            <div class="analysis-header">{escape(self.analysis_label)}</div>',
                '            <div class="analysis-content">',
                self.markdown.render_xhtml(analysis),
                '            </div>',
                '        </div>',
            ])

        lines.append('    </div>')
        return lines

    def _audio_element(self, href: str, indent: int, css_class: Optional[str] = None) -> List[str]:
        pad = ' ' * indent
        class_attr = f' class="{css_class}"' if css_class else ''
        return [
            f'{pad}<audio controls="controls"{class_attr}>',
            f'{pad}    <source src={quoteattr(href)} type="audio/wav"/>',
            f'{pad}</audio>',
        ]
