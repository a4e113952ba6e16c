"""
Line-scoped markdown subset renderer for analysis text.

Only a fixed subset is understood: headings (# to ####), blockquotes,
horizontal rules and inline code/bold/italic. Each line becomes exactly one
fragment.
"""

import re
from dataclasses import dataclass
from typing import List
from xml.sax.saxutils import escape

RULE_PATTERN = re.compile(r"^[-*]{3,}$")
HEADING_PATTERN = re.compile(r"^(#{1,4})\s+(.*)$")
CODE_PATTERN = re.compile(r"`(.*?)`")
BOLD_PATTERN = re.compile(r"\*\*([^<>]*?)\*\*")
ITALIC_PATTERN = re.compile(r"\*([^<>]*?)\*")

BREAK = "break"
RULE = "rule"
HEADING = "heading"
BLOCKQUOTE = "blockquote"
PARAGRAPH = "paragraph"


@dataclass(frozen=True)
class Fragment:
    """One rendered line: kind, heading level and inline XHTML content"""

    kind: str
    content: str = ""
    level: int = 0

    def to_xhtml(self) -> str:
        if self.kind == BREAK:
            return '<br/>'
        if self.kind == RULE:
            return '<hr class="analysis-rule"/>'
        if self.kind == HEADING:
            return f'<h{self.level} class="analysis-h{self.level}">{self.content}</h{self.level}>'
        if self.kind == BLOCKQUOTE:
            return f'<blockquote class="analysis-quote">{self.content}</blockquote>'
        return f'<p class="analysis-p">{self.content}</p>'


def render_inline(text: str) -> str:
    """Escape text, then replace code, bold and italic spans in that order.

    Bold and italic spans never reach across a tag inserted by an earlier
    pass, so the markup always nests.
    """
    html = escape(text)
    html = CODE_PATTERN.sub(r"<code>\1</code>", html)
    html = BOLD_PATTERN.sub(r"<strong>\1</strong>", html)
    html = ITALIC_PATTERN.sub(r"<em>\1</em>", html)
    return html


class MarkdownFragmentRenderer:
    """Converts the markdown subset into a list of fragments"""

    def render(self, text: str) -> List[Fragment]:
        if not text:
            return []
        return [self._render_line(line.strip()) for line in text.split("\n")]

    def render_xhtml(self, text: str) -> str:
        return "\n".join(fragment.to_xhtml() for fragment in self.render(text))

    def _render_line(self, line: str) -> Fragment:
        if not line:
            return Fragment(BREAK)
        if RULE_PATTERN.match(line):
            return Fragment(RULE)

        heading = HEADING_PATTERN.match(line)
        if heading:
            return Fragment(HEADING, render_inline(heading.group(2)), level=len(heading.group(1)))

        if line.startswith(">"):
            return Fragment(BLOCKQUOTE, render_inline(re.sub(r"^>\s?", "", line)))

        return Fragment(PARAGRAPH, render_inline(line))
