"""
Plain-text chapter splitter
"""

import re
from typing import List

from .models import Chapter

CHAPTER_HEADING = re.compile(r"(第[一二三四五六七八九十百千万0-9]+[章节回].*?|Chapter\s+\d+.*?)(?=\n|$)")


class TextSplitter:
    """Splits a plain-text book on chapter heading lines"""

    def split(self, text: str) -> List[Chapter]:
        matches = list(CHAPTER_HEADING.finditer(text))
        if not matches:
            return [Chapter(id=1, title="Full Content", content=text.strip())]

        chapters = []
        for i, match in enumerate(matches):
            end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
            title = match.group(0).strip()
            content = text[match.end():end].strip()
            chapters.append(Chapter(id=i + 1, title=title, content=content))
        return chapters
