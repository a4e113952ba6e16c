"""
Data types shared by the read and write paths
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Chapter:
    """One chapter recovered from a book"""

    id: int
    title: str
    content: str

    def paragraphs(self) -> List[str]:
        """Split content into non-blank paragraphs"""
        return [p for p in re.split(r"\n+", self.content) if p.strip()]


@dataclass(frozen=True)
class ManifestEntry:
    """A resource declared in the package descriptor"""

    id: str
    path: str
    media_type: str


@dataclass
class ExportRequest:
    """Everything needed to write a single-chapter package.

    translations, analyses and paragraph_audio are sparse and keyed by
    paragraph index.
    """

    title: str
    paragraphs: List[str]
    translations: Dict[int, str] = field(default_factory=dict)
    analyses: Dict[int, str] = field(default_factory=dict)
    chapter_audio: Optional[bytes] = None
    paragraph_audio: Dict[int, bytes] = field(default_factory=dict)
