"""
Package descriptor (content.opf) builder
"""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .models import ManifestEntry

AUDIO_MEDIA_TYPE = "audio/wav"
XHTML_MEDIA_TYPE = "application/xhtml+xml"
CSS_MEDIA_TYPE = "text/css"


class ManifestBuilder:
    """Accumulates manifest entries and renders the package descriptor"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._entries: Dict[str, ManifestEntry] = {}

    @property
    def entries(self) -> List[ManifestEntry]:
        return list(self._entries.values())

    def add(self, item_id: str, path: str, media_type: str) -> ManifestEntry:
        """Register a resource; ids must be unique within the package"""
        if item_id in self._entries:
            raise ValueError(f"Duplicate manifest id: {item_id}")
        entry = ManifestEntry(id=item_id, path=path, media_type=media_type)
        self._entries[item_id] = entry
        self.logger.debug(f"Manifest item {item_id} -> {path} ({media_type})")
        return entry

    def add_audio(self, item_id: str, path: str) -> ManifestEntry:
        return self.add(item_id, path, AUDIO_MEDIA_TYPE)

    def audio_entries(self) -> List[ManifestEntry]:
        return [entry for entry in self._entries.values() if entry.media_type == AUDIO_MEDIA_TYPE]

    def render(self, identifier: str, title: str, language: str, spine: List[str],
               modified: Optional[datetime] = None) -> bytes:
        """Render content.opf with metadata, manifest and spine"""
        missing = [idref for idref in spine if idref not in self._entries]
        if missing:
            raise ValueError(f"Spine references unknown manifest ids: {', '.join(missing)}")

        modified = modified or datetime.now(timezone.utc)

        root = ET.Element('package')
        root.set('xmlns', 'http://www.idpf.org/2007/opf')
        root.set('version', '3.0')
        root.set('unique-identifier', 'pub-id')

        metadata_elem = ET.SubElement(root, 'metadata')
        metadata_elem.set('xmlns:dc', 'http://purl.org/dc/elements/1.1/')

        identifier_elem = ET.SubElement(metadata_elem, 'dc:identifier')
        identifier_elem.set('id', 'pub-id')
        identifier_elem.text = f'urn:uuid:{identifier}'

        title_elem = ET.SubElement(metadata_elem, 'dc:title')
        title_elem.text = title

        language_elem = ET.SubElement(metadata_elem, 'dc:language')
        language_elem.text = language

        modified_elem = ET.SubElement(metadata_elem, 'meta')
        modified_elem.set('property', 'dcterms:modified')
        modified_elem.text = modified.strftime('%Y-%m-%dT%H:%M:%SZ')

        manifest_elem = ET.SubElement(root, 'manifest')
        for entry in self._entries.values():
            item = ET.SubElement(manifest_elem, 'item')
            item.set('id', entry.id)
            item.set('href', entry.path)
            item.set('media-type', entry.media_type)

        spine_elem = ET.SubElement(root, 'spine')
        for idref in spine:
            itemref = ET.SubElement(spine_elem, 'itemref')
            itemref.set('idref', idref)

        ET.indent(root, space="  ", level=0)
        return ET.tostring(root, encoding='utf-8', xml_declaration=True)
