"""
Slide Deck Model
Ordered pages, each with one content reference and its own annotation
snapshot. The deck never has zero pages and current_index is always valid.
"""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from .models import LessonLink, new_id

logger = logging.getLogger(__name__)


class ContentKind(Enum):
    EMPTY = "empty"
    EMBEDDED_FRAME = "embedded_frame"
    IMAGE = "image"
    DOCUMENT = "document"


@dataclass
class Page:
    id: str = field(default_factory=new_id)
    content_kind: ContentKind = ContentKind.EMPTY
    content_ref: str = ""
    annotation_snapshot: Optional[str] = None
    revision: int = 0  # bumped on every annotation commit

    @property
    def is_empty(self) -> bool:
        return self.content_kind is ContentKind.EMPTY


class BlobRegistry:
    """In-memory store for uploaded bytes, addressed by `blob:` refs."""

    PREFIX = "blob:"

    def __init__(self):
        self._blobs: Dict[str, Tuple[bytes, str]] = {}

    def register(self, data: bytes, mime_type: str) -> str:
        ref = f"{self.PREFIX}{uuid.uuid4().hex}"
        self._blobs[ref] = (bytes(data), mime_type)
        return ref

    def get(self, ref: str) -> Optional[Tuple[bytes, str]]:
        return self._blobs.get(ref)

    def revoke(self, ref: str):
        if self._blobs.pop(ref, None) is not None:
            logger.debug("Revoked %s", ref)

    @classmethod
    def is_blob_ref(cls, ref: str) -> bool:
        return bool(ref) and ref.startswith(cls.PREFIX)

    def __contains__(self, ref: str) -> bool:
        return ref in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)


def to_embed_url(url: str) -> str:
    """Turn YouTube watch/short/share links into embeddable URLs; others pass through."""
    url = url.strip()
    parsed = urlparse(url)
    host = parsed.netloc.lower().removeprefix("www.").removeprefix("m.")

    video_id = None
    if host == "youtu.be":
        video_id = parsed.path.lstrip("/").split("/")[0]
    elif host == "youtube.com":
        if parsed.path == "/watch":
            video_id = parse_qs(parsed.query).get("v", [None])[0]
        elif parsed.path.startswith("/shorts/"):
            video_id = parsed.path.split("/")[2]

    if video_id:
        return f"https://www.youtube.com/embed/{video_id}"
    return url


class SlideDeck:
    """Pages plus the current index; owns the blob refs its pages point at."""

    def __init__(self, blobs: Optional[BlobRegistry] = None):
        self.blobs = blobs or BlobRegistry()
        self.pages: List[Page] = [Page()]
        self.current_index = 0

    def __len__(self) -> int:
        return len(self.pages)

    @property
    def current_page(self) -> Page:
        return self.pages[self.current_index]

    def _release(self, page: Page):
        if BlobRegistry.is_blob_ref(page.content_ref):
            self.blobs.revoke(page.content_ref)

    # ── Structure ────────────────────────────────────────────────────────────

    def add_page(self) -> Page:
        page = Page()
        self.pages.append(page)
        self.current_index = len(self.pages) - 1
        return page

    def delete_page(self, index: int) -> bool:
        """Remove a page; the last remaining page is cleared in place instead."""
        if not 0 <= index < len(self.pages):
            return False

        page = self.pages[index]
        self._release(page)

        if len(self.pages) == 1:
            page.content_kind = ContentKind.EMPTY
            page.content_ref = ""
            page.annotation_snapshot = None
            page.revision += 1
            return True

        del self.pages[index]
        self.current_index = min(self.current_index, len(self.pages) - 1)
        return True

    # ── Navigation ───────────────────────────────────────────────────────────

    def go_to(self, index: int) -> int:
        self.current_index = max(0, min(index, len(self.pages) - 1))
        return self.current_index

    def next_page(self) -> int:
        return self.go_to(self.current_index + 1)

    def previous_page(self) -> int:
        return self.go_to(self.current_index - 1)

    # ── Content ──────────────────────────────────────────────────────────────

    def set_current_content(self, kind: ContentKind, ref: str):
        """Replace the current page's content; its annotation is untouched."""
        page = self.current_page
        if page.content_ref != ref:
            self._release(page)
        page.content_kind = kind
        page.content_ref = ref if kind is not ContentKind.EMPTY else ""

    def clear_current_content(self):
        self.set_current_content(ContentKind.EMPTY, "")

    def set_current_image(self, data: bytes, mime_type: str = "image/png") -> str:
        ref = self.blobs.register(data, mime_type)
        self.set_current_content(ContentKind.IMAGE, ref)
        return ref

    def set_current_document(self, data: bytes, mime_type: str = "application/pdf") -> str:
        ref = self.blobs.register(data, mime_type)
        self.set_current_content(ContentKind.DOCUMENT, ref)
        return ref

    def set_current_embed(self, url: str) -> str:
        embed = to_embed_url(url)
        self.set_current_content(ContentKind.EMBEDDED_FRAME, embed)
        return embed

    def add_page_from_link(self, link: LessonLink) -> Page:
        """Append a page showing a saved lesson link and make it current."""
        page = self.add_page()
        self.set_current_embed(link.url)
        return page
