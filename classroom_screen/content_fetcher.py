"""
Slide Image Fetcher
━━━━━━━━━━━━━━━━━━━
Turns the current slide's image reference into a payload the AI service
accepts. Works through three paths:

  blob:   uploaded bytes held by the deck's BlobRegistry
  data:   inline base64 data URIs
  http(s) downloaded with a pooled requests.Session

Every path is re-encoded to JPEG and capped at MAX_IMAGE_DIMENSION on the
long edge so requests stay small.
"""

import base64
import logging
from typing import Optional

import cv2
import numpy as np
import requests

from .ai_client import ImagePayload
from .constants import IMAGE_JPEG_QUALITY, MAX_IMAGE_DIMENSION, TIMEOUTS
from .deck import BlobRegistry

logger = logging.getLogger(__name__)


def reencode_jpeg(data: bytes, max_dimension: int = MAX_IMAGE_DIMENSION,
                  quality: int = IMAGE_JPEG_QUALITY) -> Optional[bytes]:
    """Decode any OpenCV-readable image and return bounded JPEG bytes, or None."""
    if not data:
        return None

    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    if image is None:
        return None

    if image.ndim == 3 and image.shape[2] == 4:
        # JPEG has no alpha; flatten transparent areas onto white
        alpha = image[:, :, 3:4].astype(np.float32) / 255.0
        white = np.full_like(image[:, :, :3], 255, dtype=np.float32)
        image = (image[:, :, :3] * alpha + white * (1.0 - alpha)).astype(np.uint8)

    height, width = image.shape[:2]
    scale = min(1.0, max_dimension / float(max(height, width)))
    if scale < 1.0:
        image = cv2.resize(image, (max(1, int(width * scale)), max(1, int(height * scale))),
                           interpolation=cv2.INTER_AREA)

    ok, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        return None
    return buffer.tobytes()


class ImageFetcher:
    """Resolve slide image refs into JPEG ImagePayloads."""

    def __init__(self, blobs: BlobRegistry, session: Optional[requests.Session] = None,
                 timeout: int = TIMEOUTS["image_download"]):
        self.blobs = blobs
        self.session = session or requests.Session()
        self.timeout = timeout

    def _read(self, ref: str) -> Optional[bytes]:
        if BlobRegistry.is_blob_ref(ref):
            entry = self.blobs.get(ref)
            if entry is None:
                logger.warning("Image %s was revoked before it could be read", ref)
                return None
            return entry[0]

        if ref.startswith("data:"):
            try:
                return base64.b64decode(ref.split(",", 1)[1])
            except (IndexError, ValueError) as e:
                logger.warning("Bad data URI: %s", e)
                return None

        if ref.startswith(("http://", "https://")):
            try:
                response = self.session.get(ref, timeout=self.timeout)
                response.raise_for_status()
                return response.content
            except requests.RequestException as e:
                logger.error("Image download failed for %s: %s", ref, e)
                return None

        logger.warning("Unsupported image reference: %r", ref[:80])
        return None

    def fetch(self, ref: str) -> Optional[ImagePayload]:
        """Return a base64 JPEG payload for ref, or None when it cannot be read."""
        data = self._read(ref or "")
        if data is None:
            return None

        jpeg = reencode_jpeg(data)
        if jpeg is None:
            logger.warning("Could not decode slide image %s", ref[:80])
            return None

        return ImagePayload(data=base64.b64encode(jpeg).decode("ascii"), mime_type="image/jpeg")
