"""
Tests for turning slide image refs into AI image payloads.
"""

import base64
from unittest.mock import Mock

import cv2
import numpy as np
import requests

from classroom_screen.constants import MAX_IMAGE_DIMENSION
from classroom_screen.content_fetcher import ImageFetcher, reencode_jpeg
from classroom_screen.deck import BlobRegistry


def png_bytes(width=40, height=20, channels=3, value=128) -> bytes:
    image = np.full((height, width, channels), value, dtype=np.uint8)
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


def decode_payload(payload) -> np.ndarray:
    return cv2.imdecode(np.frombuffer(payload.raw_bytes(), dtype=np.uint8), cv2.IMREAD_UNCHANGED)


class TestReencode:

    def test_large_image_is_downscaled(self):
        jpeg = reencode_jpeg(png_bytes(width=2048, height=1024))
        image = cv2.imdecode(np.frombuffer(jpeg, dtype=np.uint8), cv2.IMREAD_UNCHANGED)

        assert jpeg[:2] == b"\xff\xd8"
        assert max(image.shape[:2]) == MAX_IMAGE_DIMENSION
        assert image.shape[:2] == (512, 1024)

    def test_transparent_pixels_become_white(self):
        rgba = np.zeros((10, 10, 4), dtype=np.uint8)
        ok, buffer = cv2.imencode(".png", rgba)
        jpeg = reencode_jpeg(buffer.tobytes())
        image = cv2.imdecode(np.frombuffer(jpeg, dtype=np.uint8), cv2.IMREAD_COLOR)

        assert image.ndim == 3
        assert image.mean() > 245

    def test_undecodable_bytes(self):
        assert reencode_jpeg(b"") is None
        assert reencode_jpeg(b"definitely not an image") is None


class TestImageFetcher:

    def setup_method(self):
        self.blobs = BlobRegistry()
        self.session = Mock()
        self.fetcher = ImageFetcher(self.blobs, session=self.session)

    def test_blob_ref(self):
        ref = self.blobs.register(png_bytes(), "image/png")
        payload = self.fetcher.fetch(ref)

        assert payload.mime_type == "image/jpeg"
        assert payload.format == "jpeg"
        assert decode_payload(payload).shape[:2] == (20, 40)
        self.session.get.assert_not_called()

    def test_revoked_blob(self):
        ref = self.blobs.register(png_bytes(), "image/png")
        self.blobs.revoke(ref)
        assert self.fetcher.fetch(ref) is None

    def test_data_uri(self):
        uri = "data:image/png;base64," + base64.b64encode(png_bytes()).decode("ascii")
        assert self.fetcher.fetch(uri) is not None

    def test_http_download(self):
        response = Mock()
        response.content = png_bytes()
        self.session.get.return_value = response

        payload = self.fetcher.fetch("https://example.org/slide.png")

        assert payload is not None
        self.session.get.assert_called_once_with("https://example.org/slide.png",
                                                 timeout=self.fetcher.timeout)
        response.raise_for_status.assert_called_once()

    def test_http_failure(self):
        self.session.get.side_effect = requests.ConnectionError("offline")
        assert self.fetcher.fetch("https://example.org/slide.png") is None

    def test_http_error_status(self):
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError("404")
        self.session.get.return_value = response
        assert self.fetcher.fetch("http://example.org/missing.png") is None

    def test_unsupported_and_empty_refs(self):
        assert self.fetcher.fetch("ftp://example.org/slide.png") is None
        assert self.fetcher.fetch("") is None
        assert self.fetcher.fetch(None) is None
