"""
Annotation Surface
Per-page freehand ink layer. The raster is a BGRA numpy array drawn with
OpenCV; a page's ink is persisted as a PNG data URI in
Page.annotation_snapshot, written once per finished stroke.

Raster I/O happens in exactly two places: commit() (save) and the deferred
decode queued by load_for_page() (load). A generation counter makes a decode
for a page the teacher has already left a no-op.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import cv2
import numpy as np

from .constants import (
    DEFAULT_CANVAS_HEIGHT,
    DEFAULT_CANVAS_WIDTH,
    DEFAULT_PEN_COLOR,
    DEFAULT_PEN_WIDTH,
    ERASER_WIDTH,
)
from .deck import Page
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
PNG_PREFIX = "data:image/png;base64,"


@dataclass(frozen=True)
class PenSettings:
    color: str = DEFAULT_PEN_COLOR
    stroke_width: int = DEFAULT_PEN_WIDTH
    is_eraser: bool = False

    @property
    def effective_width(self) -> int:
        return ERASER_WIDTH if self.is_eraser else self.stroke_width


def hex_to_bgra(color: str) -> Tuple[int, int, int, int]:
    value = color.lstrip("#")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    return (b, g, r, 255)


def encode_snapshot(raster: np.ndarray) -> Optional[str]:
    ok, buffer = cv2.imencode(".png", raster)
    if not ok:
        return None
    return PNG_PREFIX + base64.b64encode(buffer.tobytes()).decode("ascii")


def decode_snapshot(snapshot: Optional[str]) -> Optional[np.ndarray]:
    """Decode a PNG data URI into a BGRA raster; None for anything unusable."""
    if not snapshot:
        return None
    try:
        payload = snapshot.partition(",")[2] if snapshot.startswith("data:") else snapshot
        data = base64.b64decode(payload)
        if not data:
            logger.warning("Discarding empty annotation snapshot")
            return None
        image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    except (ValueError, cv2.error) as e:
        logger.warning("Discarding unreadable annotation snapshot: %s", e)
        return None

    if image is None:
        logger.warning("Discarding unreadable annotation snapshot")
        return None
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGRA)
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
    return image


def _px(point: Point) -> Tuple[int, int]:
    return int(round(point[0])), int(round(point[1]))


class AnnotationSurface:
    """Owns the ink raster for whichever page is currently bound."""

    def __init__(self, scheduler: Scheduler, width: int = DEFAULT_CANVAS_WIDTH,
                 height: int = DEFAULT_CANVAS_HEIGHT,
                 on_commit: Optional[Callable[[Page, Optional[str]], None]] = None):
        self.scheduler = scheduler
        self.on_commit = on_commit
        self.raster = np.zeros((height, width, 4), dtype=np.uint8)
        self.page: Optional[Page] = None

        self._pen: Optional[PenSettings] = None
        self._last_point: Optional[Point] = None
        self._generation = 0
        self._pending_load = None

    @property
    def width(self) -> int:
        return self.raster.shape[1]

    @property
    def height(self) -> int:
        return self.raster.shape[0]

    @property
    def stroke_active(self) -> bool:
        return self._pen is not None

    @property
    def loading(self) -> bool:
        return self._pending_load is not None and self._pending_load.active

    # ── Strokes ──────────────────────────────────────────────────────────────

    def _draw(self, start: Point, end: Point):
        pen = self._pen
        if pen.is_eraser:
            # Writing (0, 0, 0, 0) removes ink instead of painting over it
            cv2.line(self.raster, _px(start), _px(end), (0, 0, 0, 0),
                     pen.effective_width, lineType=cv2.LINE_8)
        else:
            cv2.line(self.raster, _px(start), _px(end), hex_to_bgra(pen.color),
                     pen.effective_width, lineType=cv2.LINE_AA)

    def begin_stroke(self, point: Point, pen: PenSettings):
        if self.stroke_active:
            self.end_stroke()
        self._pen = pen
        self._last_point = point
        self._draw(point, point)

    def extend_stroke(self, point: Point) -> bool:
        if not self.stroke_active:
            return False
        self._draw(self._last_point, point)
        self._last_point = point
        return True

    def end_stroke(self) -> bool:
        """Finish the stroke and commit the raster; the only per-stroke commit."""
        if not self.stroke_active:
            return False
        self._pen = None
        self._last_point = None
        self.commit()
        return True

    def handle_pointer(self, kind: str, point: Optional[Point] = None,
                       pen: Optional[PenSettings] = None) -> bool:
        """Pointer contract: down / move / up / leave (mouse or touch)."""
        if kind == "down" and point is not None:
            self.begin_stroke(point, pen or PenSettings())
            return True
        if kind == "move" and point is not None:
            return self.extend_stroke(point)
        if kind in ("up", "leave"):
            return self.end_stroke()
        return False

    # ── Commit / clear ───────────────────────────────────────────────────────

    def commit(self):
        snapshot = None if self.is_blank() else encode_snapshot(self.raster)
        if self.page is not None:
            self.page.annotation_snapshot = snapshot
            self.page.revision += 1
        if self.on_commit is not None:
            self.on_commit(self.page, snapshot)

    def clear(self):
        self._pen = None
        self._last_point = None
        self.raster[:] = 0
        self.commit()

    # ── Page binding ─────────────────────────────────────────────────────────

    def load_for_page(self, page: Page):
        """Bind to page: blank now, draw its snapshot back on the next scheduler turn."""
        if self.stroke_active:
            self.end_stroke()

        self.page = page
        self._generation += 1
        self.raster[:] = 0

        if self._pending_load is not None:
            self._pending_load.cancel()
            self._pending_load = None

        if page.annotation_snapshot:
            self._pending_load = self.scheduler.call_soon(
                self._apply_snapshot, self._generation, page.annotation_snapshot
            )

    def _apply_snapshot(self, generation: int, snapshot: str):
        if generation != self._generation:
            logger.debug("Dropping stale annotation load (generation %d)", generation)
            return
        self._pending_load = None

        image = decode_snapshot(snapshot)
        if image is None:
            return
        if image.shape[:2] != self.raster.shape[:2]:
            image = cv2.resize(image, (self.width, self.height), interpolation=cv2.INTER_LINEAR)

        # Ink drawn while the decode was pending stays on top
        fresh = self.raster[:, :, 3] > 0
        image[fresh] = self.raster[fresh]
        self.raster = image
        if fresh.any() and not self.stroke_active:
            self.commit()

    # ── Geometry ─────────────────────────────────────────────────────────────

    def resize(self, width: int, height: int) -> bool:
        """Stretch the current ink into the new size; content is never dropped."""
        if width <= 0 or height <= 0:
            return False
        if (width, height) == (self.width, self.height):
            return False

        if self._last_point is not None:
            sx, sy = width / self.width, height / self.height
            self._last_point = (self._last_point[0] * sx, self._last_point[1] * sy)

        self.raster = cv2.resize(self.raster, (width, height), interpolation=cv2.INTER_LINEAR)
        return True

    # ── Read helpers ─────────────────────────────────────────────────────────

    def is_blank(self) -> bool:
        return not self.raster[:, :, 3].any()

    def snapshot(self) -> Optional[str]:
        return None if self.is_blank() else encode_snapshot(self.raster)

    def to_rgba(self) -> np.ndarray:
        return cv2.cvtColor(self.raster, cv2.COLOR_BGRA2RGBA)

    def composite_over(self, background: np.ndarray) -> np.ndarray:
        """Alpha-blend the ink over an RGB background (resized to the surface)."""
        if background.shape[:2] != self.raster.shape[:2]:
            background = cv2.resize(background, (self.width, self.height),
                                    interpolation=cv2.INTER_AREA)
        ink = self.to_rgba().astype(np.float32)
        alpha = ink[:, :, 3:4] / 255.0
        blended = ink[:, :, :3] * alpha + background[:, :, :3].astype(np.float32) * (1.0 - alpha)
        return blended.astype(np.uint8)
