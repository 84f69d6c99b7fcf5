"""
Tests for the per-page annotation surface.
"""

import numpy as np

from classroom_screen.annotation import (
    PNG_PREFIX,
    AnnotationSurface,
    PenSettings,
    decode_snapshot,
    hex_to_bgra,
)
from classroom_screen.constants import ERASER_WIDTH, PEN_WIDTHS
from classroom_screen.deck import Page
from classroom_screen.scheduler import Scheduler

PEN = PenSettings(color="#ef4444", stroke_width=6)
ERASER = PenSettings(is_eraser=True)


def draw_line(surface, start=(20, 50), end=(180, 50), pen=PEN):
    surface.begin_stroke(start, pen)
    surface.extend_stroke(end)
    surface.end_stroke()


class TestStrokes:

    def setup_method(self):
        self.scheduler = Scheduler()
        self.commits = []
        self.surface = AnnotationSurface(
            self.scheduler, width=200, height=100,
            on_commit=lambda page, snapshot: self.commits.append(snapshot),
        )
        self.page = Page()
        self.surface.load_for_page(self.page)

    def test_snapshot_committed_once_per_stroke(self):
        self.surface.begin_stroke((10, 10), PEN)
        for x in range(11, 150, 3):
            self.surface.extend_stroke((x, 10 + x % 40))
            assert self.page.annotation_snapshot is None
        self.surface.end_stroke()

        assert len(self.commits) == 1
        assert self.page.annotation_snapshot.startswith(PNG_PREFIX)

    def test_extend_without_stroke_is_noop(self):
        assert not self.surface.extend_stroke((50, 50))
        assert not self.surface.end_stroke()
        assert self.surface.is_blank()
        assert self.commits == []

    def test_pen_paints_chosen_color(self):
        draw_line(self.surface)
        assert tuple(self.surface.raster[50, 100]) == hex_to_bgra("#ef4444")

    def test_eraser_removes_ink(self):
        draw_line(self.surface)
        draw_line(self.surface, pen=ERASER)

        assert self.surface.raster[50, 100, 3] == 0
        assert self.surface.is_blank()
        assert self.page.annotation_snapshot is None

    def test_eraser_is_wider_than_every_pen(self):
        assert ERASER.effective_width == ERASER_WIDTH
        assert all(ERASER_WIDTH > width for width in PEN_WIDTHS)

    def test_clear_commits_empty_snapshot(self):
        draw_line(self.surface)
        self.surface.clear()

        assert self.surface.is_blank()
        assert self.page.annotation_snapshot is None
        assert self.commits[-1] is None

    def test_revision_bumps_on_every_commit(self):
        assert self.page.revision == 0
        draw_line(self.surface)
        draw_line(self.surface, start=(20, 80), end=(180, 80))
        assert self.page.revision == 2

        self.surface.clear()
        assert self.page.revision == 3

    def test_pointer_contract(self):
        assert self.surface.handle_pointer("down", (10, 10), PEN)
        assert self.surface.handle_pointer("move", (60, 60))
        assert self.surface.handle_pointer("leave")
        assert not self.surface.handle_pointer("up")
        assert len(self.commits) == 1


class TestPageBinding:

    def setup_method(self):
        self.scheduler = Scheduler()
        self.surface = AnnotationSurface(self.scheduler, width=200, height=100)

    def _inked_page(self) -> Page:
        page = Page()
        self.surface.load_for_page(page)
        draw_line(self.surface)
        return page

    def test_snapshot_restored_on_next_scheduler_turn(self):
        page_a = self._inked_page()
        self.surface.load_for_page(Page())
        self.surface.load_for_page(page_a)

        assert self.surface.is_blank()
        assert self.surface.loading
        self.scheduler.advance(0)
        assert not self.surface.is_blank()
        assert not self.surface.loading

    def test_stale_load_never_draws_on_current_page(self):
        page_a = self._inked_page()
        page_b = Page()

        self.surface.load_for_page(page_a)
        self.surface.load_for_page(page_b)
        self.scheduler.advance(0)

        assert self.surface.page is page_b
        assert self.surface.is_blank()

    def test_corrupt_snapshot_leaves_page_blank(self):
        for snapshot in ("data:image/png;base64,bm90IGFuIGltYWdl", "garbage!!", ""):
            page = Page(annotation_snapshot=snapshot)
            self.surface.load_for_page(page)
            self.scheduler.advance(0)
            assert self.surface.is_blank()

    def test_decode_snapshot_rejects_garbage(self):
        assert decode_snapshot(None) is None
        assert decode_snapshot("data:image/png;base64,@@@") is None
        assert decode_snapshot("data:image/png;base64") is None
        assert decode_snapshot("data:image/png;base64,") is None

    def test_switching_pages_mid_stroke_commits_to_previous_page(self):
        page_a = Page()
        self.surface.load_for_page(page_a)
        self.surface.begin_stroke((10, 10), PEN)
        self.surface.extend_stroke((100, 80))

        page_b = Page()
        self.surface.load_for_page(page_b)

        assert page_a.annotation_snapshot is not None
        assert page_b.annotation_snapshot is None
        assert not self.surface.stroke_active

    def test_ink_drawn_during_pending_load_is_kept(self):
        page_a = self._inked_page()
        self.surface.load_for_page(Page())
        self.surface.load_for_page(page_a)

        draw_line(self.surface, start=(20, 90), end=(180, 90))
        self.scheduler.advance(0)

        assert self.surface.raster[50, 100, 3] > 0
        assert self.surface.raster[90, 100, 3] > 0


class TestResize:

    def setup_method(self):
        self.scheduler = Scheduler()
        self.surface = AnnotationSurface(self.scheduler, width=200, height=100)
        self.surface.load_for_page(Page())

    def test_resize_preserves_content(self):
        draw_line(self.surface)
        assert self.surface.resize(400, 300)

        assert (self.surface.width, self.surface.height) == (400, 300)
        assert not self.surface.is_blank()
        assert self.surface.raster[150, 200, 3] > 0

    def test_non_positive_resize_is_ignored(self):
        draw_line(self.surface)
        assert not self.surface.resize(0, 100)
        assert not self.surface.resize(200, -5)
        assert (self.surface.width, self.surface.height) == (200, 100)

    def test_pending_load_scaled_to_new_size(self):
        page = Page()
        self.surface.load_for_page(page)
        draw_line(self.surface)
        self.surface.load_for_page(Page())
        self.surface.load_for_page(page)

        self.surface.resize(100, 50)
        self.scheduler.advance(0)
        assert self.surface.raster.shape == (50, 100, 4)
        assert self.surface.raster[25, 50, 3] > 0

    def test_composite_over_background(self):
        draw_line(self.surface)
        background = np.full((50, 50, 3), 255, dtype=np.uint8)
        composite = self.surface.composite_over(background)

        assert composite.shape == (100, 200, 3)
        assert tuple(composite[0, 0]) == (255, 255, 255)
        assert tuple(composite[50, 100]) == (0xef, 0x44, 0x44)
