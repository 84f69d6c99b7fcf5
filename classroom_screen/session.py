"""
Classroom Session
Top-level engine behind the classroom screen: picks the active class,
computes who is present today, and wires the deck, the annotation surface,
the overlay tools and the widgets together. Every collaborator is passed in
explicitly; nothing is looked up globally.
"""

import logging
import random
import time
from datetime import datetime
from typing import Callable, List, Optional, Tuple

import pandas as pd

from .ai_client import ClassroomAI, build_backend
from .annotation import AnnotationSurface, PenSettings
from .config import AppConfig
from .constants import DEFAULT_CANVAS_HEIGHT, DEFAULT_CANVAS_WIDTH
from .content_fetcher import ImageFetcher
from .deck import Page, SlideDeck
from .models import AttendanceStatus, LessonLink, Student, today_iso
from .overlay import (
    AIQuizOverlay,
    ExitTicket,
    HallPass,
    OverlayTool,
    PanicActivityOverlay,
    Poll,
    SoundBoard,
    StickyNote,
    ToolOverlay,
    TrafficLight,
)
from .scheduler import Scheduler
from .sound_cues import SoundCue, build_sound_cue
from .widgets import CountdownTimer, GroupGenerator, RandomPicker, RewardsLedger

logger = logging.getLogger(__name__)


class ClassroomSession:
    def __init__(
        self,
        config: AppConfig,
        storage,
        ai: Optional[ClassroomAI] = None,
        scheduler: Optional[Scheduler] = None,
        sound: Optional[SoundCue] = None,
        rng: Optional[random.Random] = None,
        today: Callable[[], str] = today_iso,
        deck: Optional[SlideDeck] = None,
    ):
        self.config = config
        self.storage = storage
        self.scheduler = scheduler or Scheduler(clock=time.monotonic)
        self.sound = sound or build_sound_cue(config.sound_enabled)
        self.rng = rng or random.Random()
        self.today = today

        self.ai = ai or ClassroomAI(build_backend(config), storage.load_ai_settings())
        self.deck = deck or SlideDeck()
        self.fetcher = ImageFetcher(self.deck.blobs)
        self.surface = AnnotationSurface(self.scheduler)
        self.surface.load_for_page(self.deck.current_page)
        self.pen = PenSettings()

        self.students: List[Student] = []
        self.attendance = []
        self.schedules = []
        self.assignments = []
        self.links: List[LessonLink] = []
        self.selected_class = ""

        self.rewards = RewardsLedger(storage, self.sound, self.scheduler, today=today)
        self.overlay = ToolOverlay({
            OverlayTool.PICKER: lambda: RandomPicker(
                lambda: self.present_students, self.scheduler, self.sound, self.rng),
            OverlayTool.TIMER: lambda: CountdownTimer(self.scheduler, self.sound),
            OverlayTool.GROUPS: lambda: GroupGenerator(self.sound, self.rng),
            OverlayTool.REWARDS: lambda: self.rewards,
            OverlayTool.HALL_PASS: HallPass,
            OverlayTool.TRAFFIC_LIGHT: TrafficLight,
            OverlayTool.POLL: Poll,
            OverlayTool.SOUND_BOARD: lambda: SoundBoard(self.sound),
            OverlayTool.STICKY_NOTE: lambda: StickyNote(self.storage),
            OverlayTool.AI_QUIZ: lambda: AIQuizOverlay(self.ai, self.fetcher),
            OverlayTool.PANIC: lambda: PanicActivityOverlay(self.ai),
            OverlayTool.EXIT_TICKET: ExitTicket,
        })

        self.refresh()

    # ── Roster / class selection ─────────────────────────────────────────────

    def refresh(self):
        """Reload roster, attendance and settings; reseed the rewards ledger."""
        self.students = self.storage.load_students()
        self.attendance = self.storage.load_attendance()
        self.schedules = self.storage.load_schedules()
        self.assignments = self.storage.load_teacher_assignments()
        self.links = self.storage.load_lesson_links()
        self.ai.settings = self.storage.load_ai_settings()

        classes = self.classes
        if self.selected_class not in classes:
            self.selected_class = classes[0] if classes else ""
        self.rewards.reseed(self.class_students, self.attendance)

    @property
    def classes(self) -> List[str]:
        return sorted({s.class_name for s in self.students if s.class_name})

    def select_class(self, name: str) -> bool:
        if name not in self.classes:
            return False
        self.selected_class = name
        # Awards made since the last refresh only exist in storage
        self.attendance = self.storage.load_attendance()
        self.rewards.reseed(self.class_students, self.attendance)
        return True

    def suggest_class(self, now: Optional[datetime] = None) -> Optional[str]:
        """
        Today's class for the configured teacher, from the timetable.

        A lesson running right now wins; otherwise the next one today.
        Schedule rows without a teacher count when the teacher is assigned to
        that class and subject.
        """
        now = now or datetime.now()
        teacher_id = self.config.teacher_id
        classes = set(self.classes)
        assigned = {(a.class_name, a.subject_name) for a in self.assignments
                    if a.teacher_id == teacher_id}
        assigned_classes = {c for c, _ in assigned}

        def teaches(item) -> bool:
            if not teacher_id:
                return True
            if item.teacher_id:
                return item.teacher_id == teacher_id
            return (item.class_name, item.subject_name) in assigned or (
                not item.subject_name and item.class_name in assigned_classes)

        today = sorted(
            (s for s in self.schedules
             if s.day == now.weekday() and s.class_name in classes and teaches(s)),
            key=lambda s: (s.start_time or "", s.period),
        )
        clock = now.strftime("%H:%M")
        for item in today:
            if item.start_time and item.end_time and item.start_time <= clock < item.end_time:
                return item.class_name
        for item in today:
            if item.start_time and item.start_time >= clock:
                return item.class_name
        return None

    def apply_suggested_class(self, now: Optional[datetime] = None) -> bool:
        suggestion = self.suggest_class(now)
        return suggestion is not None and self.select_class(suggestion)

    @property
    def class_students(self) -> List[Student]:
        return [s for s in self.students if s.class_name == self.selected_class]

    def _absent_ids(self) -> set:
        today = self.today()
        return {r.student_id for r in self.attendance
                if r.date == today and r.status is AttendanceStatus.ABSENT}

    @property
    def present_students(self) -> List[Student]:
        absent = self._absent_ids()
        return [s for s in self.class_students if s.id not in absent]

    @property
    def absent_count(self) -> int:
        return len(self.class_students) - len(self.present_students)

    def roster_table(self) -> pd.DataFrame:
        absent = self._absent_ids()
        rows = [{
            "name": s.name,
            "present": s.id not in absent,
            "points": self.rewards.points_for(s.id),
        } for s in self.class_students]
        return pd.DataFrame(rows, columns=["name", "present", "points"])

    # ── Deck navigation ──────────────────────────────────────────────────────

    def _rebind(self, force: bool = False):
        if force or self.surface.page is not self.deck.current_page:
            self.surface.load_for_page(self.deck.current_page)

    def go_to(self, index: int) -> int:
        self.deck.go_to(index)
        self._rebind()
        return self.deck.current_index

    def next_page(self) -> int:
        return self.go_to(self.deck.current_index + 1)

    def previous_page(self) -> int:
        return self.go_to(self.deck.current_index - 1)

    def add_page(self) -> Page:
        page = self.deck.add_page()
        self._rebind()
        return page

    def delete_page(self, index: Optional[int] = None) -> bool:
        index = self.deck.current_index if index is None else index
        if not 0 <= index < len(self.deck):
            return False

        bound = self.deck.pages[index] is self.surface.page
        if bound and self.surface.stroke_active:
            self.surface.end_stroke()

        self.deck.delete_page(index)
        self._rebind(force=bound)
        return True

    def set_image(self, data: bytes, mime_type: str = "image/png") -> str:
        return self.deck.set_current_image(data, mime_type)

    def set_document(self, data: bytes, mime_type: str = "application/pdf") -> str:
        return self.deck.set_current_document(data, mime_type)

    def set_embed(self, url: str) -> str:
        return self.deck.set_current_embed(url)

    def clear_content(self):
        self.deck.clear_current_content()

    @property
    def lesson_links(self) -> List[LessonLink]:
        return list(self.links)

    def add_link_page(self, link_id: str) -> Optional[Page]:
        link = next((item for item in self.links if item.id == link_id), None)
        if link is None:
            return None
        page = self.deck.add_page_from_link(link)
        self._rebind()
        return page

    # ── Ink ──────────────────────────────────────────────────────────────────

    def set_pen(self, color: Optional[str] = None, stroke_width: Optional[int] = None,
                is_eraser: Optional[bool] = None) -> PenSettings:
        self.pen = PenSettings(
            color=self.pen.color if color is None else color,
            stroke_width=self.pen.stroke_width if stroke_width is None else stroke_width,
            is_eraser=self.pen.is_eraser if is_eraser is None else is_eraser,
        )
        return self.pen

    def pointer(self, kind: str, point: Optional[Tuple[float, float]] = None) -> bool:
        """Route a pointer event to the surface; ignored unless the pen is on."""
        if not self.overlay.pen_enabled:
            if self.surface.stroke_active:
                self.surface.end_stroke()
            return False
        return self.surface.handle_pointer(kind, point, self.pen)

    def draw_path(self, points: List[Tuple[float, float]]) -> bool:
        """Replay a whole captured path as one stroke (down, moves, up)."""
        if not points or not self.pointer("down", points[0]):
            return False
        for point in points[1:]:
            self.pointer("move", point)
        return self.pointer("up")

    def clear_annotation(self):
        self.surface.clear()

    def resize(self, width: int, height: int) -> bool:
        return self.surface.resize(width, height)

    def fit_canvas(self, content_size: Optional[Tuple[int, int]] = None) -> bool:
        """Match the ink raster to the slide: fixed width, the content's aspect ratio."""
        width = DEFAULT_CANVAS_WIDTH
        if content_size and content_size[0] > 0 and content_size[1] > 0:
            height = max(1, round(width * content_size[1] / content_size[0]))
        else:
            height = DEFAULT_CANVAS_HEIGHT
        return self.resize(width, height)

    # ── AI tools ─────────────────────────────────────────────────────────────

    async def generate_quiz(self, topic: str = "") -> bool:
        quiz = self.overlay.tool(OverlayTool.AI_QUIZ)
        return await quiz.generate(self.deck.current_page, topic)

    async def suggest_activity(self) -> bool:
        panic = self.overlay.tool(OverlayTool.PANIC)
        quiz_topic = self.overlay.tool(OverlayTool.AI_QUIZ).topic
        return await panic.generate(self.selected_class, len(self.present_students), quiz_topic)

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def tick(self) -> int:
        """Run whatever timers are due; called from the UI refresh loop."""
        return self.scheduler.poll()

    def teardown(self):
        for tool in self.overlay.created_tools():
            teardown = getattr(tool, "teardown", None)
            if teardown is not None:
                teardown()
        self.rewards.teardown()
        self.overlay.close()
        if self.surface.stroke_active:
            self.surface.end_stroke()
