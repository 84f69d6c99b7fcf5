"""
Integration tests for ClassroomSession: roster, deck + ink wiring, tools.
"""

import asyncio
import random
from datetime import datetime

from classroom_screen.ai_client import ClassroomAI
from classroom_screen.config import AppConfig
from classroom_screen.deck import ContentKind
from classroom_screen.models import (
    AttendanceRecord,
    AttendanceStatus,
    BehaviorStatus,
    LessonLink,
    ScheduleItem,
    Student,
    TeacherAssignment,
)
from classroom_screen.overlay import OverlayTool, QuizState
from classroom_screen.scheduler import Scheduler
from classroom_screen.session import ClassroomSession

from mocks import QUIZ_REPLY, MockBackend, MockStorage, RecordingSound

TODAY = "2024-03-04"
MONDAY_0930 = datetime(2024, 3, 4, 9, 30)


def make_storage(**kwargs) -> MockStorage:
    students = [
        Student(id="s1", name="Sara", class_name="5A"),
        Student(id="s2", name="Omar", class_name="5A"),
        Student(id="s3", name="Lina", class_name="5A"),
        Student(id="s4", name="Yousef", class_name="6B"),
    ]
    attendance = [
        AttendanceRecord(student_id="s2", date=TODAY, status=AttendanceStatus.ABSENT),
        AttendanceRecord(student_id="s3", date="2024-03-01", status=AttendanceStatus.ABSENT),
        AttendanceRecord(student_id="s1", date=TODAY, behavior_status=BehaviorStatus.POSITIVE),
    ]
    return MockStorage(students=students, attendance=attendance, **kwargs)


def make_session(storage, config=None, backend=None) -> ClassroomSession:
    return ClassroomSession(
        config or AppConfig(),
        storage,
        ai=ClassroomAI(backend or MockBackend()),
        scheduler=Scheduler(),
        sound=RecordingSound(),
        rng=random.Random(11),
        today=lambda: TODAY,
    )


class TestSessionRoster:

    def setup_method(self):
        self.storage = make_storage()
        self.session = make_session(self.storage)

    def test_first_class_selected_and_present_students(self):
        assert self.session.classes == ["5A", "6B"]
        assert self.session.selected_class == "5A"
        assert [s.id for s in self.session.present_students] == ["s1", "s3"]
        assert self.session.absent_count == 1

    def test_rewards_seeded_from_today(self):
        assert self.session.rewards.points_for("s1") == 1

    def test_roster_table(self):
        table = self.session.roster_table()
        assert list(table.columns) == ["name", "present", "points"]
        rows = table.set_index("name")
        assert not rows.loc["Omar", "present"]
        assert rows.loc["Sara", "points"] == 1

    def test_select_unknown_class_refused(self):
        assert not self.session.select_class("9Z")
        assert self.session.select_class("6B")
        assert [s.name for s in self.session.present_students] == ["Yousef"]


class TestClassSuggestion:

    def _session(self, teacher_id=None, schedules=(), assignments=()):
        storage = make_storage(schedules=list(schedules), assignments=list(assignments))
        return make_session(storage, config=AppConfig(teacher_id=teacher_id))

    def test_running_lesson_wins(self):
        session = self._session(schedules=[
            ScheduleItem(id="p1", class_name="5A", day=0, period=1, start_time="08:00", end_time="08:45"),
            ScheduleItem(id="p2", class_name="6B", day=0, period=2, start_time="09:00", end_time="09:45"),
        ])
        assert session.suggest_class(MONDAY_0930) == "6B"
        assert session.apply_suggested_class(MONDAY_0930)
        assert session.selected_class == "6B"

    def test_next_lesson_today_when_nothing_running(self):
        session = self._session(schedules=[
            ScheduleItem(id="p1", class_name="6B", day=0, period=4, start_time="11:00", end_time="11:45"),
            ScheduleItem(id="p2", class_name="5A", day=1, period=1, start_time="10:00", end_time="10:45"),
        ])
        assert session.suggest_class(MONDAY_0930) == "6B"

    def test_other_teachers_lessons_ignored(self):
        session = self._session(teacher_id="T1", schedules=[
            ScheduleItem(id="p1", class_name="6B", day=0, period=2, teacher_id="T2",
                         start_time="09:00", end_time="09:45"),
            ScheduleItem(id="p2", class_name="5A", day=0, period=3, subject_name="Science",
                         start_time="10:00", end_time="10:45"),
        ], assignments=[
            TeacherAssignment(id="a1", teacher_id="T1", class_name="5A", subject_name="Science"),
        ])
        assert session.suggest_class(MONDAY_0930) == "5A"

    def test_no_lessons_keeps_selection(self):
        session = self._session()
        assert session.suggest_class(MONDAY_0930) is None
        assert not session.apply_suggested_class(MONDAY_0930)
        assert session.selected_class == "5A"


class TestSessionDeckAndInk:

    def setup_method(self):
        self.storage = make_storage(links=[LessonLink(id="l1", title="Song", url="https://youtu.be/abc")])
        self.session = make_session(self.storage)
        self.session.resize(200, 100)

    def _draw(self):
        self.session.overlay.pen_enabled = True
        assert self.session.draw_path([(20, 50), (100, 50), (180, 50)])

    def test_pointer_ignored_while_pen_off(self):
        assert not self.session.pointer("down", (10, 10))
        assert not self.session.draw_path([(10, 10), (20, 20)])
        assert self.session.surface.is_blank()

    def test_ink_follows_its_page(self):
        first = self.session.deck.current_page
        self._draw()
        assert first.annotation_snapshot is not None

        self.session.add_page()
        assert self.session.surface.page is self.session.deck.current_page
        assert self.session.surface.is_blank()

        self.session.previous_page()
        self.session.tick()
        self.session.scheduler.advance(0)
        assert self.session.surface.page is first
        assert not self.session.surface.is_blank()

    def test_turning_pen_off_mid_stroke_commits(self):
        self.session.overlay.pen_enabled = True
        self.session.pointer("down", (10, 10))
        self.session.pointer("move", (80, 80))
        self.session.overlay.toggle_pen()

        assert not self.session.pointer("move", (90, 90))
        assert not self.session.surface.stroke_active
        assert self.session.deck.current_page.annotation_snapshot is not None

    def test_deleting_only_page_clears_ink(self):
        self._draw()
        self.session.delete_page()

        assert len(self.session.deck) == 1
        assert self.session.deck.current_page.annotation_snapshot is None
        self.session.scheduler.advance(0)
        assert self.session.surface.is_blank()

    def test_deleting_current_page_rebinds_surface(self):
        self.session.add_page()
        self._draw()
        assert self.session.delete_page()

        assert self.session.surface.page is self.session.deck.current_page
        self.session.scheduler.advance(0)
        assert self.session.surface.is_blank()
        assert not self.session.delete_page(7)

    def test_link_page(self):
        page = self.session.add_link_page("l1")
        assert page.content_kind is ContentKind.EMBEDDED_FRAME
        assert self.session.surface.page is page
        assert self.session.add_link_page("missing") is None

    def test_pen_settings(self):
        pen = self.session.set_pen(color="#3b82f6", stroke_width=10)
        assert pen.color == "#3b82f6" and pen.stroke_width == 10
        assert self.session.set_pen(is_eraser=True).color == "#3b82f6"

    def test_fit_canvas_follows_slide_aspect(self):
        self._draw()
        assert self.session.fit_canvas((800, 400))
        assert (self.session.surface.width, self.session.surface.height) == (1280, 640)
        assert not self.session.surface.is_blank()

        assert not self.session.fit_canvas((1600, 800))
        assert self.session.fit_canvas()
        assert (self.session.surface.width, self.session.surface.height) == (1280, 720)

    def test_fit_canvas_bad_size_uses_default(self):
        assert self.session.fit_canvas((0, 400))
        assert (self.session.surface.width, self.session.surface.height) == (1280, 720)
        assert not self.session.fit_canvas((-5, -5))


class TestSessionTools:

    def setup_method(self):
        self.storage = make_storage()
        self.backend = MockBackend(reply=QUIZ_REPLY)
        self.session = make_session(self.storage, backend=self.backend)

    def test_picker_draws_only_present_students(self):
        picker = self.session.overlay.tool(OverlayTool.PICKER)
        winners = set()
        for _ in range(40):
            picker.spin()
            self.session.scheduler.advance(2.0)
            winners.add(picker.winner.id)
        assert winners == {"s1", "s3"}

    def test_award_persists_record(self):
        self.session.overlay.toggle(OverlayTool.REWARDS)
        rewards = self.session.overlay.active_tool
        assert rewards is self.session.rewards

        rewards.award(self.session.class_students[0])
        assert rewards.points_for("s1") == 2
        assert self.storage.saved_records[0].behavior_status is BehaviorStatus.POSITIVE
        assert self.session.sound.count("clap") == 1

    def test_points_survive_switching_classes(self):
        sara = self.session.class_students[0]
        self.session.rewards.award(sara)
        assert self.session.rewards.points_for("s1") == 2

        assert self.session.select_class("6B")
        assert self.session.select_class("5A")
        assert self.session.rewards.points_for("s1") == 2
        assert self.session.roster_table().set_index("name").loc["Sara", "points"] == 2

    def test_quiz_about_topic(self):
        assert asyncio.run(self.session.generate_quiz("fractions"))
        quiz = self.session.overlay.tool(OverlayTool.AI_QUIZ)
        assert quiz.state is QuizState.SHOWING_RESULTS
        assert len(quiz.questions) == 2

    def test_activity_uses_class_and_head_count(self):
        self.backend.reply = '{"title": "Freeze", "steps": ["Dance", "Freeze"]}'
        asyncio.run(self.session.suggest_activity())

        panic = self.session.overlay.tool(OverlayTool.PANIC)
        assert panic.suggestion.title == "Freeze"
        assert "5A" in self.backend.requests[-1].prompt
        assert "Students present: 2" in self.backend.requests[-1].prompt

    def test_teardown_stops_every_timer(self):
        self.session.overlay.tool(OverlayTool.PICKER).spin()
        self.session.overlay.tool(OverlayTool.TIMER).start()
        self.session.rewards.award(self.session.class_students[0])
        assert self.session.scheduler.pending > 0

        self.session.teardown()
        assert self.session.scheduler.pending == 0
        assert self.session.overlay.active is OverlayTool.NONE
