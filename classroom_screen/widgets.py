"""
Session Utility Widgets
Random picker, countdown timer, group generator and rewards ledger. Each is a
small state machine driven by the session's Scheduler.
"""

import logging
import random
from collections import Counter
from typing import Callable, Dict, Iterable, List, Optional

from .constants import (
    CELEBRATION_SECONDS,
    DEFAULT_GROUPS,
    MAX_GROUPS,
    MIN_GROUPS,
    PICKER_PLACEHOLDER,
    PICKER_SPIN_SECONDS,
    PICKER_TICK_SECONDS,
    REWARD_NOTE,
    TIMER_CRITICAL_SECONDS,
    TIMER_DEFAULT_SECONDS,
    TIMER_WARNING_SECONDS,
)
from .models import (
    AttendanceRecord,
    AttendanceStatus,
    BehaviorStatus,
    Student,
    today_iso,
)
from .scheduler import Scheduler
from .sound_cues import SoundCue

logger = logging.getLogger(__name__)


# ── Random picker ────────────────────────────────────────────────────────────

class RandomPicker:
    """
    Rolls through present students for a fixed time, then draws a winner.

    The name shown on the last tick and the winner are separate draws, so the
    announced winner may differ from the name the roll "landed" on.
    """

    def __init__(self, students_provider: Callable[[], List[Student]], scheduler: Scheduler,
                 sound: SoundCue, rng: Optional[random.Random] = None):
        self.students_provider = students_provider
        self.scheduler = scheduler
        self.sound = sound
        self.rng = rng or random.Random()

        self.display_name = PICKER_PLACEHOLDER
        self.winner: Optional[Student] = None
        self.is_rolling = False
        self._tick_handle = None
        self._stop_handle = None

    def spin(self) -> bool:
        students = list(self.students_provider())
        if not students or self.is_rolling:
            return False

        self.is_rolling = True
        self.winner = None
        self._tick_handle = self.scheduler.call_every(PICKER_TICK_SECONDS, self._tick, students)
        self._stop_handle = self.scheduler.call_later(PICKER_SPIN_SECONDS, self._finish, students)
        return True

    def _tick(self, students: List[Student]):
        self.display_name = self.rng.choice(students).name

    def _finish(self, students: List[Student]):
        self._tick_handle.cancel()
        self.winner = self.rng.choice(students)
        self.display_name = self.winner.name
        self.is_rolling = False
        self.sound.correct()

    def teardown(self):
        for handle in (self._tick_handle, self._stop_handle):
            if handle is not None:
                handle.cancel()
        self._tick_handle = self._stop_handle = None
        self.is_rolling = False


# ── Countdown timer ──────────────────────────────────────────────────────────

def format_time(seconds: int) -> str:
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins:02d}:{secs:02d}"


class CountdownTimer:
    def __init__(self, scheduler: Scheduler, sound: SoundCue,
                 initial_seconds: int = TIMER_DEFAULT_SECONDS):
        self.scheduler = scheduler
        self.sound = sound
        self.initial_time = initial_seconds
        self.time_left = initial_seconds
        self.is_active = False
        self._handle = None

    def start(self) -> bool:
        if self.is_active or self.time_left <= 0:
            return False
        self.is_active = True
        self._handle = self.scheduler.call_every(1.0, self._tick)
        return True

    def pause(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.is_active = False

    def toggle(self) -> bool:
        if self.is_active:
            self.pause()
            return False
        return self.start()

    def reset(self):
        self.pause()
        self.time_left = self.initial_time

    def set_seconds(self, seconds: int):
        self.pause()
        self.initial_time = self.time_left = max(0, int(seconds))

    def set_minutes(self, minutes: int):
        self.set_seconds(minutes * 60)

    def _tick(self):
        if self.time_left > 0:
            self.time_left -= 1
        if self.time_left == 0:
            self.pause()
            if self.initial_time > 0:
                self.sound.bell()

    def progress(self) -> float:
        """Fraction of the countdown remaining, 0.0-1.0."""
        if self.initial_time <= 0:
            return 0.0
        return self.time_left / self.initial_time

    def format_time(self) -> str:
        return format_time(self.time_left)

    def urgency(self) -> str:
        if self.time_left < TIMER_CRITICAL_SECONDS:
            return "critical"
        if self.time_left < TIMER_WARNING_SECONDS:
            return "warning"
        return "normal"

    def teardown(self):
        self.pause()


# ── Group generator ──────────────────────────────────────────────────────────

class GroupGenerator:
    def __init__(self, sound: SoundCue, rng: Optional[random.Random] = None,
                 group_count: int = DEFAULT_GROUPS):
        self.sound = sound
        self.rng = rng or random.Random()
        self.group_count = max(MIN_GROUPS, min(MAX_GROUPS, group_count))
        self.groups: List[List[Student]] = []

    def increment(self) -> int:
        self.group_count = min(MAX_GROUPS, self.group_count + 1)
        return self.group_count

    def decrement(self) -> int:
        self.group_count = max(MIN_GROUPS, self.group_count - 1)
        return self.group_count

    def generate(self, students: Iterable[Student]) -> List[List[Student]]:
        """Shuffle, then deal students round-robin into group_count groups."""
        shuffled = list(students)
        if not shuffled:
            self.groups = []
            return self.groups

        self.rng.shuffle(shuffled)
        groups: List[List[Student]] = [[] for _ in range(self.group_count)]
        for index, student in enumerate(shuffled):
            groups[index % self.group_count].append(student)

        self.groups = groups
        self.sound.correct()
        return groups


# ── Rewards ledger ───────────────────────────────────────────────────────────

class RewardsLedger:
    """
    Today's reward points per student.

    Points are derived from persisted "positive, today" behavior records; each
    award adds one in memory and writes one record through the storage
    collaborator.
    """

    def __init__(self, storage, sound: SoundCue, scheduler: Scheduler,
                 today: Callable[[], str] = today_iso):
        self.storage = storage
        self.sound = sound
        self.scheduler = scheduler
        self.today = today

        self.points: Dict[str, int] = {}
        self.celebrating: Optional[Student] = None
        self._celebration_handle = None

    def reseed(self, students: Optional[Iterable[Student]], records: Iterable[AttendanceRecord]):
        today = self.today()
        counts = Counter(
            r.student_id for r in records
            if r.date == today and r.behavior_status is BehaviorStatus.POSITIVE
        )
        if students is None:
            self.points = dict(counts)
        else:
            self.points = {s.id: counts[s.id] for s in students if counts[s.id]}

    def points_for(self, student_id: str) -> int:
        return self.points.get(student_id, 0)

    def award(self, student: Student) -> AttendanceRecord:
        self.points[student.id] = self.points_for(student.id) + 1

        self.celebrating = student
        if self._celebration_handle is not None:
            self._celebration_handle.cancel()
        self._celebration_handle = self.scheduler.call_later(CELEBRATION_SECONDS, self._end_celebration)
        self.sound.clap()

        record = AttendanceRecord(
            student_id=student.id,
            date=self.today(),
            status=AttendanceStatus.PRESENT,
            behavior_status=BehaviorStatus.POSITIVE,
            behavior_note=REWARD_NOTE,
        )
        try:
            if not self.storage.save_attendance([record]):
                logger.error("Reward for %s was not persisted", student.id)
        except Exception as e:
            logger.error("Reward for %s was not persisted: %s", student.id, e)
        return record

    def _end_celebration(self):
        self.celebrating = None
        self._celebration_handle = None

    def teardown(self):
        if self._celebration_handle is not None:
            self._celebration_handle.cancel()
        self._end_celebration()
