"""
Floating Tool Overlay
━━━━━━━━━━━━━━━━━━━━━
One overlay tool is visible at a time (or none). Tools are created on first
use and keep their private state while hidden. Pen and laser pointer are
independent flags that coexist with any tool.

The two AI-backed tools issue a request token per generation; a result whose
token is no longer current (tool closed, switched away, or asked again) is
dropped.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

import pandas as pd

from .ai_client import ActivitySuggestion, ClassroomAI, QuizQuestion, Result
from .constants import ERROR_MESSAGES, EXIT_TICKET_PROMPTS, POLL_OPTIONS
from .deck import ContentKind, Page
from .sound_cues import CUE_NAMES, SoundCue

logger = logging.getLogger(__name__)


class OverlayTool(Enum):
    NONE = "none"
    PICKER = "picker"
    TIMER = "timer"
    GROUPS = "groups"
    REWARDS = "rewards"
    HALL_PASS = "hall_pass"
    TRAFFIC_LIGHT = "traffic_light"
    POLL = "poll"
    SOUND_BOARD = "sound_board"
    STICKY_NOTE = "sticky_note"
    AI_QUIZ = "ai_quiz"
    PANIC = "panic"
    EXIT_TICKET = "exit_ticket"


class ToolOverlay:
    """Single-selection tool state plus the pen and laser flags."""

    def __init__(self, factories: Dict[OverlayTool, Callable[[], object]]):
        self._factories = factories
        self._tools: Dict[OverlayTool, object] = {}
        self.active = OverlayTool.NONE
        self.pen_enabled = False
        self.laser_enabled = False

    def tool(self, which: OverlayTool):
        """Return the tool instance, creating it once on first use."""
        if which not in self._tools:
            if which not in self._factories:
                raise KeyError(f"No factory registered for {which}")
            self._tools[which] = self._factories[which]()
        return self._tools[which]

    @property
    def active_tool(self):
        if self.active is OverlayTool.NONE:
            return None
        return self.tool(self.active)

    def is_active(self, which: OverlayTool) -> bool:
        return self.active is which

    def toggle(self, which: OverlayTool) -> OverlayTool:
        previous = self.active
        self.active = OverlayTool.NONE if previous is which else which
        if previous is not self.active:
            self._leave(previous)
        if self.active is not OverlayTool.NONE:
            self.tool(self.active)
        return self.active

    def close(self):
        previous, self.active = self.active, OverlayTool.NONE
        self._leave(previous)

    def _leave(self, which: OverlayTool):
        instance = self._tools.get(which)
        abandon = getattr(instance, "abandon", None)
        if abandon is not None:
            abandon()

    def toggle_pen(self) -> bool:
        self.pen_enabled = not self.pen_enabled
        return self.pen_enabled

    def toggle_laser(self) -> bool:
        self.laser_enabled = not self.laser_enabled
        return self.laser_enabled

    def created_tools(self) -> List[object]:
        return list(self._tools.values())


# ── Simple tools ─────────────────────────────────────────────────────────────

class Light(Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class TrafficLight:
    _ORDER = [Light.GREEN, Light.YELLOW, Light.RED]

    def __init__(self):
        self.light = Light.GREEN

    def set_light(self, light: Light):
        self.light = light

    def cycle(self) -> Light:
        position = self._ORDER.index(self.light)
        self.light = self._ORDER[(position + 1) % len(self._ORDER)]
        return self.light


class Poll:
    def __init__(self, options: List[str] = POLL_OPTIONS):
        self.question = ""
        self.votes: Dict[str, int] = {option: 0 for option in options}

    def vote(self, option: str) -> bool:
        if option not in self.votes:
            return False
        self.votes[option] += 1
        return True

    def reset(self):
        for option in self.votes:
            self.votes[option] = 0

    def total(self) -> int:
        return sum(self.votes.values())

    def percentages(self) -> Dict[str, float]:
        total = self.total()
        return {option: (count * 100.0 / total if total else 0.0)
                for option, count in self.votes.items()}

    def to_frame(self) -> pd.DataFrame:
        percentages = self.percentages()
        return pd.DataFrame({
            "option": list(self.votes),
            "votes": list(self.votes.values()),
            "percent": [round(percentages[o], 1) for o in self.votes],
        })


@dataclass
class HallPassTicket:
    id: str
    student_name: str
    issued_at: float


class HallPass:
    """Students currently out of the room; session scoped, never persisted."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.tickets: List[HallPassTicket] = []

    def is_out(self, student_name: str) -> bool:
        return any(t.student_name == student_name for t in self.tickets)

    def issue(self, student_name: str) -> Optional[HallPassTicket]:
        name = (student_name or "").strip()
        if not name or self.is_out(name):
            return None
        ticket = HallPassTicket(id=uuid.uuid4().hex, student_name=name, issued_at=self.clock())
        self.tickets.append(ticket)
        return ticket

    def return_pass(self, ticket_id: str) -> bool:
        before = len(self.tickets)
        self.tickets = [t for t in self.tickets if t.id != ticket_id]
        return len(self.tickets) < before

    def elapsed_seconds(self, ticket: HallPassTicket) -> int:
        return max(0, int(self.clock() - ticket.issued_at))


class SoundBoard:
    cues = CUE_NAMES

    def __init__(self, sound: SoundCue):
        self.sound = sound

    def play(self, name: str) -> bool:
        if name not in self.cues:
            return False
        self.sound.play(name)
        return True


class StickyNote:
    """Free text saved through the storage collaborator on every edit."""

    def __init__(self, storage):
        self.storage = storage
        self.text = storage.load_note()

    def set_text(self, text: str) -> bool:
        self.text = text
        try:
            return bool(self.storage.save_note(text))
        except Exception as e:
            logger.error("Sticky note not saved: %s", e)
            return False


class ExitTicket:
    def __init__(self, prompts: List[str] = EXIT_TICKET_PROMPTS):
        self.prompts = list(prompts)
        self.index = 0
        self.custom_prompt = ""

    @property
    def current_prompt(self) -> str:
        if self.custom_prompt:
            return self.custom_prompt
        return self.prompts[self.index] if self.prompts else ""

    def next_prompt(self) -> str:
        self.custom_prompt = ""
        if self.prompts:
            self.index = (self.index + 1) % len(self.prompts)
        return self.current_prompt

    def set_custom(self, text: str):
        self.custom_prompt = (text or "").strip()


# ── AI quiz ──────────────────────────────────────────────────────────────────

class QuizState(Enum):
    AWAITING_INPUT = "awaiting_input"
    LOADING = "loading"
    SHOWING_RESULTS = "showing_results"


class AIQuizOverlay:
    """Quick quiz about the typed topic, or about the current slide image."""

    def __init__(self, ai: ClassroomAI, fetcher):
        self.ai = ai
        self.fetcher = fetcher
        self.state = QuizState.AWAITING_INPUT
        self.topic = ""
        self.questions: List[QuizQuestion] = []
        self.revealed: set = set()
        self.error: Optional[str] = None
        self._token = 0

    @staticmethod
    def accepts_topic(page: Optional[Page]) -> bool:
        return page is None or page.content_kind is not ContentKind.IMAGE

    def start(self) -> int:
        self._token += 1
        self.state = QuizState.LOADING
        self.error = None
        return self._token

    def resolve(self, token: int, result: Result) -> bool:
        """Apply a finished request; stale tokens are ignored."""
        if token != self._token or self.state is not QuizState.LOADING:
            logger.debug("Discarding stale quiz result (token %d)", token)
            return False

        if result.ok:
            self.questions = list(result.value or [])
            self.revealed = set()
            self.state = QuizState.SHOWING_RESULTS
            self.error = None if self.questions else ERROR_MESSAGES["quiz_empty"]
        else:
            self.state = QuizState.AWAITING_INPUT
            self.error = result.error or ERROR_MESSAGES["quiz_failed"]
        return True

    def abandon(self):
        if self.state is QuizState.LOADING:
            self._token += 1
            self.state = QuizState.AWAITING_INPUT

    def new_quiz(self):
        self.abandon()
        self.state = QuizState.AWAITING_INPUT
        self.error = None
        self.revealed = set()

    def reveal(self, index: int):
        if 0 <= index < len(self.questions):
            self.revealed.add(index)

    def _request(self, kind: ContentKind, ref: str, topic: str) -> Result:
        if kind is ContentKind.IMAGE:
            image = self.fetcher.fetch(ref)
            if image is None:
                return Result.failure(ERROR_MESSAGES["image_unavailable"])
            return self.ai.generate_quiz(image=image)
        return self.ai.generate_quiz(topic=topic)

    async def generate(self, page: Optional[Page], topic: str = "") -> bool:
        """Run one generation cycle; returns whether its result was applied."""
        kind = page.content_kind if page is not None else ContentKind.EMPTY
        ref = page.content_ref if page is not None else ""
        topic = (topic or "").strip()
        if kind is not ContentKind.IMAGE and not topic:
            return False

        self.topic = topic
        token = self.start()
        try:
            result = await asyncio.to_thread(self._request, kind, ref, topic)
        except Exception as e:
            logger.error("Quiz generation crashed: %s", e)
            result = Result.failure(ERROR_MESSAGES["quiz_failed"])
        return self.resolve(token, result)


# ── Panic button / quick activity ────────────────────────────────────────────

class ActivityState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUGGESTED = "suggested"


class PanicActivityOverlay:
    def __init__(self, ai: ClassroomAI):
        self.ai = ai
        self.state = ActivityState.IDLE
        self.suggestion: Optional[ActivitySuggestion] = None
        self.error: Optional[str] = None
        self._token = 0

    def start(self) -> int:
        self._token += 1
        self.state = ActivityState.LOADING
        self.error = None
        return self._token

    def resolve(self, token: int, result: Result) -> bool:
        if token != self._token or self.state is not ActivityState.LOADING:
            logger.debug("Discarding stale activity result (token %d)", token)
            return False

        if result.ok and result.value is not None:
            self.suggestion = result.value
            self.state = ActivityState.SUGGESTED
        else:
            self.state = ActivityState.IDLE
            self.error = result.error or ERROR_MESSAGES["activity_failed"]
        return True

    def abandon(self):
        if self.state is ActivityState.LOADING:
            self._token += 1
            self.state = ActivityState.IDLE

    def ask_again(self):
        self.abandon()
        self.state = ActivityState.IDLE
        self.error = None

    async def generate(self, class_name: str, present_count: int, topic: str = "") -> bool:
        token = self.start()
        try:
            result = await asyncio.to_thread(
                self.ai.suggest_activity, class_name, present_count, topic
            )
        except Exception as e:
            logger.error("Activity suggestion crashed: %s", e)
            result = Result.failure(ERROR_MESSAGES["activity_failed"])
        return self.resolve(token, result)
