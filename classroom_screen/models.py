"""
Domain records read from and written to the persistence collaborator.
"""

import uuid
from dataclasses import dataclass, field, asdict
from datetime import date
from enum import Enum
from typing import Optional

from .constants import AI_DEFAULT_TEMPERATURE, BEDROCK_MODEL_ID


class AttendanceStatus(Enum):
    PRESENT = "حاضر"
    ABSENT = "غائب"
    LATE = "متأخر"
    EXCUSED = "عذر مقبول"


class BehaviorStatus(Enum):
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"


def new_id() -> str:
    return uuid.uuid4().hex


def today_iso() -> str:
    return date.today().isoformat()


@dataclass
class Student:
    id: str
    name: str
    class_name: str = ""
    grade_level: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Student":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            class_name=data.get("class_name") or "",
            grade_level=data.get("grade_level") or "",
        )


@dataclass
class AttendanceRecord:
    """One day of attendance (and optional behavior note) for one student."""
    student_id: str
    date: str
    status: AttendanceStatus = AttendanceStatus.PRESENT
    behavior_status: Optional[BehaviorStatus] = None
    behavior_note: str = ""
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "date": self.date,
            "status": self.status.value,
            "behavior_status": self.behavior_status.value if self.behavior_status else None,
            "behavior_note": self.behavior_note,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AttendanceRecord":
        behavior = data.get("behavior_status")
        return cls(
            id=str(data.get("id") or new_id()),
            student_id=str(data["student_id"]),
            date=data["date"],
            status=AttendanceStatus(data.get("status", AttendanceStatus.PRESENT.value)),
            behavior_status=BehaviorStatus(behavior) if behavior else None,
            behavior_note=data.get("behavior_note") or "",
        )


@dataclass
class ScheduleItem:
    id: str
    class_name: str
    day: int  # 0 = Monday, matching datetime.weekday()
    period: int
    subject_name: str = ""
    teacher_id: Optional[str] = None
    start_time: str = ""  # "HH:MM"
    end_time: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ScheduleItem":
        return cls(
            id=str(data["id"]),
            class_name=data.get("class_name", ""),
            day=int(data.get("day", 0)),
            period=int(data.get("period", 0)),
            subject_name=data.get("subject_name", ""),
            teacher_id=data.get("teacher_id"),
            start_time=data.get("start_time", ""),
            end_time=data.get("end_time", ""),
        )


@dataclass
class TeacherAssignment:
    id: str
    teacher_id: str
    class_name: str
    subject_name: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TeacherAssignment":
        return cls(
            id=str(data["id"]),
            teacher_id=str(data.get("teacher_id", "")),
            class_name=data.get("class_name", ""),
            subject_name=data.get("subject_name", ""),
        )


@dataclass
class LessonLink:
    id: str
    title: str
    url: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "LessonLink":
        return cls(id=str(data["id"]), title=data.get("title", ""), url=data.get("url", ""))


@dataclass
class AISettings:
    model_id: str = BEDROCK_MODEL_ID
    temperature: float = AI_DEFAULT_TEMPERATURE
    enable_reports: bool = True
    enable_quiz: bool = True
    enable_planning: bool = True
    system_instruction: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AISettings":
        defaults = cls()
        return cls(
            model_id=data.get("model_id") or defaults.model_id,
            temperature=float(data.get("temperature", defaults.temperature)),
            enable_reports=bool(data.get("enable_reports", True)),
            enable_quiz=bool(data.get("enable_quiz", True)),
            enable_planning=bool(data.get("enable_planning", True)),
            system_instruction=data.get("system_instruction") or "",
        )
