"""
Mock collaborators shared by the test modules.
"""

from typing import Dict, List

from classroom_screen.ai_client import AIServiceError
from classroom_screen.models import AISettings, AttendanceRecord
from classroom_screen.sound_cues import SoundCue


class MockStorage:
    """In-memory stand-in for LocalStorage."""

    def __init__(self, students=None, attendance=None, schedules=None,
                 assignments=None, links=None, ai_settings=None, note=""):
        self.students = list(students or [])
        self.attendance: List[AttendanceRecord] = list(attendance or [])
        self.schedules = list(schedules or [])
        self.assignments = list(assignments or [])
        self.links = list(links or [])
        self.ai_settings = ai_settings or AISettings()
        self.note = note
        self.saved_records: List[AttendanceRecord] = []
        self.saved_notes: List[str] = []
        self.fail_saves = False

    def load_students(self):
        return list(self.students)

    def load_attendance(self):
        return list(self.attendance)

    def save_attendance(self, records) -> bool:
        if self.fail_saves:
            return False
        records = list(records)
        self.saved_records.extend(records)
        self.attendance.extend(records)
        return True

    def load_schedules(self):
        return list(self.schedules)

    def load_teacher_assignments(self):
        return list(self.assignments)

    def load_lesson_links(self):
        return list(self.links)

    def load_ai_settings(self):
        return self.ai_settings

    def load_note(self) -> str:
        return self.note

    def save_note(self, text: str) -> bool:
        if self.fail_saves:
            return False
        self.note = text
        self.saved_notes.append(text)
        return True


class RecordingSound(SoundCue):
    """SoundCue that remembers which cues were played."""

    def __init__(self):
        self.played: List[str] = []

    def correct(self):
        self.played.append("correct")

    def wrong(self):
        self.played.append("wrong")

    def clap(self):
        self.played.append("clap")

    def bell(self):
        self.played.append("bell")

    def drum(self):
        self.played.append("drum")

    def quiet(self):
        self.played.append("quiet")

    def count(self, name: str) -> int:
        return self.played.count(name)


class MockBackend:
    """AI backend returning canned replies (or raising) and recording requests."""

    def __init__(self, reply: str = "", error: str = None):
        self.reply = reply
        self.error = error
        self.requests = []

    def complete(self, request) -> str:
        self.requests.append(request)
        if self.error:
            raise AIServiceError(self.error)
        return self.reply


QUIZ_REPLY = """```json
[
  {"question": "2 + 2 = ?", "options": ["3", "4", "5"], "answer": "4", "explanation": "basic sum"},
  {"question": "Capital of France?", "options": ["Paris", "Rome"], "answer": "Paris"}
]
```"""

ACTIVITY_REPLY = ('{"title": "Stand and stretch", "description": "Quick reset", '
                  '"steps": ["Stand up", "Stretch"], "duration_minutes": 3}')


def attendance_dict(student_id: str, date: str, status: str = "حاضر",
                    behavior: str = None, record_id: str = None) -> Dict:
    return {
        "id": record_id or f"{student_id}-{date}-{behavior}",
        "student_id": student_id,
        "date": date,
        "status": status,
        "behavior_status": behavior,
        "behavior_note": "",
    }
