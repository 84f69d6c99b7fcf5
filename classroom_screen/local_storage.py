"""
Local Storage Manager
Key-value JSON persistence for rosters, attendance, schedules and notes,
with atomic writes and backup/restore of corrupted files.
"""

import json
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List

from .models import (
    AISettings,
    AttendanceRecord,
    LessonLink,
    ScheduleItem,
    Student,
    TeacherAssignment,
)

logger = logging.getLogger(__name__)

NOTES_KEY = "classroom_notes"


class LocalStorage:
    """Manages app_<key>.json files with backup/restore capabilities"""

    def __init__(self, base_path: str = "./data", keep_backups: int = 7):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

        self.backup_dir = self.base_path / "backups"
        self.backup_dir.mkdir(exist_ok=True)
        self.keep_backups = keep_backups

    def _path(self, key: str) -> Path:
        return self.base_path / f"app_{key}.json"

    # ── Generic key-value access ────────────────────────────────────────────

    def load(self, key: str, default: Any = None) -> Any:
        """Load the value stored under key, or default when absent."""
        path = self._path(key)
        try:
            if not path.exists():
                return default

            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)

        except json.JSONDecodeError as e:
            logger.warning("Corrupted %s: %s", path.name, e)
            restored = self._restore_from_backup(key)
            return default if restored is None else restored

        except OSError as e:
            logger.error("Error loading %s: %s", key, e)
            return default

    def save(self, key: str, value: Any, create_backup: bool = True) -> bool:
        """Save value under key; the previous file is backed up first."""
        path = self._path(key)
        try:
            if create_backup and path.exists():
                self._create_backup(key)

            temp_path = path.with_suffix('.tmp')
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(value, f, indent=2, ensure_ascii=False)

            temp_path.replace(path)
            return True

        except (OSError, TypeError) as e:
            logger.error("Error saving %s: %s", key, e)
            return False

    def upsert_records(self, key: str, records: Iterable[Dict]) -> bool:
        """Insert or replace records keyed by their 'id' (last write wins)."""
        existing = self.load(key, [])
        if not isinstance(existing, list):
            existing = []

        index = {item.get("id"): pos for pos, item in enumerate(existing) if isinstance(item, dict)}
        for record in records:
            record_id = record.get("id")
            if record_id is None:
                raise ValueError(f"Record without id cannot be saved under {key!r}")
            if record_id in index:
                existing[index[record_id]] = record
            else:
                index[record_id] = len(existing)
                existing.append(record)

        return self.save(key, existing)

    # ── Backups ─────────────────────────────────────────────────────────────

    def _create_backup(self, key: str):
        """Create timestamped backup of one key"""
        try:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            backup_path = self.backup_dir / f"{key}_{timestamp}.json"
            shutil.copy2(self._path(key), backup_path)

            self._cleanup_old_backups(key, keep=self.keep_backups)

        except OSError as e:
            logger.warning("Backup creation failed for %s: %s", key, e)

    def _cleanup_old_backups(self, key: str, keep: int = 7):
        """Remove old backups, keeping only the most recent N"""
        backups = sorted(self.backup_dir.glob(f"{key}_*.json"))
        if len(backups) > keep:
            for old_backup in backups[:-keep]:
                old_backup.unlink()

    def _restore_from_backup(self, key: str) -> Any:
        """Restore a key from its most recent readable backup"""
        for backup in sorted(self.backup_dir.glob(f"{key}_*.json"), reverse=True):
            try:
                with open(backup, 'r', encoding='utf-8') as f:
                    value = json.load(f)
            except (OSError, json.JSONDecodeError):
                continue

            logger.info("Restoring %s from backup %s", key, backup.name)
            self.save(key, value, create_backup=False)
            return value

        logger.error("No usable backup for %s", key)
        return None

    # ── Domain helpers ──────────────────────────────────────────────────────

    def _load_list(self, key: str, factory) -> List:
        items = []
        for raw in self.load(key, []) or []:
            try:
                items.append(factory(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed %s entry: %s", key, e)
        return items

    def load_students(self) -> List[Student]:
        return self._load_list("students", Student.from_dict)

    def load_attendance(self) -> List[AttendanceRecord]:
        return self._load_list("attendance", AttendanceRecord.from_dict)

    def save_attendance(self, records: Iterable[AttendanceRecord]) -> bool:
        return self.upsert_records("attendance", [r.to_dict() for r in records])

    def load_schedules(self) -> List[ScheduleItem]:
        return self._load_list("schedules", ScheduleItem.from_dict)

    def load_teacher_assignments(self) -> List[TeacherAssignment]:
        return self._load_list("teacher_assignments", TeacherAssignment.from_dict)

    def load_lesson_links(self) -> List[LessonLink]:
        return self._load_list("lesson_links", LessonLink.from_dict)

    def load_ai_settings(self) -> AISettings:
        raw = self.load("ai_settings")
        if not isinstance(raw, dict):
            return AISettings()
        return AISettings.from_dict(raw)

    def load_note(self) -> str:
        note = self.load(NOTES_KEY, "")
        return note if isinstance(note, str) else ""

    def save_note(self, text: str) -> bool:
        return self.save(NOTES_KEY, text)
