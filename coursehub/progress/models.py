"""Database models for lecture progress and unlock state.

Cassandra table definitions for:
- Lecture progress: unlock/completion flags per (student, lecture)

Partition key is (student_id, course_id) so a whole course's progress is read
in one query and a full-course unlock is a single-partition batch.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from coursehub.courses.models import ensure_utc_aware


class LectureState(str, Enum):
    """Derived lecture state; transitions only move forward."""

    LOCKED = "locked"
    UNLOCKED = "unlocked"
    COMPLETED = "completed"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

LECTURE_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lecture_progress (
    student_id UUID,
    course_id UUID,
    lecture_id UUID,
    is_unlocked BOOLEAN,
    is_completed BOOLEAN,
    watched_at TIMESTAMP,
    completed_at TIMESTAMP,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((student_id, course_id), lecture_id)
)
"""

PROGRESS_TABLES_CQL = [
    LECTURE_PROGRESS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class LectureProgress:
    """Progress of one student on one lecture.

    Attributes:
        student_id: Student UUID
        course_id: Course UUID (partition key component)
        lecture_id: Lecture UUID
        is_unlocked: Student may open the lecture
        is_completed: Student finished the lecture (implies unlocked)
        watched_at: Last time the student watched it
        completed_at: When it was marked complete
        created_at: Row creation timestamp
        updated_at: Last write
    """

    def __init__(
        self,
        student_id: UUID,
        course_id: UUID,
        lecture_id: UUID,
        is_unlocked: bool | None = False,
        is_completed: bool | None = False,
        watched_at: datetime | None = None,
        completed_at: datetime | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.student_id = student_id
        self.course_id = course_id
        self.lecture_id = lecture_id
        # Null columns read as false
        self.is_unlocked = bool(is_unlocked)
        self.is_completed = bool(is_completed)
        self.watched_at = ensure_utc_aware(watched_at)
        self.completed_at = ensure_utc_aware(completed_at)
        self.created_at = ensure_utc_aware(created_at)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "LectureProgress":
        """Create LectureProgress instance from Cassandra row."""
        return cls(
            student_id=row.student_id,
            course_id=row.course_id,
            lecture_id=row.lecture_id,
            is_unlocked=row.is_unlocked,
            is_completed=row.is_completed,
            watched_at=row.watched_at,
            completed_at=row.completed_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @property
    def state(self) -> LectureState:
        if self.is_completed:
            return LectureState.COMPLETED
        if self.is_unlocked:
            return LectureState.UNLOCKED
        return LectureState.LOCKED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "student_id": self.student_id,
            "course_id": self.course_id,
            "lecture_id": self.lecture_id,
            "is_unlocked": self.is_unlocked,
            "is_completed": self.is_completed,
            "state": self.state.value,
            "watched_at": self.watched_at,
            "completed_at": self.completed_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<LectureProgress lecture={self.lecture_id} ({self.state.value})>"
