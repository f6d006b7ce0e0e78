"""Pydantic schemas for lecture progress."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import LectureProgress, LectureState


class WatchLectureRequest(BaseModel):
    """Record that a lecture was watched."""

    watched_at: datetime | None = Field(
        None, description="When the lecture was watched (defaults to now)"
    )


class LectureProgressResponse(BaseModel):
    """Progress of one student on one lecture."""

    model_config = ConfigDict(from_attributes=True)

    student_id: UUID
    course_id: UUID
    lecture_id: UUID
    state: LectureState
    is_unlocked: bool
    is_completed: bool
    watched_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, progress: LectureProgress) -> "LectureProgressResponse":
        return cls(
            student_id=progress.student_id,
            course_id=progress.course_id,
            lecture_id=progress.lecture_id,
            state=progress.state,
            is_unlocked=progress.is_unlocked,
            is_completed=progress.is_completed,
            watched_at=progress.watched_at,
            completed_at=progress.completed_at,
            updated_at=progress.updated_at,
        )


class LectureStateResponse(BaseModel):
    """State of one lecture for the current student; LOCKED when no row exists."""

    lecture_id: UUID
    state: LectureState
    progress: LectureProgressResponse | None = None
