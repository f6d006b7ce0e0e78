"""Lecture unlock engine and student progress."""

from .models import LectureProgress, LectureState
from .repository import LectureProgressRepository
from .service import LectureLockedError, LectureUnlockEngine, ProgressError


__all__ = [
    "LectureLockedError",
    "LectureProgress",
    "LectureProgressRepository",
    "LectureState",
    "LectureUnlockEngine",
    "ProgressError",
]
