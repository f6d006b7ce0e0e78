"""Course catalog: courses and their ordered lectures."""

from coursehub.courses.models import Course, Lecture
from coursehub.courses.service import (
    CourseCatalog,
    CourseError,
    CourseNotFoundError,
    InvalidReorderError,
    LectureNotFoundError,
)


__all__ = [
    "Course",
    "CourseCatalog",
    "CourseError",
    "CourseNotFoundError",
    "InvalidReorderError",
    "Lecture",
    "LectureNotFoundError",
]
