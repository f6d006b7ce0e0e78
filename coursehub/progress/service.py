"""Lecture unlock engine.

Business logic for:
- Initial unlock state when a student enrolls
- Full-course unlock after a confirmed purchase
- Sequential unlock of the next lecture on completion
- Progress reads ordered by the course's current lecture order

A lecture only ever moves LOCKED -> UNLOCKED -> COMPLETED. "Next lecture" is
always resolved against the positions read at call time, so a reorder between
two completions changes which lecture the second completion unlocks.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from coursehub.courses.models import Course
from coursehub.courses.service import CourseNotFoundError, LectureNotFoundError
from .models import LectureProgress, LectureState


if TYPE_CHECKING:
    from coursehub.courses.service import CourseCatalog
    from coursehub.orders.repository import EnrollmentRepository
    from .repository import LectureProgressRepository


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class LectureLockedError(ProgressError):
    """Lecture is neither unlocked for the student nor free."""

    def __init__(self, message: str = "Lecture is locked"):
        super().__init__(message, "lecture_locked")


# ==============================================================================
# Lecture Unlock Engine
# ==============================================================================


class LectureUnlockEngine:
    """Decides which lectures a student may open.

    Enrollment facts are read through the enrollment repository and the
    ordered lecture list through the course catalog; the engine itself owns
    only lecture progress rows.
    """

    def __init__(
        self,
        progress_repository: "LectureProgressRepository",
        catalog: "CourseCatalog",
        enrollments: "EnrollmentRepository",
        require_unlocked_to_complete: bool = True,
    ):
        self.progress = progress_repository
        self.catalog = catalog
        self.enrollments = enrollments
        self.require_unlocked_to_complete = require_unlocked_to_complete

    async def _load_course(self, course_id: UUID) -> Course:
        course = await self.catalog.get_course_with_lectures(course_id)
        if not course:
            raise CourseNotFoundError
        return course

    async def has_paid_enrollment(self, student_id: UUID, course_id: UUID) -> bool:
        enrollment = await self.enrollments.get(student_id, course_id)
        return enrollment is not None and enrollment.is_active

    # ==========================================================================
    # Unlocking
    # ==========================================================================

    async def initialize_for_enrollment(
        self, student_id: UUID, course_id: UUID
    ) -> list[LectureProgress]:
        """Create or refresh progress rows for every lecture of a course.

        A lecture is unlocked when it is free, or when the student holds a
        paid enrollment and it is either the first lecture or its predecessor
        is completed. Everything else gets a locked row unless a row exists.

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        course = await self._load_course(course_id)
        paid = await self.has_paid_enrollment(student_id, course_id)
        existing = {
            progress.lecture_id: progress
            for progress in await self.progress.list_for_course(student_id, course_id)
        }

        unlocked = 0
        previous_completed = False
        for index, lecture in enumerate(course.lectures):
            should_unlock = lecture.is_free or (
                paid and (index == 0 or previous_completed)
            )
            if should_unlock:
                await self.progress.unlock(student_id, course_id, lecture.id)
                unlocked += 1
            else:
                await self.progress.ensure(student_id, course_id, lecture.id)

            current = existing.get(lecture.id)
            previous_completed = current is not None and current.is_completed

        logger.info(
            "progress_initialized",
            student_id=str(student_id),
            course_id=str(course_id),
            lectures=len(course.lectures),
            unlocked=unlocked,
            paid=paid,
        )
        return await self.get_progress(student_id, course_id)

    async def unlock_all_for_course(self, student_id: UUID, course_id: UUID) -> int:
        """Unlock every lecture of the course; completion data is untouched.

        Returns:
            Number of lectures in the course.

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        course = await self._load_course(course_id)
        lecture_ids = [lecture.id for lecture in course.lectures]
        await self.progress.unlock_many(student_id, course_id, lecture_ids)

        logger.info(
            "lectures_unlocked",
            student_id=str(student_id),
            course_id=str(course_id),
            count=len(lecture_ids),
        )
        return len(lecture_ids)

    # ==========================================================================
    # Completion and watching
    # ==========================================================================

    async def complete_lecture(
        self, student_id: UUID, lecture_id: UUID, course_id: UUID
    ) -> LectureProgress:
        """Mark a lecture completed and unlock the next one for paid students.

        Raises:
            CourseNotFoundError: If course doesn't exist
            LectureNotFoundError: If the lecture is not part of the course
            LectureLockedError: If the lecture is neither unlocked nor free
        """
        course = await self._load_course(course_id)
        lecture = course.find_lecture(lecture_id)

        if self.require_unlocked_to_complete:
            if lecture is None:
                raise LectureNotFoundError
            if not lecture.is_free:
                current = await self.progress.get(student_id, course_id, lecture_id)
                if current is None or not current.is_unlocked:
                    logger.warning(
                        "complete_locked_lecture_rejected",
                        student_id=str(student_id),
                        lecture_id=str(lecture_id),
                    )
                    raise LectureLockedError

        await self.progress.complete(
            student_id, course_id, lecture_id, datetime.now(UTC)
        )

        # Positions may have changed since the lecture was loaded
        course = await self._load_course(course_id)
        next_lecture = course.next_lecture_after(lecture_id)
        if next_lecture is not None and await self.has_paid_enrollment(
            student_id, course_id
        ):
            await self.progress.unlock(student_id, course_id, next_lecture.id)
            logger.info(
                "next_lecture_unlocked",
                student_id=str(student_id),
                course_id=str(course_id),
                lecture_id=str(next_lecture.id),
            )

        logger.info(
            "lecture_completed",
            student_id=str(student_id),
            course_id=str(course_id),
            lecture_id=str(lecture_id),
        )
        progress = await self.progress.get(student_id, course_id, lecture_id)
        return progress or LectureProgress(
            student_id=student_id,
            course_id=course_id,
            lecture_id=lecture_id,
            is_unlocked=True,
            is_completed=True,
        )

    async def record_watch(
        self,
        student_id: UUID,
        lecture_id: UUID,
        course_id: UUID,
        watched_at: datetime | None = None,
    ) -> LectureProgress:
        """Record that the student watched a lecture.

        Raises:
            CourseNotFoundError: If course doesn't exist
            LectureNotFoundError: If the lecture is not part of the course
            LectureLockedError: If the lecture is neither unlocked nor free
        """
        course = await self._load_course(course_id)
        lecture = course.find_lecture(lecture_id)
        if lecture is None:
            raise LectureNotFoundError

        current = await self.progress.get(student_id, course_id, lecture_id)
        unlocked = current is not None and current.is_unlocked
        if not unlocked:
            if not lecture.is_free:
                raise LectureLockedError
            await self.progress.unlock(student_id, course_id, lecture_id)

        await self.progress.record_watch(
            student_id, course_id, lecture_id, watched_at or datetime.now(UTC)
        )
        progress = await self.progress.get(student_id, course_id, lecture_id)
        return progress or LectureProgress(
            student_id=student_id,
            course_id=course_id,
            lecture_id=lecture_id,
            is_unlocked=True,
            watched_at=watched_at,
        )

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_progress(
        self, student_id: UUID, course_id: UUID
    ) -> list[LectureProgress]:
        """Progress rows ordered by current lecture position; [] when missing."""
        course = await self.catalog.get_course_with_lectures(course_id)
        if not course:
            return []

        rows = {
            progress.lecture_id: progress
            for progress in await self.progress.list_for_course(student_id, course_id)
        }
        return [rows[lecture.id] for lecture in course.lectures if lecture.id in rows]

    async def get_lecture_progress(
        self, student_id: UUID, lecture_id: UUID
    ) -> LectureProgress | None:
        located = await self.catalog.get_lecture_position(lecture_id)
        if located is None:
            return None
        course_id, _position = located
        return await self.progress.get(student_id, course_id, lecture_id)

    @staticmethod
    def lecture_state(progress: LectureProgress | None) -> LectureState:
        """State of a lecture; a missing row means LOCKED."""
        if progress is None:
            return LectureState.LOCKED
        return progress.state
