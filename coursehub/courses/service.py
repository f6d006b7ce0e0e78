"""Course catalog service layer.

Business logic for:
- Course creation and pricing
- Lecture creation with position allocation
- Lecture updates and reordering
- Ordered lecture reads used by enrollment and unlock workflows
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra.query import BatchStatement, BatchType

from coursehub.courses.models import Course, Lecture


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(Exception):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CourseError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class LectureNotFoundError(CourseError):
    """Lecture not found (or not part of the given course)."""

    def __init__(self, message: str = "Lecture not found"):
        super().__init__(message, "lecture_not_found")


class InvalidReorderError(CourseError):
    """Reorder list does not match the course's current lectures."""

    def __init__(
        self, message: str = "Reorder must list every lecture of the course once"
    ):
        super().__init__(message, "invalid_reorder")


class PositionConflictError(CourseError):
    """Could not allocate a lecture position under contention."""

    def __init__(self, message: str = "Could not allocate lecture position"):
        super().__init__(message, "position_conflict")


# ==============================================================================
# Course Catalog
# ==============================================================================


class CourseCatalog:
    """Courses and their ordered lectures.

    Lecture positions are unique within a course. New positions come from a
    compare-and-set on ``courses.lecture_count``; reorders rewrite every
    position of the course in one logged batch so readers of the
    ``lectures_by_course`` partition never observe a duplicate.
    """

    MAX_POSITION_ATTEMPTS = 5

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        # Courses
        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._insert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses
            (id, title, description, price, creator_id, lecture_count,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_course = self.session.prepare(f"""
            UPDATE {self.keyspace}.courses
            SET title = ?, description = ?, price = ?, updated_at = ?
            WHERE id = ?
        """)
        self._allocate_position = self.session.prepare(f"""
            UPDATE {self.keyspace}.courses
            SET lecture_count = ?
            WHERE id = ?
            IF lecture_count = ?
        """)

        # Lectures
        self._get_lecture_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.lectures WHERE id = ?"
        )
        self._insert_lecture = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lectures
            (id, course_id, title, description, video_url, position, is_free,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_lecture = self.session.prepare(f"""
            UPDATE {self.keyspace}.lectures
            SET title = ?, description = ?, video_url = ?, is_free = ?,
                updated_at = ?
            WHERE id = ?
        """)
        self._update_lecture_position = self.session.prepare(f"""
            UPDATE {self.keyspace}.lectures
            SET position = ?, updated_at = ?
            WHERE id = ?
        """)

        # Per-course lecture index
        self._get_lectures_by_course = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.lectures_by_course WHERE course_id = ?"
        )
        self._upsert_lecture_by_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lectures_by_course
            (course_id, lecture_id, position, is_free, title)
            VALUES (?, ?, ?, ?, ?)
        """)
        self._update_position_by_course = self.session.prepare(f"""
            UPDATE {self.keyspace}.lectures_by_course
            SET position = ?
            WHERE course_id = ? AND lecture_id = ?
        """)

    # ==========================================================================
    # Courses
    # ==========================================================================

    async def create_course(
        self,
        title: str,
        creator_id: UUID,
        description: str | None = None,
        price: Decimal | None = None,
    ) -> Course:
        """Create a course with no lectures."""
        course = Course(
            title=title,
            description=description,
            price=price,
            creator_id=creator_id,
            lecture_count=0,
        )

        await self.session.aexecute(
            self._insert_course,
            [
                course.id,
                course.title,
                course.description,
                course.price,
                course.creator_id,
                course.lecture_count,
                course.created_at,
                course.updated_at,
            ],
        )

        logger.info("course_created", course_id=str(course.id), price=str(price))
        return course

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by ID, without lectures."""
        result = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def update_course(
        self,
        course_id: UUID,
        title: str | None = None,
        description: str | None = None,
        price: Decimal | None = None,
    ) -> Course:
        """Update course details; fields left as None are kept.

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        course = await self.get_course(course_id)
        if not course:
            raise CourseNotFoundError

        if title is not None:
            course.title = title.strip()
        if description is not None:
            course.description = description
        if price is not None:
            course.price = price
        course.updated_at = datetime.now(UTC)

        await self.session.aexecute(
            self._update_course,
            [
                course.title,
                course.description,
                course.price,
                course.updated_at,
                course.id,
            ],
        )
        return course

    async def list_lectures(self, course_id: UUID) -> list[Lecture]:
        """Lectures of a course, ordered by position."""
        result = await self.session.aexecute(self._get_lectures_by_course, [course_id])
        lectures = [Lecture.from_course_row(row) for row in result]
        return sorted(lectures, key=lambda lecture: lecture.position)

    async def get_course_with_lectures(self, course_id: UUID) -> Course | None:
        """Get course with its lectures ordered by position."""
        course = await self.get_course(course_id)
        if not course:
            return None
        course.lectures = await self.list_lectures(course_id)
        return course

    # ==========================================================================
    # Lectures
    # ==========================================================================

    async def get_lecture(self, lecture_id: UUID) -> Lecture | None:
        """Get lecture by ID."""
        result = await self.session.aexecute(self._get_lecture_by_id, [lecture_id])
        row = result.one()
        return Lecture.from_row(row) if row else None

    async def get_lecture_position(self, lecture_id: UUID) -> tuple[UUID, int] | None:
        """Return (course_id, position) for a lecture, or None if unknown."""
        lecture = await self.get_lecture(lecture_id)
        if not lecture:
            return None
        return lecture.course_id, lecture.position

    async def _next_position(self, course: Course) -> int:
        """Allocate the next free position with a compare-and-set."""
        expected = course.lecture_count
        for _ in range(self.MAX_POSITION_ATTEMPTS):
            result = await self.session.aexecute(
                self._allocate_position, [expected + 1, course.id, expected]
            )
            if result.was_applied:
                return expected + 1
            # Lost the race: the LWT result carries the current value
            expected = result.one().lecture_count or 0

        logger.warning(
            "lecture_position_contention",
            course_id=str(course.id),
            attempts=self.MAX_POSITION_ATTEMPTS,
        )
        raise PositionConflictError

    async def create_lecture(
        self,
        course_id: UUID,
        title: str,
        description: str | None = None,
        video_url: str | None = None,
        is_free: bool = False,
    ) -> Lecture:
        """Append a lecture at the end of the course.

        Raises:
            CourseNotFoundError: If course doesn't exist
            PositionConflictError: If position allocation keeps losing races
        """
        course = await self.get_course(course_id)
        if not course:
            raise CourseNotFoundError

        position = await self._next_position(course)
        lecture = Lecture(
            course_id=course_id,
            position=position,
            title=title,
            description=description,
            video_url=video_url,
            is_free=is_free,
        )

        batch = BatchStatement(batch_type=BatchType.LOGGED)
        batch.add(
            self._insert_lecture,
            [
                lecture.id,
                lecture.course_id,
                lecture.title,
                lecture.description,
                lecture.video_url,
                lecture.position,
                lecture.is_free,
                lecture.created_at,
                lecture.updated_at,
            ],
        )
        batch.add(
            self._upsert_lecture_by_course,
            [course_id, lecture.id, lecture.position, lecture.is_free, lecture.title],
        )
        await self.session.aexecute(batch)

        logger.info(
            "lecture_created",
            course_id=str(course_id),
            lecture_id=str(lecture.id),
            position=position,
            is_free=lecture.is_free,
        )
        return lecture

    async def update_lecture(
        self,
        lecture_id: UUID,
        title: str | None = None,
        description: str | None = None,
        video_url: str | None = None,
        is_free: bool | None = None,
    ) -> Lecture:
        """Update lecture content or its free flag; position is left alone.

        Raises:
            LectureNotFoundError: If lecture doesn't exist
        """
        lecture = await self.get_lecture(lecture_id)
        if not lecture:
            raise LectureNotFoundError

        if title is not None:
            lecture.title = title.strip()
        if description is not None:
            lecture.description = description
        if video_url is not None:
            lecture.video_url = video_url
        if is_free is not None:
            lecture.is_free = is_free
        lecture.updated_at = datetime.now(UTC)

        batch = BatchStatement(batch_type=BatchType.LOGGED)
        batch.add(
            self._update_lecture,
            [
                lecture.title,
                lecture.description,
                lecture.video_url,
                lecture.is_free,
                lecture.updated_at,
                lecture.id,
            ],
        )
        batch.add(
            self._upsert_lecture_by_course,
            [
                lecture.course_id,
                lecture.id,
                lecture.position,
                lecture.is_free,
                lecture.title,
            ],
        )
        await self.session.aexecute(batch)
        return lecture

    async def reorder_lectures(
        self, course_id: UUID, lecture_ids: list[UUID]
    ) -> list[Lecture]:
        """Assign positions 1..N following the order of `lecture_ids`.

        Raises:
            CourseNotFoundError: If course doesn't exist
            InvalidReorderError: If ids don't match the course's lectures exactly
        """
        course = await self.get_course_with_lectures(course_id)
        if not course:
            raise CourseNotFoundError

        current_ids = {lecture.id for lecture in course.lectures}
        if len(lecture_ids) != len(set(lecture_ids)) or set(lecture_ids) != current_ids:
            raise InvalidReorderError

        by_id = {lecture.id: lecture for lecture in course.lectures}
        now = datetime.now(UTC)
        batch = BatchStatement(batch_type=BatchType.LOGGED)
        for position, lecture_id in enumerate(lecture_ids, start=1):
            batch.add(
                self._update_position_by_course, [position, course_id, lecture_id]
            )
            batch.add(self._update_lecture_position, [position, now, lecture_id])
            by_id[lecture_id].position = position
        await self.session.aexecute(batch)

        logger.info(
            "lectures_reordered",
            course_id=str(course_id),
            lecture_count=len(lecture_ids),
        )
        return [by_id[lecture_id] for lecture_id in lecture_ids]
