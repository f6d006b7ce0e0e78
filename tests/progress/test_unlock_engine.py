"""Tests for the lecture unlock engine.

Covers:
- initialize_for_enrollment for free-preview and paid students
- unlock_all_for_course
- complete_lecture and the sequential gate
- "next lecture" resolution after a reorder
- record_watch, get_progress and lecture state reads
"""

from uuid import uuid4

import pytest

from coursehub.courses.service import CourseNotFoundError, LectureNotFoundError
from coursehub.progress.models import LectureProgress, LectureState
from coursehub.progress.service import LectureLockedError, LectureUnlockEngine


def _unlocked(rows: list[LectureProgress]) -> list[bool]:
    return [row.is_unlocked for row in rows]


def _assert_completion_implies_unlock(progress_repository) -> None:
    for row in progress_repository.rows.values():
        assert not row.is_completed or row.is_unlocked


class TestInitializeForEnrollment:
    """Tests for initial unlock state."""

    @pytest.mark.asyncio
    async def test_unpaid_student_gets_free_lectures_only(
        self, unlock_engine, course_with_lectures, student_id
    ) -> None:
        """Without payment only free lectures unlock; others get locked rows."""
        course, _lectures = course_with_lectures

        rows = await unlock_engine.initialize_for_enrollment(student_id, course.id)

        assert len(rows) == 3
        assert _unlocked(rows) == [True, False, False]
        assert [row.state for row in rows] == [
            LectureState.UNLOCKED,
            LectureState.LOCKED,
            LectureState.LOCKED,
        ]

    @pytest.mark.asyncio
    async def test_paid_student_gets_first_lecture(
        self, unlock_engine, catalog, enrollment_repository, student_id
    ) -> None:
        """A paid enrollment unlocks the first lecture even when it is not free."""
        course = catalog.add_course()
        catalog.add_lecture(course.id)
        catalog.add_lecture(course.id)
        enrollment_repository.seed_active(student_id, course.id)

        rows = await unlock_engine.initialize_for_enrollment(student_id, course.id)

        assert _unlocked(rows) == [True, False]

    @pytest.mark.asyncio
    async def test_paid_student_resumes_after_completed_lecture(
        self,
        unlock_engine,
        course_with_lectures,
        enrollment_repository,
        progress_repository,
        student_id,
    ) -> None:
        """The lecture after a completed one is unlocked on re-initialization."""
        course, lectures = course_with_lectures
        enrollment_repository.seed_active(student_id, course.id)
        await progress_repository.complete(
            student_id, course.id, lectures[1].id, completed_at=None
        )

        rows = await unlock_engine.initialize_for_enrollment(student_id, course.id)

        assert _unlocked(rows) == [True, True, True]

    @pytest.mark.asyncio
    async def test_never_relocks_unlocked_rows(
        self, unlock_engine, course_with_lectures, progress_repository, student_id
    ) -> None:
        """An existing unlocked row survives a locking decision."""
        course, lectures = course_with_lectures
        await progress_repository.unlock(student_id, course.id, lectures[2].id)

        rows = await unlock_engine.initialize_for_enrollment(student_id, course.id)

        assert _unlocked(rows) == [True, False, True]

    @pytest.mark.asyncio
    async def test_unknown_course(self, unlock_engine, student_id) -> None:
        with pytest.raises(CourseNotFoundError):
            await unlock_engine.initialize_for_enrollment(student_id, uuid4())


class TestUnlockAllForCourse:
    """Tests for full-course unlock."""

    @pytest.mark.asyncio
    async def test_unlocks_every_lecture(
        self, unlock_engine, course_with_lectures, student_id
    ) -> None:
        course, _lectures = course_with_lectures

        count = await unlock_engine.unlock_all_for_course(student_id, course.id)
        rows = await unlock_engine.get_progress(student_id, course.id)

        assert count == 3
        assert _unlocked(rows) == [True, True, True]

    @pytest.mark.asyncio
    async def test_keeps_completion_and_watch_data(
        self, unlock_engine, course_with_lectures, progress_repository, student_id
    ) -> None:
        """Re-running only fills gaps and never clears completion."""
        course, lectures = course_with_lectures
        await unlock_engine.complete_lecture(student_id, lectures[0].id, course.id)
        await unlock_engine.record_watch(student_id, lectures[0].id, course.id)

        await unlock_engine.unlock_all_for_course(student_id, course.id)
        await unlock_engine.unlock_all_for_course(student_id, course.id)

        first = await progress_repository.get(student_id, course.id, lectures[0].id)
        assert first.is_completed is True
        assert first.completed_at is not None
        assert first.watched_at is not None

    @pytest.mark.asyncio
    async def test_empty_course(self, unlock_engine, catalog, student_id) -> None:
        course = catalog.add_course()

        assert await unlock_engine.unlock_all_for_course(student_id, course.id) == 0


class TestCompleteLecture:
    """Tests for completion and the sequential gate."""

    @pytest.mark.asyncio
    async def test_unenrolled_student_completes_free_lecture(
        self, unlock_engine, course_with_lectures, progress_repository, student_id
    ) -> None:
        """Completing free L1 without enrollment leaves L2 and L3 locked."""
        course, lectures = course_with_lectures

        progress = await unlock_engine.complete_lecture(
            student_id, lectures[0].id, course.id
        )

        assert progress.is_unlocked is True
        assert progress.is_completed is True
        for lecture in lectures[1:]:
            row = await progress_repository.get(student_id, course.id, lecture.id)
            assert LectureUnlockEngine.lecture_state(row) == LectureState.LOCKED

    @pytest.mark.asyncio
    async def test_paid_student_unlocks_next_lecture(
        self,
        unlock_engine,
        course_with_lectures,
        enrollment_repository,
        progress_repository,
        student_id,
    ) -> None:
        """With a paid enrollment completing L1 opens L2 only."""
        course, lectures = course_with_lectures
        enrollment_repository.seed_active(student_id, course.id)

        await unlock_engine.complete_lecture(student_id, lectures[0].id, course.id)

        second = await progress_repository.get(student_id, course.id, lectures[1].id)
        third = await progress_repository.get(student_id, course.id, lectures[2].id)
        assert second.is_unlocked is True
        assert third is None

    @pytest.mark.asyncio
    async def test_enrollment_decides_next_unlock(
        self,
        unlock_engine,
        course_with_lectures,
        enrollment_repository,
        progress_repository,
        student_id,
    ) -> None:
        """Completing L1 again after paying opens L2; before paying it did not."""
        course, lectures = course_with_lectures

        await unlock_engine.complete_lecture(student_id, lectures[0].id, course.id)
        assert (
            await progress_repository.get(student_id, course.id, lectures[1].id)
        ) is None

        enrollment_repository.seed_active(student_id, course.id)
        await unlock_engine.complete_lecture(student_id, lectures[0].id, course.id)

        second = await progress_repository.get(student_id, course.id, lectures[1].id)
        assert second.is_unlocked is True

    @pytest.mark.asyncio
    async def test_last_lecture_has_no_successor(
        self, unlock_engine, course_with_lectures, enrollment_repository, student_id
    ) -> None:
        course, lectures = course_with_lectures
        enrollment_repository.seed_active(student_id, course.id)
        await unlock_engine.unlock_all_for_course(student_id, course.id)

        progress = await unlock_engine.complete_lecture(
            student_id, lectures[2].id, course.id
        )

        assert progress.state == LectureState.COMPLETED

    @pytest.mark.asyncio
    async def test_locked_paid_lecture_is_rejected(
        self, unlock_engine, course_with_lectures, progress_repository, student_id
    ) -> None:
        course, lectures = course_with_lectures

        with pytest.raises(LectureLockedError):
            await unlock_engine.complete_lecture(student_id, lectures[1].id, course.id)

        assert progress_repository.rows == {}

    @pytest.mark.asyncio
    async def test_unknown_lecture_is_rejected(
        self, unlock_engine, course_with_lectures, student_id
    ) -> None:
        course, _lectures = course_with_lectures

        with pytest.raises(LectureNotFoundError):
            await unlock_engine.complete_lecture(student_id, uuid4(), course.id)

    @pytest.mark.asyncio
    async def test_unchecked_completion_still_marks_unlocked(
        self,
        progress_repository,
        catalog,
        enrollment_repository,
        course_with_lectures,
        student_id,
    ) -> None:
        """With the unlock check disabled a completed row is always unlocked too."""
        engine = LectureUnlockEngine(
            progress_repository=progress_repository,
            catalog=catalog,
            enrollments=enrollment_repository,
            require_unlocked_to_complete=False,
        )
        course, lectures = course_with_lectures

        progress = await engine.complete_lecture(student_id, lectures[2].id, course.id)

        assert progress.is_completed is True
        assert progress.is_unlocked is True
        _assert_completion_implies_unlock(progress_repository)


class TestReorderInteraction:
    """Next-lecture resolution follows positions read at completion time."""

    @pytest.mark.asyncio
    async def test_next_lecture_uses_current_positions(
        self,
        unlock_engine,
        catalog,
        enrollment_repository,
        progress_repository,
        student_id,
    ) -> None:
        course = catalog.add_course()
        l1, l2, l3, l4 = (catalog.add_lecture(course.id) for _ in range(4))
        enrollment_repository.seed_active(student_id, course.id)
        await unlock_engine.initialize_for_enrollment(student_id, course.id)
        await unlock_engine.complete_lecture(student_id, l1.id, course.id)

        catalog.set_order(course.id, [l1.id, l2.id, l4.id, l3.id])
        await unlock_engine.complete_lecture(student_id, l2.id, course.id)

        moved_up = await progress_repository.get(student_id, course.id, l4.id)
        moved_down = await progress_repository.get(student_id, course.id, l3.id)
        assert moved_up.is_unlocked is True
        assert moved_down.is_unlocked is False
        assert sorted(catalog.positions(course.id)) == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_swap_unlocks_lecture_now_at_position_three(
        self,
        progress_repository,
        catalog,
        enrollment_repository,
        course_with_lectures,
        student_id,
    ) -> None:
        """L2 and L3 swap after L1 is done; completing position 2 opens position 3."""
        engine = LectureUnlockEngine(
            progress_repository=progress_repository,
            catalog=catalog,
            enrollments=enrollment_repository,
            require_unlocked_to_complete=False,
        )
        course, (l1, l2, l3) = course_with_lectures
        enrollment_repository.seed_active(student_id, course.id)
        await engine.complete_lecture(student_id, l1.id, course.id)

        catalog.set_order(course.id, [l1.id, l3.id, l2.id])
        await engine.complete_lecture(student_id, l3.id, course.id)

        rows = await engine.get_progress(student_id, course.id)
        assert [row.lecture_id for row in rows] == [l1.id, l3.id, l2.id]
        assert [row.state for row in rows] == [
            LectureState.COMPLETED,
            LectureState.COMPLETED,
            LectureState.UNLOCKED,
        ]


class TestRecordWatch:
    """Tests for watch tracking."""

    @pytest.mark.asyncio
    async def test_free_lecture_is_unlocked_on_watch(
        self, unlock_engine, course_with_lectures, student_id
    ) -> None:
        course, lectures = course_with_lectures

        progress = await unlock_engine.record_watch(
            student_id, lectures[0].id, course.id
        )

        assert progress.is_unlocked is True
        assert progress.watched_at is not None

    @pytest.mark.asyncio
    async def test_locked_lecture_cannot_be_watched(
        self, unlock_engine, course_with_lectures, student_id
    ) -> None:
        course, lectures = course_with_lectures

        with pytest.raises(LectureLockedError):
            await unlock_engine.record_watch(student_id, lectures[1].id, course.id)


class TestReads:
    """Tests for never-fatal reads."""

    @pytest.mark.asyncio
    async def test_get_progress_unknown_course_is_empty(
        self, unlock_engine, student_id
    ) -> None:
        assert await unlock_engine.get_progress(student_id, uuid4()) == []

    @pytest.mark.asyncio
    async def test_get_progress_orders_by_position(
        self, unlock_engine, catalog, course_with_lectures, student_id
    ) -> None:
        course, (l1, l2, l3) = course_with_lectures
        await unlock_engine.unlock_all_for_course(student_id, course.id)
        catalog.set_order(course.id, [l3.id, l1.id, l2.id])

        rows = await unlock_engine.get_progress(student_id, course.id)

        assert [row.lecture_id for row in rows] == [l3.id, l1.id, l2.id]

    @pytest.mark.asyncio
    async def test_lecture_without_row_is_locked(
        self, unlock_engine, course_with_lectures, student_id
    ) -> None:
        _course, lectures = course_with_lectures

        progress = await unlock_engine.get_lecture_progress(student_id, lectures[1].id)

        assert progress is None
        assert LectureUnlockEngine.lecture_state(progress) == LectureState.LOCKED

    @pytest.mark.asyncio
    async def test_unknown_lecture_progress_is_none(
        self, unlock_engine, student_id
    ) -> None:
        assert await unlock_engine.get_lecture_progress(student_id, uuid4()) is None
