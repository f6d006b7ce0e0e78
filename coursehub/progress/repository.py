"""Cassandra persistence for lecture progress.

Unlock and completion are plain ``UPDATE ... SET flag = true`` upserts: they
create the row when absent and can never turn a flag back to false. Locked
rows are created with ``IF NOT EXISTS`` and carry only keys and timestamps;
the flag columns stay null, which reads as false, so no write other than an
unlock or a completion ever touches them.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from cassandra.query import BatchStatement, BatchType

from .models import LectureProgress


if TYPE_CHECKING:
    from cassandra.cluster import Session


class LectureProgressRepository:
    """Lecture progress rows partitioned by (student_id, course_id)."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lecture_progress
            WHERE student_id = ? AND course_id = ? AND lecture_id = ?
        """)
        self._get_course_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lecture_progress
            WHERE student_id = ? AND course_id = ?
        """)
        self._insert_locked = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lecture_progress
            (student_id, course_id, lecture_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._unlock = self.session.prepare(f"""
            UPDATE {self.keyspace}.lecture_progress
            SET is_unlocked = true, updated_at = ?
            WHERE student_id = ? AND course_id = ? AND lecture_id = ?
        """)
        self._complete = self.session.prepare(f"""
            UPDATE {self.keyspace}.lecture_progress
            SET is_completed = true, is_unlocked = true, completed_at = ?,
                updated_at = ?
            WHERE student_id = ? AND course_id = ? AND lecture_id = ?
        """)
        self._record_watch = self.session.prepare(f"""
            UPDATE {self.keyspace}.lecture_progress
            SET watched_at = ?, updated_at = ?
            WHERE student_id = ? AND course_id = ? AND lecture_id = ?
        """)

    async def get(
        self, student_id: UUID, course_id: UUID, lecture_id: UUID
    ) -> LectureProgress | None:
        result = await self.session.aexecute(
            self._get_progress, [student_id, course_id, lecture_id]
        )
        row = result.one()
        return LectureProgress.from_row(row) if row else None

    async def list_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> list[LectureProgress]:
        """Every progress row of a student in a course (unordered)."""
        result = await self.session.aexecute(
            self._get_course_progress, [student_id, course_id]
        )
        return [LectureProgress.from_row(row) for row in result]

    async def ensure(self, student_id: UUID, course_id: UUID, lecture_id: UUID) -> None:
        """Create a locked row if none exists; existing rows are left as they are."""
        now = datetime.now(UTC)
        await self.session.aexecute(
            self._insert_locked, [student_id, course_id, lecture_id, now, now]
        )

    async def unlock(self, student_id: UUID, course_id: UUID, lecture_id: UUID) -> None:
        await self.session.aexecute(
            self._unlock, [datetime.now(UTC), student_id, course_id, lecture_id]
        )

    async def unlock_many(
        self, student_id: UUID, course_id: UUID, lecture_ids: list[UUID]
    ) -> None:
        """Unlock several lectures of one course in a single-partition batch."""
        if not lecture_ids:
            return
        now = datetime.now(UTC)
        # All rows share the partition, so an unlogged batch is still atomic
        batch = BatchStatement(batch_type=BatchType.UNLOGGED)
        for lecture_id in lecture_ids:
            batch.add(self._unlock, [now, student_id, course_id, lecture_id])
        await self.session.aexecute(batch)

    async def complete(
        self,
        student_id: UUID,
        course_id: UUID,
        lecture_id: UUID,
        completed_at: datetime,
    ) -> None:
        await self.session.aexecute(
            self._complete,
            [completed_at, datetime.now(UTC), student_id, course_id, lecture_id],
        )

    async def record_watch(
        self,
        student_id: UUID,
        course_id: UUID,
        lecture_id: UUID,
        watched_at: datetime,
    ) -> None:
        await self.session.aexecute(
            self._record_watch,
            [watched_at, datetime.now(UTC), student_id, course_id, lecture_id],
        )
