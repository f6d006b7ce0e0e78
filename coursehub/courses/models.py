"""Database models for the course catalog.

Cassandra table definitions for:
- Courses: main course table, including the lecture position allocator
- Lectures: main lecture table
- Lectures by course: per-course partition used to read lectures in order
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    price DECIMAL,
    creator_id UUID,
    lecture_count INT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

LECTURE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lectures (
    id UUID PRIMARY KEY,
    course_id UUID,
    title TEXT,
    description TEXT,
    video_url TEXT,
    position INT,
    is_free BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Single partition per course; rows are sorted by position after reading
LECTURES_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lectures_by_course (
    course_id UUID,
    lecture_id UUID,
    position INT,
    is_free BOOLEAN,
    title TEXT,
    PRIMARY KEY (course_id, lecture_id)
)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    LECTURE_TABLE_CQL,
    LECTURES_BY_COURSE_TABLE_CQL,
]


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# Entity Classes
# ==============================================================================


class Lecture:
    """Lecture entity: a single ordered unit of a course.

    Attributes:
        id: Unique identifier (UUID)
        course_id: Owning course; never changes after creation
        title: Lecture title
        description: Lecture description
        video_url: URL of the lecture video
        position: Order within the course (unique per course, 1-based)
        is_free: Free preview, accessible without enrollment
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        course_id: UUID,
        position: int,
        id: UUID | None = None,
        title: str = "",
        description: str | None = None,
        video_url: str | None = None,
        is_free: bool = False,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.position = position
        self.title = title.strip()
        self.description = description
        self.video_url = video_url
        self.is_free = bool(is_free)
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Lecture":
        """Create Lecture instance from a `lectures` row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            position=row.position,
            title=row.title or "",
            description=row.description,
            video_url=row.video_url,
            is_free=row.is_free,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @classmethod
    def from_course_row(cls, row: Any) -> "Lecture":
        """Create a lightweight Lecture from a `lectures_by_course` row."""
        return cls(
            id=row.lecture_id,
            course_id=row.course_id,
            position=row.position,
            title=row.title or "",
            is_free=row.is_free,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "course_id": self.course_id,
            "position": self.position,
            "title": self.title,
            "description": self.description,
            "video_url": self.video_url,
            "is_free": self.is_free,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Lecture {self.title} (course={self.course_id} pos={self.position})>"


class Course:
    """Course entity with its lectures ordered by position.

    Attributes:
        id: Unique identifier (UUID)
        title: Course title
        description: Course description
        price: Price in major currency units; None means not purchasable
        creator_id: Instructor who created the course
        lecture_count: Number of positions allocated so far
        lectures: Lectures sorted by position (only when loaded with lectures)
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        description: str | None = None,
        price: Decimal | None = None,
        creator_id: UUID | None = None,
        lecture_count: int = 0,
        lectures: list[Lecture] | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.description = description
        self.price = price
        self.creator_id = creator_id
        self.lecture_count = lecture_count or 0
        self.lectures = sorted(lectures or [], key=lambda lecture: lecture.position)
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any, lectures: list[Lecture] | None = None) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            description=row.description,
            price=row.price,
            creator_id=row.creator_id,
            lecture_count=row.lecture_count or 0,
            lectures=lectures,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @property
    def is_purchasable(self) -> bool:
        """A course can only be bought once it has a price."""
        return self.price is not None

    def next_lecture_after(self, lecture_id: UUID) -> Lecture | None:
        """Return the lecture immediately after `lecture_id`, if any."""
        for index, lecture in enumerate(self.lectures):
            if lecture.id == lecture_id:
                if index + 1 < len(self.lectures):
                    return self.lectures[index + 1]
                return None
        return None

    def find_lecture(self, lecture_id: UUID) -> Lecture | None:
        return next((lec for lec in self.lectures if lec.id == lecture_id), None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "creator_id": self.creator_id,
            "lecture_count": self.lecture_count,
            "lectures": [lecture.to_dict() for lecture in self.lectures],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Course {self.title} ({len(self.lectures)} lectures)>"
