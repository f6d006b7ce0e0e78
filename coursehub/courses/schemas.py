"""Pydantic schemas for the course catalog."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ==============================================================================
# Course Schemas
# ==============================================================================


class CreateCourseRequest(BaseModel):
    """Course creation request."""

    title: str = Field(..., min_length=3, max_length=200, description="Course title")
    description: str | None = Field(
        None, max_length=5000, description="Course description"
    )
    price: Decimal | None = Field(
        None, ge=0, description="Course price (None = not purchasable yet)"
    )


class UpdateCourseRequest(BaseModel):
    """Course update request."""

    title: str | None = Field(
        None, min_length=3, max_length=200, description="Course title"
    )
    description: str | None = Field(
        None, max_length=5000, description="Course description"
    )
    price: Decimal | None = Field(None, ge=0, description="Course price")


class LectureResponse(BaseModel):
    """Lecture response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    title: str
    description: str | None = None
    video_url: str | None = None
    position: int
    is_free: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CourseResponse(BaseModel):
    """Course response, with lectures ordered by position."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None = None
    price: Decimal | None = None
    creator_id: UUID | None = None
    lectures: list[LectureResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime | None = None


# ==============================================================================
# Lecture Schemas
# ==============================================================================


class CreateLectureRequest(BaseModel):
    """Lecture creation request; the lecture is appended to the course."""

    title: str = Field(..., min_length=1, max_length=200, description="Lecture title")
    description: str | None = Field(
        None, max_length=5000, description="Lecture description"
    )
    video_url: str | None = Field(None, max_length=1000, description="Video URL")
    is_free: bool = Field(False, description="Free preview lecture")


class UpdateLectureRequest(BaseModel):
    """Lecture update request."""

    title: str | None = Field(
        None, min_length=1, max_length=200, description="Lecture title"
    )
    description: str | None = Field(
        None, max_length=5000, description="Lecture description"
    )
    video_url: str | None = Field(None, max_length=1000, description="Video URL")
    is_free: bool | None = Field(None, description="Free preview lecture")


class ReorderLecturesRequest(BaseModel):
    """Full lecture order for a course."""

    lecture_ids: list[UUID] = Field(
        ..., min_length=1, description="Every lecture id of the course, in new order"
    )
