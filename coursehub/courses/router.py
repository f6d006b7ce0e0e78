"""Course catalog API endpoints.

Provides routes for:
- Courses: create, read, update (including price)
- Lectures: append, update, reorder
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from coursehub.auth.dependencies import InstructorUser
from coursehub.courses.dependencies import (
    CourseCatalogDep,
    ensure_can_edit,
    handle_course_error,
)
from coursehub.courses.schemas import (
    CourseResponse,
    CreateCourseRequest,
    CreateLectureRequest,
    LectureResponse,
    ReorderLecturesRequest,
    UpdateCourseRequest,
    UpdateLectureRequest,
)
from coursehub.courses.service import CourseError, CourseNotFoundError


router = APIRouter(prefix="/v1/courses", tags=["courses"])


@router.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new course",
)
async def create_course(
    data: CreateCourseRequest,
    catalog: CourseCatalogDep,
    user: InstructorUser,
) -> CourseResponse:
    """Create a new course (INSTRUCTOR or ADMIN only)."""
    course = await catalog.create_course(
        title=data.title,
        creator_id=user.id,
        description=data.description,
        price=data.price,
    )
    return CourseResponse.model_validate(course)


@router.get(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Get course with ordered lectures",
)
async def get_course(course_id: UUID, catalog: CourseCatalogDep) -> CourseResponse:
    """Get a course and its lectures ordered by position (public)."""
    course = await catalog.get_course_with_lectures(course_id)
    if not course:
        raise handle_course_error(CourseNotFoundError())
    return CourseResponse.model_validate(course)


@router.patch(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Update course",
)
async def update_course(
    course_id: UUID,
    data: UpdateCourseRequest,
    catalog: CourseCatalogDep,
    user: InstructorUser,
) -> CourseResponse:
    """Update course details or price (owner or ADMIN)."""
    course = await catalog.get_course(course_id)
    if not course:
        raise handle_course_error(CourseNotFoundError())
    ensure_can_edit(user, course)

    try:
        course = await catalog.update_course(
            course_id,
            title=data.title,
            description=data.description,
            price=data.price,
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    return CourseResponse.model_validate(course)


@router.post(
    "/{course_id}/lectures",
    response_model=LectureResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append lecture to course",
)
async def create_lecture(
    course_id: UUID,
    data: CreateLectureRequest,
    catalog: CourseCatalogDep,
    user: InstructorUser,
) -> LectureResponse:
    """Append a lecture at the next free position (owner or ADMIN)."""
    course = await catalog.get_course(course_id)
    if not course:
        raise handle_course_error(CourseNotFoundError())
    ensure_can_edit(user, course)

    try:
        lecture = await catalog.create_lecture(
            course_id,
            title=data.title,
            description=data.description,
            video_url=data.video_url,
            is_free=data.is_free,
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    return LectureResponse.model_validate(lecture)


@router.patch(
    "/lectures/{lecture_id}",
    response_model=LectureResponse,
    summary="Update lecture",
)
async def update_lecture(
    lecture_id: UUID,
    data: UpdateLectureRequest,
    catalog: CourseCatalogDep,
    user: InstructorUser,
) -> LectureResponse:
    """Update lecture content or free flag (course owner or ADMIN)."""
    located = await catalog.get_lecture_position(lecture_id)
    if located is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Lecture not found"
        )
    course = await catalog.get_course(located[0])
    if course:
        ensure_can_edit(user, course)

    try:
        lecture = await catalog.update_lecture(
            lecture_id,
            title=data.title,
            description=data.description,
            video_url=data.video_url,
            is_free=data.is_free,
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    return LectureResponse.model_validate(lecture)


@router.put(
    "/{course_id}/lectures/reorder",
    response_model=list[LectureResponse],
    summary="Reorder lectures",
)
async def reorder_lectures(
    course_id: UUID,
    data: ReorderLecturesRequest,
    catalog: CourseCatalogDep,
    user: InstructorUser,
) -> list[LectureResponse]:
    """Replace the lecture order of a course (owner or ADMIN)."""
    course = await catalog.get_course(course_id)
    if not course:
        raise handle_course_error(CourseNotFoundError())
    ensure_can_edit(user, course)

    try:
        lectures = await catalog.reorder_lectures(course_id, data.lecture_ids)
    except CourseError as e:
        raise handle_course_error(e) from e
    return [LectureResponse.model_validate(lecture) for lecture in lectures]
