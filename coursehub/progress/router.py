"""Lecture progress API endpoints.

Provides routes for:
- Reading a student's progress in a course
- (Re)initializing unlock state for a course
- Completing and watching lectures
"""

from uuid import UUID

from fastapi import APIRouter

from coursehub.auth.dependencies import CurrentUser, OptionalUser
from coursehub.courses.dependencies import handle_course_error
from coursehub.courses.service import CourseError

from .dependencies import UnlockEngineDep, handle_progress_error
from .schemas import LectureProgressResponse, LectureStateResponse, WatchLectureRequest
from .service import LectureUnlockEngine, ProgressError


router = APIRouter(prefix="/v1/progress", tags=["progress"])


@router.get(
    "/courses/{course_id}",
    response_model=list[LectureProgressResponse],
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    engine: UnlockEngineDep,
    user: OptionalUser,
) -> list[LectureProgressResponse]:
    """Progress rows in current lecture order; anonymous callers get []."""
    if user is None:
        return []
    rows = await engine.get_progress(user.id, course_id)
    return [LectureProgressResponse.from_entity(row) for row in rows]


@router.post(
    "/courses/{course_id}/initialize",
    response_model=list[LectureProgressResponse],
    summary="Initialize course progress",
)
async def initialize_course_progress(
    course_id: UUID,
    engine: UnlockEngineDep,
    user: CurrentUser,
) -> list[LectureProgressResponse]:
    """Create progress rows for every lecture; free lectures are unlocked."""
    try:
        rows = await engine.initialize_for_enrollment(user.id, course_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    return [LectureProgressResponse.from_entity(row) for row in rows]


@router.get(
    "/lectures/{lecture_id}",
    response_model=LectureStateResponse,
    summary="Get lecture state",
)
async def get_lecture_state(
    lecture_id: UUID,
    engine: UnlockEngineDep,
    user: CurrentUser,
) -> LectureStateResponse:
    """State of a single lecture for the current student."""
    progress = await engine.get_lecture_progress(user.id, lecture_id)
    return LectureStateResponse(
        lecture_id=lecture_id,
        state=LectureUnlockEngine.lecture_state(progress),
        progress=LectureProgressResponse.from_entity(progress) if progress else None,
    )


@router.post(
    "/courses/{course_id}/lectures/{lecture_id}/complete",
    response_model=LectureProgressResponse,
    summary="Complete lecture",
)
async def complete_lecture(
    course_id: UUID,
    lecture_id: UUID,
    engine: UnlockEngineDep,
    user: CurrentUser,
) -> LectureProgressResponse:
    """Mark a lecture completed; paid students get the next lecture unlocked."""
    try:
        progress = await engine.complete_lecture(user.id, lecture_id, course_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return LectureProgressResponse.from_entity(progress)


@router.put(
    "/courses/{course_id}/lectures/{lecture_id}/watch",
    response_model=LectureProgressResponse,
    summary="Record lecture watch",
)
async def watch_lecture(
    course_id: UUID,
    lecture_id: UUID,
    data: WatchLectureRequest,
    engine: UnlockEngineDep,
    user: CurrentUser,
) -> LectureProgressResponse:
    """Record a watch timestamp on an unlocked or free lecture."""
    try:
        progress = await engine.record_watch(
            user.id, lecture_id, course_id, data.watched_at
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return LectureProgressResponse.from_entity(progress)
