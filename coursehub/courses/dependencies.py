"""FastAPI dependencies for the course catalog.

Provides dependency injection for:
- Course catalog instance
- Course ownership verification
- Error handlers
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status

from coursehub.auth.permissions import is_admin
from coursehub.auth.schemas import AuthenticatedUser
from coursehub.courses.models import Course
from coursehub.courses.service import CourseCatalog, CourseError


async def get_course_catalog(request: Request) -> CourseCatalog:
    """Get course catalog from app state."""
    app_state = request.app.state
    if not getattr(app_state, "course_catalog", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Course catalog not available",
        )
    return app_state.course_catalog


CourseCatalogDep = Annotated[CourseCatalog, Depends(get_course_catalog)]


def is_owner_or_admin(user: AuthenticatedUser, creator_id: UUID | None) -> bool:
    """Check if user created the course or is an admin."""
    if is_admin(user.role):
        return True
    return creator_id is not None and str(user.id) == str(creator_id)


def ensure_can_edit(user: AuthenticatedUser, course: Course) -> None:
    """Raise 403 unless the user may edit the course."""
    if not is_owner_or_admin(user, course.creator_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No permission to edit this course",
        )


# ==============================================================================
# Error Handlers
# ==============================================================================


def handle_course_error(error: CourseError) -> HTTPException:
    """Convert course errors to HTTPException."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "lecture_not_found": status.HTTP_404_NOT_FOUND,
        "invalid_reorder": status.HTTP_400_BAD_REQUEST,
        "position_conflict": status.HTTP_409_CONFLICT,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )
