"""FastAPI dependencies for lecture progress.

Provides dependency injection for:
- Lecture unlock engine
- Error handler for progress errors
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import LectureUnlockEngine, ProgressError


async def get_unlock_engine(request: Request) -> LectureUnlockEngine:
    """Get lecture unlock engine from app state."""
    app_state = request.app.state
    if not getattr(app_state, "unlock_engine", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress service not available",
        )
    return app_state.unlock_engine


UnlockEngineDep = Annotated[LectureUnlockEngine, Depends(get_unlock_engine)]


def handle_progress_error(error: ProgressError) -> HTTPException:
    """Convert progress errors to HTTP exceptions."""
    status_map = {
        "lecture_locked": status.HTTP_403_FORBIDDEN,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )
