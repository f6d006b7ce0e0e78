"""FastAPI dependencies for orders and enrollments.

Provides dependency injection for:
- Enrollment ledger
- Error handlers for order and payment gateway errors
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from coursehub.orders.service import EnrollmentLedger, OrderError
from coursehub.payments.gateway import PaymentGatewayError


async def get_enrollment_ledger(request: Request) -> EnrollmentLedger:
    """Get enrollment ledger from app state."""
    app_state = request.app.state
    if not getattr(app_state, "enrollment_ledger", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Enrollment service not available",
        )
    return app_state.enrollment_ledger


EnrollmentLedgerDep = Annotated[EnrollmentLedger, Depends(get_enrollment_ledger)]


def handle_order_error(error: OrderError | PaymentGatewayError) -> HTTPException:
    """Convert order and gateway errors to HTTP exceptions."""
    status_map = {
        "price_not_set": status.HTTP_400_BAD_REQUEST,
        "order_not_found": status.HTTP_404_NOT_FOUND,
        "already_enrolled": status.HTTP_409_CONFLICT,
        "reconciliation_failed": status.HTTP_503_SERVICE_UNAVAILABLE,
        "gateway_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
        "gateway_error": status.HTTP_502_BAD_GATEWAY,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )
