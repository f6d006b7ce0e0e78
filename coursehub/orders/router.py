"""Order and enrollment API endpoints.

Provides routes for:
- Creating a purchase order for a course
- Verifying a checkout and confirming the payment
- Purchase history and enrollment checks
- Manual enrollment grants (ADMIN)
"""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from coursehub.auth.dependencies import AdminUser, CurrentUser
from coursehub.auth.permissions import is_admin
from coursehub.config.settings import Settings, get_settings
from coursehub.courses.dependencies import handle_course_error
from coursehub.courses.service import CourseError
from coursehub.orders.dependencies import EnrollmentLedgerDep, handle_order_error
from coursehub.orders.schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    EnrollmentCheckResponse,
    EnrollmentResultResponse,
    GrantEnrollmentRequest,
    OrderResponse,
    VerifyPaymentRequest,
)
from coursehub.orders.service import OrderError
from coursehub.payments.gateway import PaymentGatewayError
from coursehub.payments.security import verify_payment_signature


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/v1/orders", tags=["orders"])


@router.post(
    "",
    response_model=CreateOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create purchase order",
)
async def create_order(
    data: CreateOrderRequest,
    ledger: EnrollmentLedgerDep,
    user: CurrentUser,
) -> CreateOrderResponse:
    """Create a gateway order for the current student."""
    try:
        order = await ledger.create_order(data.course_id, user.id)
    except CourseError as e:
        raise handle_course_error(e) from e
    except (OrderError, PaymentGatewayError) as e:
        raise handle_order_error(e) from e

    return CreateOrderResponse(
        **OrderResponse.model_validate(order).model_dump(),
        key_id=ledger.gateway.key_id,
    )


@router.post(
    "/verify",
    response_model=EnrollmentResultResponse,
    summary="Verify checkout and confirm payment",
)
async def verify_payment(
    data: VerifyPaymentRequest,
    ledger: EnrollmentLedgerDep,
    user: CurrentUser,
    settings: Annotated[Settings, Depends(get_settings)],
) -> EnrollmentResultResponse:
    """Check the checkout signature, then confirm the payment.

    Calling this again for an already confirmed order returns the same result.
    """
    if not settings.razorpay_key_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment gateway is not configured",
        )

    if not verify_payment_signature(
        data.razorpay_order_id,
        data.razorpay_payment_id,
        data.razorpay_signature,
        settings.razorpay_key_id,
        settings.razorpay_key_secret,
    ):
        logger.warning(
            "payment_signature_invalid", razorpay_order_id=data.razorpay_order_id
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payment signature",
        )

    order = await ledger.get_order(data.razorpay_order_id)
    if order is not None and order.student_id != user.id and not is_admin(user.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Order belongs to another student",
        )

    try:
        result = await ledger.confirm_payment(
            data.razorpay_order_id,
            data.razorpay_signature,
            data.razorpay_payment_id,
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    except (OrderError, PaymentGatewayError) as e:
        raise handle_order_error(e) from e

    return EnrollmentResultResponse.model_validate(result)


@router.get(
    "/me",
    response_model=list[OrderResponse],
    summary="List my orders",
)
async def list_my_orders(
    ledger: EnrollmentLedgerDep,
    user: CurrentUser,
) -> list[OrderResponse]:
    """Purchase history of the current student, newest first."""
    orders = await ledger.list_student_orders(user.id)
    return [OrderResponse.model_validate(order) for order in orders]


@router.get(
    "/enrollments/{course_id}",
    response_model=EnrollmentCheckResponse,
    summary="Check enrollment",
)
async def check_enrollment(
    course_id: UUID,
    ledger: EnrollmentLedgerDep,
    user: CurrentUser,
) -> EnrollmentCheckResponse:
    """Whether the current student has paid for (or been granted) a course."""
    enrolled = await ledger.is_enrolled(user.id, course_id)
    return EnrollmentCheckResponse(course_id=course_id, is_enrolled=enrolled)


@router.post(
    "/grants",
    response_model=EnrollmentResultResponse,
    summary="Grant enrollment (admin)",
)
async def grant_enrollment(
    data: GrantEnrollmentRequest,
    ledger: EnrollmentLedgerDep,
    user: AdminUser,
) -> EnrollmentResultResponse:
    """Enroll a student without payment and open every lecture (ADMIN only)."""
    try:
        result = await ledger.grant_enrollment(data.student_id, data.course_id, user.id)
    except CourseError as e:
        raise handle_course_error(e) from e
    except OrderError as e:
        raise handle_order_error(e) from e

    return EnrollmentResultResponse.model_validate(result)
