"""Pydantic schemas for orders and enrollments."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coursehub.orders.models import OrderStatus


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateOrderRequest(BaseModel):
    """Start a course purchase."""

    course_id: UUID = Field(..., description="Course to buy")


class VerifyPaymentRequest(BaseModel):
    """Checkout callback payload sent by the client after payment."""

    razorpay_order_id: str = Field(..., min_length=1, description="Gateway order id")
    razorpay_payment_id: str = Field(
        ..., min_length=1, description="Gateway payment id"
    )
    razorpay_signature: str = Field(..., min_length=1, description="Checkout signature")


class GrantEnrollmentRequest(BaseModel):
    """Manual enrollment grant (ADMIN)."""

    student_id: UUID = Field(..., description="Student to enroll")
    course_id: UUID = Field(..., description="Course to open")


# ==============================================================================
# Response Schemas
# ==============================================================================


class OrderResponse(BaseModel):
    """Order as returned to the buyer."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    razorpay_order_id: str
    course_id: UUID
    amount: Decimal
    amount_minor: int
    currency: str
    receipt: str
    status: OrderStatus
    paid_at: datetime | None = None
    created_at: datetime


class CreateOrderResponse(OrderResponse):
    """New order plus the public key the checkout widget needs."""

    key_id: str | None = None


class EnrollmentResultResponse(BaseModel):
    """Outcome of a payment confirmation or grant."""

    model_config = ConfigDict(from_attributes=True)

    success: bool
    unlocked_count: int
    total_lectures: int
    order_id: str | None = None
    message: str = ""


class EnrollmentCheckResponse(BaseModel):
    """Whether the current student is enrolled in a course."""

    course_id: UUID
    is_enrolled: bool
