"""Enrollment ledger: orders, payments and enrollments."""

from coursehub.orders.models import (
    Enrollment,
    EnrollmentResult,
    EnrollmentSource,
    EnrollmentStatus,
    Order,
    OrderStatus,
)
from coursehub.orders.service import (
    AlreadyEnrolledError,
    EnrollmentLedger,
    OrderError,
    OrderNotFoundError,
    PriceNotSetError,
    ReconciliationError,
)


__all__ = [
    "AlreadyEnrolledError",
    "Enrollment",
    "EnrollmentLedger",
    "EnrollmentResult",
    "EnrollmentSource",
    "EnrollmentStatus",
    "Order",
    "OrderError",
    "OrderNotFoundError",
    "OrderStatus",
    "PriceNotSetError",
    "ReconciliationError",
]
