"""Database models for orders and enrollments.

Cassandra table definitions for:
- Orders: keyed by the gateway order id (unique per purchase attempt)
- Orders by student: purchase history, newest first
- Enrollments: one row per (student, course)
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from coursehub.courses.models import ensure_utc_aware


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Statuses a confirmed payment may move to COMPLETED from
COMPLETABLE_STATUSES = (
    OrderStatus.PENDING.value,
    OrderStatus.FAILED.value,
    OrderStatus.CANCELLED.value,
)


class EnrollmentStatus(str, Enum):
    """Enrollment status.

    PENDING is the provisional link written when an order is created;
    ACTIVE means the course was paid for (or granted).
    """

    PENDING = "pending"
    ACTIVE = "active"


class EnrollmentSource(str, Enum):
    """How an enrollment became active."""

    PURCHASE = "purchase"
    ADMIN_GRANT = "admin_grant"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ORDER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.orders (
    razorpay_order_id TEXT PRIMARY KEY,
    id UUID,
    student_id UUID,
    course_id UUID,
    amount DECIMAL,
    amount_minor BIGINT,
    currency TEXT,
    receipt TEXT,
    status TEXT,
    is_paid BOOLEAN,
    paid_at TIMESTAMP,
    razorpay_payment_id TEXT,
    razorpay_signature TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

ORDERS_BY_STUDENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.orders_by_student (
    student_id UUID,
    created_at TIMESTAMP,
    razorpay_order_id TEXT,
    course_id UUID,
    PRIMARY KEY (student_id, created_at, razorpay_order_id)
) WITH CLUSTERING ORDER BY (created_at DESC, razorpay_order_id ASC)
"""

ENROLLMENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    student_id UUID,
    course_id UUID,
    order_id TEXT,
    status TEXT,
    source TEXT,
    enrolled_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY (student_id, course_id)
)
"""

ORDERS_TABLES_CQL = [
    ORDER_TABLE_CQL,
    ORDERS_BY_STUDENT_TABLE_CQL,
    ENROLLMENT_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Order:
    """A purchase attempt for one course by one student.

    ``is_completed`` is the single accessor for "is this order paid";
    ``is_paid`` and ``paid_at`` are only written together with the
    transition to COMPLETED.

    Attributes:
        razorpay_order_id: Gateway order id (primary key)
        id: Internal UUID
        student_id: Buyer
        course_id: Course being bought
        amount: Price in major units at order time
        amount_minor: Amount sent to the gateway (minor units)
        currency: ISO currency code
        receipt: Merchant receipt sent to the gateway
        status: OrderStatus value
        is_paid: Denormalized paid flag
        paid_at: When the payment was first confirmed
        razorpay_payment_id: Gateway payment id
        razorpay_signature: Checkout signature
    """

    def __init__(
        self,
        razorpay_order_id: str,
        student_id: UUID,
        course_id: UUID,
        amount: Decimal,
        amount_minor: int,
        currency: str,
        receipt: str,
        id: UUID | None = None,
        status: str = OrderStatus.PENDING.value,
        is_paid: bool = False,
        paid_at: datetime | None = None,
        razorpay_payment_id: str | None = None,
        razorpay_signature: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.razorpay_order_id = razorpay_order_id
        self.id = id or uuid4()
        self.student_id = student_id
        self.course_id = course_id
        self.amount = amount
        self.amount_minor = amount_minor
        self.currency = currency
        self.receipt = receipt
        self.status = status
        self.is_paid = bool(is_paid)
        self.paid_at = ensure_utc_aware(paid_at)
        self.razorpay_payment_id = razorpay_payment_id
        self.razorpay_signature = razorpay_signature
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Order":
        """Create Order instance from Cassandra row."""
        return cls(
            razorpay_order_id=row.razorpay_order_id,
            id=row.id,
            student_id=row.student_id,
            course_id=row.course_id,
            amount=row.amount,
            amount_minor=row.amount_minor,
            currency=row.currency,
            receipt=row.receipt,
            status=row.status or OrderStatus.PENDING.value,
            is_paid=row.is_paid,
            paid_at=row.paid_at,
            razorpay_payment_id=row.razorpay_payment_id,
            razorpay_signature=row.razorpay_signature,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.COMPLETED.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "razorpay_order_id": self.razorpay_order_id,
            "student_id": self.student_id,
            "course_id": self.course_id,
            "amount": self.amount,
            "amount_minor": self.amount_minor,
            "currency": self.currency,
            "receipt": self.receipt,
            "status": self.status,
            "is_paid": self.is_paid,
            "paid_at": self.paid_at,
            "razorpay_payment_id": self.razorpay_payment_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Order {self.razorpay_order_id} ({self.status})>"


class Enrollment:
    """Link between a student and a course.

    Attributes:
        student_id: Student UUID
        course_id: Course UUID
        order_id: Gateway order id that paid for it (None for grants)
        status: EnrollmentStatus value
        source: EnrollmentSource value
        enrolled_at: When the enrollment became active
        updated_at: Last write
    """

    def __init__(
        self,
        student_id: UUID,
        course_id: UUID,
        order_id: str | None = None,
        status: str = EnrollmentStatus.PENDING.value,
        source: str = EnrollmentSource.PURCHASE.value,
        enrolled_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.student_id = student_id
        self.course_id = course_id
        self.order_id = order_id
        self.status = status
        self.source = source
        self.enrolled_at = ensure_utc_aware(enrolled_at)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            student_id=row.student_id,
            course_id=row.course_id,
            order_id=row.order_id,
            status=row.status or EnrollmentStatus.PENDING.value,
            source=row.source or EnrollmentSource.PURCHASE.value,
            enrolled_at=row.enrolled_at,
            updated_at=row.updated_at,
        )

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "student_id": self.student_id,
            "course_id": self.course_id,
            "order_id": self.order_id,
            "status": self.status,
            "source": self.source,
            "enrolled_at": self.enrolled_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment student={self.student_id} "
            f"course={self.course_id} ({self.status})>"
        )


@dataclass
class EnrollmentResult:
    """Outcome of a payment confirmation or manual grant."""

    success: bool
    unlocked_count: int
    total_lectures: int
    order_id: str | None = None
    message: str = ""
