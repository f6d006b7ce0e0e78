"""Enrollment ledger: orders, payment confirmation and enrollments.

Business logic for:
- Creating gateway orders for course purchases
- Confirming payments idempotently and granting full course access
- Reading back the resulting state and repairing it when it falls short
- Manual enrollment grants
"""

import secrets
import string
import time
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from coursehub.courses.service import CourseNotFoundError
from coursehub.orders.models import (
    EnrollmentResult,
    EnrollmentSource,
    Order,
    OrderStatus,
)
from coursehub.payments.gateway import GATEWAY_STATUS_PAID


if TYPE_CHECKING:
    from coursehub.courses.service import CourseCatalog
    from coursehub.orders.repository import EnrollmentRepository, OrderRepository
    from coursehub.payments.gateway import RazorpayGateway
    from coursehub.progress.service import LectureUnlockEngine


logger = structlog.get_logger(__name__)

AnomalySink = Callable[..., None]

_RECEIPT_ALPHABET = string.ascii_lowercase + string.digits


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class OrderError(Exception):
    """Base order error."""

    def __init__(self, message: str, code: str = "order_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class PriceNotSetError(OrderError):
    """Course has no price and cannot be bought."""

    def __init__(self, message: str = "Course price is not set"):
        super().__init__(message, "price_not_set")


class OrderNotFoundError(OrderError):
    """No order exists for the gateway order id."""

    def __init__(self, message: str = "Order not found"):
        super().__init__(message, "order_not_found")


class AlreadyEnrolledError(OrderError):
    """Student already holds an active enrollment for the course."""

    def __init__(self, message: str = "Already enrolled in this course"):
        super().__init__(message, "already_enrolled")


class ReconciliationError(OrderError):
    """Payment is confirmed but access could not be brought up to date."""

    def __init__(
        self, message: str = "Enrollment could not be reconciled, retry later"
    ):
        super().__init__(message, "reconciliation_failed")


# ==============================================================================
# Helper Functions
# ==============================================================================


def to_minor_units(price: Decimal) -> int:
    """Convert a major-unit price to the integer minor units the gateway expects."""
    return int((price * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def generate_receipt() -> str:
    """Receipt like ``ord_12345678_ab12cd`` (well under the 40-char limit)."""
    millis = str(int(time.time() * 1000))[-8:]
    suffix = "".join(secrets.choice(_RECEIPT_ALPHABET) for _ in range(6))
    return f"ord_{millis}_{suffix}"


# ==============================================================================
# Enrollment Ledger
# ==============================================================================


class EnrollmentLedger:
    """Single source of truth for "has this student paid for this course".

    The ledger never decides lecture access itself; after a confirmed payment
    it asks the unlock engine to open the whole course and then verifies the
    result by reading it back.
    """

    def __init__(
        self,
        orders: "OrderRepository",
        enrollments: "EnrollmentRepository",
        catalog: "CourseCatalog",
        gateway: "RazorpayGateway",
        unlock_engine: "LectureUnlockEngine",
        currency: str = "INR",
        anomaly_sink: AnomalySink | None = None,
        reconcile_max_attempts: int = 3,
    ):
        self.orders = orders
        self.enrollments = enrollments
        self.catalog = catalog
        self.gateway = gateway
        self.unlock_engine = unlock_engine
        self.currency = currency
        self.anomaly_sink = anomaly_sink or (lambda event, **context: None)
        self.reconcile_max_attempts = reconcile_max_attempts

    # ==========================================================================
    # Orders
    # ==========================================================================

    async def create_order(self, course_id: UUID, student_id: UUID) -> Order:
        """Create a gateway order and a pending order row for a purchase.

        Raises:
            CourseNotFoundError: If course doesn't exist
            PriceNotSetError: If course has no price
            AlreadyEnrolledError: If the student already has access
            GatewayUnavailableError: If the gateway cannot be reached
        """
        course = await self.catalog.get_course(course_id)
        if not course:
            raise CourseNotFoundError
        if course.price is None:
            raise PriceNotSetError

        enrollment = await self.enrollments.get(student_id, course_id)
        if enrollment is not None and enrollment.is_active:
            raise AlreadyEnrolledError

        amount_minor = to_minor_units(course.price)
        receipt = generate_receipt()
        gateway_order = await self.gateway.create_order(
            amount_minor, self.currency, receipt
        )

        order = Order(
            razorpay_order_id=gateway_order.id,
            student_id=student_id,
            course_id=course_id,
            amount=course.price,
            amount_minor=amount_minor,
            currency=self.currency,
            receipt=receipt,
        )
        await self.orders.insert(order)
        await self.enrollments.link_pending(
            student_id, course_id, order.razorpay_order_id
        )

        logger.info(
            "order_created",
            razorpay_order_id=order.razorpay_order_id,
            student_id=str(student_id),
            course_id=str(course_id),
            amount_minor=amount_minor,
            currency=self.currency,
        )
        return order

    async def get_order(self, razorpay_order_id: str) -> Order | None:
        return await self.orders.get(razorpay_order_id)

    async def list_student_orders(self, student_id: UUID) -> list[Order]:
        """Orders of a student, newest first."""
        return await self.orders.list_for_student(student_id)

    # ==========================================================================
    # Payment confirmation
    # ==========================================================================

    async def confirm_payment(
        self,
        razorpay_order_id: str,
        razorpay_signature: str,
        razorpay_payment_id: str | None = None,
    ) -> EnrollmentResult:
        """Turn a captured payment into an active enrollment with every lecture open.

        Safe to call any number of times for the same order: replays leave the
        stored state unchanged and return the same result.

        Raises:
            OrderNotFoundError: If no order exists for the gateway id
            GatewayUnavailableError: If the gateway cannot be reached
            ReconciliationError: If access is still incomplete after repairs
        """
        with structlog.contextvars.bound_contextvars(
            razorpay_order_id=razorpay_order_id
        ):
            order = await self.orders.get(razorpay_order_id)
            if order is None:
                raise OrderNotFoundError

            gateway_status = await self.gateway.fetch_order_status(razorpay_order_id)
            if gateway_status != GATEWAY_STATUS_PAID:
                logger.info("payment_not_captured", gateway_status=gateway_status)
                return EnrollmentResult(
                    success=False,
                    unlocked_count=0,
                    total_lectures=0,
                    order_id=razorpay_order_id,
                    message=f"Payment not completed (gateway status: {gateway_status})",
                )

            if not order.is_completed:
                order = await self._complete_order(
                    order, razorpay_signature, razorpay_payment_id
                )
                if order is None or not order.is_completed:
                    logger.warning("payment_for_refunded_order")
                    return EnrollmentResult(
                        success=False,
                        unlocked_count=0,
                        total_lectures=0,
                        order_id=razorpay_order_id,
                        message="Order was refunded and cannot be completed",
                    )
            else:
                logger.info("payment_already_confirmed")

            enrolled_at = order.paid_at or order.updated_at or order.created_at
            await self.enrollments.activate(
                order.student_id,
                order.course_id,
                order.razorpay_order_id,
                EnrollmentSource.PURCHASE,
                enrolled_at,
            )
            await self.unlock_engine.unlock_all_for_course(
                order.student_id, order.course_id
            )

            result = await self._reconcile(
                student_id=order.student_id,
                course_id=order.course_id,
                order_id=order.razorpay_order_id,
                source=EnrollmentSource.PURCHASE,
                enrolled_at=enrolled_at,
            )
            logger.info(
                "payment_confirmed",
                student_id=str(order.student_id),
                course_id=str(order.course_id),
                unlocked_count=result.unlocked_count,
                total_lectures=result.total_lectures,
            )
            return result

    async def _complete_order(
        self,
        order: Order,
        razorpay_signature: str,
        razorpay_payment_id: str | None,
    ) -> Order | None:
        """Apply the completed transition and return the stored order."""
        if order.status == OrderStatus.REFUNDED.value:
            return order

        applied = await self.orders.mark_completed(
            order.razorpay_order_id,
            paid_at=datetime.now(UTC),
            razorpay_payment_id=razorpay_payment_id,
            razorpay_signature=razorpay_signature,
        )
        if not applied:
            logger.info("order_completed_concurrently")
        # Read back so every caller uses the paid_at of the winning transition
        return await self.orders.get(order.razorpay_order_id)

    async def _reconcile(
        self,
        student_id: UUID,
        course_id: UUID,
        order_id: str | None,
        source: EnrollmentSource,
        enrolled_at: datetime,
    ) -> EnrollmentResult:
        """Read the resulting state back and repair it until it is complete."""
        context: dict[str, Any] = {
            "student_id": str(student_id),
            "course_id": str(course_id),
            "order_id": order_id,
        }

        for attempt in range(self.reconcile_max_attempts + 1):
            enrollment = await self.enrollments.get(student_id, course_id)
            enrolled = (
                enrollment is not None
                and enrollment.is_active
                and (order_id is None or enrollment.order_id == order_id)
            )

            course = await self.catalog.get_course_with_lectures(course_id)
            total = len(course.lectures) if course else 0
            progress = await self.unlock_engine.get_progress(student_id, course_id)
            unlocked = sum(1 for row in progress if row.is_unlocked)

            if enrolled and unlocked >= total:
                return EnrollmentResult(
                    success=True,
                    unlocked_count=unlocked,
                    total_lectures=total,
                    order_id=order_id,
                    message="Enrollment active",
                )

            if attempt == self.reconcile_max_attempts:
                break

            if not enrolled:
                self.anomaly_sink(
                    "enrollment_self_healed", attempt=attempt + 1, **context
                )
                await self.enrollments.activate(
                    student_id, course_id, order_id, source, enrolled_at
                )
            if unlocked < total:
                self.anomaly_sink(
                    "lectures_self_healed",
                    attempt=attempt + 1,
                    unlocked=unlocked,
                    total=total,
                    **context,
                )
                await self.unlock_engine.unlock_all_for_course(student_id, course_id)

        logger.error(
            "reconciliation_failed",
            attempts=self.reconcile_max_attempts,
            **context,
        )
        raise ReconciliationError

    # ==========================================================================
    # Enrollment reads and grants
    # ==========================================================================

    async def is_enrolled(self, student_id: UUID, course_id: UUID) -> bool:
        """True only for an active enrollment; never raises for missing data."""
        enrollment = await self.enrollments.get(student_id, course_id)
        return enrollment is not None and enrollment.is_active

    async def grant_enrollment(
        self, student_id: UUID, course_id: UUID, granted_by: UUID
    ) -> EnrollmentResult:
        """Activate an enrollment without payment and open every lecture.

        Raises:
            CourseNotFoundError: If course doesn't exist
            ReconciliationError: If access is still incomplete after repairs
        """
        course = await self.catalog.get_course(course_id)
        if not course:
            raise CourseNotFoundError

        order_id: str | None = None
        source = EnrollmentSource.ADMIN_GRANT
        enrolled_at = datetime.now(UTC)

        existing = await self.enrollments.get(student_id, course_id)
        if existing is not None and existing.is_active:
            # Keep the purchase link of an enrollment that is already paid
            order_id = existing.order_id
            source = EnrollmentSource(existing.source)
            enrolled_at = existing.enrolled_at or enrolled_at
        else:
            await self.enrollments.activate(
                student_id, course_id, order_id, source, enrolled_at
            )
        await self.unlock_engine.unlock_all_for_course(student_id, course_id)

        logger.info(
            "enrollment_granted",
            student_id=str(student_id),
            course_id=str(course_id),
            granted_by=str(granted_by),
        )
        return await self._reconcile(
            student_id=student_id,
            course_id=course_id,
            order_id=order_id,
            source=source,
            enrolled_at=enrolled_at,
        )
