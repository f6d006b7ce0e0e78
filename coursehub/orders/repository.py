"""Cassandra persistence for orders and enrollments.

Conditional writes use lightweight transactions so that concurrent payment
confirmations for the same order agree on a single transition.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from coursehub.orders.models import (
    COMPLETABLE_STATUSES,
    Enrollment,
    EnrollmentSource,
    EnrollmentStatus,
    Order,
    OrderStatus,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


class OrderRepository:
    """Orders keyed by gateway order id, plus the per-student history index."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_order = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.orders WHERE razorpay_order_id = ?"
        )
        self._insert_order = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.orders
            (razorpay_order_id, id, student_id, course_id, amount, amount_minor,
             currency, receipt, status, is_paid, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._insert_order_by_student = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.orders_by_student
            (student_id, created_at, razorpay_order_id, course_id)
            VALUES (?, ?, ?, ?)
        """)
        completable = ", ".join(f"'{status}'" for status in COMPLETABLE_STATUSES)
        self._mark_completed = self.session.prepare(f"""
            UPDATE {self.keyspace}.orders
            SET status = '{OrderStatus.COMPLETED.value}', is_paid = true,
                paid_at = ?, razorpay_payment_id = ?, razorpay_signature = ?,
                updated_at = ?
            WHERE razorpay_order_id = ?
            IF status IN ({completable})
        """)
        self._get_orders_by_student = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.orders_by_student
            WHERE student_id = ?
            LIMIT ?
        """)

    async def insert(self, order: Order) -> bool:
        """Persist a new order; returns False if the gateway id already exists."""
        result = await self.session.aexecute(
            self._insert_order,
            [
                order.razorpay_order_id,
                order.id,
                order.student_id,
                order.course_id,
                order.amount,
                order.amount_minor,
                order.currency,
                order.receipt,
                order.status,
                order.is_paid,
                order.created_at,
                order.updated_at,
            ],
        )
        if not result.was_applied:
            logger.warning(
                "order_already_exists", razorpay_order_id=order.razorpay_order_id
            )
            return False

        await self.session.aexecute(
            self._insert_order_by_student,
            [
                order.student_id,
                order.created_at,
                order.razorpay_order_id,
                order.course_id,
            ],
        )
        return True

    async def get(self, razorpay_order_id: str) -> Order | None:
        result = await self.session.aexecute(self._get_order, [razorpay_order_id])
        row = result.one()
        return Order.from_row(row) if row else None

    async def mark_completed(
        self,
        razorpay_order_id: str,
        paid_at: datetime,
        razorpay_payment_id: str | None,
        razorpay_signature: str | None,
    ) -> bool:
        """Move a pending/failed/cancelled order to completed.

        Returns:
            True if this call performed the transition, False if the order was
            already completed, refunded, or missing.
        """
        result = await self.session.aexecute(
            self._mark_completed,
            [
                paid_at,
                razorpay_payment_id,
                razorpay_signature,
                datetime.now(UTC),
                razorpay_order_id,
            ],
        )
        return bool(result.was_applied)

    async def list_for_student(self, student_id: UUID, limit: int = 100) -> list[Order]:
        """Orders of a student, newest first."""
        result = await self.session.aexecute(
            self._get_orders_by_student, [student_id, limit]
        )
        orders = []
        for row in result:
            order = await self.get(row.razorpay_order_id)
            if order:
                orders.append(order)
        return orders


class EnrollmentRepository:
    """One enrollment row per (student, course)."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        enrollment_statuses = ", ".join(
            f"'{status.value}'" for status in EnrollmentStatus
        )
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE student_id = ? AND course_id = ?
        """)
        self._insert_pending = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (student_id, course_id, order_id, status, source, updated_at)
            VALUES (?, ?, ?, '{EnrollmentStatus.PENDING.value}', ?, ?)
            IF NOT EXISTS
        """)
        self._relink_pending = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET order_id = ?, updated_at = ?
            WHERE student_id = ? AND course_id = ?
            IF status = '{EnrollmentStatus.PENDING.value}'
        """)
        self._insert_active = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (student_id, course_id, order_id, status, source, enrolled_at,
             updated_at)
            VALUES (?, ?, ?, '{EnrollmentStatus.ACTIVE.value}', ?, ?, ?)
            IF NOT EXISTS
        """)
        self._update_active = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET order_id = ?, status = '{EnrollmentStatus.ACTIVE.value}',
                source = ?, enrolled_at = ?, updated_at = ?
            WHERE student_id = ? AND course_id = ?
            IF status IN ({enrollment_statuses})
        """)

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        result = await self.session.aexecute(
            self._get_enrollment, [student_id, course_id]
        )
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def link_pending(
        self, student_id: UUID, course_id: UUID, order_id: str
    ) -> None:
        """Point a provisional enrollment at the latest order.

        An active enrollment is left untouched.
        """
        now = datetime.now(UTC)
        result = await self.session.aexecute(
            self._insert_pending,
            [student_id, course_id, order_id, EnrollmentSource.PURCHASE.value, now],
        )
        if result.was_applied:
            return
        await self.session.aexecute(
            self._relink_pending, [order_id, now, student_id, course_id]
        )

    async def activate(
        self,
        student_id: UUID,
        course_id: UUID,
        order_id: str | None,
        source: EnrollmentSource,
        enrolled_at: datetime,
    ) -> None:
        """Mark the enrollment active; safe to repeat with the same values.

        Every write to an enrollment row is conditional, so activation is
        serialized with any relink of the pending row.
        """
        now = datetime.now(UTC)
        result = await self.session.aexecute(
            self._insert_active,
            [student_id, course_id, order_id, source.value, enrolled_at, now],
        )
        if result.was_applied:
            return

        result = await self.session.aexecute(
            self._update_active,
            [order_id, source.value, enrolled_at, now, student_id, course_id],
        )
        if not result.was_applied:
            logger.warning(
                "enrollment_activation_not_applied",
                student_id=str(student_id),
                course_id=str(course_id),
                order_id=order_id,
            )
