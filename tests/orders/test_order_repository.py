"""Tests for order and enrollment persistence against a mocked Cassandra session."""

from datetime import UTC, datetime
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from cassandra.cluster import Session

from coursehub.orders.models import EnrollmentSource, Order, OrderStatus
from coursehub.orders.repository import EnrollmentRepository, OrderRepository


class _Result(list):
    """Minimal stand-in for a driver ResultSet."""

    def __init__(self, rows=(), was_applied: bool = True):
        super().__init__(rows)
        self.was_applied = was_applied

    def one(self):
        return self[0] if self else None


def _order_row(**overrides) -> SimpleNamespace:
    values = {
        "razorpay_order_id": "order_abc",
        "id": uuid4(),
        "student_id": uuid4(),
        "course_id": uuid4(),
        "amount": Decimal("499.00"),
        "amount_minor": 49900,
        "currency": "INR",
        "receipt": "ord_12345678_abcdef",
        "status": OrderStatus.PENDING.value,
        "is_paid": False,
        "paid_at": None,
        "razorpay_payment_id": None,
        "razorpay_signature": None,
        "created_at": datetime(2026, 1, 1),
        "updated_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda cql: SimpleNamespace(cql=cql))
    session.aexecute = AsyncMock(return_value=_Result())
    return session


@pytest.fixture
def orders(mock_session) -> OrderRepository:
    return OrderRepository(session=mock_session, keyspace="test_keyspace")


@pytest.fixture
def enrollments(mock_session) -> EnrollmentRepository:
    return EnrollmentRepository(session=mock_session, keyspace="test_keyspace")


def _new_order() -> Order:
    return Order(
        razorpay_order_id="order_abc",
        student_id=uuid4(),
        course_id=uuid4(),
        amount=Decimal("499.00"),
        amount_minor=49900,
        currency="INR",
        receipt="ord_12345678_abcdef",
    )


class TestOrderRepository:
    """Tests for OrderRepository."""

    def test_mark_completed_is_conditional(self, orders) -> None:
        """Completion only applies from pending, failed or cancelled."""
        cql = orders._mark_completed.cql
        assert "IF status IN ('pending', 'failed', 'cancelled')" in cql
        assert "is_paid = true" in cql

    @pytest.mark.asyncio
    async def test_insert_writes_history_index(self, orders, mock_session) -> None:
        order = _new_order()

        assert await orders.insert(order) is True

        assert mock_session.aexecute.await_count == 2
        index_call = mock_session.aexecute.await_args_list[1]
        assert index_call.args[1] == [
            order.student_id,
            order.created_at,
            order.razorpay_order_id,
            order.course_id,
        ]

    @pytest.mark.asyncio
    async def test_insert_existing_gateway_id(self, orders, mock_session) -> None:
        mock_session.aexecute.return_value = _Result(was_applied=False)

        assert await orders.insert(_new_order()) is False
        assert mock_session.aexecute.await_count == 1

    @pytest.mark.asyncio
    async def test_get_maps_row(self, orders, mock_session) -> None:
        mock_session.aexecute.return_value = _Result([_order_row(status=None)])

        order = await orders.get("order_abc")

        assert order.razorpay_order_id == "order_abc"
        assert order.status == OrderStatus.PENDING.value
        assert order.created_at.tzinfo is UTC

    @pytest.mark.asyncio
    async def test_get_missing(self, orders) -> None:
        assert await orders.get("order_missing") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("applied", [True, False])
    async def test_mark_completed_reports_transition(
        self, orders, mock_session, applied: bool
    ) -> None:
        mock_session.aexecute.return_value = _Result(was_applied=applied)
        paid_at = datetime.now(UTC)

        result = await orders.mark_completed(
            "order_abc",
            paid_at=paid_at,
            razorpay_payment_id="pay_1",
            razorpay_signature="sig",
        )

        assert result is applied
        params = mock_session.aexecute.await_args.args[1]
        assert params[0] == paid_at
        assert params[1:3] == ["pay_1", "sig"]
        assert params[-1] == "order_abc"

    @pytest.mark.asyncio
    async def test_list_for_student_follows_index(self, orders, mock_session) -> None:
        student_id = uuid4()
        index_rows = [
            SimpleNamespace(razorpay_order_id="order_new"),
            SimpleNamespace(razorpay_order_id="order_gone"),
        ]
        mock_session.aexecute.side_effect = [
            _Result(index_rows),
            _Result([_order_row(razorpay_order_id="order_new")]),
            _Result(),
        ]

        result = await orders.list_for_student(student_id, limit=10)

        assert [order.razorpay_order_id for order in result] == ["order_new"]
        assert mock_session.aexecute.await_args_list[0].args[1] == [student_id, 10]


class TestEnrollmentRepository:
    """Tests for EnrollmentRepository."""

    @pytest.mark.asyncio
    async def test_link_pending_inserts_first(self, enrollments, mock_session) -> None:
        await enrollments.link_pending(uuid4(), uuid4(), "order_abc")

        assert mock_session.aexecute.await_count == 1
        assert mock_session.aexecute.await_args.args[0] is enrollments._insert_pending

    @pytest.mark.asyncio
    async def test_link_pending_relinks_existing(
        self, enrollments, mock_session
    ) -> None:
        """An existing row is only relinked while it is still pending."""
        student_id, course_id = uuid4(), uuid4()
        mock_session.aexecute.side_effect = [
            _Result(was_applied=False),
            _Result(was_applied=False),
        ]

        await enrollments.link_pending(student_id, course_id, "order_new")

        relink = mock_session.aexecute.await_args_list[1]
        assert relink.args[0] is enrollments._relink_pending
        assert relink.args[1][0] == "order_new"
        assert relink.args[1][2:] == [student_id, course_id]
        assert "IF status = 'pending'" in enrollments._relink_pending.cql

    @pytest.mark.asyncio
    async def test_activate_inserts_conditionally(
        self, enrollments, mock_session
    ) -> None:
        student_id, course_id = uuid4(), uuid4()
        enrolled_at = datetime.now(UTC)

        await enrollments.activate(
            student_id, course_id, None, EnrollmentSource.ADMIN_GRANT, enrolled_at
        )

        assert mock_session.aexecute.await_count == 1
        statement, params = mock_session.aexecute.await_args.args
        assert statement is enrollments._insert_active
        assert "IF NOT EXISTS" in statement.cql
        assert params[:5] == [
            student_id,
            course_id,
            None,
            "admin_grant",
            enrolled_at,
        ]

    @pytest.mark.asyncio
    async def test_activate_existing_row_is_conditional_update(
        self, enrollments, mock_session
    ) -> None:
        """Activation never writes the row without a condition."""
        student_id, course_id = uuid4(), uuid4()
        enrolled_at = datetime.now(UTC)
        mock_session.aexecute.side_effect = [
            _Result(was_applied=False),
            _Result(was_applied=True),
        ]

        await enrollments.activate(
            student_id, course_id, "order_abc", EnrollmentSource.PURCHASE, enrolled_at
        )

        statement, params = mock_session.aexecute.await_args.args
        assert statement is enrollments._update_active
        assert "IF status IN ('pending', 'active')" in statement.cql
        assert params[:3] == ["order_abc", "purchase", enrolled_at]
        assert params[-2:] == [student_id, course_id]

    @pytest.mark.asyncio
    async def test_get_maps_row(self, enrollments, mock_session) -> None:
        student_id, course_id = uuid4(), uuid4()
        mock_session.aexecute.return_value = _Result(
            [
                SimpleNamespace(
                    student_id=student_id,
                    course_id=course_id,
                    order_id="order_abc",
                    status="active",
                    source=None,
                    enrolled_at=datetime(2026, 1, 2),
                    updated_at=None,
                )
            ]
        )

        enrollment = await enrollments.get(student_id, course_id)

        assert enrollment.is_active is True
        assert enrollment.source == EnrollmentSource.PURCHASE.value
        assert enrollment.enrolled_at.tzinfo is UTC
