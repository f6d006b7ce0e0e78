"""Shared fixtures: in-memory stores, a scripted gateway and wired services."""

import copy
import os
import tempfile
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID, uuid4

import pytest


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="coursehub-logs-"))
os.environ.setdefault("LOG_REQUESTS", "false")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")

from fastapi.testclient import TestClient  # noqa: E402

from coursehub.courses.models import Course, Lecture  # noqa: E402
from coursehub.orders.models import (  # noqa: E402
    COMPLETABLE_STATUSES,
    Enrollment,
    EnrollmentSource,
    EnrollmentStatus,
    Order,
    OrderStatus,
)
from coursehub.orders.service import EnrollmentLedger  # noqa: E402
from coursehub.payments.gateway import (  # noqa: E402
    GATEWAY_STATUS_PAID,
    GatewayOrder,
    GatewayUnavailableError,
)
from coursehub.progress.models import LectureProgress  # noqa: E402
from coursehub.progress.service import LectureUnlockEngine  # noqa: E402


# ==============================================================================
# In-memory collaborators
# ==============================================================================


class FakeCatalog:
    """Course store with the read surface the ledger and engine use."""

    def __init__(self) -> None:
        self.courses: dict[UUID, Course] = {}
        self.lectures: dict[UUID, Lecture] = {}

    def add_course(self, price: Decimal | None = Decimal("499.00")) -> Course:
        course = Course(title="Pharmacology Basics", price=price, creator_id=uuid4())
        self.courses[course.id] = course
        return course

    def add_lecture(self, course_id: UUID, is_free: bool = False) -> Lecture:
        course = self.courses[course_id]
        course.lecture_count += 1
        lecture = Lecture(
            course_id=course_id,
            position=course.lecture_count,
            title=f"Lecture {course.lecture_count}",
            is_free=is_free,
        )
        self.lectures[lecture.id] = lecture
        return lecture

    def set_order(self, course_id: UUID, lecture_ids: list[UUID]) -> None:
        for position, lecture_id in enumerate(lecture_ids, start=1):
            self.lectures[lecture_id].position = position

    def positions(self, course_id: UUID) -> list[int]:
        return [
            lecture.position
            for lecture in self.lectures.values()
            if lecture.course_id == course_id
        ]

    async def get_course(self, course_id: UUID) -> Course | None:
        course = self.courses.get(course_id)
        if course is None:
            return None
        found = copy.copy(course)
        found.lectures = []
        return found

    async def get_course_with_lectures(self, course_id: UUID) -> Course | None:
        found = await self.get_course(course_id)
        if found is None:
            return None
        found.lectures = sorted(
            (
                copy.copy(lecture)
                for lecture in self.lectures.values()
                if lecture.course_id == course_id
            ),
            key=lambda lecture: lecture.position,
        )
        return found

    async def get_lecture_position(self, lecture_id: UUID) -> tuple[UUID, int] | None:
        lecture = self.lectures.get(lecture_id)
        if lecture is None:
            return None
        return lecture.course_id, lecture.position


class FakeGateway:
    """Gateway whose order statuses are set by the test."""

    key_id = "rzp_test_key"

    def __init__(self) -> None:
        self.statuses: dict[str, str] = {}
        self.created: list[GatewayOrder] = []
        self.unavailable = False

    def mark_paid(self, gateway_order_id: str) -> None:
        self.statuses[gateway_order_id] = GATEWAY_STATUS_PAID

    async def create_order(
        self, amount_minor: int, currency: str, receipt: str
    ) -> GatewayOrder:
        if self.unavailable:
            raise GatewayUnavailableError
        order = GatewayOrder(
            id=f"order_{uuid4().hex[:14]}",
            amount_minor=amount_minor,
            currency=currency,
            receipt=receipt,
            status="created",
        )
        self.statuses[order.id] = order.status
        self.created.append(order)
        return order

    async def fetch_order_status(self, gateway_order_id: str) -> str:
        if self.unavailable:
            raise GatewayUnavailableError
        return self.statuses.get(gateway_order_id, "created")


class FakeOrderRepository:
    def __init__(self) -> None:
        self.rows: dict[str, Order] = {}
        self.mark_completed_calls = 0

    async def insert(self, order: Order) -> bool:
        if order.razorpay_order_id in self.rows:
            return False
        self.rows[order.razorpay_order_id] = copy.copy(order)
        return True

    async def get(self, razorpay_order_id: str) -> Order | None:
        row = self.rows.get(razorpay_order_id)
        return copy.copy(row) if row else None

    async def mark_completed(
        self,
        razorpay_order_id: str,
        paid_at: datetime,
        razorpay_payment_id: str | None,
        razorpay_signature: str | None,
    ) -> bool:
        self.mark_completed_calls += 1
        row = self.rows.get(razorpay_order_id)
        if row is None or row.status not in COMPLETABLE_STATUSES:
            return False
        row.status = OrderStatus.COMPLETED.value
        row.is_paid = True
        row.paid_at = paid_at
        row.razorpay_payment_id = razorpay_payment_id
        row.razorpay_signature = razorpay_signature
        row.updated_at = datetime.now(UTC)
        return True

    async def list_for_student(self, student_id: UUID, limit: int = 100) -> list[Order]:
        orders = [
            copy.copy(row) for row in self.rows.values() if row.student_id == student_id
        ]
        orders.sort(key=lambda order: order.created_at, reverse=True)
        return orders[:limit]


class FakeEnrollmentRepository:
    """Enrollment rows; ``dropped_activations`` silently loses that many writes."""

    def __init__(self) -> None:
        self.rows: dict[tuple[UUID, UUID], Enrollment] = {}
        self.dropped_activations = 0

    def seed_active(self, student_id: UUID, course_id: UUID) -> None:
        self.rows[(student_id, course_id)] = Enrollment(
            student_id=student_id,
            course_id=course_id,
            status=EnrollmentStatus.ACTIVE.value,
            enrolled_at=datetime.now(UTC),
        )

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        row = self.rows.get((student_id, course_id))
        return copy.copy(row) if row else None

    async def link_pending(
        self, student_id: UUID, course_id: UUID, order_id: str
    ) -> None:
        row = self.rows.get((student_id, course_id))
        if row is None:
            self.rows[(student_id, course_id)] = Enrollment(
                student_id=student_id,
                course_id=course_id,
                order_id=order_id,
                updated_at=datetime.now(UTC),
            )
        elif row.status == EnrollmentStatus.PENDING.value:
            row.order_id = order_id

    async def activate(
        self,
        student_id: UUID,
        course_id: UUID,
        order_id: str | None,
        source: EnrollmentSource,
        enrolled_at: datetime,
    ) -> None:
        if self.dropped_activations:
            self.dropped_activations -= 1
            return
        row = self.rows.setdefault(
            (student_id, course_id),
            Enrollment(student_id=student_id, course_id=course_id),
        )
        row.order_id = order_id
        row.status = EnrollmentStatus.ACTIVE.value
        row.source = source.value
        row.enrolled_at = enrolled_at
        row.updated_at = datetime.now(UTC)


class FakeProgressRepository:
    """Lecture progress rows; ``dropped_unlock_batches`` loses whole batches."""

    def __init__(self) -> None:
        self.rows: dict[tuple[UUID, UUID, UUID], LectureProgress] = {}
        self.dropped_unlock_batches = 0

    def _upsert(
        self, student_id: UUID, course_id: UUID, lecture_id: UUID
    ) -> LectureProgress:
        return self.rows.setdefault(
            (student_id, course_id, lecture_id),
            LectureProgress(
                student_id=student_id,
                course_id=course_id,
                lecture_id=lecture_id,
                created_at=datetime.now(UTC),
            ),
        )

    async def get(
        self, student_id: UUID, course_id: UUID, lecture_id: UUID
    ) -> LectureProgress | None:
        row = self.rows.get((student_id, course_id, lecture_id))
        return copy.copy(row) if row else None

    async def list_for_course(
        self, student_id: UUID, course_id: UUID
    ) -> list[LectureProgress]:
        return [
            copy.copy(row)
            for (student, course, _lecture), row in self.rows.items()
            if student == student_id and course == course_id
        ]

    async def ensure(self, student_id: UUID, course_id: UUID, lecture_id: UUID) -> None:
        self._upsert(student_id, course_id, lecture_id)

    async def unlock(self, student_id: UUID, course_id: UUID, lecture_id: UUID) -> None:
        self._upsert(student_id, course_id, lecture_id).is_unlocked = True

    async def unlock_many(
        self, student_id: UUID, course_id: UUID, lecture_ids: list[UUID]
    ) -> None:
        if self.dropped_unlock_batches:
            self.dropped_unlock_batches -= 1
            return
        for lecture_id in lecture_ids:
            await self.unlock(student_id, course_id, lecture_id)

    async def complete(
        self,
        student_id: UUID,
        course_id: UUID,
        lecture_id: UUID,
        completed_at: datetime,
    ) -> None:
        row = self._upsert(student_id, course_id, lecture_id)
        row.is_completed = True
        row.is_unlocked = True
        row.completed_at = completed_at

    async def record_watch(
        self,
        student_id: UUID,
        course_id: UUID,
        lecture_id: UUID,
        watched_at: datetime,
    ) -> None:
        self._upsert(student_id, course_id, lecture_id).watched_at = watched_at


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def order_repository() -> FakeOrderRepository:
    return FakeOrderRepository()


@pytest.fixture
def enrollment_repository() -> FakeEnrollmentRepository:
    return FakeEnrollmentRepository()


@pytest.fixture
def progress_repository() -> FakeProgressRepository:
    return FakeProgressRepository()


@pytest.fixture
def anomalies() -> list[tuple[str, dict]]:
    """Events recorded by the anomaly sink."""
    return []


@pytest.fixture
def unlock_engine(
    progress_repository: FakeProgressRepository,
    catalog: FakeCatalog,
    enrollment_repository: FakeEnrollmentRepository,
) -> LectureUnlockEngine:
    return LectureUnlockEngine(
        progress_repository=progress_repository,
        catalog=catalog,
        enrollments=enrollment_repository,
    )


@pytest.fixture
def ledger(
    order_repository: FakeOrderRepository,
    enrollment_repository: FakeEnrollmentRepository,
    catalog: FakeCatalog,
    gateway: FakeGateway,
    unlock_engine: LectureUnlockEngine,
    anomalies: list[tuple[str, dict]],
) -> EnrollmentLedger:
    return EnrollmentLedger(
        orders=order_repository,
        enrollments=enrollment_repository,
        catalog=catalog,
        gateway=gateway,
        unlock_engine=unlock_engine,
        currency="INR",
        anomaly_sink=lambda event, **context: anomalies.append((event, context)),
        reconcile_max_attempts=3,
    )


@pytest.fixture
def student_id() -> UUID:
    return uuid4()


@pytest.fixture
def course_with_lectures(catalog: FakeCatalog) -> tuple[Course, list[Lecture]]:
    """Course with L1 (free, pos 1), L2 (paid, pos 2), L3 (paid, pos 3)."""
    course = catalog.add_course()
    lectures = [
        catalog.add_lecture(course.id, is_free=True),
        catalog.add_lecture(course.id),
        catalog.add_lecture(course.id),
    ]
    return course, lectures


@pytest.fixture
def app(catalog, ledger, unlock_engine):
    """Application with fake services on app.state (lifespan is not run)."""
    from coursehub.main import create_app

    application = create_app()
    application.state.course_catalog = catalog
    application.state.enrollment_ledger = ledger
    application.state.unlock_engine = unlock_engine
    return application


@pytest.fixture
def client(app) -> TestClient:
    """Test client without Cassandra."""
    return TestClient(app)


def auth_headers(user_id: UUID, role: str = "student") -> dict[str, str]:
    """Bearer header for a freshly issued access token."""
    from coursehub.auth.security import create_access_token

    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_auth_headers():
    """Factory for bearer headers: make_auth_headers(user_id, role)."""
    return auth_headers


@pytest.fixture
def student_headers(student_id: UUID) -> dict[str, str]:
    return auth_headers(student_id)
