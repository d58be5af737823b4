"""
Test configuration
Shared fixtures: an in-memory DuckDB, the admission service wired to it,
stub usage backends and an API client.
"""

import time as clock
import uuid
from datetime import date, datetime, time
from typing import Callable, List, Optional, Union

import pytest
from fastapi.testclient import TestClient

from ..app import create_app
from ..config.settings import Settings
from ..core.database import DatabaseManager, get_db
from ..core.security import security_manager
from ..models.capacity_rule import CapacityRule, LimitType, RuleScope
from ..services.admission_service import AdmissionService
from ..services.audit_log import AuditLog
from ..services.reservation_service import ReservationService
from ..services.rule_store import DuckDBRuleStore
from ..services.usage_counter import BucketSpec, DuckDBUsageBackend, UsageBackend

STORE = "store-1"
SATURDAY = date(2025, 6, 7)
SUNDAY = date(2025, 6, 8)
MONDAY = date(2025, 6, 9)
OPERATOR_LINE_ID = "Uowner"


def make_rule(rule_id: int = 1, **overrides) -> CapacityRule:
    """In-memory rule: Saturday/Sunday lunch, 3 per hour"""
    data = dict(
        id=rule_id,
        store_id=STORE,
        weekdays=[0, 6],
        time_start=time(11, 0),
        time_end=time(15, 0),
        limit_type=LimitType.PER_HOUR,
        limit_value=3,
        created_at=datetime(2025, 1, 1, 9, 0),
    )
    data.update(overrides)
    return CapacityRule(**data)


class StaticUsageBackend(UsageBackend):
    """Usage backend returning a fixed or computed count"""

    def __init__(self, count: Union[int, Callable[[BucketSpec], int]] = 0,
                 error: Optional[Exception] = None, delay: float = 0.0):
        self.count = count
        self.error = error
        self.delay = delay
        self.calls: List[BucketSpec] = []

    def count_in_bucket(self, store_id: str, scope: RuleScope, bucket: BucketSpec) -> int:
        self.calls.append(bucket)
        if self.delay:
            clock.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if callable(self.count):
            return self.count(bucket)
        return self.count


@pytest.fixture
def test_settings():
    """Settings isolated from the environment"""
    return Settings(
        _env_file=None,
        database_url="duckdb:///:memory:",
        default_store_id=STORE,
        jwt_secret_key="test-secret-key",
        collaborator_timeout_seconds=2.0,
        line_channel_access_token=None,
        line_operator_user_ids=[OPERATOR_LINE_ID],
    )


@pytest.fixture
def test_db():
    """Fresh in-memory database with the schema applied"""
    manager = DatabaseManager(":memory:")
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def add_reservation(test_db):
    """Insert a reservation row directly, bypassing admission"""

    def _add(on_date: date = SATURDAY, at: time = time(12, 0), store_id: str = STORE,
             seat_type: Optional[str] = None, menu: Optional[str] = None,
             staff: Optional[str] = None, status: str = "confirmed") -> str:
        reservation_id = f"R{uuid.uuid4().hex[:10].upper()}"
        test_db.execute_query(
            """
            INSERT INTO reservations(id, store_id, customer_name, date, time, people,
                                     seat_type, menu, staff, note, status)
            VALUES (?,?,?,?,?,?,?,?,?,?,?)
            """,
            [reservation_id, store_id, "Guest", on_date, at, 2, seat_type, menu, staff, "", status],
        )
        return reservation_id

    return _add


@pytest.fixture
def admission(test_db, test_settings):
    """Admission service over the in-memory database; ``today`` is a Saturday"""
    return AdmissionService(
        DuckDBRuleStore(test_db),
        DuckDBUsageBackend(test_db),
        audit=AuditLog(test_db),
        config=test_settings,
        today=lambda: SATURDAY,
    )


@pytest.fixture
def reservations(test_db, admission):
    return ReservationService(test_db, admission)


@pytest.fixture
def client(test_db):
    """API client whose routes use the in-memory database"""
    app = create_app()
    app.dependency_overrides[get_db] = lambda: test_db
    return TestClient(app)


@pytest.fixture
def operator_headers():
    token = security_manager.create_jwt_token("owner-1")
    return {"Authorization": f"Bearer {token}"}
