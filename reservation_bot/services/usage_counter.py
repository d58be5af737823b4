"""
Usage Counter
Defines which existing reservations share a bucket with a candidate under
a given rule, and asks the persistent backend how many there are.

Bucket policy by limit type:
- per_hour: same date, same clock hour as the candidate
- per_day: same date, any time
- per_window: same date, inside the rule's [time_start, time_end)

All buckets are restricted to the rule's scope. Counts always come from
the backend; nothing is aggregated in process memory.
"""

from abc import ABC, abstractmethod
from datetime import date as date_type, datetime, time
from typing import Optional, Tuple

from pydantic import BaseModel

from ..core.database import DatabaseManager
from ..core.exceptions import BackendUnavailableError, DatabaseError
from ..models.capacity_rule import CapacityRule, LimitType, RuleScope, END_OF_DAY
from ..models.reservation import ReservationCandidate, ReservationStatus

# Reservation column compared against scope_ids for each scope type
SCOPE_COLUMNS = {
    RuleScope.SEAT_TYPE: "seat_type",
    RuleScope.MENU_ITEM: "menu",
    RuleScope.STAFF: "staff",
}


class BucketSpec(BaseModel):
    """Aggregation window for one rule and one candidate"""
    store_id: str
    date: date_type
    start: Optional[time] = None   # inclusive; None means start of day
    end: Optional[time] = None     # exclusive; None means end of day
    scope_type: RuleScope = RuleScope.STORE
    scope_ids: Tuple[str, ...] = ()

    model_config = {"frozen": True}

    def key(self) -> str:
        """Stable identifier of the bucket, used by the slot counters"""
        start = self.start.isoformat() if self.start else ""
        end = self.end.isoformat() if self.end else ""
        scope = ",".join(self.scope_ids)
        return f"{self.store_id}|{self.date.isoformat()}|{start}|{end}|{self.scope_type.value}|{scope}"


class UsageBackend(ABC):
    """Backend that owns reservation counts"""

    supports_atomic_reserve: bool = False

    @abstractmethod
    def count_in_bucket(self, store_id: str, scope: RuleScope, bucket: BucketSpec) -> int:
        """Number of admitted reservations in ``bucket``"""

    def try_reserve_slot(self, rule: CapacityRule, bucket: BucketSpec) -> bool:
        """Atomically take one slot when the bucket is below the rule's limit"""
        raise NotImplementedError

    def release_slot(self, rule: CapacityRule, bucket: BucketSpec) -> None:
        """Give back a slot taken by ``try_reserve_slot``"""
        raise NotImplementedError


def _bucket_conditions(bucket: BucketSpec) -> Tuple[str, list]:
    clauses = ["store_id = ?", "date = ?", "status = ?"]
    params: list = [bucket.store_id, bucket.date, ReservationStatus.CONFIRMED.value]
    if bucket.start is not None:
        clauses.append("time >= ?")
        params.append(bucket.start)
    if bucket.end is not None:
        clauses.append("time < ?")
        params.append(bucket.end)
    column = SCOPE_COLUMNS.get(bucket.scope_type)
    if column is not None:
        placeholders = ",".join("?" for _ in bucket.scope_ids)
        clauses.append(f"{column} IN ({placeholders})")
        params.extend(bucket.scope_ids)
    return " AND ".join(clauses), params


class DuckDBUsageBackend(UsageBackend):
    """Counts confirmed rows of the ``reservations`` table"""

    supports_atomic_reserve = True

    def __init__(self, db: DatabaseManager):
        self.db = db

    def count_in_bucket(self, store_id: str, scope: RuleScope, bucket: BucketSpec) -> int:
        where, params = _bucket_conditions(bucket)
        row = self.db.execute_one(f"SELECT COUNT(*) FROM reservations WHERE {where}", params)
        return int(row[0]) if row else 0

    def try_reserve_slot(self, rule: CapacityRule, bucket: BucketSpec) -> bool:
        key = bucket.key()
        with self.db.transaction() as con:
            exists = con.execute(
                "SELECT 1 FROM capacity_slots WHERE rule_id = ? AND bucket_key = ?",
                [rule.id, key],
            ).fetchone()
            if not exists:
                # Seed the counter from the reservations already on record
                where, params = _bucket_conditions(bucket)
                seed = con.execute(f"SELECT COUNT(*) FROM reservations WHERE {where}", params).fetchone()[0]
                con.execute(
                    "INSERT INTO capacity_slots(rule_id, bucket_key, used, updated_at) VALUES (?,?,?,?)",
                    [rule.id, key, seed, datetime.now()],
                )
            taken = con.execute(
                """
                UPDATE capacity_slots SET used = used + 1, updated_at = ?
                WHERE rule_id = ? AND bucket_key = ? AND used < ?
                RETURNING used
                """,
                [datetime.now(), rule.id, key, rule.limit_value],
            ).fetchone()
        return taken is not None

    def release_slot(self, rule: CapacityRule, bucket: BucketSpec) -> None:
        self.db.execute_query(
            """
            UPDATE capacity_slots SET used = used - 1, updated_at = ?
            WHERE rule_id = ? AND bucket_key = ? AND used > 0
            """,
            [datetime.now(), rule.id, bucket.key()],
        )


class UsageCounter:
    """Counting policy over a UsageBackend"""

    def __init__(self, backend: UsageBackend):
        self.backend = backend

    @staticmethod
    def bucket_for(rule: CapacityRule, candidate: ReservationCandidate) -> BucketSpec:
        """The bucket ``rule`` assigns to ``candidate``"""
        if rule.limit_type == LimitType.PER_HOUR:
            hour = candidate.time.hour
            start: Optional[time] = time(hour, 0)
            end: Optional[time] = time(hour + 1, 0) if hour < 23 else None
        elif rule.limit_type == LimitType.PER_WINDOW:
            start = rule.time_start
            end = None if rule.time_end == END_OF_DAY else rule.time_end
        else:
            start, end = None, None

        scope_ids: Tuple[str, ...] = ()
        if rule.scope_type != RuleScope.STORE:
            scope_ids = tuple(rule.scope_ids)

        return BucketSpec(
            store_id=candidate.store_id,
            date=candidate.date,
            start=start,
            end=end,
            scope_type=rule.scope_type,
            scope_ids=scope_ids,
        )

    def count(self, rule: CapacityRule, candidate: ReservationCandidate) -> int:
        """Existing admitted reservations in the candidate's bucket"""
        bucket = self.bucket_for(rule, candidate)
        try:
            value = self.backend.count_in_bucket(candidate.store_id, rule.scope_type, bucket)
        except DatabaseError as e:
            raise BackendUnavailableError(f"Usage count failed: {e.message}", "usage_counter")
        if value is None or int(value) < 0:
            raise BackendUnavailableError(f"Usage backend returned an invalid count: {value!r}", "usage_counter")
        return int(value)
