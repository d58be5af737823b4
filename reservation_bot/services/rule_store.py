"""
Rule Store
Read/write access to capacity rules. The store exclusively owns rule
persistence; evaluation only ever reads snapshots from it.

Rules are never hard-deleted: deactivation flips ``active`` so the
history stays auditable.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Dict, Any

from ..core.database import DatabaseManager
from ..models.base import build_model
from ..models.capacity_rule import (
    CapacityRule, CapacityRuleBase, CapacityRulePatch, IMMUTABLE_RULE_FIELDS, describe_rule,
)
from ..core.exceptions import ValidationError


class RuleStore(ABC):
    """Persistence interface consumed by the admission core"""

    @abstractmethod
    def list_active_rules(self, store_id: str) -> List[CapacityRule]:
        """All active rules of a store"""

    @abstractmethod
    def get_rule(self, rule_id: int) -> Optional[CapacityRule]:
        """One rule by id, active or not"""

    @abstractmethod
    def create_rule(self, rule: CapacityRuleBase) -> CapacityRule:
        """Persist a new rule and return it with id and timestamps"""

    @abstractmethod
    def update_rule(self, rule_id: int, patch: Dict[str, Any]) -> Optional[CapacityRule]:
        """Apply a partial update; None when the id is unknown"""

    @abstractmethod
    def deactivate_rule(self, rule_id: int) -> bool:
        """Soft-delete; False when the id is unknown"""


_COLUMNS = (
    "id, store_id, kind, scope_type, scope_ids, weekdays, effective_date, time_start, time_end, "
    "limit_type, limit_value, priority, active, description, created_by, created_at, updated_at"
)


def _row_to_rule(row: tuple) -> CapacityRule:
    return CapacityRule(
        id=row[0],
        store_id=row[1],
        kind=row[2],
        scope_type=row[3],
        scope_ids=json.loads(row[4]) if row[4] else [],
        weekdays=json.loads(row[5]) if row[5] else [],
        effective_date=row[6],
        time_start=row[7],
        time_end=row[8],
        limit_type=row[9],
        limit_value=row[10],
        priority=row[11],
        active=row[12],
        description=row[13] or "",
        created_by=row[14],
        created_at=row[15],
        updated_at=row[16],
    )


class DuckDBRuleStore(RuleStore):
    """Rule store backed by the ``capacity_rules`` table"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def list_active_rules(self, store_id: str) -> List[CapacityRule]:
        rows = self.db.execute_query(
            f"SELECT {_COLUMNS} FROM capacity_rules WHERE store_id = ? AND active "
            "ORDER BY priority DESC, created_at, id",
            [store_id],
        )
        return [_row_to_rule(row) for row in rows]

    def get_rule(self, rule_id: int) -> Optional[CapacityRule]:
        row = self.db.execute_one(
            f"SELECT {_COLUMNS} FROM capacity_rules WHERE id = ?", [rule_id]
        )
        return _row_to_rule(row) if row else None

    def create_rule(self, rule: CapacityRuleBase) -> CapacityRule:
        now = datetime.now()
        row = self.db.execute_one(
            f"""
            INSERT INTO capacity_rules(store_id, kind, scope_type, scope_ids, weekdays, effective_date,
                time_start, time_end, limit_type, limit_value, priority, active, description,
                created_by, created_at, updated_at)
            VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
            RETURNING {_COLUMNS}
            """,
            [
                rule.store_id,
                rule.kind.value,
                rule.scope_type.value,
                json.dumps(rule.scope_ids, ensure_ascii=False),
                json.dumps(rule.weekdays),
                rule.effective_date,
                rule.time_start,
                rule.time_end,
                rule.limit_type.value,
                rule.limit_value,
                rule.priority,
                getattr(rule, "active", True),
                rule.description,
                rule.created_by,
                now,
                now,
            ],
        )
        return _row_to_rule(row)

    def update_rule(self, rule_id: int, patch: Dict[str, Any]) -> Optional[CapacityRule]:
        immutable = IMMUTABLE_RULE_FIELDS.intersection(patch)
        if immutable:
            field = sorted(immutable)[0]
            raise ValidationError(f"{field} cannot be changed", field=field)
        unknown = set(patch) - set(CapacityRulePatch.model_fields)
        if unknown:
            field = sorted(unknown)[0]
            raise ValidationError(f"Unknown rule field {field}", field=field)

        current = self.get_rule(rule_id)
        if current is None:
            return None

        # Re-validate the merged record so invariants hold after the update
        merged = build_model(CapacityRule, {**current.model_dump(), **patch})
        if "description" not in patch and current.description == describe_rule(current):
            merged = merged.model_copy(update={"description": describe_rule(merged)})
        row = self.db.execute_one(
            f"""
            UPDATE capacity_rules SET kind=?, scope_type=?, scope_ids=?, weekdays=?, effective_date=?,
                time_start=?, time_end=?, limit_type=?, limit_value=?, priority=?, active=?,
                description=?, updated_at=?
            WHERE id = ?
            RETURNING {_COLUMNS}
            """,
            [
                merged.kind.value,
                merged.scope_type.value,
                json.dumps(merged.scope_ids, ensure_ascii=False),
                json.dumps(merged.weekdays),
                merged.effective_date,
                merged.time_start,
                merged.time_end,
                merged.limit_type.value,
                merged.limit_value,
                merged.priority,
                merged.active,
                merged.description,
                datetime.now(),
                rule_id,
            ],
        )
        return _row_to_rule(row) if row else None

    def deactivate_rule(self, rule_id: int) -> bool:
        row = self.db.execute_one(
            "UPDATE capacity_rules SET active = FALSE, updated_at = ? WHERE id = ? RETURNING id",
            [datetime.now(), rule_id],
        )
        return row is not None
