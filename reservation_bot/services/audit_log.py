"""Operation audit trail stored in the ``logs`` table."""

import json
import logging
from typing import Any, Dict, Optional

from ..core.database import DatabaseManager
from ..core.exceptions import DatabaseError

logger = logging.getLogger(__name__)


class AuditLog:
    def __init__(self, db: DatabaseManager):
        self.db = db

    def record(self, action: str, store_id: Optional[str], actor_id: Optional[str],
               detail: Dict[str, Any]) -> None:
        """Append one entry; a failed write is logged and never fails the caller"""
        try:
            self.db.execute_query(
                "INSERT INTO logs(store_id, actor_id, action, detail_json) VALUES (?,?,?,?)",
                [store_id, actor_id, action, json.dumps(detail, ensure_ascii=False, default=str)],
            )
        except DatabaseError as e:
            logger.warning("Audit write failed for %s: %s", action, e.message)

    def recent(self, store_id: str, limit: int = 20) -> list:
        rows = self.db.execute_query(
            """
            SELECT log_id, actor_id, action, detail_json, created_at
            FROM logs WHERE store_id = ?
            ORDER BY log_id DESC
            LIMIT ?
            """,
            [store_id, limit],
        )
        return [
            {
                "log_id": row[0],
                "actor_id": row[1],
                "action": row[2],
                "detail": json.loads(row[3]) if row[3] else {},
                "created_at": row[4],
            }
            for row in rows
        ]
