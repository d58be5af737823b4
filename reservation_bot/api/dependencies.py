"""
Service providers for the route handlers.
Tests override ``get_db`` (or a whole service) through
``app.dependency_overrides``.
"""

from fastapi import Depends

from ..core.database import DatabaseManager, get_db
from ..services.admission_service import AdmissionService
from ..services.audit_log import AuditLog
from ..services.message_service import MessageService
from ..services.reservation_service import ReservationService
from ..services.rule_store import DuckDBRuleStore
from ..services.usage_counter import DuckDBUsageBackend


def get_admission_service(db: DatabaseManager = Depends(get_db)) -> AdmissionService:
    return AdmissionService(DuckDBRuleStore(db), DuckDBUsageBackend(db), audit=AuditLog(db))


def get_reservation_service(
    db: DatabaseManager = Depends(get_db),
    admission: AdmissionService = Depends(get_admission_service),
) -> ReservationService:
    return ReservationService(db, admission)


def get_message_service(admission: AdmissionService = Depends(get_admission_service)) -> MessageService:
    return MessageService(admission)
