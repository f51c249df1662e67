import logging
from datetime import datetime
from typing import Any, Optional, List, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from settlement.core.money import as_naive_utc
from settlement.crud import crud_audit
from settlement.models.audit import AuditLog

logger = logging.getLogger(__name__)


def record_audit(
    db: Session,
    *,
    action: str,
    resource: str,
    resource_id: Optional[Any] = None,
    old_value: Optional[Any] = None,
    new_value: Optional[Any] = None,
    metadata: Optional[dict] = None,
) -> None:
    """
    Write an audit log entry. Called after the audited operation has been
    committed; a failure here is logged and discarded so it can never undo
    or abort that operation.
    """
    try:
        crud_audit.create_audit_log(
            db,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            old_value=jsonable_encoder(old_value) if old_value is not None else None,
            new_value=jsonable_encoder(new_value) if new_value is not None else None,
            metadata=jsonable_encoder(metadata) if metadata is not None else None,
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to log audit event {action} on {resource} {resource_id}: {e}", exc_info=True)


AUDIT_RESOURCES = {
    "regional_agreement": "Exclusive regional partner agreements",
    "customer_attribution": "Customer to affiliate attributions",
    "commission": "Commission line items",
    "payout": "Commission payouts",
    "regional_payout": "Monthly regional revenue payouts",
}

AUDIT_ACTIONS = {
    "CREATE": "Created",
    "UPDATE": "Updated",
    "DELETE": "Deleted",
    "SIGN": "Contract signed",
    "TERMINATE": "Agreement terminated",
    "PROCESS_ORDER": "Order processed into commissions",
    "REFUND": "Order refunded",
    "APPROVE_ELIGIBLE": "Hold period approval run",
    "PROCESS": "Payout handed to the transfer processor",
    "COMPLETE": "Payout completed",
    "FAIL": "Payout failed",
    "APPROVE": "Regional payout approved",
    "MARK_PAID": "Regional payout marked paid",
}


def query_audit_logs(
    db: Session,
    *,
    resource: Optional[str] = None,
    resource_id: Optional[str] = None,
    action: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[AuditLog], int]:
    """Page of audit entries, newest first, and the total number matching the filters."""
    filters = {
        "resource": resource,
        "resource_id": resource_id,
        "action": action.upper() if action else None,
        "from_date": as_naive_utc(from_date) if from_date else None,
        "to_date": as_naive_utc(to_date) if to_date else None,
    }
    logs = crud_audit.get_audit_logs(db, skip=skip, limit=limit, **filters)
    return logs, crud_audit.count_audit_logs(db, **filters)
