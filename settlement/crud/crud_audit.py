from datetime import datetime
from sqlalchemy.orm import Session
from typing import Optional, List, Any

from settlement.models.audit import AuditLog


def create_audit_log(
    db: Session,
    *,
    action: str,
    resource: str,
    resource_id: Optional[str] = None,
    old_value: Optional[Any] = None,
    new_value: Optional[Any] = None,
    metadata: Optional[dict] = None,
) -> AuditLog:
    db_obj = AuditLog(
        action=action,
        resource=resource,
        resource_id=resource_id,
        old_value=old_value,
        new_value=new_value,
        metadata_json=metadata,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def _filtered(
    db: Session,
    *,
    resource: Optional[str] = None,
    resource_id: Optional[str] = None,
    action: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
):
    query = db.query(AuditLog)
    if resource:
        query = query.filter(AuditLog.resource == resource)
    if resource_id:
        query = query.filter(AuditLog.resource_id == resource_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if from_date:
        query = query.filter(AuditLog.created_at >= from_date)
    if to_date:
        query = query.filter(AuditLog.created_at <= to_date)
    return query


def get_audit_logs(db: Session, *, skip: int = 0, limit: int = 50, **filters) -> List[AuditLog]:
    """
    Audit entries, newest first. Accepts the same filters as count_audit_logs.
    """
    return _filtered(db, **filters).order_by(AuditLog.id.desc()).offset(skip).limit(limit).all()


def count_audit_logs(db: Session, **filters) -> int:
    return _filtered(db, **filters).count()
