from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from settlement import schemas
from settlement.core import audit
from settlement.db.session import get_db

router = APIRouter()


@router.get("/", response_model=schemas.AuditLogPage)
def read_audit_logs(
    db: Session = Depends(get_db),
    resource: Optional[str] = Query(None),
    resource_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    from_date: Optional[datetime] = Query(None),
    to_date: Optional[datetime] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """
    Query the audit trail, newest entries first.
    """
    logs, total = audit.query_audit_logs(
        db, resource=resource, resource_id=resource_id, action=action,
        from_date=from_date, to_date=to_date, skip=skip, limit=limit,
    )
    return {"items": logs, "total": total, "skip": skip, "limit": limit, "has_more": skip + len(logs) < total}


@router.get("/resources", response_model=List[schemas.AuditVocabularyEntry])
def read_audit_resources():
    return [{"name": name, "description": text} for name, text in audit.AUDIT_RESOURCES.items()]


@router.get("/actions", response_model=List[schemas.AuditVocabularyEntry])
def read_audit_actions():
    return [{"name": name, "description": text} for name, text in audit.AUDIT_ACTIONS.items()]
