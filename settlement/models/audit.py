from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from settlement.db.base_class import Base


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    action = Column(String(50), nullable=False, index=True)      # e.g. "create", "refund", "mark_paid"
    resource = Column(String(50), nullable=False, index=True)    # e.g. "payout", "regional_agreement"
    resource_id = Column(String(64), nullable=True, index=True)
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', resource='{self.resource}', resource_id='{self.resource_id}')>"
