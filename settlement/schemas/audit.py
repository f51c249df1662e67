from pydantic import BaseModel, Field
from typing import Optional, List, Any
from datetime import datetime


class AuditLog(BaseModel):
    id: int
    action: str
    resource: str
    resource_id: Optional[str] = None
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    metadata: Optional[Any] = Field(default=None, validation_alias="metadata_json")
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogPage(BaseModel):
    items: List[AuditLog]
    total: int
    skip: int
    limit: int
    has_more: bool


class AuditVocabularyEntry(BaseModel):
    name: str
    description: str
