from enum import Enum
from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class AuditAction(str, Enum):
    GRANTED = "granted"
    REVOKED = "revoked"


class AuditLogCreate(BaseModel):
    tenant_id: str
    actor_user_id: str
    target_member_id: str
    permission_key: str
    action: AuditAction


class AuditLogEntry(BaseModel):
    id: str
    tenant_id: str
    actor_user_id: str
    target_member_id: str
    permission_key: str
    action: AuditAction
    created_at: datetime

    class Config:
        from_attributes = True
