from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class DelegationScopeSet(BaseModel):
    can_delegate: bool


class DelegationScopeResponse(BaseModel):
    tenant_id: str
    grantor_member_id: str
    permission_key: str
    can_delegate: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
