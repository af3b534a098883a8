from enum import Enum
from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class TenantRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    FOREMAN = "foreman"
    VET = "vet"
    TRAINER = "trainer"
    EMPLOYEE = "employee"
    MANAGER = "manager"


class Membership(BaseModel):
    id: str
    tenant_id: str
    user_id: str
    role: TenantRole
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        frozen = True

    @property
    def is_owner(self) -> bool:
        """The single owner predicate; every owner bypass goes through here."""
        return self.role is TenantRole.OWNER
