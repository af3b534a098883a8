from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class BundleCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    permission_keys: List[str] = []


class BundleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class BundlePermissionsUpdate(BaseModel):
    permission_keys: List[str]


class BundleResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    is_system: bool = False
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BundleWithPermissionsResponse(BundleResponse):
    permission_keys: List[str]


class BundleAssignmentResponse(BaseModel):
    membership_id: str
    bundle_id: str
    assigned_by: Optional[str] = None
    assigned_at: datetime

    class Config:
        from_attributes = True
