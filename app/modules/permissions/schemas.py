from pydantic import BaseModel
from typing import Optional, List


class PermissionDefinition(BaseModel):
    key: str
    module: str
    resource: str
    action: str
    display_name: str
    display_name_ar: Optional[str] = None
    description: Optional[str] = None
    description_ar: Optional[str] = None
    is_delegatable: bool = True

    class Config:
        from_attributes = True
        frozen = True


class EffectivePermissionsResponse(BaseModel):
    membership_id: str
    tenant_id: str
    role: str
    is_owner: bool
    permissions: List[str]
    delegatable: List[str] = []


class PermissionCheckResponse(BaseModel):
    key: str
    has_permission: bool
    can_delegate: bool


class MemberPermissionsResponse(BaseModel):
    membership_id: str
    is_owner: bool
    permissions: List[str]
    bundle_ids: List[str]
    overrides: List[dict]
