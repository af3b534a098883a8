from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class OverrideSet(BaseModel):
    granted: bool


class OverrideResponse(BaseModel):
    membership_id: str
    permission_key: str
    granted: bool
    granted_by: Optional[str] = None
    granted_at: datetime

    class Config:
        from_attributes = True
