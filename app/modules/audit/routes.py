from fastapi import APIRouter, Depends, Query
from app.config import settings
from app.config.permissions_config import VIEW_PERMISSIONS_KEY
from app.database.supabase_client import get_supabase
from app.modules.audit.schemas import AuditLogEntry
from app.modules.audit.service import AuditLogger
from app.modules.memberships.schemas import Membership
from app.core.dependencies import require_permission
from supabase import Client
from typing import List, Optional

router = APIRouter(prefix="/audit-log", tags=["audit"])


def get_audit_logger(supabase: Client = Depends(get_supabase)) -> AuditLogger:
    return AuditLogger(supabase)


@router.get("", response_model=List[AuditLogEntry])
async def list_audit_log(
    limit: Optional[int] = Query(None, ge=1),
    membership: Membership = Depends(require_permission(VIEW_PERMISSIONS_KEY)),
    audit_logger: AuditLogger = Depends(get_audit_logger)
):
    """Recent grant/revoke entries for the active tenant, newest first"""
    limit = min(limit or settings.audit_log_default_limit, settings.audit_log_max_limit)
    return audit_logger.list_recent(membership.tenant_id, limit)
