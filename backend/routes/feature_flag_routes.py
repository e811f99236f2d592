"""
Feature Flag Routes - Admin Only Access
Pause and resume gated capabilities (rewards balance edits)
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from middleware.auth import require_admin
from services.errors import NotFoundError
from services.feature_flags import FeatureFlagService, get_feature_flags
from utils.mongo_helpers import sanitize_mongo_doc

router = APIRouter(prefix="/api/admin/feature-flags", tags=["admin-feature-flags"])


class FlagUpdateRequest(BaseModel):
    """Request body for toggling a flag"""
    enabled: bool
    reason: str = Field(..., min_length=1, max_length=500)


@router.get("")
async def list_feature_flags(
    admin: Dict[str, Any] = Depends(require_admin),
    flags: FeatureFlagService = Depends(get_feature_flags),
):
    return {"success": True, "data": sanitize_mongo_doc(flags.get_all_flags())}


@router.put("/{flag_name}")
async def update_feature_flag(
    flag_name: str,
    request: FlagUpdateRequest,
    admin: Dict[str, Any] = Depends(require_admin),
    flags: FeatureFlagService = Depends(get_feature_flags),
):
    if flag_name not in flags.DEFAULT_FLAGS:
        raise NotFoundError(f"Unknown feature flag: {flag_name}")

    flags.set_flag(
        flag_name,
        request.enabled,
        changed_by=admin.get("email") or str(admin.get("_id")),
        reason=request.reason,
    )
    return {"success": True, "data": {"flag_name": flag_name, "enabled": flags.is_enabled(flag_name)}}
