"""
Admin User Routes - Admin Only Access
Consolidated user profile read and atomic partial update
"""
import logging
from typing import Any, Dict

from bson import ObjectId
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from config.entries_config import REFERRAL_REWARD_ENTRIES
from db.database import Database, get_database
from middleware.auth import require_admin
from services.admin_user_update import AdminUserUpdateService
from services.entry_ledger import grant_referral_entries
from services.errors import EntriesServiceError
from services.feature_flags import FeatureFlagService, get_feature_flags
from services.user_statistics import build_admin_user_profile
from utils.mongo_helpers import is_valid_object_id, sanitize_mongo_doc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin-users"])


def get_admin_user_update_service(
    database: Database = Depends(get_database),
    feature_flags: FeatureFlagService = Depends(get_feature_flags),
) -> AdminUserUpdateService:
    return AdminUserUpdateService(database, feature_flags)


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


# ============================================================================
# USER PROFILE
# ============================================================================

@router.get("/users/{user_id}")
async def get_admin_user(
    user_id: str,
    admin: Dict[str, Any] = Depends(require_admin),
    database: Database = Depends(get_database),
):
    """
    Consolidated admin profile: identity, packages, balances, draw
    participation, purchase histories, referrals and statistics.
    """
    if not is_valid_object_id(user_id):
        return _failure(400, "Invalid user ID format")

    try:
        profile = build_admin_user_profile(database, user_id)
    except Exception:
        logger.exception(f"Failed to build admin profile for user {user_id}")
        return _failure(500, "Failed to fetch user details")

    if profile is None:
        return _failure(404, "User not found")

    logger.info(f"Admin {admin.get('_id')} fetched profile for user {user_id}")
    return {"success": True, "data": sanitize_mongo_doc(profile)}


@router.patch("/users/{user_id}")
async def update_admin_user(
    user_id: str,
    request: Request,
    admin: Dict[str, Any] = Depends(require_admin),
    service: AdminUserUpdateService = Depends(get_admin_user_update_service),
):
    """
    Partial update; every present block is applied in one transaction.

    List blocks (oneTimePackages, miniDrawPackages, partnerDiscountQueue,
    majorDrawParticipation, miniDrawParticipation) replace the stored list.
    """
    if not is_valid_object_id(user_id):
        return _failure(400, "Invalid user ID format")

    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Validation failed",
                "issues": [{"path": "", "message": "Request body must be valid JSON"}],
            },
        )

    try:
        profile = service.update_user(user_id, payload)
    except EntriesServiceError as exc:
        if exc.status_code >= 500:
            logger.error(f"Admin update for user {user_id} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())
    except Exception:
        logger.exception(f"Unexpected error updating user {user_id}")
        return _failure(500, "Failed to update user")

    logger.info(f"Admin {admin.get('_id')} updated user {user_id}")
    return {"success": True, "data": sanitize_mongo_doc(profile)}


@router.post("/users/{user_id}/referral-entries")
async def grant_user_referral_entries(
    user_id: str,
    admin: Dict[str, Any] = Depends(require_admin),
    database: Database = Depends(get_database),
):
    """Award the referral reward into the active major draw's referral bucket."""
    if not is_valid_object_id(user_id):
        return _failure(400, "Invalid user ID format")

    user = database.users.find_one({"_id": ObjectId(user_id)})
    if not user:
        return _failure(404, "User not found")

    draw = grant_referral_entries(database, user["_id"])
    logger.info(f"Admin {admin.get('_id')} granted referral entries to user {user_id}")
    return {"success": True, "data": {"drawId": str(draw["_id"]), "entriesAwarded": REFERRAL_REWARD_ENTRIES}}
