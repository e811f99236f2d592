"""
Draw Routes - Admin Only Access
Manual trigger for the time-driven major draw lifecycle sweep
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from db.database import Database, get_database
from middleware.auth import require_admin
from services.draw_lifecycle import transition_major_draws

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/draws", tags=["admin-draws"])


@router.post("/sweep")
async def sweep_major_draws(
    admin: Dict[str, Any] = Depends(require_admin),
    database: Database = Depends(get_database),
):
    """
    Complete draws past drawDate, freeze draws past freezeEntriesAt and
    activate the next due queued draw. Safe to call repeatedly; a scheduler
    hits the same endpoint.
    """
    counts = transition_major_draws(database)
    logger.info(f"Admin {admin.get('_id')} ran major draw sweep: {counts}")
    return {"success": True, "data": counts}
