"""
Package Catalog Routes
Public catalogs with any running entry-multiplier promo applied at read time
"""
from fastapi import APIRouter, Depends

from config.membership_packages import get_one_time_packages, get_subscription_packages
from config.mini_draw_packages import get_mini_draw_packages
from db.database import Database, get_database
from services.promo_multiplier import get_active_promo, get_mini_packages_for_display, get_packages_with_promo
from utils.mongo_helpers import sanitize_mongo_doc

router = APIRouter(prefix="/api/packages", tags=["packages"])


def _promo_summary(promo):
    if not promo:
        return None
    return sanitize_mongo_doc({
        "type": promo["type"],
        "multiplier": promo["multiplier"],
        "endDate": promo.get("endDate"),
    })


@router.get("/membership")
async def list_membership_packages(member: bool = False, database: Database = Depends(get_database)):
    """Subscriptions and one-time packs; member-only packs are listed for members."""
    packages = get_subscription_packages() + get_one_time_packages(member=member)
    promo = get_active_promo(database, "one-time-packages")
    if promo:
        packages = get_packages_with_promo(packages, promo["multiplier"], promo["type"])
    return {"success": True, "data": {"packages": packages, "promo": _promo_summary(promo)}}


@router.get("/mini-draw")
async def list_mini_draw_packages(database: Database = Depends(get_database)):
    packages = get_mini_packages_for_display(database, get_mini_draw_packages())
    promo = get_active_promo(database, "mini-packages")
    return {"success": True, "data": {"packages": packages, "promo": _promo_summary(promo)}}
