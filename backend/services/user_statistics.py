"""
User Statistics & Admin Profile
===============================

Read-only consolidated view of one user for the admin back office:
identity, packages, balances, partner discounts, draw participation,
purchase histories, referral summary and derived statistics.

Derived numbers:
- lifetimeValue / totalSpent: sum of BenefitsGranted payment event prices
- totalOrderValue / averageOrderValue: from orders only (never mixed with the above)
- currentDrawEntries: the user's entries in the single active major draw
- engagementScore: weighted activity score clamped to [0, 100]

Nothing here writes. Reads may lag a concurrent write; the profile is rebuilt
on every request.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId

from config.entries_config import (
    DRAW_ENTRY_POINTS_CAP,
    DRAW_ENTRY_POINTS_EACH,
    ENGAGEMENT_SCORE_MAX,
    ENGAGEMENT_WEIGHTS,
    LOGIN_RECENCY_TIERS,
    PAYMENT_HISTORY_LIMIT,
    PURCHASE_POINTS_CAP,
    PURCHASE_POINTS_EACH,
    REFERRAL_HISTORY_LIMIT,
    REFERRAL_REWARD_ENTRIES,
)
from config.membership_packages import get_package_by_id
from config.mini_draw_packages import get_mini_draw_package_by_id
from utils.mongo_helpers import SECRET_USER_FIELDS
from utils.timezone import days_between, now_utc

logger = logging.getLogger(__name__)


# ============================================================================
# CATALOG NAME RESOLUTION
# ============================================================================

def resolve_membership_package_name(package_id: Optional[str], stored_name: Optional[str] = None) -> Optional[str]:
    """Catalog name, else the name stored at purchase time, else the raw id."""
    if not package_id:
        return stored_name
    pkg = get_package_by_id(package_id)
    if pkg:
        return pkg["name"]
    return stored_name or package_id


def resolve_mini_package_name(package_id: Optional[str], stored_name: Optional[str] = None) -> Optional[str]:
    if not package_id:
        return stored_name
    pkg = get_mini_draw_package_by_id(package_id)
    if pkg:
        return pkg["name"]
    return stored_name or package_id


# ============================================================================
# ENGAGEMENT SCORE
# ============================================================================

def calculate_engagement_score(
    user: Dict[str, Any],
    payment_events: Iterable[Dict[str, Any]],
    major_draw_participation: Iterable[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> int:
    """
    Weighted activity score in [0, 100].

    Profile flags, login recency tier, purchases (capped), major draw entry
    volume (capped), active subscription, one-time packs, accepted upsells.
    """
    now = now or now_utc()
    score = 0

    if user.get("profileSetupCompleted"):
        score += ENGAGEMENT_WEIGHTS["profile_setup_completed"]
    if user.get("isEmailVerified"):
        score += ENGAGEMENT_WEIGHTS["email_verified"]
    if user.get("isMobileVerified"):
        score += ENGAGEMENT_WEIGHTS["mobile_verified"]

    last_login = user.get("lastLogin")
    if last_login:
        days = days_between(last_login, now)
        for max_days, points in LOGIN_RECENCY_TIERS:
            if days <= max_days:
                score += points
                break

    purchases = sum(1 for event in payment_events if event.get("eventType") == "BenefitsGranted")
    score += min(purchases * PURCHASE_POINTS_EACH, PURCHASE_POINTS_CAP)

    entries = sum(max(int(draw.get("totalEntries") or 0), 0) for draw in major_draw_participation)
    score += min(entries * DRAW_ENTRY_POINTS_EACH, DRAW_ENTRY_POINTS_CAP)

    if (user.get("subscription") or {}).get("isActive"):
        score += ENGAGEMENT_WEIGHTS["active_subscription"]
    if user.get("oneTimePackages"):
        score += ENGAGEMENT_WEIGHTS["has_one_time_packages"]
    if ((user.get("upsellStats") or {}).get("totalAccepted") or 0) > 0:
        score += ENGAGEMENT_WEIGHTS["accepted_upsell"]

    return max(0, min(score, ENGAGEMENT_SCORE_MAX))


# ============================================================================
# PROJECTIONS
# ============================================================================

def _user_entries(draw: Dict[str, Any], user_id: ObjectId) -> List[Dict[str, Any]]:
    return [entry for entry in draw.get("entries") or [] if str(entry.get("userId")) == str(user_id)]


def project_major_draw_participation(draws: Iterable[Dict[str, Any]], user_id: ObjectId) -> List[Dict[str, Any]]:
    participation = []
    for draw in draws:
        entries = _user_entries(draw, user_id)
        participation.append({
            "drawId": draw["_id"],
            "title": draw.get("title") or draw.get("name") or str(draw["_id"]),
            "status": draw.get("status"),
            "endDate": draw.get("endDate") or draw.get("drawDate"),
            "totalEntries": sum(int(entry.get("totalEntries") or 0) for entry in entries),
            "entries": entries,
        })
    return participation


def current_draw_entries(draws: Iterable[Dict[str, Any]], user_id: ObjectId) -> int:
    """Entries in the active major draw only; completed draws never count."""
    for draw in draws:
        if draw.get("status") == "active":
            return sum(int(entry.get("totalEntries") or 0) for entry in _user_entries(draw, user_id))
    return 0


def _history(events: List[Dict[str, Any]], package_type: str) -> List[Dict[str, Any]]:
    return [event for event in events if event.get("packageType") == package_type]


def build_purchase_histories(events: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Per-packageType projections of payment events with resolved package names."""
    subscription_history = []
    for event in _history(events, "subscription"):
        data = event.get("data") or {}
        subscription_history.append({
            "timestamp": event.get("timestamp"),
            "packageId": data.get("packageId"),
            "packageName": resolve_membership_package_name(data.get("packageId"), data.get("packageName")),
            "price": data.get("price"),
            "status": event.get("eventType"),
        })

    one_time_history = []
    for event in _history(events, "one-time"):
        data = event.get("data") or {}
        one_time_history.append({
            "timestamp": event.get("timestamp"),
            "packageId": data.get("packageId"),
            "packageName": resolve_membership_package_name(data.get("packageId"), data.get("packageName")),
            "price": data.get("price"),
            "entries": data.get("entries"),
        })

    upsell_history = []
    for event in _history(events, "upsell"):
        data = event.get("data") or {}
        upsell_history.append({
            "timestamp": event.get("timestamp"),
            "offerId": data.get("offerId") or data.get("packageId"),
            "offerTitle": data.get("offerTitle") or data.get("packageName") or data.get("packageId"),
            "price": data.get("price"),
            "entries": data.get("entries"),
        })

    mini_draw_history = []
    for event in _history(events, "mini-draw"):
        data = event.get("data") or {}
        mini_draw_history.append({
            "timestamp": event.get("timestamp"),
            "packageId": data.get("packageId"),
            "packageName": resolve_mini_package_name(data.get("packageId"), data.get("packageName")),
            "price": data.get("price"),
            "entries": data.get("entries"),
        })

    return {
        "subscriptionHistory": subscription_history,
        "oneTimePackageHistory": one_time_history,
        "upsellHistory": upsell_history,
        "miniDrawHistory": mini_draw_history,
    }


def decorate_mini_draw_participation(
    participation: Iterable[Dict[str, Any]],
    mini_draws: Dict[str, Dict[str, Any]],
) -> List[Dict[str, Any]]:
    decorated = []
    for record in participation:
        mini_draw_id = str(record.get("miniDrawId")) if record.get("miniDrawId") else None
        draw = mini_draws.get(mini_draw_id) if mini_draw_id else None
        item = dict(record)
        item["miniDrawName"] = (draw or {}).get("name") or mini_draw_id
        item["miniDrawStatus"] = (draw or {}).get("status") or ("active" if record.get("isActive") else "inactive")
        if draw and isinstance(draw.get("minimumEntries"), int) and isinstance(draw.get("totalEntries"), int):
            item["entriesRemaining"] = max(draw["minimumEntries"] - draw["totalEntries"], 0)
        else:
            item["entriesRemaining"] = None
        decorated.append(item)
    return decorated


def build_referral_summary(user: Dict[str, Any], events: List[Dict[str, Any]]) -> Dict[str, Any]:
    user_id = str(user["_id"])
    referral = user.get("referral") or {}
    history = []
    for event in events:
        is_referrer = str(event.get("referrerId")) == user_id
        if is_referrer:
            awarded = event.get("referrerEntriesAwarded")
        else:
            awarded = event.get("referreeEntriesAwarded")
        history.append({
            "id": str(event["_id"]),
            "referralCode": event.get("referralCode"),
            "status": event.get("status"),
            "role": "referrer" if is_referrer else "friend",
            "friendEmail": event.get("inviteeEmail") if is_referrer else None,
            "conversionDate": event.get("conversionDate"),
            "createdAt": event.get("createdAt"),
            "entriesAwarded": REFERRAL_REWARD_ENTRIES if awarded is None else awarded,
        })

    return {
        "code": referral.get("code"),
        "successfulConversions": referral.get("successfulConversions", 0),
        "totalEntriesAwarded": referral.get("totalEntriesAwarded", 0),
        "pendingCount": sum(1 for event in events if event.get("status") == "pending"),
        "history": history,
    }


# ============================================================================
# CONSOLIDATED PROFILE
# ============================================================================

def build_admin_user_profile(database: Any, user_id: Any, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """
    Assemble the admin read model for one user.

    Args:
        database: Database wrapper (users, majordraws, minidraws, paymentevents,
            orders, referralevents)
        user_id: ObjectId or 24-hex string

    Returns:
        Profile dict with raw Mongo values (ObjectId, datetime), or None when
        the user does not exist
    """
    now = now or now_utc()
    oid = user_id if isinstance(user_id, ObjectId) else ObjectId(str(user_id))

    user = database.users.find_one({"_id": oid})
    if not user:
        return None
    for field in SECRET_USER_FIELDS:
        user.pop(field, None)

    payment_events = list(database.paymentevents.find({"userId": oid}).sort("timestamp", -1))
    orders = list(database.orders.find({"user": oid}).sort("createdAt", -1))
    major_draws = list(database.majordraws.find({"entries.userId": oid}))

    mini_draw_ids = [
        record["miniDrawId"] for record in user.get("miniDrawParticipation") or [] if record.get("miniDrawId")
    ]
    mini_draws = {}
    if mini_draw_ids:
        for draw in database.minidraws.find({"_id": {"$in": mini_draw_ids}}):
            mini_draws[str(draw["_id"])] = draw

    referral_events = list(
        database.referralevents.find({"$or": [{"referrerId": oid}, {"inviteeUserId": oid}]})
        .sort("createdAt", -1)
        .limit(REFERRAL_HISTORY_LIMIT)
    )

    total_spent = sum(
        (event.get("data") or {}).get("price") or 0
        for event in payment_events
        if event.get("eventType") == "BenefitsGranted"
    )
    total_orders = len(orders)
    total_order_value = sum(order.get("totalAmount") or 0 for order in orders)

    major_participation = project_major_draw_participation(major_draws, oid)
    last_login = user.get("lastLogin")
    created_at = user.get("createdAt")
    queue = user.get("partnerDiscountQueue") or []

    subscription = user.get("subscription")
    if subscription:
        subscription = {
            "packageId": subscription.get("packageId"),
            "packageName": resolve_membership_package_name(subscription.get("packageId")),
            "isActive": subscription.get("isActive"),
            "startDate": subscription.get("startDate"),
            "endDate": subscription.get("endDate"),
            "status": subscription.get("status"),
            "autoRenew": subscription.get("autoRenew"),
            "previousSubscription": subscription.get("previousSubscription"),
            "pendingChange": subscription.get("pendingChange"),
            "lastDowngradeDate": subscription.get("lastDowngradeDate"),
            "lastUpgradeDate": subscription.get("lastUpgradeDate"),
        }

    profile = {
        "id": user["_id"],
        "firstName": user.get("firstName"),
        "lastName": user.get("lastName"),
        "email": user.get("email"),
        "mobile": user.get("mobile"),
        "state": user.get("state"),
        "role": user.get("role"),
        "isActive": user.get("isActive"),
        "isEmailVerified": user.get("isEmailVerified"),
        "isMobileVerified": user.get("isMobileVerified"),
        "profileSetupCompleted": user.get("profileSetupCompleted"),
        "createdAt": created_at,
        "updatedAt": user.get("updatedAt"),
        "lastLogin": last_login,
        "subscription": subscription,
        "oneTimePackages": [
            dict(pkg, packageName=resolve_membership_package_name(pkg.get("packageId")))
            for pkg in user.get("oneTimePackages") or []
        ],
        "miniDrawPackages": user.get("miniDrawPackages") or [],
        "rewardsPoints": user.get("rewardsPoints") or 0,
        "accumulatedEntries": user.get("accumulatedEntries") or 0,
        "entryWallet": user.get("entryWallet") or 0,
        "partnerDiscountQueue": queue,
        "activePartnerDiscount": next((item for item in queue if item.get("status") == "active"), None),
        "queuedPartnerDiscounts": [item for item in queue if item.get("status") == "queued"],
        "upsellPurchases": user.get("upsellPurchases") or [],
        "upsellStats": user.get("upsellStats"),
        "redemptionHistory": user.get("redemptionHistory") or [],
        "statistics": {
            "totalSpent": total_spent,
            "totalOrders": total_orders,
            "totalOrderValue": total_order_value,
            "currentDrawEntries": current_draw_entries(major_draws, oid),
            "accountAge": days_between(created_at, now) if created_at else None,
            "daysSinceLastLogin": days_between(last_login, now) if last_login else None,
            "lifetimeValue": total_spent,
            "averageOrderValue": total_order_value / total_orders if total_orders > 0 else 0,
            "engagementScore": calculate_engagement_score(user, payment_events, major_participation, now),
        },
        "majorDrawParticipation": major_participation,
        "miniDrawParticipation": decorate_mini_draw_participation(user.get("miniDrawParticipation") or [], mini_draws),
        "orders": orders,
        "paymentEvents": payment_events[:PAYMENT_HISTORY_LIMIT],
        "referral": build_referral_summary(user, referral_events),
    }
    profile.update(build_purchase_histories(payment_events))
    return profile
