"""
Membership Package Catalog
Subscriptions (monthly entries + shop discount) and one-time entry packs
"""

from typing import Any, Dict, List, Optional

# SUBSCRIPTION TIERS
SUBSCRIPTION_PACKAGES: List[Dict[str, Any]] = [
    {
        "_id": "tradie-subscription",
        "name": "Tradie",
        "type": "subscription",
        "price": 20,
        "description": "Perfect for tradies getting started with mini draws",
        "entriesPerMonth": 15,
        "shopDiscountPercent": 5,
        "partnerDiscountDays": 30,
        "isMemberOnly": False,
        "isActive": True,
    },
    {
        "_id": "foreman-subscription",
        "name": "Foreman",
        "type": "subscription",
        "price": 40,
        "description": "The most popular choice for serious tool enthusiasts",
        "entriesPerMonth": 40,
        "shopDiscountPercent": 10,
        "partnerDiscountDays": 30,
        "isMemberOnly": False,
        "isActive": True,
    },
    {
        "_id": "boss-subscription",
        "name": "Boss",
        "type": "subscription",
        "price": 80,
        "description": "Premium membership for the ultimate tool professionals",
        "entriesPerMonth": 100,
        "shopDiscountPercent": 20,
        "partnerDiscountDays": 30,
        "isMemberOnly": False,
        "isActive": True,
    },
]


def _one_time(package_id: str, name: str, price: float, entries: int, discount_days: int,
              member_only: bool = False) -> Dict[str, Any]:
    return {
        "_id": package_id,
        "name": name,
        "type": "one-time",
        "price": price,
        "description": f"{entries} Free Entries with {discount_days} Days Access to Partner Discounts",
        "totalEntries": entries,
        "shopDiscountPercent": 0,
        "partnerDiscountDays": discount_days,
        "isMemberOnly": member_only,
        "isActive": True,
    }


# ONE-TIME PACKS (member-only "additional" packs carry boosted entries)
ONE_TIME_PACKAGES: List[Dict[str, Any]] = [
    _one_time("apprentice-pack", "Apprentice Pack", 25, 3, 1),
    _one_time("tradie-pack", "Tradie Pack", 50, 15, 2),
    _one_time("foreman-pack", "Foreman Pack", 100, 30, 4),
    _one_time("boss-pack", "Boss Pack", 250, 150, 10),
    _one_time("power-pack", "Power Pack", 500, 600, 20),
    _one_time("additional-apprentice-pack", "Additional Apprentice Pack", 25, 10, 1, member_only=True),
    _one_time("additional-tradie-pack", "Additional Tradie Pack", 50, 30, 2, member_only=True),
    _one_time("additional-foreman-pack", "Additional Foreman Pack", 100, 100, 4, member_only=True),
    _one_time("additional-boss-pack", "Additional Boss Pack", 250, 400, 10, member_only=True),
    _one_time("additional-power-pack", "Additional Power Pack", 500, 1200, 20, member_only=True),
]

MEMBERSHIP_PACKAGES: List[Dict[str, Any]] = SUBSCRIPTION_PACKAGES + ONE_TIME_PACKAGES


def get_subscription_packages() -> List[Dict[str, Any]]:
    return [pkg for pkg in SUBSCRIPTION_PACKAGES if pkg["isActive"]]


def get_one_time_packages(member: bool = True) -> List[Dict[str, Any]]:
    """Active one-time packs; non-members do not see member-only packs."""
    return [
        pkg for pkg in ONE_TIME_PACKAGES
        if pkg["isActive"] and (member or not pkg["isMemberOnly"])
    ]


def get_package_by_id(package_id: str) -> Optional[Dict[str, Any]]:
    """
    Look up a membership package by id.

    Returns:
        The catalog entry, or None when the id was never issued or has been retired
    """
    for pkg in MEMBERSHIP_PACKAGES:
        if pkg["_id"] == package_id:
            return pkg
    return None
