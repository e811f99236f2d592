"""
Mini Draw Package Catalog
Eight one-time packs ($1 to $500), each with a paired post-purchase upgrade
"""

from typing import Any, Dict, List, Optional


def _pack(index: int, price: float, entries: int, hours: int, days: float,
          upsell_price: float, upsell_entries: int, upsell_hours: int, upsell_days: float) -> Dict[str, Any]:
    pack_id = f"mini-pack-{index}"
    return {
        "_id": pack_id,
        "name": f"Mini Pack {index}",
        "price": price,
        "entries": entries,
        "partnerDiscountHours": hours,
        "partnerDiscountDays": days,
        "description": f"{entries} Free {'Entry' if entries == 1 else 'Entries'} with {hours} Hours Access to Partner Discounts",
        "isActive": True,
        "upsell": {
            "_id": f"{pack_id}-upgrade",
            "name": f"Mini Pack {index} Upgrade",
            "price": upsell_price,
            "entries": upsell_entries,
            "partnerDiscountHours": upsell_hours,
            "partnerDiscountDays": upsell_days,
            "description": f"{upsell_entries} Free Entries with {upsell_hours} Hours Access to Partner Discounts",
            "isActive": True,
        },
    }


# partnerDiscountDays is hours / 24, kept explicitly for display
MINI_DRAW_PACKAGES: List[Dict[str, Any]] = [
    _pack(1, 1, 1, 1, 0.04, 2.99, 10, 12, 0.5),
    _pack(2, 5, 5, 6, 0.25, 4.99, 20, 24, 1),
    _pack(3, 10, 10, 12, 0.5, 7.99, 30, 48, 2),
    _pack(4, 25, 25, 24, 1, 9.99, 50, 24, 1),
    _pack(5, 50, 50, 480, 20, 19.99, 100, 480, 20),
    _pack(6, 100, 100, 96, 4, 49.99, 200, 96, 4),
    _pack(7, 250, 250, 240, 10, 124.99, 500, 240, 10),
    _pack(8, 500, 500, 480, 20, 249.99, 1000, 480, 20),
]


def get_mini_draw_packages() -> List[Dict[str, Any]]:
    """Active mini draw packs."""
    return [pkg for pkg in MINI_DRAW_PACKAGES if pkg["isActive"]]


def get_mini_draw_package_by_id(package_id: str) -> Optional[Dict[str, Any]]:
    """
    Look up a mini draw pack or its upgrade by id.

    Returns:
        The catalog entry, or None for unknown or retired ids
    """
    for pkg in MINI_DRAW_PACKAGES:
        if pkg["_id"] == package_id:
            return pkg
        if pkg["upsell"]["_id"] == package_id:
            return pkg["upsell"]
    return None
