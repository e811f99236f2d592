"""
Promo Multiplier Resolver

Read-time scaling of catalog entry counts by an active promo multiplier.
Every transform returns a new dict; catalog definitions are never mutated and
promo state is never persisted onto packages.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from config.entries_config import PROMO_MULTIPLIERS, PROMO_TYPES
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

PROMO_FIELDS = ("originalEntries", "promoMultiplier", "isPromoActive")


def validate_multiplier(multiplier: Any) -> int:
    """Only 2x, 3x, 5x and 10x promos exist."""
    if isinstance(multiplier, bool) or multiplier not in PROMO_MULTIPLIERS:
        raise ValueError(f"Invalid promo multiplier: {multiplier!r} (allowed: {PROMO_MULTIPLIERS})")
    return int(multiplier)


def _apply(pkg: Dict[str, Any], entries_field: str, multiplier: int) -> Dict[str, Any]:
    original = pkg[entries_field]
    promoted = dict(pkg)
    promoted[entries_field] = original * multiplier
    promoted["originalEntries"] = original
    promoted["promoMultiplier"] = multiplier
    promoted["isPromoActive"] = True
    return promoted


def _remove(pkg: Dict[str, Any], entries_field: str) -> Dict[str, Any]:
    if not pkg.get("isPromoActive") or pkg.get("originalEntries") is None:
        return pkg
    restored = {key: value for key, value in pkg.items() if key not in PROMO_FIELDS}
    restored[entries_field] = pkg["originalEntries"]
    return restored


# ============================================================================
# MINI DRAW PACKAGES
# ============================================================================

def apply_promo_to_mini_package(pkg: Dict[str, Any], multiplier: int) -> Dict[str, Any]:
    """Copy of a mini draw package with entries scaled and the original recorded."""
    return _apply(pkg, "entries", validate_multiplier(multiplier))


def remove_promo_from_mini_package(pkg: Dict[str, Any]) -> Dict[str, Any]:
    """Undo apply_promo_to_mini_package; packages without an active promo come back as-is."""
    return _remove(pkg, "entries")


def get_mini_packages_with_promo(packages: List[Dict[str, Any]], multiplier: int) -> List[Dict[str, Any]]:
    multiplier = validate_multiplier(multiplier)
    return [_apply(pkg, "entries", multiplier) for pkg in packages]


# ============================================================================
# MEMBERSHIP PACKAGES
# ============================================================================

def _membership_entries_field(pkg: Dict[str, Any]) -> Optional[str]:
    field = "entriesPerMonth" if pkg.get("type") == "subscription" else "totalEntries"
    return field if pkg.get(field) else None


def apply_promo_to_package(pkg: Dict[str, Any], multiplier: int) -> Dict[str, Any]:
    """
    Scale a membership package: entriesPerMonth for subscriptions,
    totalEntries for one-time packs. Packages without entries pass through.
    """
    multiplier = validate_multiplier(multiplier)
    field = _membership_entries_field(pkg)
    if field is None:
        return pkg
    return _apply(pkg, field, multiplier)


def remove_promo_from_package(pkg: Dict[str, Any]) -> Dict[str, Any]:
    field = "entriesPerMonth" if pkg.get("type") == "subscription" else "totalEntries"
    return _remove(pkg, field)


def get_packages_with_promo(
    packages: List[Dict[str, Any]],
    multiplier: int,
    promo_type: str = "one-time-packages",
) -> List[Dict[str, Any]]:
    """A one-time-packages promo boosts one-time packs only; everything else is returned untouched."""
    multiplier = validate_multiplier(multiplier)
    if promo_type != "one-time-packages":
        return list(packages)
    return [
        apply_promo_to_package(pkg, multiplier) if pkg.get("type") == "one-time" else pkg
        for pkg in packages
    ]


# ============================================================================
# ACTIVE PROMO LOOKUP
# ============================================================================

def get_active_promo(database: Any, promo_type: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """
    The running promo of the given type: isActive and startDate <= now < endDate.

    Returns:
        Promo document, or None when no promo is running
    """
    if promo_type not in PROMO_TYPES:
        raise ValueError(f"Unknown promo type: {promo_type}")

    now = now or now_utc()
    promo = database.promos.find_one(
        {
            "type": promo_type,
            "isActive": True,
            "startDate": {"$lte": now},
            "endDate": {"$gt": now},
        },
        sort=[("startDate", -1)],
    )
    if promo and promo.get("multiplier") not in PROMO_MULTIPLIERS:
        logger.warning(f"Ignoring promo {promo.get('_id')} with invalid multiplier {promo.get('multiplier')}")
        return None
    return promo


def get_mini_packages_for_display(database: Any, packages: List[Dict[str, Any]],
                                  now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Mini draw catalog with the running mini-packages promo applied, if any."""
    promo = get_active_promo(database, "mini-packages", now)
    if not promo:
        return list(packages)
    return get_mini_packages_with_promo(packages, promo["multiplier"])
