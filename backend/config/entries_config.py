"""
Entries & Rewards Configuration
Source keys, promo multipliers, referral rewards and engagement weights
"""

import os
from typing import Dict

# ============================================================================
# ENTRY SOURCES
# ============================================================================

# Major draw buckets
SOURCE_MEMBERSHIP = "membership"
SOURCE_ONE_TIME = "one-time-package"
SOURCE_UPSELL = "upsell"
SOURCE_MINI_DRAW = "mini-draw"
SOURCE_REFERRAL = "referral"

MAJOR_DRAW_SOURCES = (
    SOURCE_MEMBERSHIP,
    SOURCE_ONE_TIME,
    SOURCE_UPSELL,
    SOURCE_MINI_DRAW,
    SOURCE_REFERRAL,
)

# Mini draw buckets
SOURCE_MINI_DRAW_PACKAGE = "mini-draw-package"
SOURCE_FREE_ENTRY = "free-entry"

# PaymentEvent.packageType -> major draw bucket
PACKAGE_TYPE_SOURCES: Dict[str, str] = {
    "subscription": SOURCE_MEMBERSHIP,
    "one-time": SOURCE_ONE_TIME,
    "upsell": SOURCE_UPSELL,
    "mini-draw": SOURCE_MINI_DRAW,
}

# ============================================================================
# PROMOS
# ============================================================================

PROMO_MULTIPLIERS = (2, 3, 5, 10)
PROMO_TYPES = ("one-time-packages", "mini-packages")

# ============================================================================
# REFERRALS
# ============================================================================

REFERRAL_REWARD_ENTRIES = 100

# ============================================================================
# REWARDS FEATURE GATE
# ============================================================================

REWARDS_FLAG = "FEATURE_REWARDS"
REWARDS_ENABLED_DEFAULT = os.getenv("REWARDS_ENABLED", "true").lower() in ("1", "true", "yes")
REWARDS_PAUSED_MESSAGE = os.getenv(
    "REWARDS_PAUSED_MESSAGE",
    "Rewards are temporarily paused. Points and entry balances cannot be changed right now.",
)
REWARDS_PAUSED_CODE = "REWARDS_PAUSED"

# ============================================================================
# ENGAGEMENT SCORE
# ============================================================================

ENGAGEMENT_WEIGHTS = {
    "profile_setup_completed": 10,
    "email_verified": 5,
    "mobile_verified": 5,
    "active_subscription": 15,
    "has_one_time_packages": 10,
    "accepted_upsell": 10,
}

# (max days since last login, points) checked in order
LOGIN_RECENCY_TIERS = (
    (7, 20),
    (30, 10),
    (90, 5),
)

PURCHASE_POINTS_EACH = 5
PURCHASE_POINTS_CAP = 50
DRAW_ENTRY_POINTS_EACH = 2
DRAW_ENTRY_POINTS_CAP = 30
ENGAGEMENT_SCORE_MAX = 100

# ============================================================================
# PROFILE READ LIMITS
# ============================================================================

PAYMENT_HISTORY_LIMIT = 50
REFERRAL_HISTORY_LIMIT = 50

# ============================================================================
# USER FIELDS
# ============================================================================

AUSTRALIAN_STATES = ("NSW", "VIC", "QLD", "WA", "SA", "TAS", "ACT", "NT")
MOBILE_PATTERN = r"^(\+61|61|0)?[4-5]\d{8}$"
