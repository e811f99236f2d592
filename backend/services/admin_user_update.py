"""
Admin User Update
=================

Applies a validated partial update to one user, atomically.

Flow:
1. Validate the payload (every issue reported, nothing applied on failure)
2. Rewards gate: balance edits while rewards are paused fail before any I/O
3. One transaction: load user, apply blocks in a fixed order, sync draw
   participation with the same session, save the user once
4. Rebuild the consolidated profile from committed state

Block order: basicInfo, subscription, rewards, oneTimePackages,
miniDrawPackages, partnerDiscountQueue, majorDrawParticipation,
miniDrawParticipation.

List blocks are "set" operations: the submitted list becomes the stored list.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import ValidationError
from pymongo.client_session import ClientSession

from config.entries_config import REWARDS_PAUSED_CODE, REWARDS_PAUSED_MESSAGE
from db.schemas.admin_user_update import (
    AdminUserUpdate,
    BasicInfoUpdate,
    MiniDrawPackageItem,
    OneTimePackageItem,
    PartnerDiscountQueueItem,
    RewardsUpdate,
    SubscriptionUpdate,
)
from services.errors import (
    EntriesServiceError,
    FeatureDisabledError,
    NotFoundError,
    TransactionAbortedError,
    ValidationFailedError,
)
from services.feature_flags import FeatureFlagService
from services.participation_sync import sync_major_draw_participation, sync_mini_draw_participation
from services.user_statistics import build_admin_user_profile
from utils.timezone import now_utc, to_utc

logger = logging.getLogger(__name__)


def format_validation_issues(exc: ValidationError) -> List[Dict[str, Any]]:
    """One {path, message} per failing field, dotted path in wire (camelCase) names."""
    return [
        {"path": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]


def parse_admin_user_update(raw: Any) -> AdminUserUpdate:
    try:
        return AdminUserUpdate.model_validate(raw)
    except ValidationError as exc:
        raise ValidationFailedError(format_validation_issues(exc)) from exc


# ============================================================================
# BLOCK APPLIERS (mutate the in-memory user document only)
# ============================================================================

def apply_basic_info(user: Dict[str, Any], info: BasicInfoUpdate) -> None:
    fields = info.model_fields_set
    if "first_name" in fields and info.first_name is not None:
        user["firstName"] = info.first_name.strip()
    if "last_name" in fields and info.last_name is not None:
        user["lastName"] = info.last_name.strip()
    if "email" in fields and info.email is not None:
        user["email"] = str(info.email).strip().lower()
    if "mobile" in fields and info.mobile is not None:
        user["mobile"] = "".join(info.mobile.split())
    if "state" in fields and info.state is not None:
        user["state"] = info.state.strip().upper()

    for attr, key in (
        ("role", "role"),
        ("is_active", "isActive"),
        ("is_email_verified", "isEmailVerified"),
        ("is_mobile_verified", "isMobileVerified"),
        ("profile_setup_completed", "profileSetupCompleted"),
    ):
        value = getattr(info, attr)
        if attr in fields and value is not None:
            user[key] = value


SUBSCRIPTION_FIELDS = (
    ("package_id", "packageId"),
    ("status", "status"),
    ("is_active", "isActive"),
    ("start_date", "startDate"),
    ("end_date", "endDate"),
    ("auto_renew", "autoRenew"),
    ("last_downgrade_date", "lastDowngradeDate"),
    ("last_upgrade_date", "lastUpgradeDate"),
)


def apply_subscription(user: Dict[str, Any], subscription: Optional[SubscriptionUpdate],
                       now: Optional[datetime] = None) -> None:
    """None clears the subscription; otherwise create-with-defaults or patch present fields."""
    if subscription is None:
        user["subscription"] = None
        return

    current = user.get("subscription")
    if not current:
        current = {
            "packageId": "",
            "startDate": now or now_utc(),
            "isActive": False,
            "autoRenew": True,
            "status": "incomplete",
        }
    else:
        current = dict(current)

    for attr, key in SUBSCRIPTION_FIELDS:
        if attr not in subscription.model_fields_set:
            continue
        value = getattr(subscription, attr)
        current[key] = to_utc(value) if isinstance(value, datetime) else value

    user["subscription"] = current


def apply_rewards(user: Dict[str, Any], rewards: RewardsUpdate) -> None:
    for attr, key in (
        ("rewards_points", "rewardsPoints"),
        ("accumulated_entries", "accumulatedEntries"),
        ("entry_wallet", "entryWallet"),
    ):
        value = getattr(rewards, attr)
        if attr in rewards.model_fields_set and value is not None:
            user[key] = value


def replace_one_time_packages(user: Dict[str, Any], packages: List[OneTimePackageItem],
                              now: Optional[datetime] = None) -> None:
    """Full replace; a missing purchaseDate keeps the stored one for the same packageId, else now."""
    now = now or now_utc()
    existing = {pkg.get("packageId"): pkg for pkg in user.get("oneTimePackages") or []}

    replaced = []
    for item in packages:
        previous = existing.get(item.package_id) or {}
        purchase_date = item.purchase_date or previous.get("purchaseDate") or now
        replaced.append({
            "packageId": item.package_id,
            "purchaseDate": to_utc(purchase_date),
            "startDate": to_utc(item.start_date),
            "endDate": to_utc(item.end_date),
            "isActive": item.is_active,
            "entriesGranted": item.entries_granted,
        })
    user["oneTimePackages"] = replaced


def _mini_package_key(payment_intent_id: Optional[str], package_id: str, start_date: Any) -> str:
    if payment_intent_id:
        return payment_intent_id
    start = to_utc(start_date).isoformat() if isinstance(start_date, datetime) else str(start_date)
    return f"{package_id}-{start}"


def replace_mini_draw_packages(user: Dict[str, Any], packages: List[MiniDrawPackageItem]) -> None:
    """
    Full replace keyed by stripePaymentIntentId (fallback packageId-startDate).
    Missing partner discount durations fall back to the stored record, then 0.
    """
    existing = {
        _mini_package_key(pkg.get("stripePaymentIntentId"), pkg.get("packageId"), pkg.get("startDate")): pkg
        for pkg in user.get("miniDrawPackages") or []
    }

    replaced = []
    for item in packages:
        key = _mini_package_key(item.stripe_payment_intent_id, item.package_id, item.start_date)
        previous = existing.get(key) or {}
        hours = item.partner_discount_hours
        days = item.partner_discount_days
        record = {
            "packageId": item.package_id,
            "packageName": item.package_name,
            "purchaseDate": to_utc(item.purchase_date),
            "startDate": to_utc(item.start_date),
            "endDate": to_utc(item.end_date),
            "isActive": item.is_active,
            "entriesGranted": item.entries_granted,
            "price": item.price,
            "partnerDiscountHours": hours if hours is not None else previous.get("partnerDiscountHours", 0),
            "partnerDiscountDays": days if days is not None else previous.get("partnerDiscountDays", 0),
        }
        if item.mini_draw_id:
            record["miniDrawId"] = ObjectId(item.mini_draw_id)
        if item.stripe_payment_intent_id:
            record["stripePaymentIntentId"] = item.stripe_payment_intent_id
        replaced.append(record)
    user["miniDrawPackages"] = replaced


def set_partner_discount_queue(user: Dict[str, Any], items: List[PartnerDiscountQueueItem]) -> None:
    """
    Rebuild the queue in submitted order from the stored items.

    Each kept item takes the submitted status and its new queuePosition. Stored
    items left out of the list are removed; unknown queue ids are skipped.
    """
    existing = {str(item.get("_id")): item for item in user.get("partnerDiscountQueue") or []}

    rebuilt = []
    for patch in items:
        stored = existing.get(patch.queue_id)
        if stored is None:
            logger.warning(f"Partner discount queue item {patch.queue_id} not found for user {user.get('_id')}")
            continue
        item = dict(stored)
        item["status"] = patch.status
        item["queuePosition"] = len(rebuilt) + 1
        rebuilt.append(item)
    user["partnerDiscountQueue"] = rebuilt


# ============================================================================
# ORCHESTRATOR
# ============================================================================

class AdminUserUpdateService:
    """Validates and applies admin edits to a user inside one transaction."""

    def __init__(self, database: Any, feature_flags: FeatureFlagService):
        self.database = database
        self.feature_flags = feature_flags

    def check_rewards_gate(self, payload: AdminUserUpdate) -> None:
        if payload.touches_reward_balances() and not self.feature_flags.rewards_enabled():
            raise FeatureDisabledError(REWARDS_PAUSED_MESSAGE, REWARDS_PAUSED_CODE)

    def apply_update(self, user_id: ObjectId, payload: AdminUserUpdate,
                     session: Optional[ClientSession] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Transaction body. Raises to abort; writes nothing outside the session."""
        now = now or now_utc()
        user = self.database.users.find_one({"_id": user_id}, session=session)
        if not user:
            raise NotFoundError("User not found")

        fields = payload.model_fields_set
        if payload.basic_info is not None:
            apply_basic_info(user, payload.basic_info)
        if "subscription" in fields:
            apply_subscription(user, payload.subscription, now)
        if payload.rewards is not None:
            apply_rewards(user, payload.rewards)
        if payload.one_time_packages is not None:
            replace_one_time_packages(user, payload.one_time_packages, now)
        if payload.mini_draw_packages is not None:
            replace_mini_draw_packages(user, payload.mini_draw_packages)
        if payload.partner_discount_queue is not None:
            set_partner_discount_queue(user, payload.partner_discount_queue)

        if payload.major_draw_participation is not None:
            sync_major_draw_participation(
                self.database,
                user_id,
                [item.model_dump(by_alias=True) for item in payload.major_draw_participation],
                session=session,
                now=now,
            )
        if payload.mini_draw_participation is not None:
            sync_mini_draw_participation(
                self.database,
                user,
                user_id,
                [item.model_dump(by_alias=True) for item in payload.mini_draw_participation],
                session=session,
                now=now,
            )

        user["updatedAt"] = now
        self.database.users.replace_one({"_id": user_id}, user, session=session)
        return user

    def update_user(self, user_id: str, raw_payload: Any, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Validate, gate, apply atomically, then rebuild the profile.

        Raises:
            ValidationFailedError: payload rejected (nothing applied)
            FeatureDisabledError: rewards edit while paused (no transaction opened)
            NotFoundError: user or a referenced draw missing (transaction aborted)
            TransactionAbortedError: anything else inside the transaction
        """
        payload = parse_admin_user_update(raw_payload)
        self.check_rewards_gate(payload)

        oid = ObjectId(user_id)
        try:
            self.database.run_in_transaction(lambda session: self.apply_update(oid, payload, session, now))
        except EntriesServiceError:
            raise
        except Exception as exc:
            logger.exception(f"Admin update for user {user_id} aborted")
            raise TransactionAbortedError("Failed to update user") from exc

        logger.info(f"Admin update applied to user {user_id}: {sorted(payload.model_fields_set)}")

        profile = build_admin_user_profile(self.database, oid, now=now)
        if profile is None:
            raise NotFoundError("User not found")
        return profile
