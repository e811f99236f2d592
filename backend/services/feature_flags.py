"""
Feature Flags Service - Runtime Control & Kill Switches

Manages administratively toggled capabilities:
- FEATURE_REWARDS: rewards points / accumulated entries / entry wallet edits

Flags live in MongoDB so a pause takes effect on every instance without a
restart. Routes receive the service through a FastAPI dependency, so tests
swap it per case.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Depends

from config.entries_config import REWARDS_ENABLED_DEFAULT, REWARDS_FLAG
from db.database import Database, get_database
from utils.timezone import now_utc


logger = logging.getLogger(__name__)


class FeatureFlagService:
    """
    Feature flag management and runtime enforcement.

    Flags are stored in MongoDB for immediate effect across all instances.
    """

    # Default flag states (used if not in DB)
    DEFAULT_FLAGS = {
        REWARDS_FLAG: {
            "enabled": REWARDS_ENABLED_DEFAULT,
            "description": "Allow changes to rewards points, accumulated entries and entry wallet balances",
        },
    }

    def __init__(self, db: Any):
        self.db = db
        self._cache: Dict[str, bool] = {}
        self._cache_timestamp: Optional[datetime] = None
        self._cache_ttl_seconds = 10  # Cache flags for 10 seconds

    def is_enabled(self, flag_name: str, default: Optional[bool] = None) -> bool:
        """
        Check if feature flag is enabled.

        Args:
            flag_name: Flag name (e.g., "FEATURE_REWARDS")
            default: Default value if flag not found (overrides DEFAULT_FLAGS)

        Returns:
            True if enabled, False otherwise
        """
        if self._is_cache_valid() and flag_name in self._cache:
            return self._cache[flag_name]

        flag_doc = self.db.feature_flags.find_one({"flag_name": flag_name})

        if flag_doc:
            enabled = bool(flag_doc.get("enabled", False))
        elif default is not None:
            enabled = default
        else:
            enabled = self.DEFAULT_FLAGS.get(flag_name, {}).get("enabled", False)

        self._cache[flag_name] = enabled
        self._cache_timestamp = now_utc()

        return enabled

    def rewards_enabled(self) -> bool:
        return self.is_enabled(REWARDS_FLAG)

    def set_flag(
        self,
        flag_name: str,
        enabled: bool,
        changed_by: str,
        reason: str
    ) -> bool:
        """
        Set feature flag value.

        Args:
            flag_name: Flag name
            enabled: True to enable, False to disable
            changed_by: Who made the change (admin email, job name, etc.)
            reason: Reason for change

        Returns:
            True if successful
        """
        description = self.DEFAULT_FLAGS.get(flag_name, {}).get("description", "")

        self.db.feature_flags.update_one(
            {"flag_name": flag_name},
            {
                "$set": {
                    "enabled": enabled,
                    "changed_by": changed_by,
                    "changed_at": now_utc(),
                    "reason": reason,
                },
                "$setOnInsert": {
                    "description": description,
                }
            },
            upsert=True
        )

        self._invalidate_cache()

        logger.info(
            f"Feature flag {flag_name} set to {enabled} by {changed_by} (reason: {reason})"
        )

        return True

    def get_all_flags(self) -> Dict[str, Dict]:
        """
        Get all feature flags with their current state.

        Returns:
            Dict of flag_name -> flag data
        """
        flags = {}

        for flag_doc in self.db.feature_flags.find():
            flags[flag_doc["flag_name"]] = {
                "enabled": flag_doc.get("enabled", False),
                "description": flag_doc.get("description", ""),
                "changed_by": flag_doc.get("changed_by", ""),
                "changed_at": flag_doc.get("changed_at"),
                "reason": flag_doc.get("reason", ""),
            }

        for flag_name, flag_default in self.DEFAULT_FLAGS.items():
            if flag_name not in flags:
                flags[flag_name] = {
                    "enabled": flag_default["enabled"],
                    "description": flag_default["description"],
                    "changed_by": "default",
                    "changed_at": None,
                    "reason": "Default value",
                }

        return flags

    def _is_cache_valid(self) -> bool:
        """Check if cache is still valid"""
        if self._cache_timestamp is None:
            return False

        age_seconds = (now_utc() - self._cache_timestamp).total_seconds()
        return age_seconds < self._cache_ttl_seconds

    def _invalidate_cache(self):
        """Invalidate cache (after flag changes)"""
        self._cache = {}
        self._cache_timestamp = None


# Dependency for FastAPI
def get_feature_flags(database: Database = Depends(get_database)) -> FeatureFlagService:
    return FeatureFlagService(database)
