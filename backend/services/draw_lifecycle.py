"""
Draw Lifecycle
==============

Status machines for major and mini draws, and selection of the draw that a
new entry grant should land in.

Major: queued -> active -> frozen -> completed, cancellable until completed.
Only one major draw is current (active or frozen) at a time; entries bought
after the freeze point roll into the next queued draw.

Mini: active -> completed (closed on reaching minimumEntries), or cancelled.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Set

from bson import ObjectId
from pymongo.client_session import ClientSession

from services.errors import DrawUnavailableError, InvalidTransitionError, NotFoundError
from utils.mongo_helpers import is_valid_object_id
from utils.timezone import now_utc, to_utc

logger = logging.getLogger(__name__)

MAJOR_DRAW_TRANSITIONS: Dict[str, Set[str]] = {
    "queued": {"active", "cancelled"},
    "active": {"frozen", "cancelled"},
    "frozen": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

MINI_DRAW_TRANSITIONS: Dict[str, Set[str]] = {
    "active": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

CURRENT_MAJOR_STATUSES = ["active", "frozen"]


def can_transition(current: str, target: str, transitions: Dict[str, Set[str]] = MAJOR_DRAW_TRANSITIONS) -> bool:
    return target in transitions.get(current, set())


def transition_draw_status(
    collection: Any,
    draw: Dict[str, Any],
    target: str,
    transitions: Dict[str, Set[str]] = MAJOR_DRAW_TRANSITIONS,
    session: Optional[ClientSession] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Move a draw to a new status, locking its configuration once it completes.

    Raises:
        InvalidTransitionError: target is not reachable from the current status
    """
    current = draw.get("status")
    if not can_transition(current, target, transitions):
        raise InvalidTransitionError(f"Cannot move draw from {current} to {target}")

    now = now or now_utc()
    changes: Dict[str, Any] = {"status": target, "updatedAt": now}
    if target in ("completed", "cancelled"):
        changes["isActive"] = False
    if target == "completed":
        changes["configurationLocked"] = True
        changes["lockedAt"] = now

    collection.update_one({"_id": draw["_id"]}, {"$set": changes}, session=session)
    draw.update(changes)
    logger.info(f"Draw {draw['_id']} moved {current} -> {target}")
    return draw


# ============================================================================
# MAJOR DRAW SELECTION
# ============================================================================

def get_active_major_draw(database: Any, session: Optional[ClientSession] = None) -> Optional[Dict[str, Any]]:
    return database.majordraws.find_one({"status": "active"}, session=session)


def get_current_major_draw(database: Any, session: Optional[ClientSession] = None) -> Optional[Dict[str, Any]]:
    """The active or frozen major draw, if any."""
    return database.majordraws.find_one({"status": {"$in": CURRENT_MAJOR_STATUSES}}, session=session)


def get_next_queued_major_draw(database: Any, session: Optional[ClientSession] = None) -> Optional[Dict[str, Any]]:
    return database.majordraws.find_one(
        {"status": "queued"},
        sort=[("activationDate", 1)],
        session=session,
    )


def get_target_major_draw(
    database: Any,
    payment_created: Optional[datetime] = None,
    session: Optional[ClientSession] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Pick the major draw a new grant belongs to.

    - current draw frozen, or payment made at/after its freeze point: next queued draw
    - current draw active: that draw
    - no current draw (gap between draws): next queued draw

    Raises:
        DrawUnavailableError: entries are frozen and nothing is queued
        NotFoundError: no major draw exists to receive entries
    """
    current = get_current_major_draw(database, session=session)

    if current:
        freeze_at = current.get("freezeEntriesAt")
        paid_at = payment_created or now
        after_freeze = bool(freeze_at and paid_at and to_utc(paid_at) >= to_utc(freeze_at))

        if current.get("status") == "frozen" or after_freeze:
            queued = get_next_queued_major_draw(database, session=session)
            if not queued:
                raise DrawUnavailableError(
                    "Entries are frozen for the current draw and no upcoming draw is scheduled",
                    draw_id=str(current["_id"]),
                )
            return queued
        return current

    queued = get_next_queued_major_draw(database, session=session)
    if not queued:
        raise NotFoundError("No major draw available")
    return queued


def transition_major_draws(database: Any, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Time-driven lifecycle sweep.

    Completes current draws past drawDate, freezes active draws past
    freezeEntriesAt, then activates the earliest due queued draw when no
    draw is current.

    Returns:
        Counts per transition
    """
    now = now or now_utc()
    counts = {"completed": 0, "frozen": 0, "activated": 0}

    completed = database.majordraws.update_many(
        {"status": {"$in": CURRENT_MAJOR_STATUSES}, "drawDate": {"$lte": now}},
        {"$set": {"status": "completed", "isActive": False, "configurationLocked": True,
                  "lockedAt": now, "updatedAt": now}},
    )
    counts["completed"] = completed.modified_count

    frozen = database.majordraws.update_many(
        {"status": "active", "freezeEntriesAt": {"$lte": now}, "drawDate": {"$gt": now}},
        {"$set": {"status": "frozen", "updatedAt": now}},
    )
    counts["frozen"] = frozen.modified_count

    if not get_current_major_draw(database):
        queued = database.majordraws.find_one(
            {"status": "queued", "activationDate": {"$lte": now}},
            sort=[("activationDate", 1)],
        )
        if queued:
            transition_draw_status(database.majordraws, queued, "active", now=now)
            counts["activated"] = 1

    if any(counts.values()):
        logger.info(f"Major draw sweep: {counts}")
    return counts


# ============================================================================
# MINI DRAW SELECTION
# ============================================================================

def is_mini_draw_full(draw: Dict[str, Any]) -> bool:
    minimum = int(draw.get("minimumEntries", 0))
    return minimum > 0 and int(draw.get("totalEntries", 0)) >= minimum


def get_target_mini_draw(
    database: Any,
    mini_draw_id: Any,
    session: Optional[ClientSession] = None,
) -> Dict[str, Any]:
    """
    Load a mini draw that can still accept entries.

    Raises:
        NotFoundError: id malformed or draw missing
        DrawUnavailableError: draw not active or already at capacity
    """
    if not is_valid_object_id(mini_draw_id):
        raise NotFoundError(f"Mini draw not found: {mini_draw_id}")

    draw = database.minidraws.find_one({"_id": ObjectId(str(mini_draw_id))}, session=session)
    if not draw:
        raise NotFoundError(f"Mini draw not found: {mini_draw_id}")
    if draw.get("status") != "active":
        raise DrawUnavailableError(f"Mini draw is {draw.get('status')}", draw_id=str(draw["_id"]))
    if is_mini_draw_full(draw):
        raise DrawUnavailableError("Mini draw is full", draw_id=str(draw["_id"]))
    return draw


def close_mini_draw_at_capacity(draw: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """
    Close an in-memory mini draw once it reaches minimumEntries.

    The caller persists the draw. Returns True when the draw was closed.
    """
    if draw.get("status") != "active" or not is_mini_draw_full(draw):
        return False

    now = now or now_utc()
    draw["status"] = "completed"
    draw["isActive"] = False
    draw["configurationLocked"] = True
    draw["lockedAt"] = now
    logger.info(f"Mini draw {draw['_id']} reached {draw.get('minimumEntries')} entries and is now closed")
    return True
