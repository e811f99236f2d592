"""
Participation Synchronizer

Admin-driven reconciliation of a draw's embedded entries array with the
user's side of the same participation. Both functions expect to run inside
the caller's transaction and thread its session through every read and write;
they do no rollback of their own.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from bson import ObjectId
from pymongo.client_session import ClientSession

from config.entries_config import SOURCE_FREE_ENTRY, SOURCE_MEMBERSHIP, SOURCE_MINI_DRAW_PACKAGE
from services.entry_ledger import save_draw, set_draw_entry
from services.errors import NotFoundError
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


def _load_draw(collection: Any, draw_id: Any, label: str, session: Optional[ClientSession]) -> Dict[str, Any]:
    draw = collection.find_one({"_id": ObjectId(str(draw_id))}, session=session)
    if not draw:
        raise NotFoundError(f"{label} not found: {draw_id}")
    draw.setdefault("entries", [])
    return draw


def sync_major_draw_participation(
    database: Any,
    user_id: Any,
    updates: Sequence[Dict[str, Any]],
    session: Optional[ClientSession] = None,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Apply admin-set major draw totals for one user.

    Each update is {"drawId", "totalEntries"}. A non-zero total replaces the
    user's whole source breakdown with {"membership": total}; zero removes the
    user from the draw. Each draw is saved once, in input order.

    Raises:
        NotFoundError: a referenced draw does not exist (the caller's
            transaction discards writes already made for earlier updates)
    """
    now = now or now_utc()
    saved = []
    for update in updates:
        draw = _load_draw(database.majordraws, update["drawId"], "Major draw", session)
        total = int(update["totalEntries"])
        set_draw_entry(draw["entries"], user_id, {SOURCE_MEMBERSHIP: total}, now)
        save_draw(database.majordraws, draw, session)
        saved.append(draw)
    return saved


def sync_mini_draw_participation(
    database: Any,
    user: Dict[str, Any],
    user_id: Any,
    updates: Sequence[Dict[str, Any]],
    session: Optional[ClientSession] = None,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Apply admin-set mini draw totals and rebuild the user's participation mirror.

    Each update is {"miniDrawId", "totalEntries", "isActive"?}. On the draw
    side the user's record becomes {"mini-draw-package": total}, or is removed
    for zero. The user's miniDrawParticipation is replaced wholesale by one
    record per non-zero update, keeping any earlier free-entry bucket and
    firstParticipatedDate. Callers must pass the complete desired list.

    The user document is mutated in memory only; the caller saves it.

    Returns:
        The rebuilt participation list
    """
    now = now or now_utc()
    previous = {
        str(record.get("miniDrawId")): record
        for record in user.get("miniDrawParticipation") or []
    }

    participation = []
    for update in updates:
        draw = _load_draw(database.minidraws, update["miniDrawId"], "Mini draw", session)
        total = int(update["totalEntries"])

        set_draw_entry(draw["entries"], user_id, {SOURCE_MINI_DRAW_PACKAGE: total}, now)
        save_draw(database.minidraws, draw, session)

        if total == 0:
            continue

        prior = previous.get(str(draw["_id"]), {})
        prior_sources = prior.get("entriesBySource") or {}
        participation.append({
            "miniDrawId": draw["_id"],
            "totalEntries": total,
            "entriesBySource": {
                SOURCE_MINI_DRAW_PACKAGE: total,
                SOURCE_FREE_ENTRY: int(prior_sources.get(SOURCE_FREE_ENTRY, 0)),
            },
            "firstParticipatedDate": prior.get("firstParticipatedDate") or now,
            "lastParticipatedDate": now,
            "isActive": True if update.get("isActive") is None else bool(update["isActive"]),
        })

    dropped = set(previous) - {str(record["miniDrawId"]) for record in participation}
    if dropped:
        logger.info(f"Mini draw participation for user {user_id} dropped draws {sorted(dropped)}")

    user["miniDrawParticipation"] = participation
    return participation
