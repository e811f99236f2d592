"""
Entry Ledger
============

Per-draw, per-user entry records broken down by source.

A draw document embeds one record per participating user:

    {userId, totalEntries, entriesBySource, firstAddedDate, lastUpdatedDate}

Rules enforced by every writer in this module:
- totalEntries == sum of the non-negative values in entriesBySource
- a record whose total would be 0 is removed from the array, never stored
- the draw-level totalEntries is recomputed from the array before each save

Purchase and referral grants go through the same helpers as admin edits, so
both paths produce identical entriesBySource keys.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from bson import ObjectId
from pymongo.client_session import ClientSession

from config.entries_config import (
    MAJOR_DRAW_SOURCES,
    PACKAGE_TYPE_SOURCES,
    REFERRAL_REWARD_ENTRIES,
    SOURCE_FREE_ENTRY,
    SOURCE_MINI_DRAW_PACKAGE,
    SOURCE_REFERRAL,
)
from db.schemas.payment_events import PaymentEvent
from services.draw_lifecycle import (
    close_mini_draw_at_capacity,
    get_active_major_draw,
    get_target_major_draw,
    get_target_mini_draw,
)
from services.errors import DrawUnavailableError, NotFoundError
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

MINI_DRAW_SOURCES = (SOURCE_MINI_DRAW_PACKAGE, SOURCE_FREE_ENTRY)


def as_object_id(value: Any) -> ObjectId:
    return value if isinstance(value, ObjectId) else ObjectId(str(value))


def entry_total(entries_by_source: Optional[Mapping[str, Any]]) -> int:
    """Sum of the non-negative source counts."""
    if not entries_by_source:
        return 0
    return sum(int(count) for count in entries_by_source.values() if count and count > 0)


def find_entry_index(entries: Sequence[Dict[str, Any]], user_id: Any) -> int:
    """Index of the user's record in a draw's entries array, or -1."""
    target = str(user_id)
    for index, entry in enumerate(entries):
        if str(entry.get("userId")) == target:
            return index
    return -1


def set_draw_entry(
    entries: List[Dict[str, Any]],
    user_id: Any,
    entries_by_source: Mapping[str, int],
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """
    Write the user's record with exactly the given source breakdown.

    The record total is derived from the breakdown. A zero total removes the
    record. firstAddedDate survives an overwrite; lastUpdatedDate is refreshed.

    Returns:
        The stored record, or None when the record was removed
    """
    now = now or now_utc()
    sources = {key: int(count) for key, count in entries_by_source.items()}
    total = entry_total(sources)
    index = find_entry_index(entries, user_id)

    if total == 0:
        if index >= 0:
            entries.pop(index)
        return None

    if index >= 0:
        record = entries[index]
        record["totalEntries"] = total
        record["entriesBySource"] = sources
        record["lastUpdatedDate"] = now
        record.setdefault("firstAddedDate", now)
        return record

    record = {
        "userId": as_object_id(user_id),
        "totalEntries": total,
        "entriesBySource": sources,
        "firstAddedDate": now,
        "lastUpdatedDate": now,
    }
    entries.append(record)
    return record


def add_draw_entries(
    entries: List[Dict[str, Any]],
    user_id: Any,
    source: str,
    count: int,
    now: Optional[datetime] = None,
    known_sources: Sequence[str] = MAJOR_DRAW_SOURCES,
) -> Optional[Dict[str, Any]]:
    """Increment one source bucket, creating the record (all buckets at 0) if needed."""
    index = find_entry_index(entries, user_id)
    if index >= 0:
        sources = dict(entries[index].get("entriesBySource") or {})
    else:
        sources = {key: 0 for key in known_sources}
    sources[source] = int(sources.get(source, 0)) + int(count)
    return set_draw_entry(entries, user_id, sources, now)


def recompute_draw_total(draw: Dict[str, Any]) -> int:
    draw["totalEntries"] = sum(int(entry.get("totalEntries", 0)) for entry in draw.get("entries", []))
    return draw["totalEntries"]


def save_draw(collection: Any, draw: Dict[str, Any], session: Optional[ClientSession] = None) -> None:
    """Persist the whole draw document (entries array included) once."""
    recompute_draw_total(draw)
    collection.replace_one({"_id": draw["_id"]}, draw, session=session)


# ============================================================================
# PURCHASE / REFERRAL GRANTS
# ============================================================================

def grant_major_draw_entries(
    database: Any,
    user_id: Any,
    package_type: str,
    entries: int,
    session: Optional[ClientSession] = None,
    payment_created: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """
    Add purchased entries to the major draw currently accepting them.

    Args:
        package_type: subscription | one-time | upsell | mini-draw
        payment_created: when the payment happened; payments after the freeze
            point roll into the next queued draw

    Returns:
        The updated draw, or None when there was nothing to grant
    """
    if package_type not in PACKAGE_TYPE_SOURCES:
        raise ValueError(f"Unknown package type: {package_type}")
    if entries <= 0:
        return None

    now = now or now_utc()
    draw = get_target_major_draw(database, payment_created=payment_created, session=session, now=now)
    draw.setdefault("entries", [])
    add_draw_entries(draw["entries"], user_id, PACKAGE_TYPE_SOURCES[package_type], entries, now)
    save_draw(database.majordraws, draw, session)

    logger.info(
        f"Granted {entries} {package_type} entries to user {user_id} in major draw {draw['_id']}"
    )
    return draw


def grant_mini_draw_entries(
    database: Any,
    user_id: Any,
    mini_draw_id: Any,
    entries: int,
    session: Optional[ClientSession] = None,
    source: str = SOURCE_MINI_DRAW_PACKAGE,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Add entries to a mini draw and mirror them on the user's participation list.

    The grant is refused when it would push the draw past minimumEntries. A
    draw that reaches minimumEntries is closed for new entries.

    Raises:
        NotFoundError: draw or user missing
        DrawUnavailableError: draw not active, full, or too few places left
    """
    if source not in MINI_DRAW_SOURCES:
        raise ValueError(f"Unknown mini draw entry source: {source}")

    now = now or now_utc()
    draw = get_target_mini_draw(database, mini_draw_id, session=session)
    minimum = int(draw.get("minimumEntries", 0))
    remaining = minimum - int(draw.get("totalEntries", 0))
    if minimum > 0 and entries > remaining:
        logger.warning(
            f"Mini draw {mini_draw_id} has {remaining} places left, refusing {entries} entries for user {user_id}"
        )
        raise DrawUnavailableError(
            f"Mini draw has only {max(remaining, 0)} entries remaining", draw_id=str(mini_draw_id)
        )

    user = database.users.find_one({"_id": as_object_id(user_id)}, session=session)
    if not user:
        raise NotFoundError("User not found")

    draw.setdefault("entries", [])
    add_draw_entries(draw["entries"], user_id, source, entries, now, known_sources=MINI_DRAW_SOURCES)
    recompute_draw_total(draw)
    close_mini_draw_at_capacity(draw, now)
    save_draw(database.minidraws, draw, session)

    participation = list(user.get("miniDrawParticipation") or [])
    for record in participation:
        if str(record.get("miniDrawId")) == str(draw["_id"]):
            sources = dict(record.get("entriesBySource") or {})
            sources[source] = int(sources.get(source, 0)) + entries
            record["entriesBySource"] = sources
            record["totalEntries"] = entry_total(sources)
            record["lastParticipatedDate"] = now
            record["isActive"] = True
            break
    else:
        sources = {key: 0 for key in MINI_DRAW_SOURCES}
        sources[source] = entries
        participation.append({
            "miniDrawId": draw["_id"],
            "totalEntries": entries,
            "entriesBySource": sources,
            "firstParticipatedDate": now,
            "lastParticipatedDate": now,
            "isActive": True,
        })

    database.users.update_one(
        {"_id": user["_id"]},
        {"$set": {"miniDrawParticipation": participation, "updatedAt": now}},
        session=session,
    )
    return draw


def grant_referral_entries(
    database: Any,
    user_id: Any,
    entries: int = REFERRAL_REWARD_ENTRIES,
    session: Optional[ClientSession] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Add referral reward entries to the active major draw."""
    now = now or now_utc()
    draw = get_active_major_draw(database, session=session)
    if not draw:
        raise NotFoundError("No active major draw for referral entries")

    draw.setdefault("entries", [])
    add_draw_entries(draw["entries"], user_id, SOURCE_REFERRAL, entries, now)
    save_draw(database.majordraws, draw, session)
    logger.info(f"Granted {entries} referral entries to user {user_id} in major draw {draw['_id']}")
    return draw


def grant_purchase_benefits(
    database: Any,
    event: PaymentEvent,
    now: Optional[datetime] = None,
) -> bool:
    """
    Grant a payment's entries and record its BenefitsGranted event atomically.

    Replayed webhooks are absorbed: an event id that already exists grants nothing.

    Returns:
        True if benefits were granted, False if they had been granted before
    """
    now = now or now_utc()

    def _grant(session: ClientSession) -> bool:
        if database.paymentevents.find_one({"_id": event.event_id}, session=session):
            return False

        entries = event.data.entries or 0
        if event.package_type == "mini-draw":
            if not event.data.mini_draw_id:
                raise ValueError("Mini draw payment is missing miniDrawId")
            grant_mini_draw_entries(
                database, event.user_id, event.data.mini_draw_id, entries, session=session, now=now
            )
        else:
            grant_major_draw_entries(
                database,
                event.user_id,
                event.package_type,
                entries,
                session=session,
                payment_created=event.timestamp,
                now=now,
            )

        database.paymentevents.insert_one(event.to_document(), session=session)
        return True

    granted = database.run_in_transaction(_grant)
    if not granted:
        logger.info(f"Benefits already granted for {event.payment_intent_id}, skipping")
    return granted
