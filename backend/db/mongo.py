import os
from pymongo import MongoClient
from dotenv import load_dotenv

load_dotenv()

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
DB_NAME = os.getenv("DATABASE_NAME", "toolsaustralia")

# tz_aware so datetimes come back as UTC-aware and compare against now_utc()
client = MongoClient(MONGO_URI, tz_aware=True)
db = client[DB_NAME]


def ensure_indexes() -> None:
    """Create core indexes for collections used by the backend."""
    # Users
    db["users"].create_index("email", unique=True)
    db["users"].create_index([("role", 1)])
    db["users"].create_index("referral.code", unique=True, sparse=True)
    db["users"].create_index([("miniDrawParticipation.miniDrawId", 1)])

    # Major draws (one active at a time, participation looked up by entries.userId)
    db["majordraws"].create_index([("status", 1), ("activationDate", 1)])
    db["majordraws"].create_index([("entries.userId", 1)])

    # Mini draws
    db["minidraws"].create_index([("status", 1)])
    db["minidraws"].create_index([("entries.userId", 1)])

    # Payment events (append-only, idempotent per intent + type)
    db["paymentevents"].create_index(
        [("paymentIntentId", 1), ("eventType", 1)], unique=True
    )
    db["paymentevents"].create_index([("userId", 1), ("timestamp", -1)])
    db["paymentevents"].create_index([("eventType", 1), ("packageType", 1)])

    # Orders
    db["orders"].create_index([("user", 1), ("createdAt", -1)])

    # Referral events
    db["referralevents"].create_index([("referrerId", 1), ("createdAt", -1)])
    db["referralevents"].create_index([("inviteeUserId", 1)])
    db["referralevents"].create_index([("status", 1)])

    # Promos
    db["promos"].create_index([("type", 1), ("isActive", 1), ("startDate", 1)])

    # Feature flags
    db["feature_flags"].create_index("flag_name", unique=True)
