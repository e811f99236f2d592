"""
MongoDB Helper Utilities
Functions to clean MongoDB documents for JSON serialization
"""
from datetime import datetime
from typing import Any, Iterable, Optional

from bson import ObjectId


# Never leave the server, whatever the caller asks for
SECRET_USER_FIELDS = (
    "password",
    "emailVerificationToken",
    "emailVerificationExpires",
    "passwordResetToken",
    "passwordResetExpires",
    "smsOtpCode",
    "smsOtpExpires",
)


def is_valid_object_id(value: Any) -> bool:
    """True for a 24-hex string or an ObjectId instance."""
    if isinstance(value, ObjectId):
        return True
    return isinstance(value, str) and len(value) == 24 and ObjectId.is_valid(value)


def sanitize_mongo_doc(doc: Any, exclude: Optional[Iterable[str]] = None) -> Any:
    """
    Recursively convert MongoDB-specific values (ObjectId, datetime) into
    JSON-friendly primitives.

    Args:
        doc: MongoDB document, list, dict, or primitive value
        exclude: top-level keys to drop from a dict document

    Returns:
        Sanitized version safe for JSON serialization
    """
    if doc is None:
        return None

    if isinstance(doc, ObjectId):
        return str(doc)

    if isinstance(doc, datetime):
        return doc.isoformat()

    if isinstance(doc, dict):
        skipped = set(exclude or ())
        return {
            key: sanitize_mongo_doc(value)
            for key, value in doc.items()
            if key not in skipped
        }

    if isinstance(doc, (list, tuple)):
        return [sanitize_mongo_doc(item) for item in doc]

    # Primitives pass through
    return doc
