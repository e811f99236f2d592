"""
Authentication Middleware
Centralized auth dependencies for FastAPI routes
"""
import logging
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, Header

from db.database import Database, get_database
from services.errors import UnauthorizedError

logger = logging.getLogger(__name__)


def _user_id_from_header(authorization: Optional[str]) -> str:
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")

    # Remove 'Bearer ' prefix
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != 'bearer':
        raise UnauthorizedError("Invalid Authorization header format")

    # Parse simple token format 'user:<id>'
    token = parts[1]
    if not token.startswith('user:'):
        raise UnauthorizedError("Invalid token format")

    user_id = token.split(':', 1)[1]
    if not user_id:
        raise UnauthorizedError("User ID not found in token")
    return user_id


def get_current_user(
    authorization: Optional[str] = Header(None),
    database: Database = Depends(get_database),
) -> Dict[str, Any]:
    """
    Extract and validate user from Authorization header.

    Token format: "Bearer user:<mongodb_object_id>"

    Returns:
        User document from MongoDB

    Raises:
        UnauthorizedError: 401 if token is missing or invalid
    """
    user_id = _user_id_from_header(authorization)

    try:
        oid = ObjectId(user_id)
    except (InvalidId, TypeError):
        raise UnauthorizedError("Invalid user ID format")

    user = database.users.find_one({"_id": oid})
    if not user:
        raise UnauthorizedError("User not found")

    return user


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """
    Admin gate for /api/admin routes.

    role == "admin" is the only check; anything else is answered with 401.
    """
    if user.get("role") != "admin":
        logger.warning(f"Non-admin user {user.get('_id')} attempted an admin action")
        raise UnauthorizedError("Unauthorized")
    return user
