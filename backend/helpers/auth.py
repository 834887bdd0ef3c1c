"""
Caller identity (Supabase Auth) and record ownership checks.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException
from supabase import Client

from helpers.record_store import RecordStore

logger = logging.getLogger(__name__)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_user_id(client: Client, token: Optional[str]) -> str:
    """Map an access token to the Supabase user id, or raise 401."""
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        response = client.auth.get_user(token)
    except Exception as e:
        logger.warning(f"[Auth] token rejected: {e}")
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = getattr(response, "user", None) if response else None
    if user is None or not getattr(user, "id", None):
        raise HTTPException(status_code=401, detail="Not authenticated")
    return str(user.id)


def load_owned_record(store: RecordStore, table: str, record_id: str, user_id: str) -> Dict[str, Any]:
    """Fetch a record the caller owns: 404 if it does not exist, 403 if it is someone else's."""
    record = store.get(table, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Record not found")
    if str(record.get("user_id")) != user_id:
        logger.warning(f"[Auth] user {user_id} denied access to {table} {record_id}")
        raise HTTPException(status_code=403, detail="Unauthorized")
    return record
