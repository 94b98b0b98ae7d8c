# Session dependencies. The portal's session provider stores URL-encoded JSON in cookies;
# these helpers only read the identity out of them.
import json
import logging
from typing import Optional
from urllib.parse import unquote

from fastapi import Cookie, HTTPException, status
from pydantic import BaseModel

logger = logging.getLogger(__name__)

ADMIN_ROLES = ("ADMIN", "SUPER_ADMIN")


class AdminUser(BaseModel):
    id: str
    email: Optional[str] = None
    role: str


def _parse_session_cookie(raw_cookie: Optional[str]) -> Optional[dict]:
    if not raw_cookie:
        return None
    try:
        data = json.loads(unquote(raw_cookie))
    except json.JSONDecodeError:
        logger.warning("Failed to parse session cookie")
        return None
    return data if isinstance(data, dict) else None

def get_current_user_id(session: Optional[str] = Cookie(None)) -> str:
    data = _parse_session_cookie(session)
    user_id = data.get("userId") if data else None
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return str(user_id)

def get_admin_user(admin_session: Optional[str] = Cookie(None)) -> AdminUser:
    data = _parse_session_cookie(admin_session)
    if not data or not data.get("userId") or data.get("role") not in ADMIN_ROLES:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized: Admin access required")
    return AdminUser(id=str(data["userId"]), email=data.get("email"), role=data["role"])
