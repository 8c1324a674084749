"""Credential checks and the signed session cookie.

Users are looked up case-insensitively by username. Passwords are stored as
bcrypt hashes (``passwordHash``); records still holding a plaintext
``password`` are accepted once and rewritten with a hash on that login.

The session is a HS256 JWT carrying the principal's claims, kept in an
HTTP-only cookie for seven days.
"""
from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Response

from cockpit.core.config import Settings
from cockpit.core.errors import StoreError
from cockpit.db.store import UserStore

logger = logging.getLogger(__name__)

SESSION_COOKIE = "amiseo_session"
JWT_ALGORITHM = "HS256"


@dataclass(frozen=True)
class Principal:
    id: str
    username: str
    role: str
    displayName: str
    clientId: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def home(self) -> str:
        return "/admin" if self.is_admin else "/dashboard"

    @classmethod
    def from_user(cls, user: Dict[str, Any]) -> "Principal":
        return cls(
            id=str(user.get("id", "")),
            username=str(user.get("username", "")),
            role="admin" if user.get("role") == "admin" else "client",
            displayName=str(user.get("displayName", "")),
            clientId=user.get("clientId") or None,
        )


# ---------- Passwords ----------
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("unreadable password hash")
        return False


def verify_credentials(users: UserStore, username: str, password: str) -> Optional[Dict[str, Any]]:
    """Return the matching user record, or None on any mismatch."""
    user = users.find_by_username(username)
    if not user or not password:
        return None

    stored_hash = user.get("passwordHash")
    if stored_hash:
        return user if check_password(password, str(stored_hash)) else None

    legacy = user.get("password")
    if legacy is None or not hmac.compare_digest(str(legacy).encode("utf-8"), password.encode("utf-8")):
        return None

    upgraded = {k: v for k, v in user.items() if k != "password"}
    upgraded["passwordHash"] = hash_password(password)
    try:
        users.put(upgraded)
    except StoreError:
        logger.warning("could not store upgraded password hash user=%s", user.get("username"))
    else:
        logger.info("upgraded plaintext password to bcrypt user=%s", user.get("username"))
    return upgraded


# ---------- Session token ----------
def create_session_token(principal: Principal, settings: Settings) -> str:
    now = datetime.now(tz=timezone.utc)
    claims: Dict[str, Any] = {
        "sub": principal.id,
        "username": principal.username,
        "role": principal.role,
        "displayName": principal.displayName,
        "iat": now,
        "exp": now + timedelta(seconds=settings.session_max_age),
    }
    if principal.clientId:
        claims["clientId"] = principal.clientId
    return jwt.encode(claims, settings.session_secret, algorithm=JWT_ALGORITHM)


def read_session(token: Optional[str], settings: Settings) -> Optional[Principal]:
    if not token:
        return None
    try:
        claims = jwt.decode(token, settings.session_secret, algorithms=[JWT_ALGORITHM],
                            options={"require": ["exp"]})
    except jwt.PyJWTError:
        return None
    sub = claims.get("sub")
    return Principal(
        id=sub if isinstance(sub, str) else "",
        username=str(claims.get("username", "")),
        role="admin" if claims.get("role") == "admin" else "client",
        displayName=str(claims.get("displayName", "")),
        clientId=claims.get("clientId") or None,
    )


# ---------- Cookie ----------
def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.session_max_age,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        "",
        max_age=0,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


__all__ = [
    "JWT_ALGORITHM",
    "Principal",
    "SESSION_COOKIE",
    "check_password",
    "clear_session_cookie",
    "create_session_token",
    "hash_password",
    "read_session",
    "set_session_cookie",
    "verify_credentials",
]
