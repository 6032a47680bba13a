"""
JWT helpers for bearer-token sessions.

Tokens carry the user (user_id/sub, email, roles) and the session
(sid/jti, exp). Expiry is NOT enforced at decode time: the auth()
condition reports an expired token as SESSION_EXPIRED rather than as an
anonymous caller.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

import jwt

from ..config import Config


def generate_token(
    user_id: str,
    email: Optional[str] = None,
    roles: Iterable[str] = (),
    session_id: Optional[str] = None,
    expires_in: Optional[timedelta] = None,
) -> str:
    """Generate a signed JWT for user_id with a session id and expiry."""
    now = datetime.now(timezone.utc)
    payload = {
        'user_id': str(user_id),
        'email': email,
        'roles': list(roles),
        'sid': session_id or str(uuid.uuid4()),
        'exp': now + (expires_in if expires_in is not None else timedelta(hours=Config.JWT_EXPIRATION_HOURS)),
        'iat': now,
    }
    return jwt.encode(payload, Config.JWT_SECRET, algorithm=Config.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify the signature and return the claims; None for an invalid token."""
    try:
        return jwt.decode(
            token,
            Config.JWT_SECRET,
            algorithms=[Config.JWT_ALGORITHM],
            options={'verify_exp': False},
        )
    except jwt.InvalidTokenError:
        return None


def bearer_token(auth_header: Optional[str]) -> Optional[str]:
    """Token from an 'Authorization: Bearer <token>' header value."""
    if not auth_header or not auth_header.startswith('Bearer '):
        return None
    token = auth_header.split(' ', 1)[1].strip()
    return token or None
