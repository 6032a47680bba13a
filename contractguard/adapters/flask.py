"""
Flask environment adapter.

User source, first hit wins:
1. flask.g.current_user (set by the app's own auth layer)
2. Authorization: Bearer <JWT> (claims user_id/sub, email, roles)

Session source:
1. flask.g.current_session
2. the same JWT (sid/jti -> id, exp -> expiresAt)
"""

from typing import Any, Dict, Optional

from flask import g, has_request_context

from ..utils.tokens import bearer_token, decode_token
from .base import BaseAdapter

_CLAIMS_CACHE_ATTR = '_contractguard_token_claims'


class FlaskAdapter(BaseAdapter):
    name = "flask"
    version = "1.0.0"

    def detect_environment(self) -> bool:
        return has_request_context()

    def _claims(self, request) -> Optional[Dict[str, Any]]:
        if hasattr(g, _CLAIMS_CACHE_ATTR):
            return getattr(g, _CLAIMS_CACHE_ATTR)

        token = bearer_token(request.headers.get('Authorization'))
        claims = decode_token(token) if token else None
        setattr(g, _CLAIMS_CACHE_ATTR, claims)
        return claims

    def extract_user(self, request) -> Any:
        current_user = getattr(g, 'current_user', None)
        if current_user is not None:
            return current_user

        claims = self._claims(request)
        if not claims:
            return None
        user = {k: v for k, v in claims.items() if k not in ('exp', 'iat', 'nbf', 'sid', 'jti')}
        user['id'] = claims.get('user_id') or claims.get('sub')
        return user

    def extract_session(self, request) -> Any:
        current_session = getattr(g, 'current_session', None)
        if current_session is not None:
            return current_session

        claims = self._claims(request)
        if not claims:
            return None
        return {
            'id': claims.get('sid') or claims.get('jti'),
            'expiresAt': claims.get('exp'),
        }
