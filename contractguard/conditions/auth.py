"""Authentication / role condition."""

from typing import Optional

from ..contracts.errors import ContractError, ErrorType
from ..contracts.registry import Predicate


def auth(required_role: Optional[str] = None) -> Predicate:
    """
    Require a logged-in user with a live session, and optionally a role.

    Checks, in order:
    1. user present                  -> AUTHENTICATION_REQUIRED
    2. session present and unexpired -> SESSION_EXPIRED
    3. required_role in user.roles   -> INSUFFICIENT_ROLE (exact match)
    """
    def check_auth(input, context):
        user = getattr(context, 'user', None)
        if user is None:
            raise ContractError("User must be logged in", ErrorType.AUTHENTICATION_REQUIRED)

        session = getattr(context, 'session', None)
        if session is None or session.is_expired():
            raise ContractError("Session has expired", ErrorType.SESSION_EXPIRED)

        if required_role is not None:
            roles = list(user.roles or ())
            if required_role not in roles:
                raise ContractError(
                    f"Required role: {required_role}, User roles: {', '.join(roles)}",
                    ErrorType.INSUFFICIENT_ROLE,
                    details={"requiredRole": required_role, "userRoles": roles},
                )

        return True

    return Predicate(check_auth, name=f"auth({required_role or ''})")
