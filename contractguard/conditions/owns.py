"""Resource ownership condition."""

from typing import Any, Awaitable, Callable, Optional, Union

from ..config import get_config
from ..constants import ADMIN_ROLE
from ..contracts.errors import ContractConfigurationError, ContractError, ErrorType
from ..contracts.registry import Predicate
from ..utils.collaborators import call_collaborator
from ..utils.fields import read_field

ResourceLookup = Callable[[str], Union[Any, Awaitable[Any]]]


def _owner_id(resource: Any) -> Optional[str]:
    owner = read_field(resource, 'userId')
    if owner is None:
        owner = read_field(resource, 'user_id')
    return str(owner) if owner is not None else None


def owns(resource_id_field: str, lookup: Optional[ResourceLookup] = None) -> Predicate:
    """
    Require the caller to own the resource named by input[resource_id_field].

    Admins bypass the lookup entirely. The lookup collaborator
    (resource_id -> {id, userId} | None) defaults to
    ContractConfig.resource_lookup and may be sync or async; sync lookups
    run in a worker thread. Owner ids are compared as strings.
    """
    async def check_owns(input, context):
        user = getattr(context, 'user', None)
        if user is None or user.id is None:
            raise ContractError(
                "User not authenticated for ownership check",
                ErrorType.AUTHENTICATION_REQUIRED,
            )

        resource_id = read_field(input, resource_id_field)
        if resource_id is None or resource_id == "":
            raise ContractError(
                f"Resource ID field '{resource_id_field}' is missing in input",
                ErrorType.MISSING_RESOURCE_ID,
                details={"field": resource_id_field},
            )

        if ADMIN_ROLE in (user.roles or ()):
            return True

        get_resource = lookup or get_config().resource_lookup
        if get_resource is None:
            raise ContractConfigurationError(
                "owns() needs a resource lookup; pass lookup= or configure(resource_lookup=...)"
            )

        resource = await call_collaborator(get_resource, str(resource_id))

        if resource is None:
            raise ContractError(
                f"Resource with ID {resource_id} not found",
                ErrorType.OWNERSHIP_DENIED,
                details={"resourceId": str(resource_id)},
            )

        if _owner_id(resource) != str(user.id):
            raise ContractError(
                f"User {user.id} does not own resource {resource_id}",
                ErrorType.OWNERSHIP_DENIED,
                details={"resourceId": str(resource_id), "userId": str(user.id)},
            )

        return True

    return Predicate(check_owns, name=f"owns({resource_id_field})")
