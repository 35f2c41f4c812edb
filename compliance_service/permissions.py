from typing import Iterable, Optional

from libs.shared_auth.jwt_fastapi import AuthenticatedUser

from . import schemas
from .task_generation import EntityContext

CA_COLUMN = "ca"
CS_COLUMN = "cs"


def is_admin(user: AuthenticatedUser) -> bool:
    return user.role == schemas.UserRole.admin.value


def is_service_provider(user: AuthenticatedUser) -> bool:
    return user.role in (schemas.UserRole.ca.value, schemas.UserRole.cs.value)


def is_owner(user: AuthenticatedUser, startup) -> bool:
    return startup.user_id == user.user_id


def can_manage_startup(user: AuthenticatedUser, startup) -> bool:
    """Owner or Admin: edits, entities, uploads and assignment decisions."""
    return is_owner(user, startup) or is_admin(user)


def can_upload(user: AuthenticatedUser, startup) -> bool:
    return can_manage_startup(user, startup)


def assigned_code(startup, role: str) -> Optional[str]:
    if role == schemas.UserRole.ca.value:
        return startup.ca_service_code
    if role == schemas.UserRole.cs.value:
        return startup.cs_service_code
    return None


def service_code_matches(user: AuthenticatedUser, startup) -> bool:
    code = assigned_code(startup, user.role)
    return bool(code) and bool(user.service_code) and code == user.service_code


def subsidiary_code_matches(user: AuthenticatedUser, subsidiaries: Iterable = ()) -> bool:
    """True when the user's code is assigned to one of the subsidiaries."""
    if not user.service_code or not is_service_provider(user):
        return False
    attribute = "ca_code" if user.role == schemas.UserRole.ca.value else "cs_code"
    return any(getattr(subsidiary, attribute) == user.service_code for subsidiary in subsidiaries)


def can_view_startup(
    user: AuthenticatedUser,
    startup,
    has_active_assignment: bool = False,
    subsidiaries: Iterable = (),
) -> bool:
    if can_manage_startup(user, startup):
        return True
    if not is_service_provider(user):
        return False
    return (
        has_active_assignment
        or service_code_matches(user, startup)
        or subsidiary_code_matches(user, subsidiaries)
    )


def verification_column(role: Optional[str]) -> Optional[str]:
    """The status column a role is allowed to set, if any."""
    if role == schemas.UserRole.ca.value:
        return CA_COLUMN
    if role == schemas.UserRole.cs.value:
        return CS_COLUMN
    return None


def entity_code_allows(user: AuthenticatedUser, entity: Optional[EntityContext], column: str) -> bool:
    """A verifier may only act on entities that have no code assigned or carry their own code."""
    if entity is None:
        return True
    code = entity.ca_code if column == CA_COLUMN else entity.cs_code
    if not code:
        return True
    return code == user.service_code


def column_required(task: schemas.ComplianceTask, column: str) -> bool:
    return task.ca_required if column == CA_COLUMN else task.cs_required
