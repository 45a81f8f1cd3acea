"""
User role management.
"""

from fastapi import APIRouter

from ovgs.api.dependencies import (
    CallerDependency,
    DatabaseDependency,
    LoggerDependency,
)
from ovgs.core.models import (
    AddUserRoleRequest,
    GetUserRoleResponse,
    RemoveUserRoleRequest,
)
from ovgs.core.user import AccountIdentity, AccountType
from ovgs.service import roles as roles_service

role_app = APIRouter(tags=["Role Management"])


@role_app.put(
    "",
    summary="Assign a role to a user",
    description=(
        "Assign a role on a group to a user or service account. The caller "
        "needs at least ASSIGNER access and can only assign roles no stronger "
        "than its own: ADMIN may assign ADMIN, ASSIGNER and REQUESTOR; ASSIGNER "
        "may assign ASSIGNER and REQUESTOR."
    ),
    responses={
        200: {"description": "Role assigned."},
        400: {"description": "Group or account missing, or a different role is held."},
        403: {"description": "Not allowed to assign this role on the group."},
        409: {"description": "The account already holds this role on the group."},
    },
)
async def add_user_role(
    content: AddUserRoleRequest,
    caller: CallerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> None:
    await roles_service.add(
        target=AccountIdentity(
            username=content.username,
            account_type=content.user_type,
            org_id=content.org_id,
        ),
        group_id=content.group_id,
        role=content.user_role,
        caller=caller,
        conn=conn,
        log=log,
    )


@role_app.post(
    "/remove",
    summary="Remove a role from a user",
    responses={
        200: {"description": "Role removed."},
        403: {"description": "Not allowed to manage roles on the group."},
        404: {"description": "Group not found, or no role held on it."},
    },
)
async def remove_user_role(
    content: RemoveUserRoleRequest,
    caller: CallerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> None:
    await roles_service.remove(
        target=AccountIdentity(
            username=content.username,
            account_type=content.user_type,
            org_id=content.org_id,
        ),
        group_id=content.group_id,
        caller=caller,
        conn=conn,
        log=log,
    )


@role_app.get(
    "",
    summary="Get the roles of a user",
    description=(
        "Returns the group to role mapping for an account, restricted to the "
        "groups the caller itself has access to."
    ),
    responses={
        200: {"description": "Mapping of group to role."},
        404: {"description": "Account not found."},
    },
)
async def get_user_role(
    username: str,
    org_id: str,
    caller: CallerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
    user_type: AccountType = AccountType.USER,
) -> GetUserRoleResponse:
    groups = await roles_service.read_for_account(
        target=AccountIdentity(username=username, account_type=user_type, org_id=org_id),
        caller=caller,
        conn=conn,
        log=log,
    )

    return GetUserRoleResponse(groups=groups)
