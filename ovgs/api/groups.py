"""
Group management.
"""

from fastapi import APIRouter

from ovgs.api.dependencies import (
    CallerDependency,
    DatabaseDependency,
    LoggerDependency,
)
from ovgs.core.models import CreateGroupRequest, CreateGroupResponse, GetGroupResponse
from ovgs.service import groups as groups_service

group_app = APIRouter(tags=["Group Management"])


@group_app.put(
    "",
    summary="Create a new group",
    description=(
        "Create a group as a child of an existing group. The root group of an "
        "org, named after the org ID, always exists. Requires the ADMIN role on "
        "the parent group."
    ),
    responses={
        200: {"description": "Group created."},
        403: {"description": "No ADMIN access to the parent group."},
        404: {"description": "Parent group not found."},
    },
)
async def create_group(
    content: CreateGroupRequest,
    caller: CallerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> CreateGroupResponse:
    group = await groups_service.create(
        parent_id=content.parent,
        description=content.description,
        caller=caller,
        conn=conn,
        log=log,
    )

    return CreateGroupResponse(group_id=group.group_id)


@group_app.get(
    "/{group_id}",
    summary="Get group by ID",
    description=(
        "Retrieve the certificates, serials, direct user roles and child groups "
        "of a group. Any role on the group or one of its ancestors is enough."
    ),
    responses={
        200: {"description": "Group details."},
        403: {"description": "No access to the group."},
        404: {"description": "Group not found."},
    },
)
async def get_group(
    group_id: str,
    caller: CallerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GetGroupResponse:
    group = await groups_service.read(
        group_id=group_id, caller=caller, conn=conn, log=log
    )

    return GetGroupResponse(
        group_id=group.group_id,
        cert_ids=group.cert_ids,
        serial_numbers=group.serial_numbers,
        users=group.users,
        child_group_ids=group.child_group_ids,
        description=group.description,
    )


@group_app.delete(
    "/{group_id}",
    summary="Delete a group",
    description=(
        "Delete a group. Its certificates, serials and child groups must be "
        "removed first, so subtrees are deleted bottom up. Requires the ADMIN "
        "role on the parent group."
    ),
    responses={
        200: {"description": "Group deleted."},
        400: {"description": "Group is an org root or is not empty."},
        403: {"description": "No ADMIN access to the parent group."},
        404: {"description": "Group not found."},
    },
)
async def delete_group(
    group_id: str,
    caller: CallerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> None:
    await groups_service.delete_group(
        group_id=group_id, caller=caller, conn=conn, log=log
    )
