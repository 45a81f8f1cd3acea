"""
Service layer for authorization: effective roles over the group tree.

A grant on a group applies to that group and everything beneath it, so the
effective role of an account on a group is the strongest grant it holds anywhere
on the path from that group up to its org root.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from ovgs.core.errors import PermissionDeniedError
from ovgs.core.roles import Role, highest
from ovgs.core.user import AccountIdentity
from ovgs.database.account import Account
from ovgs.database.group import Group
from ovgs.database.role import RoleGrant


class PermissionDenied(PermissionDeniedError):
    pass


async def path_to_root(group_id: str, conn: AsyncSession) -> list[str]:
    """
    Identifiers of `group_id` and each of its ancestors, nearest first. Empty
    if the group does not exist.
    """
    path: list[str] = []
    current = group_id

    while current is not None and current not in path:
        group = await conn.get(Group, current)
        if group is None:
            break
        path.append(group.group_id)
        current = group.parent_id

    return path


async def effective_role(
    identity: AccountIdentity, group_id: str, conn: AsyncSession
) -> Role | None:
    """
    The strongest role `identity` holds over `group_id`, whether granted on
    the group itself or on any ancestor. None if it holds nothing on the path.
    """
    path = await path_to_root(group_id=group_id, conn=conn)

    if not path:
        return None

    result = await conn.execute(
        select(RoleGrant.role).where(
            RoleGrant.username == identity.username,
            RoleGrant.account_type == identity.account_type,
            RoleGrant.org_id == identity.org_id,
            RoleGrant.group_id.in_(path),
        )
    )
    roles = list(result.scalars().all())

    account = await conn.get(
        Account, (identity.username, identity.account_type, identity.org_id)
    )
    if account is not None and account.is_support:
        roles.append(Role.SUPPORT)

    return highest(roles)


async def authorize(
    identity: AccountIdentity,
    group_id: str,
    minimum: Role,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Role:
    """
    Check that `identity` holds at least `minimum` over `group_id`.

    Returns
    -------
    Role
        The caller's effective role, for follow-up checks such as the
        assignment gate.

    Raises
    ------
    PermissionDenied
        If the effective role is missing or weaker than `minimum`.
    """
    log = log.bind(caller=str(identity), group_id=group_id, minimum=minimum.value)

    role = await effective_role(identity=identity, group_id=group_id, conn=conn)

    if role is None or not role.at_least(minimum):
        await log.ainfo(
            "authorization.denied", effective_role=role.value if role else None
        )
        raise PermissionDenied(
            f"{identity} requires {minimum.value} access to group {group_id}"
        )

    await log.adebug("authorization.granted", effective_role=role.value)

    return role


async def visible_groups(
    identity: AccountIdentity, group_ids: list[str], conn: AsyncSession
) -> list[str]:
    """
    The subset of `group_ids` on which `identity` holds any role at all.
    """
    visible = []
    for group_id in group_ids:
        if await effective_role(identity=identity, group_id=group_id, conn=conn):
            visible.append(group_id)
    return visible
