"""
Service layer for groups.
"""

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from ovgs.core.errors import FailedPreconditionError, NotFoundError
from ovgs.core.group import GroupData
from ovgs.core.roles import Role
from ovgs.core.user import AccountIdentity
from ovgs.database.certificate import DomainCertificate
from ovgs.database.group import Group, GroupSerial
from ovgs.database.role import RoleGrant

from . import authorization


class GroupNotFound(NotFoundError):
    pass


class GroupNotEmpty(FailedPreconditionError):
    pass


class RootGroupDeletion(FailedPreconditionError):
    pass


async def read_by_id(
    group_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    lock: bool = False,
) -> Group:
    """
    Read a group by its ID.

    Parameters
    ----------
    group_id: str
        The ID of the group to read.
    conn: AsyncSession
        The database session.
    log: FilteringBoundLogger
        Logger instance.
    lock: bool
        Take a row lock for the rest of the transaction. Used by every
        operation that changes what the group contains, so that the checks
        they make still hold when they commit.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    """
    log = log.bind(group_id=group_id)

    query = select(Group).where(Group.group_id == group_id)
    if lock:
        query = query.with_for_update()

    result = await conn.execute(query)
    group = result.scalar_one_or_none()

    if not group:
        await log.ainfo("group.not_found")
        raise GroupNotFound(f"Group with id {group_id} not found")

    await log.adebug("group.found")
    return group


async def create(
    parent_id: str,
    description: str,
    caller: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Create a new, empty group as a child of `parent_id`.

    Raises
    ------
    GroupNotFound
        If the parent does not exist.
    authorization.PermissionDenied
        If the caller is not an ADMIN of the parent.
    """
    log = log.bind(parent_id=parent_id, caller=str(caller))

    parent = await read_by_id(group_id=parent_id, conn=conn, log=log, lock=True)

    await authorization.authorize(
        identity=caller, group_id=parent.group_id, minimum=Role.ADMIN, conn=conn, log=log
    )

    group = Group(
        parent_id=parent.group_id,
        org_id=parent.org_id,
        description=description,
    )
    conn.add(group)
    await conn.flush()

    await log.ainfo("group.created", group_id=group.group_id)

    return group


async def child_group_ids(group_id: str, conn: AsyncSession) -> list[str]:
    result = await conn.execute(select(Group.group_id).where(Group.parent_id == group_id))
    return list(result.scalars().all())


async def serial_numbers(group_id: str, conn: AsyncSession) -> list[str]:
    result = await conn.execute(
        select(GroupSerial.serial_number).where(GroupSerial.group_id == group_id)
    )
    return list(result.scalars().all())


async def cert_ids(group_id: str, conn: AsyncSession) -> list[str]:
    result = await conn.execute(
        select(DomainCertificate.cert_id).where(DomainCertificate.group_id == group_id)
    )
    return list(result.scalars().all())


async def direct_grants(group_id: str, conn: AsyncSession) -> list[RoleGrant]:
    result = await conn.execute(select(RoleGrant).where(RoleGrant.group_id == group_id))
    return list(result.scalars().all())


async def read(
    group_id: str,
    caller: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> GroupData:
    """
    Read a group with its certificates, serials, direct role grants and
    immediate children. Any role on the group (or above it) is enough.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    authorization.PermissionDenied
        If the caller has no access to the group.
    """
    log = log.bind(caller=str(caller))
    group = await read_by_id(group_id=group_id, conn=conn, log=log)

    await authorization.authorize(
        identity=caller, group_id=group_id, minimum=Role.REQUESTOR, conn=conn, log=log
    )

    grants = await direct_grants(group_id=group_id, conn=conn)

    return group.to_core(
        cert_ids=await cert_ids(group_id=group_id, conn=conn),
        serial_numbers=await serial_numbers(group_id=group_id, conn=conn),
        users=[grant.to_core() for grant in grants],
        child_group_ids=await child_group_ids(group_id=group_id, conn=conn),
    )


async def delete_group(
    group_id: str,
    caller: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> None:
    """
    Delete a group by its ID. Subtrees are deleted bottom up: the group must
    have no children, serials, or certificates left. Role grants made on the
    group go with it.

    Raises
    ------
    GroupNotFound
        If the group does not exist (including when a concurrent request
        deleted it first).
    RootGroupDeletion
        If the group is an org root.
    authorization.PermissionDenied
        If the caller is not an ADMIN of the parent group.
    GroupNotEmpty
        If anything is still held by the group.
    """
    log = log.bind(group_id=group_id, caller=str(caller))

    group = await read_by_id(group_id=group_id, conn=conn, log=log, lock=True)

    if group.is_root:
        await log.ainfo("group.delete.root")
        raise RootGroupDeletion(f"Group {group_id} is an org root and cannot be deleted")

    await authorization.authorize(
        identity=caller, group_id=group.parent_id, minimum=Role.ADMIN, conn=conn, log=log
    )

    counts = {
        "children": select(func.count())
        .select_from(Group)
        .where(Group.parent_id == group_id),
        "serials": select(func.count())
        .select_from(GroupSerial)
        .where(GroupSerial.group_id == group_id),
        "certificates": select(func.count())
        .select_from(DomainCertificate)
        .where(DomainCertificate.group_id == group_id),
    }

    for name, query in counts.items():
        if (await conn.execute(query)).scalar_one() > 0:
            await log.ainfo("group.delete.not_empty", holding=name)
            raise GroupNotEmpty(f"Group {group_id} still has {name}")

    try:
        await conn.execute(delete(RoleGrant).where(RoleGrant.group_id == group_id))
        result = await conn.execute(delete(Group).where(Group.group_id == group_id))
    except IntegrityError:
        await log.ainfo("group.delete.not_empty")
        raise GroupNotEmpty(f"Group {group_id} is not empty")

    if result.rowcount != 1:
        await log.ainfo("group.delete.lost_race")
        raise GroupNotFound(f"Group with id {group_id} not found")

    await log.ainfo("group.deleted")
