"""
Service layer for role grants.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from ovgs.core.errors import (
    AlreadyExistsError,
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
)
from ovgs.core.roles import Role, can_assign
from ovgs.core.user import AccountIdentity
from ovgs.database.group import Group
from ovgs.database.role import RoleGrant

from . import authorization
from . import groups as groups_service
from . import provision as provision_service


class RoleGrantExists(AlreadyExistsError):
    pass


class RoleGrantNotFound(NotFoundError):
    pass


class ConflictingRoleGrant(FailedPreconditionError):
    """
    The account already holds a different role on the group. Roles are not
    replaced implicitly; remove the old one first.
    """


class RoleDependencyMissing(FailedPreconditionError):
    pass


class UnassignableRole(authorization.PermissionDenied):
    pass


class SupportRoleNotAssignable(InvalidArgumentError):
    pass


async def read_grant(
    identity: AccountIdentity, group_id: str, conn: AsyncSession
) -> RoleGrant | None:
    return await conn.get(
        RoleGrant,
        (identity.username, identity.account_type, identity.org_id, group_id),
    )


async def add(
    target: AccountIdentity,
    group_id: str,
    role: Role,
    caller: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> RoleGrant:
    """
    Grant `role` on `group_id` to the `target` account.

    The caller needs ASSIGNER access to the group, and must also be allowed to
    hand out `role` itself: ADMINs may assign any public role, ASSIGNERs only
    ASSIGNER and REQUESTOR.

    Raises
    ------
    SupportRoleNotAssignable
        If `role` is SUPPORT.
    RoleDependencyMissing
        If the group or the target account does not exist, or they belong to
        different orgs.
    authorization.PermissionDenied
        If the caller lacks access to the group or may not assign `role`.
    RoleGrantExists
        If the target already holds exactly this role on the group.
    ConflictingRoleGrant
        If the target holds a different role on the group.
    """
    log = log.bind(
        target=str(target), group_id=group_id, role=role.value, caller=str(caller)
    )

    if role == Role.SUPPORT:
        await log.ainfo("role.add.support")
        raise SupportRoleNotAssignable("The SUPPORT role cannot be assigned")

    try:
        group = await groups_service.read_by_id(
            group_id=group_id, conn=conn, log=log, lock=True
        )
        await provision_service.read_account(identity=target, conn=conn)
    except (groups_service.GroupNotFound, provision_service.AccountNotFound) as e:
        await log.ainfo("role.add.missing_dependency", error=str(e))
        raise RoleDependencyMissing(str(e))

    if target.org_id != group.org_id:
        await log.ainfo("role.add.foreign_org")
        raise RoleDependencyMissing(
            f"Account {target} does not belong to org {group.org_id}"
        )

    caller_role = await authorization.authorize(
        identity=caller, group_id=group_id, minimum=Role.ASSIGNER, conn=conn, log=log
    )

    if not can_assign(caller_role, role):
        await log.ainfo("role.add.unassignable", caller_role=caller_role.value)
        raise UnassignableRole(f"A {caller_role.value} cannot assign {role.value}")

    existing = await read_grant(identity=target, group_id=group_id, conn=conn)

    if existing is not None:
        if existing.role == role:
            await log.ainfo("role.add.exists")
            raise RoleGrantExists(f"{target} already holds {role.value} on {group_id}")

        await log.ainfo("role.add.conflict", existing_role=existing.role.value)
        raise ConflictingRoleGrant(
            f"{target} already holds {existing.role.value} on {group_id}"
        )

    grant = RoleGrant.for_identity(identity=target, group_id=group_id, role=role)

    try:
        conn.add(grant)
        await conn.flush()
    except IntegrityError:
        await log.ainfo("role.add.exists")
        raise RoleGrantExists(f"{target} already holds a role on {group_id}")

    await log.ainfo("role.added")

    return grant


async def remove(
    target: AccountIdentity,
    group_id: str,
    caller: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> None:
    """
    Remove whatever role `target` holds directly on `group_id`. The caller needs
    ASSIGNER access to the group and must be able to assign the role being
    removed, so an ASSIGNER cannot strip an ADMIN.

    Raises
    ------
    groups_service.GroupNotFound
        If the group does not exist.
    authorization.PermissionDenied
        If the caller lacks access or may not manage the grant's role.
    RoleGrantNotFound
        If the target holds no role directly on the group.
    """
    log = log.bind(target=str(target), group_id=group_id, caller=str(caller))

    await groups_service.read_by_id(group_id=group_id, conn=conn, log=log, lock=True)

    caller_role = await authorization.authorize(
        identity=caller, group_id=group_id, minimum=Role.ASSIGNER, conn=conn, log=log
    )

    grant = await read_grant(identity=target, group_id=group_id, conn=conn)

    if grant is None:
        await log.ainfo("role.remove.not_found")
        raise RoleGrantNotFound(f"{target} holds no role on {group_id}")

    if not can_assign(caller_role, grant.role):
        await log.ainfo(
            "role.remove.unassignable",
            caller_role=caller_role.value,
            role=grant.role.value,
        )
        raise UnassignableRole(
            f"A {caller_role.value} cannot remove {grant.role.value}"
        )

    await conn.delete(grant)
    await conn.flush()

    await log.ainfo("role.removed", role=grant.role.value)


async def read_for_account(
    target: AccountIdentity,
    caller: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> dict[str, Role]:
    """
    The roles `target` holds directly, keyed by group, limited to the groups
    the caller can see itself.

    Raises
    ------
    provision_service.AccountNotFound
        If the target account does not exist.
    """
    log = log.bind(target=str(target), caller=str(caller))

    try:
        await provision_service.read_account(identity=target, conn=conn)
    except provision_service.AccountNotFound:
        await log.ainfo("role.read.account_not_found")
        raise

    result = await conn.execute(
        select(RoleGrant)
        .join(Group, Group.group_id == RoleGrant.group_id)
        .where(
            RoleGrant.username == target.username,
            RoleGrant.account_type == target.account_type,
            RoleGrant.org_id == target.org_id,
        )
    )
    grants = {grant.group_id: grant.role for grant in result.scalars().all()}

    visible = await authorization.visible_groups(
        identity=caller, group_ids=list(grants), conn=conn
    )

    await log.adebug(
        "role.read", number_of_grants=len(grants), number_visible=len(visible)
    )

    return {group_id: grants[group_id] for group_id in visible}
