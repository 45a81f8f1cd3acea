"""
Service layer for serial numbers and their group membership.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from ovgs.core.errors import AlreadyExistsError, NotFoundError
from ovgs.core.resources import SerialData
from ovgs.core.roles import Role
from ovgs.core.user import AccountIdentity
from ovgs.database.group import GroupSerial
from ovgs.database.serial import SerialRecord

from . import authorization
from . import groups as groups_service


class SerialNotFound(NotFoundError):
    pass


class SerialAlreadyInGroup(AlreadyExistsError):
    pass


class SerialNotInGroup(NotFoundError):
    pass


async def read_by_number(
    serial_number: str, conn: AsyncSession, log: FilteringBoundLogger
) -> SerialRecord:
    """
    Raises
    ------
    SerialNotFound
        If the serial is not registered.
    """
    res = await conn.get(SerialRecord, serial_number)

    if res is None:
        await log.ainfo("serial.not_found", serial_number=serial_number)
        raise SerialNotFound(f"Serial {serial_number} not found")

    return res


async def group_ids_for(serial_number: str, conn: AsyncSession) -> list[str]:
    result = await conn.execute(
        select(GroupSerial.group_id).where(GroupSerial.serial_number == serial_number)
    )
    return list(result.scalars().all())


async def is_member(serial_number: str, group_id: str, conn: AsyncSession) -> bool:
    return await conn.get(GroupSerial, (group_id, serial_number)) is not None


async def add(
    serial_number: str,
    group_id: str,
    caller: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> None:
    """
    Assign a serial to a group. Membership elsewhere is left alone, so a serial
    can sit in both the old and new group while custody is handed over.

    Raises
    ------
    groups_service.GroupNotFound
        If the group does not exist.
    SerialNotFound
        If the serial does not exist or is owned by a different org.
    authorization.PermissionDenied
        If the caller is not at least an ASSIGNER of the group.
    SerialAlreadyInGroup
        If the serial is already a member of the group.
    """
    log = log.bind(serial_number=serial_number, group_id=group_id, caller=str(caller))

    group = await groups_service.read_by_id(
        group_id=group_id, conn=conn, log=log, lock=True
    )
    serial = await read_by_number(serial_number=serial_number, conn=conn, log=log)

    if serial.org_id != group.org_id:
        await log.ainfo("serial.add.foreign_org", serial_org_id=serial.org_id)
        raise SerialNotFound(f"Serial {serial_number} not found")

    await authorization.authorize(
        identity=caller, group_id=group_id, minimum=Role.ASSIGNER, conn=conn, log=log
    )

    if await is_member(serial_number=serial_number, group_id=group_id, conn=conn):
        await log.ainfo("serial.add.exists")
        raise SerialAlreadyInGroup(f"Serial {serial_number} already in {group_id}")

    try:
        conn.add(GroupSerial(group_id=group_id, serial_number=serial_number))
        await conn.flush()
    except IntegrityError:
        await log.ainfo("serial.add.exists")
        raise SerialAlreadyInGroup(f"Serial {serial_number} already in {group_id}")

    await log.ainfo("serial.added")


async def remove(
    serial_number: str,
    group_id: str,
    caller: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> None:
    """
    Remove a serial from a group. The serial record itself is untouched.

    Raises
    ------
    groups_service.GroupNotFound
        If the group does not exist.
    SerialNotFound
        If the serial does not exist.
    authorization.PermissionDenied
        If the caller is not at least an ASSIGNER of the group.
    SerialNotInGroup
        If the serial is not a member of the group.
    """
    log = log.bind(serial_number=serial_number, group_id=group_id, caller=str(caller))

    await groups_service.read_by_id(group_id=group_id, conn=conn, log=log, lock=True)
    await read_by_number(serial_number=serial_number, conn=conn, log=log)

    await authorization.authorize(
        identity=caller, group_id=group_id, minimum=Role.ASSIGNER, conn=conn, log=log
    )

    membership = await conn.get(GroupSerial, (group_id, serial_number))

    if membership is None:
        await log.ainfo("serial.remove.not_member")
        raise SerialNotInGroup(f"Serial {serial_number} is not in {group_id}")

    await conn.delete(membership)
    await conn.flush()

    await log.ainfo("serial.removed")


async def read(
    serial_number: str,
    caller: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> SerialData:
    """
    Read a serial's public key, MAC address, and the groups it belongs to.
    Only groups the caller can see are listed.

    Raises
    ------
    SerialNotFound
        If the serial does not exist.
    authorization.PermissionDenied
        If the caller can see none of the serial's groups.
    """
    log = log.bind(serial_number=serial_number, caller=str(caller))

    serial = await read_by_number(serial_number=serial_number, conn=conn, log=log)
    group_ids = await group_ids_for(serial_number=serial_number, conn=conn)

    visible = await authorization.visible_groups(
        identity=caller, group_ids=group_ids, conn=conn
    )

    if not visible:
        await log.ainfo("serial.read.permission_denied")
        raise authorization.PermissionDenied(
            f"{caller} has no access to serial {serial_number}"
        )

    await log.adebug("serial.read", number_of_groups=len(visible))

    return serial.to_core(group_ids=visible)
