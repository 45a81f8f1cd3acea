"""
Service layer for the out-of-band provisioning boundary.

Accounts, orgs and serials are created by external systems (the identity
provider and device registration). These functions are how those systems, the
CLI, and the tests put them in place; none of them are reachable from the
public API.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from ovgs.core.cryptography import EncryptionSerializationError, deserialize_public_key
from ovgs.core.errors import AlreadyExistsError, InvalidArgumentError, NotFoundError
from ovgs.core.roles import Role
from ovgs.core.user import AccountIdentity
from ovgs.database.account import Account
from ovgs.database.group import Group, GroupSerial
from ovgs.database.role import RoleGrant
from ovgs.database.serial import SerialRecord


class AccountNotFound(NotFoundError):
    pass


class AccountExistsError(AlreadyExistsError):
    pass


class OrgNotFound(NotFoundError):
    pass


class OrgExistsError(AlreadyExistsError):
    pass


class SerialExistsError(AlreadyExistsError):
    pass


class InvalidPublicKey(InvalidArgumentError):
    pass


async def read_account(identity: AccountIdentity, conn: AsyncSession) -> Account:
    res = await conn.get(
        Account, (identity.username, identity.account_type, identity.org_id)
    )

    if res is None:
        raise AccountNotFound(f"Account {identity} not found in the database")

    return res


async def create_account(
    identity: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    is_support: bool = False,
) -> Account:
    """
    Mirror an account that exists in the identity system.

    Raises
    ------
    AccountExistsError
        If the account is already known.
    """
    log = log.bind(account=str(identity), is_support=is_support)

    existing = await conn.get(
        Account, (identity.username, identity.account_type, identity.org_id)
    )
    if existing is not None:
        await log.ainfo("account.create.exists")
        raise AccountExistsError(f"Account {identity} already exists")

    account = Account(
        username=identity.username,
        account_type=identity.account_type,
        org_id=identity.org_id,
        is_support=is_support,
    )
    conn.add(account)
    await conn.flush()

    await log.ainfo("account.created")

    return account


async def provision_org(
    org_id: str,
    admin: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Create the root group for an org and make `admin` an ADMIN of it, which
    bootstraps the rest of the org tree. The admin account is created if it
    does not yet exist.

    Raises
    ------
    OrgExistsError
        If the org has already been provisioned.
    """
    log = log.bind(org_id=org_id, admin=str(admin))

    if await conn.get(Group, org_id) is not None:
        await log.ainfo("org.create.exists")
        raise OrgExistsError(f"Org {org_id} already exists")

    root = Group(
        group_id=org_id,
        parent_id=None,
        org_id=org_id,
        description=f"Root group for {org_id}",
    )
    conn.add(root)

    try:
        await read_account(identity=admin, conn=conn)
    except AccountNotFound:
        conn.add(
            Account(
                username=admin.username,
                account_type=admin.account_type,
                org_id=admin.org_id,
            )
        )

    await conn.flush()

    conn.add(RoleGrant.for_identity(identity=admin, group_id=org_id, role=Role.ADMIN))
    await conn.flush()

    await log.ainfo("org.created")

    return root


async def register_serial(
    serial_number: str,
    org_id: str,
    ien: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    public_key_der: bytes | None = None,
    mac_addr: str | None = None,
) -> SerialRecord:
    """
    Record a device serial owned by `org_id` and place it in the org's root
    group.

    Raises
    ------
    OrgNotFound
        If the org has not been provisioned.
    SerialExistsError
        If the serial is already registered.
    InvalidPublicKey
        If `public_key_der` is not a DER SubjectPublicKeyInfo.
    """
    log = log.bind(serial_number=serial_number, org_id=org_id, ien=ien)

    root = await conn.get(Group, org_id)
    if root is None or not root.is_root:
        await log.ainfo("serial.register.no_org")
        raise OrgNotFound(f"Org {org_id} not found")

    existing = await conn.execute(
        select(SerialRecord).where(SerialRecord.serial_number == serial_number)
    )
    if existing.scalar_one_or_none() is not None:
        await log.ainfo("serial.register.exists")
        raise SerialExistsError(f"Serial {serial_number} already registered")

    if public_key_der is not None:
        try:
            deserialize_public_key(public_key_der)
        except EncryptionSerializationError:
            await log.ainfo("serial.register.invalid_key")
            raise InvalidPublicKey(f"Public key for {serial_number} is not valid DER")

    serial = SerialRecord(
        serial_number=serial_number,
        org_id=org_id,
        ien=ien,
        public_key_der=public_key_der,
        mac_addr=mac_addr,
    )
    conn.add(serial)
    await conn.flush()

    conn.add(GroupSerial(group_id=org_id, serial_number=serial_number))
    await conn.flush()

    await log.ainfo("serial.registered")

    return serial
