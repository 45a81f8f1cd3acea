"""
Configuration variables and fixtures for the service layer tests.
"""

from datetime import timedelta

import pytest_asyncio
import structlog
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding

from ovgs.core.cryptography import (
    deserialize_certificate,
    generate_signing_material,
    serialize_public_key,
)
from ovgs.core.user import AccountIdentity
from ovgs.core.uuid import uuid7
from ovgs.core.voucher import VoucherSigner
from ovgs.service import groups as groups_service
from ovgs.service import provision as provision_service

IEN = "30065"


def domain_certificate_der(common_name: str = "owner.example.com") -> bytes:
    certificate, _ = generate_signing_material(
        common_name=common_name, validity=timedelta(days=365), key_password=None
    )
    return deserialize_certificate(certificate).public_bytes(Encoding.DER)


def device_public_key_der() -> bytes:
    return serialize_public_key(ec.generate_private_key(ec.SECP256R1()).public_key())


def unique(prefix: str) -> str:
    return f"{prefix}-{uuid7().hex}"


@pytest_asyncio.fixture(scope="session")
def session_manager(server_settings, database):
    yield server_settings.async_manager()


@pytest_asyncio.fixture(scope="session")
def logger():
    yield structlog.get_logger()


@pytest_asyncio.fixture(scope="session")
def signer():
    certificate, private_key = generate_signing_material(
        common_name="Test Voucher Signer",
        validity=timedelta(days=30),
        key_password="CHANGEME",
    )
    yield VoucherSigner(
        certificate=certificate, private_key=private_key, key_password="CHANGEME"
    )


@pytest_asyncio.fixture
async def admin(session_manager, logger):
    """
    A freshly provisioned org; the fixture is its root ADMIN.
    """
    org_id = unique("org")
    identity = AccountIdentity(username="alice", org_id=org_id)

    async with session_manager.session() as conn:
        async with conn.begin():
            await provision_service.provision_org(
                org_id=org_id, admin=identity, conn=conn, log=logger
            )

    yield identity


@pytest_asyncio.fixture
async def make_account(session_manager, logger, admin):
    """
    Creates further accounts in the admin's org.
    """

    async def _make_account(username: str, is_support: bool = False):
        identity = AccountIdentity(username=username, org_id=admin.org_id)
        async with session_manager.session() as conn:
            async with conn.begin():
                await provision_service.create_account(
                    identity=identity, is_support=is_support, conn=conn, log=logger
                )
        return identity

    yield _make_account


@pytest_asyncio.fixture
async def make_serial(session_manager, logger, admin):
    """
    Registers serials in the admin's org root, with a device key by default.
    """

    async def _make_serial(with_key: bool = True, ien: str = IEN):
        serial_number = unique("SN")
        public_key_der = device_public_key_der() if with_key else None
        async with session_manager.session() as conn:
            async with conn.begin():
                await provision_service.register_serial(
                    serial_number=serial_number,
                    org_id=admin.org_id,
                    ien=ien,
                    public_key_der=public_key_der,
                    mac_addr="00:1c:73:00:00:01",
                    conn=conn,
                    log=logger,
                )
        return serial_number, public_key_der

    yield _make_serial


@pytest_asyncio.fixture(scope="session")
def new_domain_certificate():
    yield domain_certificate_der


@pytest_asyncio.fixture(scope="session")
def new_identifier():
    yield unique


@pytest_asyncio.fixture(scope="session")
def ien():
    yield IEN


@pytest_asyncio.fixture
async def make_group(session_manager, logger, admin):
    """
    Creates a child group, by default directly under the org root.
    """

    async def _make_group(parent: str | None = None, description: str = ""):
        async with session_manager.session() as conn:
            async with conn.begin():
                group = await groups_service.create(
                    parent_id=parent or admin.org_id,
                    description=description,
                    caller=admin,
                    conn=conn,
                    log=logger,
                )
                return group.group_id

    yield _make_group
