"""
This file contains code to perform initial setup of the API. If the voucher
signing material does not exist on disk it is created, along with the database
tables.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from ovgs.config.settings import Settings
from ovgs.core.cryptography import generate_signing_material
from ovgs.core.user import AccountIdentity
from ovgs.service import provision as provision_service


def initial_setup(settings: Settings):
    """
    Creates the database tables and, when `create_files` is set, a self-signed
    voucher signing certificate and key.
    """
    if not settings.create_files:
        return

    manager = settings.sync_manager()
    manager.create_all()

    certificate_file = settings.voucher_certificate_filename
    key_file = settings.voucher_key_filename

    if certificate_file is None or key_file is None:
        raise RuntimeError("Voucher certificate and key filenames must be set")

    if certificate_file.exists() and key_file.exists():
        return

    certificate, private_key = generate_signing_material(
        common_name=settings.voucher_certificate_common_name,
        validity=settings.voucher_certificate_validity,
        key_password=settings.voucher_key_password,
    )

    certificate_file.parent.mkdir(parents=True, exist_ok=True)
    key_file.parent.mkdir(parents=True, exist_ok=True)

    with open(certificate_file, "wb") as handle:
        handle.write(certificate)
    print("Wrote voucher signing certificate")

    with open(key_file, "wb") as handle:
        handle.write(private_key)
    print("Wrote voucher signing key")

    key_file.chmod(0o600)

    return


async def example_setup(
    settings: Settings, conn: AsyncSession, log: FilteringBoundLogger
):
    """
    Performs the 'example' setup where we create an org with an admin.
    """
    if not settings.create_example_org:
        return

    try:
        await provision_service.provision_org(
            org_id=settings.example_org_id,
            admin=AccountIdentity(
                username=settings.example_admin, org_id=settings.example_org_id
            ),
            conn=conn,
            log=log,
        )
    except provision_service.OrgExistsError:
        return

    print(f"Created example org {settings.example_org_id}")
