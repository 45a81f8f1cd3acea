"""
Service layer for issuing ownership vouchers.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from ovgs.core.clock import as_utc, utc_now
from ovgs.core.errors import (
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
)
from ovgs.core.resources import VoucherData
from ovgs.core.roles import Role
from ovgs.core.user import AccountIdentity
from ovgs.core.voucher import VoucherSigner, build_voucher_payload

from . import authorization
from . import certificates as certificates_service
from . import serials as serials_service


class DevicePublicKeyUnknown(NotFoundError):
    pass


class IENMismatch(InvalidArgumentError):
    pass


class LifetimeInPast(InvalidArgumentError):
    pass


class CustodyMismatch(FailedPreconditionError):
    """
    The certificate's group does not hold the serial, so it cannot vouch for
    the device.
    """


class DomainCertificateExpired(FailedPreconditionError):
    pass


async def issue(
    serial_number: str,
    cert_id: str,
    lifetime: datetime,
    ien: str,
    caller: AccountIdentity,
    signer: VoucherSigner,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> VoucherData:
    """
    Issue an ownership voucher pinning the domain certificate `cert_id` for
    the device `serial_number`, valid until `lifetime`. Nothing is stored;
    every call signs a fresh voucher.

    Parameters
    ----------
    serial_number
        The device to vouch for.
    cert_id
        The domain certificate to pin; it must live in a group that also
        holds the serial.
    lifetime
        Expiry of the voucher. Must be in the future.
    ien
        The vendor's IANA Enterprise Number, which must match the serial's
        manufacturer record.
    signer
        The voucher signing material.

    Raises
    ------
    serials_service.SerialNotFound
        If the serial does not exist.
    certificates_service.CertificateNotFound
        If the certificate does not exist.
    authorization.PermissionDenied
        If the caller has no access to the certificate's group.
    DevicePublicKeyUnknown
        If no public key is registered for the serial.
    IENMismatch
        If `ien` does not match the serial's vendor.
    CustodyMismatch
        If the certificate's group does not hold the serial.
    DomainCertificateExpired
        If the certificate has expired.
    LifetimeInPast
        If `lifetime` is not in the future.
    """
    log = log.bind(
        serial_number=serial_number,
        cert_id=cert_id,
        lifetime=lifetime,
        ien=ien,
        caller=str(caller),
    )

    serial = await serials_service.read_by_number(
        serial_number=serial_number, conn=conn, log=log
    )
    certificate = await certificates_service.read_by_id(
        cert_id=cert_id, conn=conn, log=log
    )
    log = log.bind(group_id=certificate.group_id)

    await authorization.authorize(
        identity=caller,
        group_id=certificate.group_id,
        minimum=Role.REQUESTOR,
        conn=conn,
        log=log,
    )

    if serial.public_key_der is None:
        await log.ainfo("voucher.no_public_key")
        raise DevicePublicKeyUnknown(f"No public key is known for {serial_number}")

    if serial.ien != ien:
        await log.ainfo("voucher.ien_mismatch")
        raise IENMismatch(f"IEN {ien} does not belong to serial {serial_number}")

    if not await serials_service.is_member(
        serial_number=serial_number, group_id=certificate.group_id, conn=conn
    ):
        await log.ainfo("voucher.custody_mismatch")
        raise CustodyMismatch(
            f"Serial {serial_number} is not in group {certificate.group_id}"
        )

    now = utc_now()

    if certificate.is_expired(now):
        await log.ainfo("voucher.certificate_expired")
        raise DomainCertificateExpired(f"Certificate {cert_id} has expired")

    lifetime = as_utc(lifetime)

    if lifetime <= now:
        await log.ainfo("voucher.lifetime_in_past")
        raise LifetimeInPast(f"Lifetime {lifetime} is not in the future")

    payload = build_voucher_payload(
        serial_number=serial.serial_number,
        public_key_der=serial.public_key_der,
        pinned_domain_cert=certificate.certificate_der,
        revocation_checks=certificate.revocation_checks,
        created_on=now,
        expires_on=lifetime,
    )

    voucher_cms = signer.sign(payload)

    await log.ainfo("voucher.issued", size=len(voucher_cms))

    return VoucherData(voucher_cms=voucher_cms, public_key_der=serial.public_key_der)
