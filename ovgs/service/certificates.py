"""
Service layer for domain certificates.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from ovgs.core.clock import as_utc, utc_now
from ovgs.core.cryptography import (
    EncryptionSerializationError,
    deserialize_certificate,
    fingerprint,
)
from ovgs.core.errors import AlreadyExistsError, InvalidArgumentError, NotFoundError
from ovgs.core.resources import DomainCertData
from ovgs.core.roles import Role
from ovgs.core.user import AccountIdentity
from ovgs.database.certificate import DomainCertificate

from . import authorization
from . import groups as groups_service


class CertificateNotFound(NotFoundError):
    pass


class CertificateExistsError(AlreadyExistsError):
    pass


class CertificateExpiryInPast(InvalidArgumentError):
    pass


class InvalidCertificate(InvalidArgumentError):
    pass


def validate_certificate(certificate_der: bytes):
    """
    Raises
    ------
    InvalidCertificate
        If the bytes are not a DER encoded X.509 certificate.
    """
    if not certificate_der or certificate_der.lstrip().startswith(b"-----BEGIN"):
        raise InvalidCertificate("Certificate must be DER encoded")

    try:
        return deserialize_certificate(certificate_der)
    except EncryptionSerializationError:
        raise InvalidCertificate("Certificate is not a valid X.509 certificate")


async def create(
    group_id: str,
    certificate_der: bytes,
    revocation_checks: bool,
    expiry_time: datetime,
    caller: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> DomainCertificate:
    """
    Store a domain certificate under a group.

    Parameters
    ----------
    group_id
        The group that will hold the certificate.
    certificate_der
        The DER encoded certificate.
    revocation_checks
        Whether devices should check revocation of this certificate; carried
        into every voucher that pins it.
    expiry_time
        When the certificate stops being usable for vouchers. Must be in the
        future.

    Raises
    ------
    CertificateExpiryInPast
        If `expiry_time` is not after the current time.
    InvalidCertificate
        If the certificate cannot be parsed.
    groups_service.GroupNotFound
        If the group does not exist.
    authorization.PermissionDenied
        If the caller is not at least an ASSIGNER of the group.
    CertificateExistsError
        If the same certificate is already stored under the group.
    """
    log = log.bind(
        group_id=group_id,
        revocation_checks=revocation_checks,
        expiry_time=expiry_time,
        caller=str(caller),
    )

    now = utc_now()
    expiry_time = as_utc(expiry_time)

    if expiry_time <= now:
        await log.ainfo("certificate.create.expired")
        raise CertificateExpiryInPast(f"Expiry time {expiry_time} is not in the future")

    try:
        validate_certificate(certificate_der)
    except InvalidCertificate:
        await log.ainfo("certificate.create.invalid")
        raise

    await groups_service.read_by_id(group_id=group_id, conn=conn, log=log, lock=True)

    await authorization.authorize(
        identity=caller, group_id=group_id, minimum=Role.ASSIGNER, conn=conn, log=log
    )

    digest = fingerprint(certificate_der)
    log = log.bind(fingerprint=digest)

    existing = await conn.execute(
        select(DomainCertificate.cert_id).where(
            DomainCertificate.group_id == group_id,
            DomainCertificate.fingerprint == digest,
        )
    )
    if existing.scalar_one_or_none() is not None:
        await log.ainfo("certificate.create.exists")
        raise CertificateExistsError(f"Certificate already exists in {group_id}")

    certificate = DomainCertificate(
        group_id=group_id,
        certificate_der=certificate_der,
        fingerprint=digest,
        revocation_checks=revocation_checks,
        expiry_time=expiry_time,
    )

    try:
        conn.add(certificate)
        await conn.flush()
    except IntegrityError:
        await log.ainfo("certificate.create.exists")
        raise CertificateExistsError(f"Certificate already exists in {group_id}")

    await log.ainfo("certificate.created", cert_id=certificate.cert_id)

    return certificate


async def read_by_id(
    cert_id: str, conn: AsyncSession, log: FilteringBoundLogger
) -> DomainCertificate:
    """
    Raises
    ------
    CertificateNotFound
        If the certificate does not exist.
    """
    res = await conn.get(DomainCertificate, cert_id)

    if res is None:
        await log.ainfo("certificate.not_found", cert_id=cert_id)
        raise CertificateNotFound(f"Certificate {cert_id} not found")

    return res


async def read(
    cert_id: str,
    caller: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> DomainCertData:
    log = log.bind(cert_id=cert_id, caller=str(caller))

    certificate = await read_by_id(cert_id=cert_id, conn=conn, log=log)

    await authorization.authorize(
        identity=caller,
        group_id=certificate.group_id,
        minimum=Role.REQUESTOR,
        conn=conn,
        log=log,
    )

    return certificate.to_core()


async def delete(
    cert_id: str,
    caller: AccountIdentity,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> None:
    """
    Delete a certificate. Vouchers already issued with it are unaffected.
    """
    log = log.bind(cert_id=cert_id, caller=str(caller))

    certificate = await read_by_id(cert_id=cert_id, conn=conn, log=log)
    log = log.bind(group_id=certificate.group_id)

    await groups_service.read_by_id(
        group_id=certificate.group_id, conn=conn, log=log, lock=True
    )

    await authorization.authorize(
        identity=caller,
        group_id=certificate.group_id,
        minimum=Role.ASSIGNER,
        conn=conn,
        log=log,
    )

    await conn.delete(certificate)
    await conn.flush()

    await log.ainfo("certificate.deleted")
