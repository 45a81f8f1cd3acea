"""
Domain certificate management.
"""

from fastapi import APIRouter

from ovgs.api.dependencies import (
    CallerDependency,
    DatabaseDependency,
    LoggerDependency,
)
from ovgs.core.models import (
    CreateDomainCertRequest,
    CreateDomainCertResponse,
    GetDomainCertResponse,
)
from ovgs.service import certificates as certificates_service

certificate_app = APIRouter(tags=["Domain Certificates"])


@certificate_app.put(
    "",
    summary="Create a domain certificate",
    responses={
        200: {"description": "Certificate stored."},
        400: {"description": "Expiry time in the past or certificate invalid."},
        403: {"description": "No ASSIGNER access to the group."},
        404: {"description": "Group not found."},
        409: {"description": "Certificate already exists in the group."},
    },
)
async def create_domain_cert(
    content: CreateDomainCertRequest,
    caller: CallerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> CreateDomainCertResponse:
    certificate = await certificates_service.create(
        group_id=content.group_id,
        certificate_der=content.certificate_der,
        revocation_checks=content.revocation_checks,
        expiry_time=content.expiry_time,
        caller=caller,
        conn=conn,
        log=log,
    )

    return CreateDomainCertResponse(cert_id=certificate.cert_id)


@certificate_app.get(
    "/{cert_id}",
    summary="Get a domain certificate",
    responses={
        200: {"description": "Certificate details."},
        403: {"description": "No access to the certificate's group."},
        404: {"description": "Certificate not found."},
    },
)
async def get_domain_cert(
    cert_id: str,
    caller: CallerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GetDomainCertResponse:
    certificate = await certificates_service.read(
        cert_id=cert_id, caller=caller, conn=conn, log=log
    )

    return GetDomainCertResponse(**certificate.model_dump())


@certificate_app.delete(
    "/{cert_id}",
    summary="Delete a domain certificate",
    responses={
        200: {"description": "Certificate deleted."},
        403: {"description": "No ASSIGNER access to the certificate's group."},
        404: {"description": "Certificate not found."},
    },
)
async def delete_domain_cert(
    cert_id: str,
    caller: CallerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> None:
    await certificates_service.delete(
        cert_id=cert_id, caller=caller, conn=conn, log=log
    )
