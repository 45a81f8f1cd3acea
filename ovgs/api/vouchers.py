"""
Ownership voucher issuance.
"""

from fastapi import APIRouter

from ovgs.api.dependencies import (
    CallerDependency,
    DatabaseDependency,
    LoggerDependency,
    SignerDependency,
)
from ovgs.core.models import GetOwnershipVoucherRequest, GetOwnershipVoucherResponse
from ovgs.service import voucher as voucher_service

voucher_app = APIRouter(tags=["Ownership Vouchers"])


@voucher_app.post(
    "",
    summary="Issue an ownership voucher",
    description=(
        "Issues an RFC 8366 ownership voucher, signed as CMS, pinning the given "
        "domain certificate for the serial. The certificate's group must hold "
        "the serial. Also returns the device's public key."
    ),
    responses={
        200: {"description": "Voucher issued."},
        400: {
            "description": "Lifetime in the past, IEN mismatch, or serial and "
            "certificate not in the same group."
        },
        403: {"description": "No access to the certificate's group."},
        404: {"description": "Serial, certificate or device key not found."},
    },
)
async def get_ownership_voucher(
    content: GetOwnershipVoucherRequest,
    caller: CallerDependency,
    signer: SignerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GetOwnershipVoucherResponse:
    voucher = await voucher_service.issue(
        serial_number=content.serial_number,
        cert_id=content.cert_id,
        lifetime=content.lifetime,
        ien=content.ien,
        caller=caller,
        signer=signer,
        conn=conn,
        log=log,
    )

    return GetOwnershipVoucherResponse(
        voucher_cms=voucher.voucher_cms, public_key_der=voucher.public_key_der
    )
