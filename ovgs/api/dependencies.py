"""
Dependencies used by the API.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from ovgs.config.settings import Settings
from ovgs.core.user import AccountIdentity, AccountType
from ovgs.core.voucher import VoucherSigner


@lru_cache
def SETTINGS():
    return Settings()


DATABASE_MANAGER = SETTINGS().async_manager()


async def get_async_session():
    async with DATABASE_MANAGER.session() as session:
        async with session.begin():
            yield session


def logger():
    return get_logger()


@lru_cache
def get_signer() -> VoucherSigner:
    settings = SETTINGS()

    if not (settings.voucher_certificate_filename and settings.voucher_key_filename):
        raise RuntimeError("Voucher signing certificate and key are not configured")

    with open(settings.voucher_certificate_filename, "rb") as handle:
        certificate = handle.read()

    with open(settings.voucher_key_filename, "rb") as handle:
        private_key = handle.read()

    return VoucherSigner(
        certificate=certificate,
        private_key=private_key,
        key_password=settings.voucher_key_password,
    )


async def get_caller(
    x_ovgs_username: Annotated[str | None, Header()] = None,
    x_ovgs_account_type: Annotated[AccountType, Header()] = AccountType.USER,
    x_ovgs_org_id: Annotated[str | None, Header()] = None,
) -> AccountIdentity:
    """
    The caller's identity, as established by the authentication layer in front
    of this service. It is trusted as given.
    """
    if not x_ovgs_username or not x_ovgs_org_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Caller identity headers are missing",
        )

    return AccountIdentity(
        username=x_ovgs_username,
        account_type=x_ovgs_account_type,
        org_id=x_ovgs_org_id,
    )


DatabaseDependency = Annotated[AsyncSession, Depends(get_async_session)]
LoggerDependency = Annotated[FilteringBoundLogger, Depends(logger)]
SignerDependency = Annotated[VoucherSigner, Depends(get_signer)]
CallerDependency = Annotated[AccountIdentity, Depends(get_caller)]
