"""
FastAPI app
"""

from importlib.metadata import version

from fastapi import FastAPI

from .certificates import certificate_app
from .dependencies import DATABASE_MANAGER, SETTINGS, get_signer, logger
from .errors import add_exception_handlers
from .groups import group_app
from .roles import role_app
from .serials import serial_app
from .setup import example_setup
from .vouchers import voucher_app

settings = SETTINGS()


async def lifespan(app: FastAPI):
    app.settings = settings

    # Fail at startup rather than on the first voucher request.
    get_signer()

    if settings.create_example_org:
        await DATABASE_MANAGER.create_all()

        async with DATABASE_MANAGER.session() as session:
            async with session.begin():
                await example_setup(settings=settings, conn=session, log=logger())

    yield


app = FastAPI(
    lifespan=lifespan,
    title="OVGS API",
    summary=(
        "Ownership voucher service: group-scoped custody of device serials and "
        "domain certificates, and issuance of RFC 8366 ownership vouchers."
    ),
    version=version("ovgs"),
)

app = add_exception_handlers(app)

app.include_router(group_app, prefix="/groups")
app.include_router(role_app, prefix="/roles")
app.include_router(serial_app, prefix="/serials")
app.include_router(certificate_app, prefix="/certificates")
app.include_router(voucher_app, prefix="/vouchers")
