"""
A simple CLI for running the server and provisioning orgs, accounts and serials.
"""

import asyncio
import os
import sys
import tempfile
from pathlib import Path

import uvicorn

USAGE = (
    "Supported commands are: ovgs run dev, ovgs run prod, ovgs setup, "
    "ovgs provision-org {org_id} {admin_username}, "
    "ovgs register-serial {org_id} {serial_number} {ien} [public_key.der] [mac]"
)


def run_server(**kwargs):
    for k, v in kwargs.items():
        os.environ[k] = v

    uvicorn.run("ovgs.api.app:app", host="0.0.0.0")


async def provision_org(org_id: str, admin: str):
    from structlog import get_logger

    from ovgs.config.settings import Settings
    from ovgs.core.user import AccountIdentity
    from ovgs.service import provision as provision_service

    manager = Settings().async_manager()
    await manager.create_all()

    async with manager.session() as conn:
        async with conn.begin():
            await provision_service.provision_org(
                org_id=org_id,
                admin=AccountIdentity(username=admin, org_id=org_id),
                conn=conn,
                log=get_logger(),
            )


async def register_serial(
    org_id: str,
    serial_number: str,
    ien: str,
    public_key_der: bytes | None,
    mac_addr: str | None,
):
    from structlog import get_logger

    from ovgs.config.settings import Settings
    from ovgs.service import provision as provision_service

    manager = Settings().async_manager()

    async with manager.session() as conn:
        async with conn.begin():
            await provision_service.register_serial(
                serial_number=serial_number,
                org_id=org_id,
                ien=ien,
                public_key_der=public_key_der,
                mac_addr=mac_addr,
                conn=conn,
                log=get_logger(),
            )


def main():
    try:
        command = sys.argv[1]
    except IndexError:
        print(USAGE)
        exit(1)

    if command == "run":
        try:
            mode = sys.argv[2]
        except IndexError:
            print(USAGE)
            exit(1)

        if mode == "dev":
            from testcontainers.postgres import PostgresContainer

            from ovgs.api.setup import initial_setup
            from ovgs.config.settings import Settings

            key_directory = Path(tempfile.mkdtemp(prefix="ovgs-"))

            with PostgresContainer() as container:
                print(
                    f"Container details: username={container.username}, password={container.password}, port={container.get_exposed_port(container.port)}"
                )

                environment = {
                    "OVGS_DATABASE_TYPE": "postgres",
                    "OVGS_DATABASE_USER": container.username,
                    "OVGS_DATABASE_PASSWORD": container.password,
                    "OVGS_DATABASE_PORT": str(
                        container.get_exposed_port(container.port)
                    ),
                    "OVGS_DATABASE_HOST": "localhost",
                    "OVGS_DATABASE_DB": container.dbname,
                    "OVGS_DATABASE_ECHO": "False",
                    "OVGS_CREATE_FILES": "True",
                    "OVGS_CREATE_EXAMPLE_ORG": "True",
                    "OVGS_VOUCHER_CERTIFICATE_FILENAME": str(
                        key_directory / "voucher.crt"
                    ),
                    "OVGS_VOUCHER_KEY_FILENAME": str(key_directory / "voucher.key"),
                }

                for k, v in environment.items():
                    os.environ[k] = v

                initial_setup(settings=Settings())
                run_server(**environment)

        if mode == "prod":
            from ovgs.api.setup import initial_setup
            from ovgs.config.settings import Settings

            initial_setup(settings=Settings())
            run_server()

        return

    if command == "setup":
        from ovgs.api.setup import initial_setup
        from ovgs.config.settings import Settings

        initial_setup(settings=Settings())

        print("Setup complete, please restart the container or application")
        exit(0)

    if command == "provision-org":
        try:
            org_id, admin = sys.argv[2], sys.argv[3]
        except IndexError:
            print(USAGE)
            exit(1)

        asyncio.run(provision_org(org_id=org_id, admin=admin))
        print(f"Provisioned {org_id} with ADMIN {admin}")
        exit(0)

    if command == "register-serial":
        try:
            org_id, serial_number, ien = sys.argv[2], sys.argv[3], sys.argv[4]
        except IndexError:
            print(USAGE)
            exit(1)

        public_key_der = None
        if len(sys.argv) > 5:
            with open(sys.argv[5], "rb") as handle:
                public_key_der = handle.read()

        mac_addr = sys.argv[6] if len(sys.argv) > 6 else None

        asyncio.run(
            register_serial(
                org_id=org_id,
                serial_number=serial_number,
                ien=ien,
                public_key_der=public_key_der,
                mac_addr=mac_addr,
            )
        )
        print(f"Registered {serial_number} in {org_id}")
        exit(0)

    print(USAGE)
    exit(1)
