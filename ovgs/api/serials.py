"""
Serial number custody.
"""

from fastapi import APIRouter

from ovgs.api.dependencies import (
    CallerDependency,
    DatabaseDependency,
    LoggerDependency,
)
from ovgs.core.models import AddSerialRequest, GetSerialResponse, RemoveSerialRequest
from ovgs.service import serials as serials_service

serial_app = APIRouter(tags=["Serial Management"])


@serial_app.put(
    "",
    summary="Assign a serial to a group",
    responses={
        200: {"description": "Serial assigned."},
        403: {"description": "No ASSIGNER access to the group."},
        404: {"description": "Serial or group not found."},
        409: {"description": "Serial already in the group."},
    },
)
async def add_serial(
    content: AddSerialRequest,
    caller: CallerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> None:
    await serials_service.add(
        serial_number=content.serial_number,
        group_id=content.group_id,
        caller=caller,
        conn=conn,
        log=log,
    )


@serial_app.post(
    "/remove",
    summary="Remove a serial from a group",
    responses={
        200: {"description": "Serial removed."},
        403: {"description": "No ASSIGNER access to the group."},
        404: {"description": "Serial or group not found, or serial not in group."},
    },
)
async def remove_serial(
    content: RemoveSerialRequest,
    caller: CallerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> None:
    await serials_service.remove(
        serial_number=content.serial_number,
        group_id=content.group_id,
        caller=caller,
        conn=conn,
        log=log,
    )


@serial_app.get(
    "/{serial_number}",
    summary="Get a serial",
    description=(
        "Returns the device public key, MAC address and the groups holding the "
        "serial that the caller can see."
    ),
    responses={
        200: {"description": "Serial details."},
        403: {"description": "No access to any group holding the serial."},
        404: {"description": "Serial not found."},
    },
)
async def get_serial(
    serial_number: str,
    caller: CallerDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GetSerialResponse:
    serial = await serials_service.read(
        serial_number=serial_number, caller=caller, conn=conn, log=log
    )

    return GetSerialResponse(
        public_key_der=serial.public_key_der,
        group_ids=serial.group_ids,
        mac_addr=serial.mac_addr,
    )
