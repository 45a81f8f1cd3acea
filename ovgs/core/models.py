"""
Pydantic models for request/responses to APIs. These mirror the messages of the
OwnershipVoucherService definition; bytes travel as base64.
"""

import base64
from datetime import datetime
from typing import Annotated

from pydantic import AwareDatetime, BaseModel, BeforeValidator, PlainSerializer

from ovgs.core.group import GroupUserData
from ovgs.core.roles import Role
from ovgs.core.user import AccountType


def _decode_base64(value):
    if isinstance(value, str):
        return base64.b64decode(value, validate=True)
    return value


# Raw bytes inside the service, base64 strings on the wire.
Base64DER = Annotated[
    bytes,
    BeforeValidator(_decode_base64),
    PlainSerializer(
        lambda value: base64.b64encode(value).decode("ascii"),
        return_type=str,
        when_used="json-unless-none",
    ),
]


class CreateGroupRequest(BaseModel):
    # Parent group ID, either an org ID or a group ID.
    parent: str
    description: str = ""


class CreateGroupResponse(BaseModel):
    group_id: str


class GetGroupResponse(BaseModel):
    group_id: str
    cert_ids: list[str]
    serial_numbers: list[str]
    users: list[GroupUserData]
    child_group_ids: list[str]
    description: str


class AddUserRoleRequest(BaseModel):
    username: str
    user_type: AccountType = AccountType.USER
    org_id: str
    group_id: str
    user_role: Role


class RemoveUserRoleRequest(BaseModel):
    username: str
    user_type: AccountType = AccountType.USER
    org_id: str
    group_id: str


class GetUserRoleResponse(BaseModel):
    groups: dict[str, Role]


class CreateDomainCertRequest(BaseModel):
    group_id: str
    certificate_der: Base64DER
    revocation_checks: bool = False
    expiry_time: AwareDatetime


class CreateDomainCertResponse(BaseModel):
    cert_id: str


class GetDomainCertResponse(BaseModel):
    cert_id: str
    group_id: str
    certificate_der: Base64DER
    revocation_checks: bool
    expiry_time: datetime


class AddSerialRequest(BaseModel):
    serial_number: str
    group_id: str


class RemoveSerialRequest(BaseModel):
    serial_number: str
    group_id: str


class GetSerialResponse(BaseModel):
    public_key_der: Base64DER | None
    group_ids: list[str]
    mac_addr: str | None


class GetOwnershipVoucherRequest(BaseModel):
    serial_number: str
    cert_id: str
    lifetime: AwareDatetime
    # The device vendor's IANA Enterprise Number.
    ien: str


class GetOwnershipVoucherResponse(BaseModel):
    voucher_cms: Base64DER
    public_key_der: Base64DER


class ErrorResponse(BaseModel):
    code: str
    detail: str
