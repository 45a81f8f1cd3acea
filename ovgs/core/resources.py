"""
Core data models for serials and domain certificates.
"""

from datetime import datetime

from pydantic import BaseModel


class SerialData(BaseModel):
    serial_number: str
    public_key_der: bytes | None
    mac_addr: str | None
    group_ids: list[str]


class DomainCertData(BaseModel):
    cert_id: str
    group_id: str
    certificate_der: bytes
    revocation_checks: bool
    expiry_time: datetime


class VoucherData(BaseModel):
    voucher_cms: bytes
    public_key_der: bytes
