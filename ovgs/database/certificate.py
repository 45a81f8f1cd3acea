"""
Domain certificates, stored under a group and pinned into vouchers.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from ovgs.core.clock import as_utc, utc_now
from ovgs.core.resources import DomainCertData
from ovgs.core.uuid import new_identifier


class DomainCertificate(SQLModel, table=True):
    __tablename__ = "domain_certificate"
    __table_args__ = (UniqueConstraint("group_id", "fingerprint"),)

    cert_id: str = Field(primary_key=True, default_factory=new_identifier)
    group_id: str = Field(foreign_key="group.group_id", index=True)

    certificate_der: bytes
    fingerprint: str
    revocation_checks: bool = False
    expiry_time: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utc_now
    )

    def is_expired(self, now: datetime) -> bool:
        return as_utc(self.expiry_time) <= now

    def to_core(self) -> DomainCertData:
        return DomainCertData(
            cert_id=self.cert_id,
            group_id=self.group_id,
            certificate_der=self.certificate_der,
            revocation_checks=self.revocation_checks,
            expiry_time=as_utc(self.expiry_time),
        )
