"""
Serial number records, provisioned out-of-band by device registration.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from ovgs.core.clock import utc_now
from ovgs.core.resources import SerialData


class SerialRecord(SQLModel, table=True):
    __tablename__ = "serial_record"

    serial_number: str = Field(primary_key=True)
    org_id: str = Field(index=True)

    # IANA Enterprise Number of the device vendor, from the manufacturer record.
    ien: str
    public_key_der: bytes | None = None
    mac_addr: str | None = None

    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utc_now
    )

    def to_core(self, group_ids: list[str]) -> SerialData:
        return SerialData(
            serial_number=self.serial_number,
            public_key_der=self.public_key_der,
            mac_addr=self.mac_addr,
            group_ids=sorted(group_ids),
        )
