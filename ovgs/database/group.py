"""
Group ORM. Groups form one tree per org, linked by identifier only.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from ovgs.core.clock import utc_now
from ovgs.core.group import GroupData, GroupUserData
from ovgs.core.uuid import new_identifier


class GroupSerial(SQLModel, table=True):
    """
    A record of a serial's membership in a group. Neither side cascades: a
    group holding serials cannot be deleted, and a serial outlives its groups.
    """

    __tablename__ = "group_serial"

    group_id: str = Field(primary_key=True, foreign_key="group.group_id")
    serial_number: str = Field(
        primary_key=True, foreign_key="serial_record.serial_number"
    )


class Group(SQLModel, table=True):
    group_id: str = Field(primary_key=True, default_factory=new_identifier)

    # None only for org roots, whose group_id is the org_id.
    parent_id: str | None = Field(
        default=None, foreign_key="group.group_id", index=True
    )
    org_id: str = Field(index=True)
    description: str = Field(default="")
    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utc_now
    )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def to_core(
        self,
        cert_ids: list[str],
        serial_numbers: list[str],
        users: list[GroupUserData],
        child_group_ids: list[str],
    ) -> GroupData:
        """
        Convert this Group ORM object to a GroupData core object. Membership is
        looked up separately by the service layer.
        """
        return GroupData(
            group_id=self.group_id,
            parent_id=self.parent_id,
            org_id=self.org_id,
            description=self.description,
            cert_ids=sorted(cert_ids),
            serial_numbers=sorted(serial_numbers),
            users=users,
            child_group_ids=sorted(child_group_ids),
        )
