"""
Role grants: which role an account holds directly on a group.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from ovgs.core.clock import utc_now
from ovgs.core.group import GroupUserData
from ovgs.core.roles import Role
from ovgs.core.user import AccountIdentity, AccountType


class RoleGrant(SQLModel, table=True):
    __tablename__ = "role_grant"

    # The key is the identity plus the group, so an account holds at most one
    # role on any given group.
    username: str = Field(primary_key=True)
    account_type: AccountType = Field(primary_key=True)
    org_id: str = Field(primary_key=True)
    group_id: str = Field(
        primary_key=True, foreign_key="group.group_id", ondelete="CASCADE"
    )

    role: Role
    granted_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utc_now
    )

    @classmethod
    def for_identity(cls, identity: AccountIdentity, group_id: str, role: Role):
        return cls(
            username=identity.username,
            account_type=identity.account_type,
            org_id=identity.org_id,
            group_id=group_id,
            role=role,
        )

    def to_core(self) -> GroupUserData:
        return GroupUserData(
            username=self.username,
            user_type=self.account_type,
            org_id=self.org_id,
            user_role=self.role,
        )
