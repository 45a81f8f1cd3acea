"""
Core group data models.
"""

from pydantic import BaseModel

from ovgs.core.roles import Role
from ovgs.core.user import AccountType


class GroupUserData(BaseModel):
    username: str
    user_type: AccountType
    org_id: str
    user_role: Role


class GroupData(BaseModel):
    group_id: str
    parent_id: str | None
    org_id: str
    description: str
    cert_ids: list[str]
    serial_numbers: list[str]
    # Only grants made directly on this group, not inherited ones.
    users: list[GroupUserData]
    child_group_ids: list[str]
