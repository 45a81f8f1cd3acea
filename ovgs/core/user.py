"""
The identity of an account, as handed to us by the external identity system.
"""

import enum

from pydantic import BaseModel


class AccountType(str, enum.Enum):
    USER = "USER"
    SERVICE_ACCOUNT = "SERVICE_ACCOUNT"


class AccountIdentity(BaseModel):
    # Usernames are unique within an org and account type.
    username: str
    account_type: AccountType = AccountType.USER
    org_id: str

    def __str__(self) -> str:
        return f"{self.org_id}/{self.account_type.value}/{self.username}"
