"""
Mirror of the accounts held by the external identity system.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from ovgs.core.clock import utc_now
from ovgs.core.user import AccountType


class Account(SQLModel, table=True):
    username: str = Field(primary_key=True)
    account_type: AccountType = Field(primary_key=True)
    org_id: str = Field(primary_key=True)

    # Internal support staff get read access to every org.
    is_support: bool = False

    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utc_now
    )
