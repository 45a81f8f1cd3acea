"""
Meta functionality for the database.
"""

from .account import Account
from .certificate import DomainCertificate
from .group import Group, GroupSerial
from .role import RoleGrant
from .serial import SerialRecord

ALL_TABLES = (
    Account,
    DomainCertificate,
    Group,
    GroupSerial,
    RoleGrant,
    SerialRecord,
)
