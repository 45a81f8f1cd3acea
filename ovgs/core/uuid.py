"""
Identifier creation. Required because uuid7 was not part of the python standard as of 3.12
"""

from uuid import UUID as UUID

from uuid_extensions import uuid7 as uuid7

__ALL__ = ["UUID", "uuid7", "new_identifier"]


def new_identifier() -> str:
    """
    A new, time-ordered identifier for groups and certificates. Org roots do
    not use these; their identifier is the org_id itself.
    """
    return str(uuid7())
