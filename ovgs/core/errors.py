"""
The error taxonomy shared by every operation. Service modules subclass these so
that callers can catch either the specific failure or its canonical code.
"""


class OVGSError(Exception):
    code: str = "UNKNOWN"


class NotFoundError(OVGSError):
    """
    The referenced group, certificate, serial, or role grant does not exist.
    """

    code = "NOT_FOUND"


class FailedPreconditionError(OVGSError):
    """
    A dependency of the operation is missing or in an invalid relationship.
    """

    code = "FAILED_PRECONDITION"


class AlreadyExistsError(OVGSError):
    code = "ALREADY_EXISTS"


class PermissionDeniedError(OVGSError):
    code = "PERMISSION_DENIED"


class InvalidArgumentError(OVGSError):
    code = "INVALID_ARGUMENT"
