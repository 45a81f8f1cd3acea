"""
Roles and the privilege ordering between them.
"""

import enum


class Role(str, enum.Enum):
    """
    The role a user holds on a group. SUPPORT is internal to the service and
    cannot be handed out through the public API.
    """

    SUPPORT = "SUPPORT"
    ADMIN = "ADMIN"
    ASSIGNER = "ASSIGNER"
    REQUESTOR = "REQUESTOR"

    @property
    def rank(self) -> int:
        """
        Access level used when checking a role against a required minimum.
        SUPPORT may read everything but change nothing.
        """
        return _RANKS[self]

    def at_least(self, minimum: "Role") -> bool:
        return self.rank >= minimum.rank


_RANKS = {
    Role.REQUESTOR: 1,
    Role.SUPPORT: 1,
    Role.ASSIGNER: 2,
    Role.ADMIN: 3,
}

# Caller role -> roles it may hand to others.
ASSIGNABLE_ROLES: dict[Role, frozenset[Role]] = {
    Role.ADMIN: frozenset({Role.ADMIN, Role.ASSIGNER, Role.REQUESTOR}),
    Role.ASSIGNER: frozenset({Role.ASSIGNER, Role.REQUESTOR}),
    Role.REQUESTOR: frozenset(),
    Role.SUPPORT: frozenset(),
}


def compare(left: Role, right: Role) -> int:
    """
    Three-way comparison of two roles by privilege: negative if `left` is
    weaker, zero if equal, positive if stronger. SUPPORT sorts below
    REQUESTOR so that any real grant wins over it.
    """
    return _order(left) - _order(right)


def _order(role: Role) -> int:
    return 0 if role == Role.SUPPORT else role.rank


def highest(roles) -> Role | None:
    """
    The most privileged role in `roles`, or None for an empty collection.
    """
    best = None
    for role in roles:
        if best is None or compare(role, best) > 0:
            best = role
    return best


def can_assign(caller_role: Role | None, target_role: Role) -> bool:
    """
    Whether a caller holding `caller_role` may grant `target_role` to someone
    else. A caller with no role may assign nothing.
    """
    if caller_role is None:
        return False
    return target_role in ASSIGNABLE_ROLES[caller_role]
