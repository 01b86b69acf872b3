"""Member roles."""

from enum import Enum


class MemberRole(str, Enum):
    """Role of a member collective inside another collective."""

    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    ACCOUNTANT = "ACCOUNTANT"
    BACKER = "BACKER"
    FOLLOWER = "FOLLOWER"
    CONTRIBUTOR = "CONTRIBUTOR"
    ATTENDEE = "ATTENDEE"
    HOST = "HOST"
    CONNECTED_COLLECTIVE = "CONNECTED_COLLECTIVE"


# Roles counted against the core contributors limit and allowed in invitations
CORE_CONTRIBUTOR_ROLES = (MemberRole.ADMIN, MemberRole.MEMBER, MemberRole.ACCOUNTANT)
INVITABLE_ROLES = CORE_CONTRIBUTOR_ROLES
