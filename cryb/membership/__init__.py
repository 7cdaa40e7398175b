"""House membership package."""

from cryb.membership.manager import (
    INVITE_CODE_ALPHABET,
    HouseMembershipManager,
    MembershipStateError,
    generate_invite_code,
)

__all__ = [
    "INVITE_CODE_ALPHABET",
    "HouseMembershipManager",
    "MembershipStateError",
    "generate_invite_code",
]
