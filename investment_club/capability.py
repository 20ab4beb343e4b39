"""
Capability Token Module

A capability token is the single admin credential of a club. It is minted
once, together with its club, and authorizes privileged operations on that
club only. Tokens are immutable and cannot be constructed outside this
module.
"""

import uuid
from dataclasses import dataclass, field

from .errors import AccessDenied
from .logging_config import get_logger, log_action
from .models import Club

logger = get_logger("investment_club.capability")

_MINT_KEY = object()


@dataclass(frozen=True)
class CapabilityToken:
    """Unforgeable credential bound to exactly one club"""
    id: str
    club_id: str
    _mint_key: object = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self._mint_key is not _MINT_KEY:
            raise TypeError("CapabilityToken can only be minted together with its club")

    def is_bound_to(self, club: Club) -> bool:
        """Check if this token authorizes the given club"""
        return self.club_id == club.id


def mint_capability(club_id: str) -> CapabilityToken:
    """Mint a fresh token bound to club_id"""
    return CapabilityToken(id=str(uuid.uuid4()), club_id=club_id, _mint_key=_MINT_KEY)


def authorize(token: CapabilityToken, club: Club) -> None:
    """
    Check that token is bound to club

    Privileged operations call this before touching any state.

    Raises:
        AccessDenied: if the token belongs to another club
    """
    if not isinstance(token, CapabilityToken) or not token.is_bound_to(club):
        log_action(logger, "warning", "Capability rejected",
                   action="authorize", resource=club.id)
        raise AccessDenied(f"Token is not authorized for club {club.id}")
