"""
Entity Model Module

Clubs, members and investment obligations. Amounts are unsigned 64-bit
integers in the smallest accounting unit; timestamps are milliseconds
supplied by the caller's trusted clock.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet

from .errors import InvalidStatusTransition


class Gender(Enum):
    """Member gender. Closed two-valued tag"""
    MALE = "male"
    FEMALE = "female"


class InvestmentStatus(Enum):
    """Lifecycle states of an investment obligation"""
    PENDING = "pending"    # Scheduled, awaiting payment
    PAID = "paid"          # Settled, terminal
    OVERDUE = "overdue"    # Past due, still payable


ALLOWED_TRANSITIONS: Dict[InvestmentStatus, FrozenSet[InvestmentStatus]] = {
    InvestmentStatus.PENDING: frozenset({InvestmentStatus.PAID, InvestmentStatus.OVERDUE}),
    InvestmentStatus.OVERDUE: frozenset({InvestmentStatus.PAID}),
    InvestmentStatus.PAID: frozenset(),
}

PAYABLE_STATUSES: FrozenSet[InvestmentStatus] = frozenset({
    InvestmentStatus.PENDING,
    InvestmentStatus.OVERDUE,
})


def transition(current: InvestmentStatus, target: InvestmentStatus) -> InvestmentStatus:
    """
    Validate a status change against ALLOWED_TRANSITIONS

    Returns:
        The target status

    Raises:
        InvalidStatusTransition: if the move is not listed
    """
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransition(current, target)
    return target


@dataclass
class Member:
    """Club participant whose share count scales every obligation"""
    id: str
    club_id: str
    name: str
    gender: Gender
    contact: str
    shares: int
    joined_at: int
    paid: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            'id': self.id,
            'club_id': self.club_id,
            'name': self.name,
            'gender': self.gender.value,
            'contact': self.contact,
            'shares': self.shares,
            'joined_at': self.joined_at,
            'paid': self.paid,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Member':
        """Create Member from dictionary"""
        data = dict(data)
        if isinstance(data.get('gender'), str):
            data['gender'] = Gender(data['gender'])
        return cls(**data)


@dataclass
class Investment:
    """
    Scheduled payment obligation for a member

    The status field is only ever changed through transition_to(), which
    enforces ALLOWED_TRANSITIONS.
    """
    member_id: str
    amount_payable: int
    due_at: int
    status: InvestmentStatus = InvestmentStatus.PENDING

    @property
    def is_payable(self) -> bool:
        """Check if obligation can still be settled"""
        return self.status in PAYABLE_STATUSES

    def transition_to(self, target: InvestmentStatus) -> None:
        """Move to target status, rejecting transitions not allowed"""
        self.status = transition(self.status, target)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            'member_id': self.member_id,
            'amount_payable': self.amount_payable,
            'due_at': self.due_at,
            'status': self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Investment':
        """Create Investment from dictionary"""
        data = dict(data)
        if isinstance(data.get('status'), str):
            data['status'] = InvestmentStatus(data['status'])
        return cls(**data)


@dataclass
class Club:
    """
    Cooperative investment club with pooled treasury

    members and investments are keyed by participant identity. The balance
    only grows through settlement and only drops, to zero, through an
    authorized withdrawal.
    """
    id: str
    name: str
    club_type: str
    rules: str
    description: str
    founded_at: int
    status: bool
    members: Dict[str, Member] = field(default_factory=dict)
    investments: Dict[str, Investment] = field(default_factory=dict)
    balance: int = 0
    # Single-writer boundary for this club, never persisted
    lock: Any = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    def outstanding_investments(self) -> int:
        return len(self.investments)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            'id': self.id,
            'name': self.name,
            'club_type': self.club_type,
            'rules': self.rules,
            'description': self.description,
            'founded_at': self.founded_at,
            'status': self.status,
            'members': {participant: member.to_dict() for participant, member in self.members.items()},
            'investments': {payer: inv.to_dict() for payer, inv in self.investments.items()},
            'balance': self.balance,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Club':
        """Create Club from dictionary"""
        data = dict(data)
        data['members'] = {
            participant: Member.from_dict(member)
            for participant, member in data.get('members', {}).items()
        }
        data['investments'] = {
            payer: Investment.from_dict(inv)
            for payer, inv in data.get('investments', {}).items()
        }
        return cls(**data)
