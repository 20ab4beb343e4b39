"""
Treasury Ledger Module

Read and withdraw operations over a club's pooled balance, plus read-only
status queries. Withdrawal is privileged and always takes the full balance.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .amounts import require_u64
from .audit import AuditTrail, AuditEventType
from .capability import CapabilityToken, authorize
from .logging_config import get_logger, log_action
from .models import Club, Investment, InvestmentStatus, Member
from .registry import ClubRegistry

logger = get_logger("investment_club.treasury")


@dataclass(frozen=True)
class Funds:
    """Value taken out of a club treasury"""
    club_id: str
    amount: int

    def is_zero(self) -> bool:
        return self.amount == 0


class TreasuryLedger:
    """Capability-gated access to a club's pooled balance"""

    def __init__(self, registry: ClubRegistry, audit_trail: Optional[AuditTrail] = None):
        self.registry = registry
        self.audit_trail = audit_trail

    def withdraw_funds(self, token: CapabilityToken, club: Club, now: int) -> Funds:
        """
        Withdraw the entire club balance

        Args:
            token: Capability token of the club
            club: Club to withdraw from
            now: Operation time in milliseconds, recorded in the audit trail

        Returns:
            Funds carrying the whole prior balance; the club balance is zero

        Raises:
            AccessDenied: token is bound to another club
        """
        authorize(token, club)
        require_u64("now", now)

        with self.registry.transaction(club):
            funds = Funds(club_id=club.id, amount=club.balance)
            club.balance = 0
            if self.audit_trail is not None:
                self.audit_trail.log_event(
                    event_type=AuditEventType.FUNDS_WITHDRAWN,
                    entity_type="club",
                    entity_id=club.id,
                    occurred_at=now,
                    metadata={"amount": funds.amount}
                )

        log_action(logger, "info", f"Withdrew {funds.amount} from treasury",
                   action="withdraw_funds", resource=club.id)

        return funds

    def get_balance(self, club: Club) -> int:
        """Current treasury balance, no authorization required"""
        return club.balance


def check_member_and_investment_status(member: Member, investment: Investment) -> Tuple[bool, InvestmentStatus]:
    """Report the member's paid flag and the obligation status"""
    return member.paid, investment.status
