"""
Investment Scheduler Module

Generates payment obligations for members and flags overdue ones. Both
operations are privileged and require the club's capability token.
"""

from typing import Optional

from .amounts import checked_add, checked_mul, require_u64
from .audit import AuditTrail, AuditEventType
from .capability import CapabilityToken, authorize
from .errors import NotYetDue, ObligationNotFound
from .logging_config import get_logger, log_action
from .models import Club, Investment, InvestmentStatus, Member
from .registry import ClubRegistry

logger = get_logger("investment_club.scheduler")


class InvestmentScheduler:
    """Computes and records investment obligations"""

    def __init__(self, registry: ClubRegistry, audit_trail: Optional[AuditTrail] = None):
        self.registry = registry
        self.audit_trail = audit_trail

    def generate_investment(
        self,
        token: CapabilityToken,
        club: Club,
        member: Member,
        payer: str,
        base_amount: int,
        status: InvestmentStatus,
        offset: int,
        now: int
    ) -> Investment:
        """
        Record a new obligation for member, keyed by payer

        amount_payable is base_amount scaled by the member's shares and the
        obligation falls due offset milliseconds after now. An existing
        obligation for the same payer is replaced.

        Args:
            token: Capability token of the club
            club: Club to record the obligation in
            member: Member the obligation belongs to
            payer: Identity expected to settle the obligation
            base_amount: Amount per share
            status: Initial status of the obligation
            offset: Milliseconds until the obligation is due
            now: Current time in milliseconds

        Returns:
            The stored Investment

        Raises:
            AccessDenied: token is bound to another club
            ArithmeticOverflow: amount or due time leaves the 64-bit range
            ValueError: an input or the member's shares is not a u64
        """
        authorize(token, club)
        require_u64("base_amount", base_amount)
        require_u64("shares", member.shares)
        require_u64("offset", offset)
        require_u64("now", now)

        amount_payable = checked_mul(base_amount, member.shares)
        due_at = checked_add(now, offset)

        investment = Investment(
            member_id=member.id,
            amount_payable=amount_payable,
            due_at=due_at,
            status=status,
        )

        with self.registry.transaction(club):
            replaced = club.investments.get(payer)
            club.investments[payer] = investment
            self._audit(AuditEventType.INVESTMENT_GENERATED, club, payer, now, {
                "member_id": member.id,
                "amount_payable": amount_payable,
                "due_at": due_at,
                "status": status,
                "replaced": replaced is not None,
            })

        if replaced is not None:
            log_action(logger, "warning", "Outstanding obligation replaced",
                       user_id=payer, action="generate_investment", resource=club.id,
                       extra={"previous_amount": replaced.amount_payable,
                              "previous_status": replaced.status.value})
        log_action(logger, "info", f"Investment of {amount_payable} due at {due_at}",
                   user_id=payer, action="generate_investment", resource=club.id,
                   extra={"member_id": member.id})

        return investment

    def mark_overdue(
        self,
        token: CapabilityToken,
        club: Club,
        payer: str,
        now: int
    ) -> Investment:
        """
        Flag the payer's pending obligation as overdue

        The stored obligation is updated in place, so every reference to it,
        including the one returned by generate_investment, sees the new
        status.

        Raises:
            AccessDenied: token is bound to another club
            ObligationNotFound: payer has no obligation
            NotYetDue: now is not past the due time
            InvalidStatusTransition: obligation is not pending
        """
        authorize(token, club)

        with self.registry.transaction(club):
            investment = club.investments.get(payer)
            if investment is None:
                raise ObligationNotFound(f"No obligation for {payer} in club {club.id}")
            if now <= investment.due_at:
                raise NotYetDue(f"Obligation for {payer} is due at {investment.due_at}")
            investment.transition_to(InvestmentStatus.OVERDUE)
            self._audit(AuditEventType.INVESTMENT_MARKED_OVERDUE, club, payer, now, {
                "member_id": investment.member_id,
                "due_at": investment.due_at,
            })

        log_action(logger, "info", "Investment marked overdue", user_id=payer,
                   action="mark_overdue", resource=club.id)

        return investment

    def _audit(self, event_type, club, payer, now, metadata) -> None:
        if self.audit_trail is not None:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type="investment",
                entity_id=f"{club.id}:{payer}",
                occurred_at=now,
                metadata=metadata,
                actor=payer
            )
