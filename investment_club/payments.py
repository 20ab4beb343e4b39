"""
Payment Processing Module

Settles a payment against an investment obligation. Settlement is open to
any caller holding the obligation and the exact funds; no capability token
is involved.
"""

from typing import Optional

from .amounts import checked_add, require_u64
from .audit import AuditTrail, AuditEventType
from .errors import AlreadySettled, AmountMismatch, ObligationNotFound, PaymentWindowClosed
from .logging_config import get_logger, log_action
from .models import Club, Investment, InvestmentStatus, Member
from .registry import ClubRegistry

logger = get_logger("investment_club.payments")


class PaymentProcessor:
    """Validates and settles payments against obligations"""

    def __init__(self, registry: ClubRegistry, audit_trail: Optional[AuditTrail] = None):
        self.registry = registry
        self.audit_trail = audit_trail

    def validate_payment(self, investment: Investment, payment_amount: int, now: int) -> None:
        """
        Check a payment against an obligation without changing anything

        Checks run in a fixed order and the first failure is raised.

        Raises:
            AlreadySettled: obligation is not pending or overdue
            PaymentWindowClosed: now is before the due time
            AmountMismatch: payment differs from the amount payable
        """
        if not investment.is_payable:
            raise AlreadySettled(f"Obligation is already {investment.status.value}")

        if now < investment.due_at:
            raise PaymentWindowClosed(
                f"Obligation is due at {investment.due_at}, payment attempted at {now}"
            )

        if payment_amount != investment.amount_payable:
            raise AmountMismatch(
                f"Payment of {payment_amount} does not match amount payable "
                f"{investment.amount_payable}"
            )

    def pay_investment(
        self,
        club: Club,
        investment: Investment,
        member: Member,
        payment_amount: int,
        now: int,
        payer: str
    ) -> None:
        """
        Settle an obligation with an exact payment

        On success the obligation keyed by payer is removed from the club,
        the payment joins the club balance and the member is marked paid,
        both on the given object and on every club.members entry for the
        same member id. The removed obligation is moved to PAID but is not
        kept anywhere in club state.

        Args:
            club: Club that holds the obligation
            investment: Obligation being settled, the one stored under payer
            member: Member the obligation belongs to
            payment_amount: Funds supplied by the payer
            now: Current time in milliseconds
            payer: Identity of the caller, the key of the obligation

        Raises:
            AlreadySettled, PaymentWindowClosed, AmountMismatch: see validate_payment
            ObligationNotFound: club holds no obligation for payer, the one it
                holds is not investment, or investment belongs to another member
            ArithmeticOverflow: the balance would leave the 64-bit range
        """
        require_u64("payment_amount", payment_amount)
        require_u64("now", now)

        with self.registry.transaction(club, member=member, investment=investment):
            self.validate_payment(investment, payment_amount, now)

            if club.investments.get(payer) is not investment:
                raise ObligationNotFound(
                    f"Obligation presented by {payer} is not outstanding in club {club.id}"
                )
            if investment.member_id != member.id:
                raise ObligationNotFound(
                    f"Obligation belongs to member {investment.member_id}, not {member.id}"
                )
            new_balance = checked_add(club.balance, payment_amount)

            del club.investments[payer]
            club.balance = new_balance
            member.paid = True
            for linked in club.members.values():
                if linked.id == member.id:
                    linked.paid = True
            investment.transition_to(InvestmentStatus.PAID)

            if self.audit_trail is not None:
                self.audit_trail.log_event(
                    event_type=AuditEventType.INVESTMENT_PAID,
                    entity_type="investment",
                    entity_id=f"{club.id}:{payer}",
                    occurred_at=now,
                    metadata={
                        "member_id": member.id,
                        "amount": payment_amount,
                        "balance": club.balance,
                    },
                    actor=payer
                )

        log_action(logger, "info", f"Payment of {payment_amount} settled",
                   user_id=payer, action="pay_investment", resource=club.id,
                   extra={"member_id": member.id, "balance": club.balance})
