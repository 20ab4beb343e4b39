"""
Error Types Module

Every failure of a club operation raises a subclass of ClubError. Errors are
raised before any state is touched, so a failed call never leaves a club,
member or treasury balance partially updated.
"""


class ClubError(Exception):
    """Base class for investment club failures"""


class AccessDenied(ClubError):
    """Capability token is not bound to the target club"""


class AlreadySettled(ClubError):
    """Obligation is neither pending nor overdue"""


class PaymentWindowClosed(ClubError):
    """Payment attempted before the obligation is due"""


class AmountMismatch(ClubError):
    """Payment value differs from the amount payable"""


class ArithmeticOverflow(ClubError):
    """Checked arithmetic left the unsigned 64-bit range"""


class ObligationNotFound(ClubError):
    """No obligation is recorded for the payer"""


class NotYetDue(ClubError):
    """Obligation cannot be marked overdue before its due time"""


class InvalidStatusTransition(ClubError):
    """Investment status change outside the allowed transitions"""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move investment from {current.value} to {target.value}"
        )


class ClubNotFound(ClubError):
    """Club is not known to the registry"""
