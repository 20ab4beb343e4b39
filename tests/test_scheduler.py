"""
Test suite for the investment scheduler

Tests obligation generation arithmetic, capability checks, overwrite of
outstanding obligations and overdue marking.
"""

import pytest

from investment_club.amounts import U64_MAX
from investment_club.audit import AuditTrail, AuditEventType
from investment_club.errors import (
    AccessDenied, ArithmeticOverflow, InvalidStatusTransition, NotYetDue, ObligationNotFound
)
from investment_club.models import Gender, InvestmentStatus
from investment_club.registry import ClubRegistry
from investment_club.scheduler import InvestmentScheduler
from investment_club.storage import InMemoryStorage
from investment_club.treasury import check_member_and_investment_status

T0 = 1_700_000_000_000


class TestGenerateInvestment:
    """Test obligation generation"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)
        self.registry = ClubRegistry(self.storage, self.audit_trail)
        self.scheduler = InvestmentScheduler(self.registry, self.audit_trail)
        self.club, self.token = self.registry.create_club("Acme", "equity", "", "", True, T0)
        self.member = self.registry.add_member(self.club.id, "Alice", Gender.FEMALE, "", 3, T0,
                                               participant="alice")

    def generate(self, **overrides):
        args = dict(
            token=self.token,
            club=self.club,
            member=self.member,
            payer="alice",
            base_amount=100,
            status=InvestmentStatus.PENDING,
            offset=1_000,
            now=T0,
        )
        args.update(overrides)
        return self.scheduler.generate_investment(**args)

    def test_amount_scaled_by_shares(self):
        investment = self.generate()

        assert investment.amount_payable == 300
        assert investment.due_at == T0 + 1_000
        assert investment.status == InvestmentStatus.PENDING
        assert investment.member_id == self.member.id
        assert self.club.investments["alice"] is investment

    @pytest.mark.parametrize("base_amount,shares", [
        (0, 5),
        (1, 1),
        (7, 13),
        (U64_MAX, 1),
        (2 ** 32 - 1, 2 ** 32 + 1),
    ])
    def test_exact_product(self, base_amount, shares):
        self.member.shares = shares
        investment = self.generate(base_amount=base_amount)
        assert investment.amount_payable == base_amount * shares

    @pytest.mark.parametrize("base_amount,shares", [
        (U64_MAX, 2),
        (2 ** 32, 2 ** 32),
    ])
    def test_amount_overflow_stores_nothing(self, base_amount, shares):
        self.member.shares = shares

        with pytest.raises(ArithmeticOverflow):
            self.generate(base_amount=base_amount)

        assert self.club.investments == {}
        assert self.audit_trail.get_events_by_type(AuditEventType.INVESTMENT_GENERATED) == []

    def test_negative_shares_rejected(self):
        member = self.registry.add_member(self.club.id, "Mallory", Gender.FEMALE, "", -2, T0,
                                          participant="mallory")

        with pytest.raises(ValueError):
            self.generate(member=member, payer="mallory")

        assert self.club.investments == {}
        assert self.audit_trail.get_events_by_type(AuditEventType.INVESTMENT_GENERATED) == []

    def test_due_time_overflow_stores_nothing(self):
        with pytest.raises(ArithmeticOverflow):
            self.generate(now=U64_MAX - 10, offset=11)

        assert self.club.investments == {}

    def test_wrong_token_denied_without_mutation(self):
        _, other_token = self.registry.create_club("Other", "equity", "", "", True, T0)

        with pytest.raises(AccessDenied):
            self.generate(token=other_token)

        assert self.club.investments == {}

    def test_existing_obligation_is_overwritten(self):
        first = self.generate(base_amount=100)
        second = self.generate(base_amount=200, offset=5_000)

        assert self.club.investments["alice"] is second
        assert second.amount_payable == 600
        assert first is not second
        events = self.audit_trail.get_events_by_type(AuditEventType.INVESTMENT_GENERATED)
        assert [e.metadata["replaced"] for e in events] == [False, True]

    def test_payer_may_differ_from_member(self):
        investment = self.generate(payer="treasurer")

        assert "treasurer" in self.club.investments
        assert "alice" not in self.club.investments
        assert investment.member_id == self.member.id

    def test_obligation_is_persisted(self):
        self.generate()

        stored = ClubRegistry(self.storage).get_club(self.club.id)
        assert stored.investments["alice"].amount_payable == 300


class TestMarkOverdue:
    """Test flagging obligations as overdue"""

    def setup_method(self):
        self.registry = ClubRegistry(InMemoryStorage())
        self.scheduler = InvestmentScheduler(self.registry)
        self.club, self.token = self.registry.create_club("Acme", "equity", "", "", True, T0)
        self.member = self.registry.add_member(self.club.id, "Bob", Gender.MALE, "", 2, T0)
        self.investment = self.scheduler.generate_investment(
            self.token, self.club, self.member, "bob", 50, InvestmentStatus.PENDING, 1_000, T0
        )

    def test_mark_overdue_after_due(self):
        overdue = self.scheduler.mark_overdue(self.token, self.club, "bob", T0 + 1_001)

        assert overdue.status == InvestmentStatus.OVERDUE
        assert overdue.amount_payable == 100
        assert self.club.investments["bob"] is overdue
        assert overdue is self.investment

    def test_status_query_sees_overdue(self):
        self.scheduler.mark_overdue(self.token, self.club, "bob", T0 + 1_001)

        assert check_member_and_investment_status(self.member, self.investment) == (
            False, InvestmentStatus.OVERDUE
        )

    def test_not_yet_due(self):
        with pytest.raises(NotYetDue):
            self.scheduler.mark_overdue(self.token, self.club, "bob", T0 + 1_000)

        assert self.club.investments["bob"].status == InvestmentStatus.PENDING

    def test_missing_obligation(self):
        with pytest.raises(ObligationNotFound):
            self.scheduler.mark_overdue(self.token, self.club, "carol", T0 + 5_000)

    def test_already_overdue(self):
        self.scheduler.mark_overdue(self.token, self.club, "bob", T0 + 2_000)

        with pytest.raises(InvalidStatusTransition):
            self.scheduler.mark_overdue(self.token, self.club, "bob", T0 + 3_000)

    def test_wrong_token(self):
        _, other_token = self.registry.create_club("Other", "equity", "", "", True, T0)

        with pytest.raises(AccessDenied):
            self.scheduler.mark_overdue(other_token, self.club, "bob", T0 + 2_000)

        assert self.club.investments["bob"].status == InvestmentStatus.PENDING
