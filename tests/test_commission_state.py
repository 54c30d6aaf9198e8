"""
Tests for commission history and dashboard statistics.
"""
import pytest

from extensions import db
from partners.commission_generation import CommissionGenerator
from partners.commission_payment import CommissionPaymentHelper
from partners.commission_state import CommissionStateHelper
from partners.exceptions import PartnerNotFound, ReferralNotFound


@pytest.fixture
def earnings(app_ctx, make_chain, make_referral):
    """Parent recruits referrer; referrer closes two deals, one settled"""
    parent, referrer = make_chain(2)

    first = make_referral(referrer, status="paid", actual_commission=1000)
    second = make_referral(referrer, status="paid", actual_commission=500)
    make_referral(referrer, status="pending")

    first_payments = CommissionGenerator.generate_commissions(first.id)
    CommissionGenerator.generate_commissions(second.id)

    CommissionPaymentHelper.start_processing(first_payments[0].id)
    CommissionPaymentHelper.mark_paid(first_payments[0].id, transfer_reference="TX-1")
    db.session.commit()

    return dict(parent=parent, referrer=referrer, first=first, second=second)


class TestHistory:

    def test_recipient_history(self, earnings):
        history = CommissionStateHelper.get_recipient_history(earnings["referrer"].id)

        assert len(history) == 2
        assert {entry["amount"] for entry in history} == {600.0, 300.0}
        assert all(entry["businessName"] for entry in history)

    def test_history_limit(self, earnings):
        assert len(CommissionStateHelper.get_recipient_history(earnings["referrer"].id, limit=1)) == 1

    def test_pending_payments(self, earnings):
        all_pending = CommissionStateHelper.get_pending_payments()
        parent_pending = CommissionStateHelper.get_pending_payments(earnings["parent"].id)

        assert len(all_pending) == 3
        assert [entry["amount"] for entry in parent_pending] == [200.0, 100.0]

    def test_referral_payments_ordered_by_level(self, earnings):
        payments = CommissionStateHelper.get_referral_payments(earnings["first"].id)

        assert [entry["level"] for entry in payments] == [1, 2]

    def test_unknown_ids(self, app_ctx):
        with pytest.raises(PartnerNotFound):
            CommissionStateHelper.get_recipient_history(404)
        with pytest.raises(ReferralNotFound):
            CommissionStateHelper.get_referral_payments(404)


class TestSummary:

    def test_referrer_summary(self, earnings):
        summary = CommissionStateHelper.get_commission_summary(earnings["referrer"].id)

        assert summary["total_earned"] == 900.0
        assert summary["total_paid"] == 600.0
        assert summary["pending_amount"] == 300.0
        assert summary["monthly_earnings"] == 600.0
        assert summary["by_level"] == {1: {"count": 2, "amount": 900.0}}
        assert summary["total_referrals"] == 3
        assert summary["successful_referrals"] == 2
        assert summary["success_rate"] == 66.7

    def test_parent_summary_counts_overrides(self, earnings):
        summary = CommissionStateHelper.get_commission_summary(earnings["parent"].id)

        assert summary["total_earned"] == 300.0
        assert summary["by_level"] == {2: {"count": 2, "amount": 300.0}}
        assert summary["total_referrals"] == 0
        assert summary["success_rate"] == 0

    def test_failed_payments_do_not_count_as_earned(self, earnings, app_ctx):
        second_payment = CommissionStateHelper.get_referral_payments(earnings["second"].id)[0]
        CommissionPaymentHelper.start_processing(second_payment["id"])
        CommissionPaymentHelper.mark_failed(second_payment["id"], reason="Invalid IBAN")
        db.session.commit()

        summary = CommissionStateHelper.get_commission_summary(earnings["referrer"].id)

        assert summary["total_earned"] == 600.0
        assert summary["totals_by_status"]["failed"] == 300.0
