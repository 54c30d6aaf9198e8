"""
Tests for the commission settlement workflow.
"""
from decimal import Decimal

import pytest

from extensions import db
from models import CommissionPayment, CommissionStatus, AuditLog
from partners.commission_generation import CommissionGenerator
from partners.commission_payment import CommissionPaymentHelper
from partners.exceptions import CommissionPaymentNotFound, InvalidPaymentTransition


@pytest.fixture
def payments(app_ctx, make_chain, make_referral):
    _, _, referrer = make_chain(3)
    referral = make_referral(referrer, status="paid", actual_commission=1000)
    generated = CommissionGenerator.generate_commissions(referral.id)
    db.session.commit()
    return generated


class TestTransitions:

    def test_full_settlement(self, payments):
        payment = payments[0]

        CommissionPaymentHelper.start_processing(payment.id)
        CommissionPaymentHelper.mark_paid(payment.id, transfer_reference="BACS-20261018-001")
        db.session.commit()

        settled = db.session.get(CommissionPayment, payment.id)
        assert settled.status == CommissionStatus.PAID.value
        assert settled.transfer_reference == "BACS-20261018-001"
        assert settled.payment_date is not None
        assert Decimal(str(settled.amount)) == Decimal("600.00")

    def test_failed_payment_keeps_reason(self, payments):
        payment = payments[1]

        CommissionPaymentHelper.start_processing(payment.id)
        CommissionPaymentHelper.mark_failed(payment.id, reason="Account closed")
        db.session.commit()

        failed = db.session.get(CommissionPayment, payment.id)
        assert failed.status == CommissionStatus.FAILED.value
        assert failed.notes == "Account closed"
        assert failed.payment_date is None

    def test_transitions_are_audited(self, payments):
        payment = payments[0]

        CommissionPaymentHelper.start_processing(payment.id, actor_id=payment.recipient_id)
        db.session.commit()

        entry = AuditLog.query.filter_by(action='commission_processing').one()
        assert entry.entity_id == str(payment.id)
        assert entry.details['from'] == 'pending'

    @pytest.mark.parametrize("steps", [
        ["mark_paid"],
        ["mark_failed"],
        ["start_processing", "start_processing"],
        ["start_processing", "mark_paid", "mark_failed"],
        ["start_processing", "mark_failed", "mark_paid"],
        ["start_processing", "mark_paid", "start_processing"],
    ])
    def test_invalid_transitions(self, payments, steps):
        payment_id = payments[0].id

        for step in steps[:-1]:
            getattr(CommissionPaymentHelper, step)(payment_id)

        with pytest.raises(InvalidPaymentTransition):
            getattr(CommissionPaymentHelper, steps[-1])(payment_id)

    def test_unknown_payment(self, app_ctx):
        with pytest.raises(CommissionPaymentNotFound):
            CommissionPaymentHelper.start_processing(31337)


class TestBatchProcessing:

    def test_moves_all_pending_to_processing(self, payments):
        referral_id = payments[0].referral_id

        stats = CommissionPaymentHelper.process_referral_payments(referral_id)
        db.session.commit()

        assert stats['processed'] == 3
        assert stats['total_amount'] == Decimal("900.00")
        assert {p.status for p in CommissionPayment.query.all()} == {CommissionStatus.PROCESSING.value}

    def test_skips_non_pending(self, payments):
        referral_id = payments[0].referral_id
        CommissionPaymentHelper.start_processing(payments[0].id)

        stats = CommissionPaymentHelper.process_referral_payments(referral_id)

        assert stats['processed'] == 2
        assert stats['payment_ids'] == [payments[1].id, payments[2].id]

    def test_nothing_pending(self, payments):
        referral_id = payments[0].referral_id
        CommissionPaymentHelper.process_referral_payments(referral_id)

        stats = CommissionPaymentHelper.process_referral_payments(referral_id)

        assert stats['processed'] == 0
