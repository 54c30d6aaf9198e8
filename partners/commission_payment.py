from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, Optional
from flask import current_app
from extensions import db
from logger import commissions_logger
from models import CommissionPayment, CommissionStatus
from partners.audit import AuditHelper
from partners.exceptions import CommissionPaymentNotFound, InvalidPaymentTransition


# current status -> statuses it may move to
PAYMENT_TRANSITIONS = {
    CommissionStatus.PENDING.value: {CommissionStatus.PROCESSING.value},
    CommissionStatus.PROCESSING.value: {CommissionStatus.PAID.value, CommissionStatus.FAILED.value},
    CommissionStatus.PAID.value: set(),
    CommissionStatus.FAILED.value: set(),
}


class CommissionPaymentHelper:
    """
    Settlement workflow for commission payments.
    Only the status and settlement fields change here; amount and percentage
    stay as generated. All methods flush, the caller commits.
    """

    @staticmethod
    def _lock_payment(payment_id: int) -> CommissionPayment:
        payment = CommissionPayment.query.filter_by(id=payment_id).with_for_update().first()
        if payment is None:
            raise CommissionPaymentNotFound(f"Commission payment {payment_id} not found")
        return payment

    @staticmethod
    def _transition(payment: CommissionPayment, new_status: str, actor_id: Optional[int],
                    details: Optional[Dict[str, Any]] = None) -> CommissionPayment:
        allowed = PAYMENT_TRANSITIONS.get(payment.status, set())
        if new_status not in allowed:
            raise InvalidPaymentTransition(
                f"Commission payment {payment.id} cannot move from {payment.status} to {new_status}"
            )

        previous = payment.status
        payment.status = new_status
        db.session.flush()

        audit_details = {'from': previous, 'to': new_status, 'amount': str(payment.amount)}
        audit_details.update(details or {})
        AuditHelper.log_event(
            f'commission_{new_status}', 'commission_payment', payment.id,
            actor_id=actor_id,
            details=audit_details
        )

        commissions_logger.info(
            f"Commission payment {payment.id} (referral {payment.referral_id}, level {payment.level}, "
            f"partner {payment.recipient_id}, {payment.amount}): {previous} -> {new_status}"
        )
        return payment

    @staticmethod
    def start_processing(payment_id: int, actor_id: Optional[int] = None) -> CommissionPayment:
        payment = CommissionPaymentHelper._lock_payment(payment_id)
        return CommissionPaymentHelper._transition(payment, CommissionStatus.PROCESSING.value, actor_id)

    @staticmethod
    def mark_paid(payment_id: int, transfer_reference: Optional[str] = None,
                  actor_id: Optional[int] = None) -> CommissionPayment:
        """Stamp the payout date and the bank transfer reference"""
        payment = CommissionPaymentHelper._lock_payment(payment_id)
        payment = CommissionPaymentHelper._transition(
            payment, CommissionStatus.PAID.value, actor_id,
            details={'transfer_reference': transfer_reference}
        )
        payment.payment_date = datetime.now(timezone.utc)
        payment.transfer_reference = transfer_reference
        db.session.flush()
        return payment

    @staticmethod
    def mark_failed(payment_id: int, reason: Optional[str] = None,
                    actor_id: Optional[int] = None) -> CommissionPayment:
        payment = CommissionPaymentHelper._lock_payment(payment_id)
        payment = CommissionPaymentHelper._transition(
            payment, CommissionStatus.FAILED.value, actor_id,
            details={'reason': reason}
        )
        if reason:
            payment.notes = reason
            db.session.flush()

        current_app.logger.warning(f"Commission payment {payment.id} failed: {reason}")
        return payment

    @staticmethod
    def process_referral_payments(referral_id: int, actor_id: Optional[int] = None) -> Dict[str, Any]:
        """
        BATCH: move every pending payment of a referral to processing
        """
        stats = {
            'referral_id': referral_id,
            'processed': 0,
            'payment_ids': [],
            'total_amount': Decimal('0'),
        }

        pending_payments = CommissionPayment.query.filter_by(
            referral_id=referral_id,
            status=CommissionStatus.PENDING.value
        ).order_by(CommissionPayment.level.asc()).with_for_update().all()

        if not pending_payments:
            current_app.logger.info(f"No pending commission payments for referral {referral_id}")
            return stats

        for payment in pending_payments:
            CommissionPaymentHelper._transition(payment, CommissionStatus.PROCESSING.value, actor_id)
            stats['processed'] += 1
            stats['payment_ids'].append(payment.id)
            stats['total_amount'] += Decimal(str(payment.amount))

        current_app.logger.info(
            f"Referral {referral_id}: {stats['processed']} commission payments moved to processing, "
            f"total {stats['total_amount']}"
        )
        return stats
