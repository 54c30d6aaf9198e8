# partners/commission_generation.py
from decimal import Decimal
from typing import List, Tuple, Optional
from flask import current_app
from sqlalchemy.exc import IntegrityError
from extensions import db
from logger import commissions_logger
from models import Referral, CommissionPayment, PartnerHierarchy, ReferralStatus, CommissionStatus
from partners.audit import AuditHelper
from partners.config import CommissionConfigHelper
from partners.exceptions import ReferralNotFound, ReferralNotEligible


class CommissionGenerator:
    """
    Turns one paid referral into at most one payment per level:
    level 1 to the referrer, level 2 to the referrer's parent,
    level 3 to the referrer's grandparent.
    """

    @staticmethod
    def get_existing_payments(referral_id: int) -> List[CommissionPayment]:
        return CommissionPayment.query.filter_by(
            referral_id=referral_id
        ).order_by(CommissionPayment.level.asc()).all()

    @staticmethod
    def get_recipients(referrer_id: int) -> List[Tuple[int, int]]:
        """
        (level, recipient_id) pairs for the referrer and its indexed ancestors.
        An ancestor at hop-distance N receives the level N + 1 override.
        """
        recipients = [(1, referrer_id)]

        ancestor_edges = PartnerHierarchy.query.filter(
            PartnerHierarchy.child_id == referrer_id,
            PartnerHierarchy.level < CommissionConfigHelper.MAX_LEVEL
        ).order_by(PartnerHierarchy.level.asc()).all()

        for edge in ancestor_edges:
            recipients.append((edge.level + 1, edge.parent_id))

        return recipients

    @staticmethod
    def _check_eligibility(referral: Referral) -> Decimal:
        if referral.status != ReferralStatus.PAID.value:
            raise ReferralNotEligible(
                f"Referral {referral.id} is {referral.status}, expected {ReferralStatus.PAID.value}"
            )

        if referral.actual_commission is None:
            raise ReferralNotEligible(f"Referral {referral.id} has no commission amount")

        base_amount = Decimal(str(referral.actual_commission))
        if base_amount <= 0:
            raise ReferralNotEligible(f"Referral {referral.id} commission amount must be positive")

        return base_amount

    @staticmethod
    def generate_commissions(referral_id: int, actor_id: Optional[int] = None) -> List[CommissionPayment]:
        """
        Create the commission payments for a paid referral.

        Idempotent: when payments already exist for the referral they are
        returned unchanged. Must be called inside an existing transaction
        (flushes, no commit here).

        Returns:
            Payments ordered by level (1 to 3 entries)
        """
        referral = db.session.get(Referral, referral_id)
        if referral is None:
            raise ReferralNotFound(f"Referral {referral_id} not found")

        existing = CommissionGenerator.get_existing_payments(referral_id)
        if existing:
            current_app.logger.info(
                f"Commissions already generated for referral {referral_id} ({len(existing)} payments)"
            )
            return existing

        base_amount = CommissionGenerator._check_eligibility(referral)

        payments = []
        for level, recipient_id in CommissionGenerator.get_recipients(referral.referrer_id):
            percentage = CommissionConfigHelper.get_commission_percentage(level)
            if percentage <= 0:
                continue

            payments.append(CommissionPayment(
                referral_id=referral.id,
                recipient_id=recipient_id,
                level=level,
                amount=CommissionConfigHelper.calculate_amount(base_amount, level),
                percentage=percentage,
                status=CommissionStatus.PENDING.value,
            ))

        try:
            with db.session.begin_nested():
                db.session.add_all(payments)
                db.session.flush()
        except IntegrityError as exc:
            # Unique (referral_id, level): another writer generated first
            current_app.logger.warning(
                f"Concurrent commission generation for referral {referral_id}: {exc.orig}"
            )
            return CommissionGenerator.get_existing_payments(referral_id)

        AuditHelper.log_event(
            'commissions_generated', 'referral', referral.id,
            actor_id=actor_id,
            details={
                'base_amount': str(base_amount),
                'payments': [
                    {'level': p.level, 'recipient_id': p.recipient_id, 'amount': str(p.amount)}
                    for p in payments
                ],
            }
        )

        for payment in payments:
            commissions_logger.info(
                f"Level {payment.level} commission: referral {referral.id} -> partner "
                f"{payment.recipient_id} {payment.amount} ({payment.percentage * 100:.0f}%)"
            )

        current_app.logger.info(
            f"Generated {len(payments)} commission payments for referral {referral.id}, "
            f"base amount {base_amount}"
        )
        return payments
