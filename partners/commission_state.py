from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import func
from extensions import db
from models import CommissionPayment, CommissionStatus, Referral, ReferralStatus
from partners.hierarchy import PartnerHierarchyHelper
from partners.referrals import ReferralHelper


class CommissionStateHelper:
    """Tracks commission states, history, and dashboard reporting"""

    @staticmethod
    def get_recipient_history(user_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        """
        Commission history for a partner, newest first
        """
        PartnerHierarchyHelper.get_partner(user_id)

        payments = CommissionPayment.query.filter_by(recipient_id=user_id).order_by(
            CommissionPayment.created_at.desc(), CommissionPayment.id.desc()
        ).limit(limit).all()

        history = []
        for payment in payments:
            entry = payment.to_dict()
            entry['businessName'] = payment.referral.business_name if payment.referral else None
            history.append(entry)

        return history

    @staticmethod
    def get_pending_payments(user_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Get pending payments, optionally filtered by recipient, oldest first
        """
        query = CommissionPayment.query.filter_by(status=CommissionStatus.PENDING.value)

        if user_id:
            query = query.filter_by(recipient_id=user_id)

        pending = query.order_by(CommissionPayment.created_at.asc(), CommissionPayment.id.asc()).all()
        return [payment.to_dict() for payment in pending]

    @staticmethod
    def get_referral_payments(referral_id: int) -> List[Dict[str, Any]]:
        ReferralHelper.get_referral(referral_id)

        payments = CommissionPayment.query.filter_by(
            referral_id=referral_id
        ).order_by(CommissionPayment.level.asc()).all()
        return [payment.to_dict() for payment in payments]

    @staticmethod
    def get_commission_summary(user_id: int) -> Dict[str, Any]:
        """
        Dashboard statistics: totals by status and level, this month's
        earnings and referral counts
        """
        PartnerHierarchyHelper.get_partner(user_id)

        totals_by_status = {status.value: Decimal('0') for status in CommissionStatus}
        rows = db.session.query(
            CommissionPayment.status,
            func.coalesce(func.sum(CommissionPayment.amount), 0)
        ).filter(
            CommissionPayment.recipient_id == user_id
        ).group_by(CommissionPayment.status).all()
        for status, total in rows:
            totals_by_status[status] = Decimal(str(total))

        by_level = {}
        level_rows = db.session.query(
            CommissionPayment.level,
            func.count(CommissionPayment.id),
            func.coalesce(func.sum(CommissionPayment.amount), 0)
        ).filter(
            CommissionPayment.recipient_id == user_id
        ).group_by(CommissionPayment.level).all()
        for level, count, total in level_rows:
            by_level[level] = {'count': count, 'amount': float(Decimal(str(total)))}

        # This month's earnings are paid payouts stamped since the 1st (UTC)
        month_start = datetime.now(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        paid_this_month = CommissionPayment.query.filter(
            CommissionPayment.recipient_id == user_id,
            CommissionPayment.status == CommissionStatus.PAID.value,
            CommissionPayment.payment_date >= month_start
        ).all()
        monthly_earnings = sum((Decimal(str(p.amount)) for p in paid_this_month), Decimal('0'))

        referral_counts = dict(
            db.session.query(Referral.status, func.count(Referral.id))
            .filter(Referral.referrer_id == user_id)
            .group_by(Referral.status).all()
        )
        total_referrals = sum(referral_counts.values())
        successful = referral_counts.get(ReferralStatus.COMPLETED.value, 0) \
            + referral_counts.get(ReferralStatus.PAID.value, 0)

        total_earned = sum(totals_by_status.values(), Decimal('0')) \
            - totals_by_status[CommissionStatus.FAILED.value]

        return {
            'user_id': user_id,
            'total_earned': float(total_earned),
            'total_paid': float(totals_by_status[CommissionStatus.PAID.value]),
            'pending_amount': float(
                totals_by_status[CommissionStatus.PENDING.value]
                + totals_by_status[CommissionStatus.PROCESSING.value]
            ),
            'totals_by_status': {status: float(total) for status, total in totals_by_status.items()},
            'by_level': by_level,
            'monthly_earnings': float(monthly_earnings),
            'total_referrals': total_referrals,
            'successful_referrals': successful,
            'success_rate': round(successful / total_referrals * 100, 1) if total_referrals else 0,
            'referrals_by_status': referral_counts,
        }
