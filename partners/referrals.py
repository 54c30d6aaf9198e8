from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, List, Optional, Tuple
from flask import current_app
from extensions import db
from models import Referral, ReferralStatus, CommissionPayment
from partners.audit import AuditHelper
from partners.commission_generation import CommissionGenerator
from partners.config import quantize_money
from partners.exceptions import (
    ReferralNotFound, ReferralValidationError, InvalidStatusTransition
)
from partners.hierarchy import PartnerHierarchyHelper
from utils import validate_email, parse_decimal, clean_text


TERMINAL_STATUSES = {ReferralStatus.REJECTED.value, ReferralStatus.PAID.value}
VALID_STATUSES = {status.value for status in ReferralStatus}


class ReferralHelper:
    """Referral submission and the quote/approval pipeline"""

    @staticmethod
    def get_referral(referral_id: int) -> Referral:
        referral = db.session.get(Referral, referral_id)
        if referral is None:
            raise ReferralNotFound(f"Referral {referral_id} not found")
        return referral

    @staticmethod
    def _parse_commission(value, field: str) -> Optional[Decimal]:
        if value is None or value == "":
            return None
        amount = parse_decimal(value)
        if amount is None or amount <= 0:
            raise ReferralValidationError(f"{field} must be a positive amount")
        return quantize_money(amount)

    @staticmethod
    def create_referral(referrer_id: int, data: Dict[str, Any]) -> Referral:
        """
        Store a new pending referral submitted by a partner.
        Flushes only; the caller commits.
        """
        PartnerHierarchyHelper.get_partner(referrer_id)

        business_name = clean_text(data.get("businessName"))
        business_email = clean_text(data.get("businessEmail")).lower()

        if not business_name or not business_email:
            raise ReferralValidationError("businessName and businessEmail are required")

        if not validate_email(business_email):
            raise ReferralValidationError("Invalid business email address")

        referral = Referral(
            referrer_id=referrer_id,
            business_name=business_name,
            business_email=business_email,
            business_phone=clean_text(data.get("businessPhone")) or None,
            business_type=clean_text(data.get("businessType")) or None,
            monthly_volume=clean_text(data.get("monthlyVolume")) or None,
            notes=data.get("notes"),
            status=ReferralStatus.PENDING.value,
            estimated_commission=ReferralHelper._parse_commission(
                data.get("estimatedCommission"), "estimatedCommission"
            ),
        )
        db.session.add(referral)
        db.session.flush()

        AuditHelper.log_event(
            'referral_created', 'referral', referral.id,
            actor_id=referrer_id,
            details={'business_name': business_name}
        )
        current_app.logger.info(f"Referral {referral.id} submitted by partner {referrer_id}")
        return referral

    @staticmethod
    def update_referral_status(referral_id: int, status: str, actor_id: Optional[int] = None,
                               actual_commission=None,
                               admin_notes: Optional[str] = None) -> Tuple[Referral, List[CommissionPayment]]:
        """
        Move a referral through its pipeline. Reaching paid generates the
        commission payments (idempotent, a repeated paid event returns the
        existing set).

        Returns:
            (referral, payments), payments is empty unless the referral is paid
        """
        if status not in VALID_STATUSES:
            raise ReferralValidationError(f"Unknown referral status: {status}")

        referral = ReferralHelper.get_referral(referral_id)
        previous = referral.status

        if previous in TERMINAL_STATUSES and status != previous:
            raise InvalidStatusTransition(
                f"Referral {referral_id} is {previous} and cannot move to {status}"
            )

        if previous == ReferralStatus.REJECTED.value:
            raise InvalidStatusTransition(f"Referral {referral_id} was rejected")

        amount = ReferralHelper._parse_commission(actual_commission, "actualCommission")
        if amount is not None:
            if previous == ReferralStatus.PAID.value and referral.actual_commission is not None \
                    and quantize_money(referral.actual_commission) != amount:
                raise InvalidStatusTransition(
                    f"Referral {referral_id} is paid; its commission amount is fixed"
                )
            referral.actual_commission = amount

        if admin_notes is not None:
            referral.admin_notes = admin_notes

        referral.status = status
        if status == ReferralStatus.PAID.value and referral.completed_at is None:
            referral.completed_at = datetime.now(timezone.utc)

        db.session.flush()

        if status != previous:
            AuditHelper.log_event(
                'referral_status_changed', 'referral', referral.id,
                actor_id=actor_id,
                details={'from': previous, 'to': status}
            )
            current_app.logger.info(f"Referral {referral.id} status {previous} -> {status}")

        payments = []
        if status == ReferralStatus.PAID.value:
            payments = CommissionGenerator.generate_commissions(referral.id, actor_id=actor_id)

        return referral, payments

    @staticmethod
    def list_referrals(referrer_id: Optional[int] = None, status: Optional[str] = None) -> List[Referral]:
        query = Referral.query
        if referrer_id is not None:
            query = query.filter_by(referrer_id=referrer_id)
        if status:
            if status not in VALID_STATUSES:
                raise ReferralValidationError(f"Unknown referral status: {status}")
            query = query.filter_by(status=status)
        return query.order_by(Referral.submitted_at.desc(), Referral.id.desc()).all()
