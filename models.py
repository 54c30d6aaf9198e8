# models.py - Canonical Flask-SQLAlchemy models for the partner network
from datetime import datetime, timezone
import enum
from flask_login import UserMixin
from sqlalchemy import UniqueConstraint, Index, CheckConstraint, text
from sqlalchemy.orm import validates
from werkzeug.security import check_password_hash, generate_password_hash
from extensions import db

# ===========================================================
# ENUM DEFINITIONS
# ===========================================================

class ReferralStatus(enum.Enum):
    PENDING = "pending"
    QUOTED = "quoted"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    PAID = "paid"


class CommissionStatus(enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"


def money_to_float(value):
    return float(value) if value is not None else None


def isoformat_or_none(value):
    return value.isoformat() if value else None


# ===========================================================
# BASE MIXIN FOR COMMON FIELDS
# ===========================================================

class BaseMixin:
    """Provides created_at and updated_at timestamps to inheriting models."""
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

# ===========================================================
# PARTNER (USER) MODEL
# ===========================================================

class User(UserMixin, db.Model, BaseMixin):
    """Partner account, one row per referrer, optionally recruited by another partner."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    first_name = db.Column(db.String(80), nullable=True)
    last_name = db.Column(db.String(80), nullable=True)
    company = db.Column(db.String(150), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="user", index=True)
    password_hash = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, default=True)

    # Partner tracking and MLM structure
    partner_id = db.Column(db.String(20), unique=True, nullable=True)
    referral_code = db.Column(db.String(20), unique=True, nullable=True)
    parent_partner_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='SET NULL'),
        nullable=True,
        index=True
    )
    partner_level = db.Column(db.Integer, nullable=False, default=1, server_default=text("1"))

    parent_partner = db.relationship('User', remote_side=[id], backref='recruits')
    referrals = db.relationship('Referral', back_populates='referrer')

    __table_args__ = (
        Index('idx_user_referral_code', 'referral_code'),
        Index('idx_user_partner_id', 'partner_id'),
        CheckConstraint('partner_level >= 1 AND partner_level <= 3', name='chk_partner_level_range'),
    )

    @validates("referral_code")
    def validate_referral_code(self, key, value):
        # A referral code is issued once and never rewritten.
        if self.referral_code and value != self.referral_code:
            raise ValueError("Referral code cannot be changed once issued")
        return value

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == "admin"

    @property
    def display_name(self):
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email

    def to_dict(self):
        """Serialize partner for JSON responses."""
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "company": self.company,
            "role": self.role,
            "partnerId": self.partner_id,
            "referralCode": self.referral_code,
            "parentPartnerId": self.parent_partner_id,
            "partnerLevel": self.partner_level,
            "isActive": self.is_active,
            "createdAt": isoformat_or_none(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.id} {self.email}>'

# ===========================================================
# PARTNER HIERARCHY (ANCESTOR INDEX)
# ===========================================================

class PartnerHierarchy(db.Model):
    """One row per (descendant, ancestor) pair up to the tracked depth"""
    __tablename__ = 'partner_hierarchy'

    id = db.Column(db.Integer, primary_key=True)
    child_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    level = db.Column(db.Integer, nullable=False)  # hop-count from child to this ancestor
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    child = db.relationship('User', foreign_keys=[child_id])
    parent = db.relationship('User', foreign_keys=[parent_id])

    __table_args__ = (
        UniqueConstraint('child_id', 'level', name='uq_hierarchy_child_level'),
        UniqueConstraint('child_id', 'parent_id', name='uq_hierarchy_child_parent'),
        CheckConstraint('child_id <> parent_id', name='chk_hierarchy_no_self_ancestry'),
        CheckConstraint('level >= 1', name='chk_hierarchy_level_positive'),
        Index('idx_hierarchy_parent_level', 'parent_id', 'level'),
    )

    def to_dict(self):
        return {
            "childId": self.child_id,
            "parentId": self.parent_id,
            "level": self.level,
            "createdAt": isoformat_or_none(self.created_at),
        }

    def __repr__(self):
        return f'<PartnerHierarchy child={self.child_id} parent={self.parent_id} level={self.level}>'

# ===========================================================
# REFERRALS
# ===========================================================

class Referral(db.Model, BaseMixin):
    __tablename__ = 'referrals'

    id = db.Column(db.Integer, primary_key=True)
    referrer_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    business_name = db.Column(db.String(200), nullable=False)
    business_email = db.Column(db.String(120), nullable=False)
    business_phone = db.Column(db.String(32), nullable=True)
    business_type = db.Column(db.String(100), nullable=True)
    monthly_volume = db.Column(db.String(50), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    admin_notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=ReferralStatus.PENDING.value, index=True)
    estimated_commission = db.Column(db.Numeric(10, 2), nullable=True)
    actual_commission = db.Column(db.Numeric(10, 2), nullable=True)  # base amount split across levels
    submitted_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    referrer = db.relationship('User', back_populates='referrals')
    commission_payments = db.relationship(
        'CommissionPayment',
        back_populates='referral',
        order_by='CommissionPayment.level'
    )

    __table_args__ = (
        Index('idx_referral_referrer_status', 'referrer_id', 'status'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "referrerId": self.referrer_id,
            "businessName": self.business_name,
            "businessEmail": self.business_email,
            "businessPhone": self.business_phone,
            "businessType": self.business_type,
            "monthlyVolume": self.monthly_volume,
            "notes": self.notes,
            "status": self.status,
            "estimatedCommission": money_to_float(self.estimated_commission),
            "actualCommission": money_to_float(self.actual_commission),
            "submittedAt": isoformat_or_none(self.submitted_at),
            "completedAt": isoformat_or_none(self.completed_at),
        }

    def __repr__(self):
        return f'<Referral {self.id} {self.status}>'

# ===========================================================
# COMMISSION PAYMENTS
# ===========================================================

class CommissionPayment(db.Model):
    """Multi-level commission tracking: one row per referral per level"""
    __tablename__ = 'commission_payments'

    id = db.Column(db.Integer, primary_key=True)
    referral_id = db.Column(db.Integer, db.ForeignKey('referrals.id'), nullable=False, index=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    level = db.Column(db.Integer, nullable=False)  # 1 = direct, 2 = level 2, 3 = level 3
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    percentage = db.Column(db.Numeric(5, 4), nullable=False)  # snapshot of the rule table, e.g. 0.6000
    status = db.Column(db.String(20), nullable=False, default=CommissionStatus.PENDING.value)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    transfer_reference = db.Column(db.String(120), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    referral = db.relationship('Referral', back_populates='commission_payments')
    recipient = db.relationship('User', foreign_keys=[recipient_id], backref='commission_earnings')

    __table_args__ = (
        UniqueConstraint('referral_id', 'level', name='uq_commission_referral_level'),
        Index('idx_commission_recipient_status', 'recipient_id', 'status'),
        CheckConstraint('level >= 1 AND level <= 3', name='chk_commission_level_range'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "referralId": self.referral_id,
            "recipientId": self.recipient_id,
            "level": self.level,
            "amount": money_to_float(self.amount),
            "percentage": money_to_float(self.percentage),
            "status": self.status,
            "paymentDate": isoformat_or_none(self.payment_date),
            "transferReference": self.transfer_reference,
            "notes": self.notes,
            "createdAt": isoformat_or_none(self.created_at),
        }

    def __repr__(self):
        return f'<CommissionPayment {self.id} referral={self.referral_id} level={self.level} {self.status}>'

# ===========================================================
# AUDITING
# ===========================================================

class AuditLog(db.Model, BaseMixin):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    action = db.Column(db.String(100), nullable=False)
    entity_type = db.Column(db.String(50), nullable=False)
    entity_id = db.Column(db.String(64), nullable=True)
    details = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(50), nullable=True)

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "actorId": self.actor_id,
            "action": self.action,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "details": self.details,
            "createdAt": isoformat_or_none(self.created_at),
        }
