#======================================================================================
#
# THIS IS ADMIN API
#
#=======================================================================================
from datetime import datetime, timezone
from flask import jsonify, Blueprint, current_app
from sqlalchemy import func
from extensions import db
from models import User, Referral, ReferralStatus, CommissionPayment, CommissionStatus, PartnerHierarchy
from partners.audit import AuditHelper, HierarchyIntegrityHelper
from partners.config import CommissionConfigHelper
from partners.exceptions import PartnerNetworkError
from partners.hierarchy import PartnerHierarchyHelper
from blueprints.helpers import (
    admin_required, get_current_user, get_json_object, error_response, server_error_response
)


admin_bp = Blueprint('admin', __name__, url_prefix='')


@admin_bp.route("/admin/data", methods=["GET"])
@admin_required
def admin_data():
    """Platform totals for the admin dashboard"""
    total_partners = User.query.count()
    active_partners = User.query.filter_by(is_active=True).count()
    root_partners = User.query.filter(User.parent_partner_id.is_(None)).count()

    referrals_by_status = dict(
        db.session.query(Referral.status, func.count(Referral.id)).group_by(Referral.status).all()
    )

    commission_totals = {
        status: float(total or 0)
        for status, total in db.session.query(
            CommissionPayment.status, func.sum(CommissionPayment.amount)
        ).group_by(CommissionPayment.status).all()
    }

    return jsonify({
        "partners": {
            "total": total_partners,
            "active": active_partners,
            "roots": root_partners,
            "hierarchy_rows": PartnerHierarchy.query.count(),
        },
        "referrals": {
            "total": sum(referrals_by_status.values()),
            "by_status": referrals_by_status,
            "paid": referrals_by_status.get(ReferralStatus.PAID.value, 0),
        },
        "commissions": {
            "by_status": commission_totals,
            "pending_amount": commission_totals.get(CommissionStatus.PENDING.value, 0.0),
            "paid_amount": commission_totals.get(CommissionStatus.PAID.value, 0.0),
        },
        "commission_config": CommissionConfigHelper.get_distribution_summary(),
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }), 200


#=======================================================================================
#      HIERARCHY ADMINISTRATION
#=======================================================================================
@admin_bp.route("/api/admin/partners/<int:partner_id>/attach", methods=["POST"])
@admin_required
def attach_partner(partner_id):
    """
    Recruit an unattached partner under another.
    Expected JSON: {"parentId": 12}
    """
    data = get_json_object()
    if data is None:
        return jsonify({"error": "JSON object body required"}), 400
    parent_id = data.get("parentId")
    if not isinstance(parent_id, int) or isinstance(parent_id, bool):
        return jsonify({"error": "parentId must be an integer"}), 400

    admin = get_current_user()
    try:
        PartnerHierarchyHelper.attach_partner(partner_id, parent_id, actor_id=admin.id)
        db.session.commit()
    except PartnerNetworkError as e:
        return error_response(e)
    except Exception as e:
        return server_error_response(f"Failed to attach partner {partner_id}", e)

    partner = PartnerHierarchyHelper.get_partner(partner_id)
    return jsonify({"success": True, "partner": partner.to_dict()}), 200


@admin_bp.route("/api/admin/partners/<int:partner_id>/level", methods=["PATCH"])
@admin_required
def set_partner_level(partner_id):
    data = get_json_object()
    if data is None:
        return jsonify({"error": "JSON object body required"}), 400

    admin = get_current_user()
    try:
        partner = PartnerHierarchyHelper.set_partner_level(
            partner_id, data.get("partnerLevel"), actor_id=admin.id
        )
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except PartnerNetworkError as e:
        return error_response(e)

    return jsonify({"success": True, "partner": partner.to_dict()}), 200


@admin_bp.route("/api/admin/hierarchy/integrity", methods=["GET"])
@admin_required
def hierarchy_integrity():
    issues = HierarchyIntegrityHelper.find_inconsistencies()
    return jsonify({
        "success": True,
        "consistent": not issues,
        "issues": issues
    }), 200


@admin_bp.route("/api/admin/hierarchy/repair", methods=["POST"])
@admin_required
def hierarchy_repair():
    admin = get_current_user()
    try:
        inserted = HierarchyIntegrityHelper.repair_missing_edges(actor_id=admin.id)
        db.session.commit()
    except Exception as e:
        return server_error_response("Hierarchy repair failed", e)

    current_app.logger.info(f"Admin {admin.id} repaired hierarchy index ({inserted} rows)")
    return jsonify({
        "success": True,
        "rows_inserted": inserted,
        "remaining_issues": HierarchyIntegrityHelper.find_inconsistencies()
    }), 200


@admin_bp.route("/api/admin/audit/<entity_type>/<entity_id>", methods=["GET"])
@admin_required
def audit_history(entity_type, entity_id):
    entries = AuditHelper.get_entity_history(entity_type, entity_id)
    return jsonify({
        "success": True,
        "entries": [entry.to_dict() for entry in entries]
    }), 200
