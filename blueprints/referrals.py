from flask import Blueprint, jsonify, request, current_app
from extensions import db
from partners.commission_state import CommissionStateHelper
from partners.exceptions import PartnerNetworkError
from partners.referrals import ReferralHelper
from blueprints.helpers import (
    login_required_api, admin_required, get_current_user, get_json_object, error_response,
    server_error_response
)
from utils import clean_text


bp = Blueprint('referrals', __name__, url_prefix="")


#=======================================================================================
#      PARTNER REFERRALS
#=======================================================================================
@bp.route("/api/referrals", methods=["POST"])
@login_required_api
def create_referral():
    data = get_json_object()
    if not data:
        return jsonify({"error": "Invalid or missing JSON body"}), 400

    user = get_current_user()
    try:
        referral = ReferralHelper.create_referral(user.id, data)
        db.session.commit()
    except PartnerNetworkError as e:
        return error_response(e)
    except Exception as e:
        return server_error_response("Failed to submit referral", e)

    return jsonify({"success": True, "referral": referral.to_dict()}), 201


@bp.route("/api/referrals", methods=["GET"])
@login_required_api
def list_referrals():
    """Own referrals; admins see every referral"""
    user = get_current_user()
    try:
        referrer_id = None if user.is_admin else user.id
        referrals = ReferralHelper.list_referrals(referrer_id, status=request.args.get("status"))
    except PartnerNetworkError as e:
        return error_response(e)

    return jsonify({
        "success": True,
        "referrals": [referral.to_dict() for referral in referrals]
    }), 200


@bp.route("/api/referrals/<int:referral_id>/commissions", methods=["GET"])
@login_required_api
def get_referral_commissions(referral_id):
    user = get_current_user()
    try:
        referral = ReferralHelper.get_referral(referral_id)
        if referral.referrer_id != user.id and not user.is_admin:
            return jsonify({"error": "Forbidden"}), 403

        payments = CommissionStateHelper.get_referral_payments(referral_id)
    except PartnerNetworkError as e:
        return error_response(e)

    return jsonify({"success": True, "referralId": referral_id, "payments": payments}), 200


#=======================================================================================
#      ADMIN PIPELINE
#=======================================================================================
@bp.route("/api/admin/referrals/<int:referral_id>/status", methods=["PATCH"])
@admin_required
def update_referral_status(referral_id):
    """
    Expected JSON:
    {
        "status": "paid",
        "actualCommission": 1000,
        "adminNotes": ""
    }
    """
    data = get_json_object()
    if data is None:
        return jsonify({"error": "JSON object body required"}), 400
    status = clean_text(data.get("status")).lower()
    if not status:
        return jsonify({"error": "status is required"}), 400

    admin = get_current_user()
    try:
        referral, payments = ReferralHelper.update_referral_status(
            referral_id,
            status,
            actor_id=admin.id,
            actual_commission=data.get("actualCommission"),
            admin_notes=data.get("adminNotes"),
        )
        db.session.commit()
    except PartnerNetworkError as e:
        return error_response(e)
    except Exception as e:
        return server_error_response(f"Failed to update referral {referral_id}", e)

    current_app.logger.info(
        f"Admin {admin.id} set referral {referral_id} to {status} ({len(payments)} commission payments)"
    )
    return jsonify({
        "success": True,
        "referral": referral.to_dict(),
        "payments": [payment.to_dict() for payment in payments]
    }), 200
