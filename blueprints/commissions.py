from flask import Blueprint, jsonify, request
from extensions import db
from partners.commission_payment import CommissionPaymentHelper
from partners.commission_state import CommissionStateHelper
from partners.exceptions import PartnerNetworkError
from partners.referrals import ReferralHelper
from blueprints.helpers import (
    login_required_api, admin_required, get_current_user, get_json_object, error_response,
    server_error_response, parse_int_arg
)
from utils import clean_text


bp = Blueprint('commissions', __name__, url_prefix="")


# ----------------------------------------------------------------------------------
# PARTNER COMMISSION VIEWS
# ----------------------------------------------------------------------------------
@bp.route("/api/commissions", methods=["GET"])
@login_required_api
def get_commission_history():
    user = get_current_user()
    try:
        limit = parse_int_arg(request.args.get("limit"), "limit") or 50
        history = CommissionStateHelper.get_recipient_history(user.id, limit=max(1, min(limit, 200)))
    except PartnerNetworkError as e:
        return error_response(e)

    return jsonify({"success": True, "commissions": history}), 200


@bp.route("/api/commissions/summary", methods=["GET"])
@login_required_api
def get_commission_summary():
    user = get_current_user()
    try:
        summary = CommissionStateHelper.get_commission_summary(user.id)
    except PartnerNetworkError as e:
        return error_response(e)

    return jsonify({"success": True, "summary": summary}), 200


#=======================================================================================
#      ADMIN SETTLEMENT
#=======================================================================================
@bp.route("/api/admin/commissions/pending", methods=["GET"])
@admin_required
def get_pending_commissions():
    try:
        user_id = parse_int_arg(request.args.get("userId"), "userId")
    except PartnerNetworkError as e:
        return error_response(e)

    return jsonify({
        "success": True,
        "commissions": CommissionStateHelper.get_pending_payments(user_id)
    }), 200


@bp.route("/api/admin/commissions/<int:payment_id>/processing", methods=["POST"])
@admin_required
def start_processing(payment_id):
    admin = get_current_user()
    try:
        payment = CommissionPaymentHelper.start_processing(payment_id, actor_id=admin.id)
        db.session.commit()
    except PartnerNetworkError as e:
        return error_response(e)
    except Exception as e:
        return server_error_response(f"Failed to process commission payment {payment_id}", e)

    return jsonify({"success": True, "payment": payment.to_dict()}), 200


@bp.route("/api/admin/commissions/<int:payment_id>/paid", methods=["POST"])
@admin_required
def mark_paid(payment_id):
    data = get_json_object()
    if data is None:
        return jsonify({"error": "JSON object body required"}), 400
    transfer_reference = clean_text(data.get("transferReference")) or None

    admin = get_current_user()
    try:
        payment = CommissionPaymentHelper.mark_paid(
            payment_id, transfer_reference=transfer_reference, actor_id=admin.id
        )
        db.session.commit()
    except PartnerNetworkError as e:
        return error_response(e)
    except Exception as e:
        return server_error_response(f"Failed to mark commission payment {payment_id} paid", e)

    return jsonify({"success": True, "payment": payment.to_dict()}), 200


@bp.route("/api/admin/commissions/<int:payment_id>/failed", methods=["POST"])
@admin_required
def mark_failed(payment_id):
    data = get_json_object()
    if data is None:
        return jsonify({"error": "JSON object body required"}), 400
    reason = clean_text(data.get("reason")) or None

    admin = get_current_user()
    try:
        payment = CommissionPaymentHelper.mark_failed(payment_id, reason=reason, actor_id=admin.id)
        db.session.commit()
    except PartnerNetworkError as e:
        return error_response(e)
    except Exception as e:
        return server_error_response(f"Failed to mark commission payment {payment_id} failed", e)

    return jsonify({"success": True, "payment": payment.to_dict()}), 200


@bp.route("/api/admin/referrals/<int:referral_id>/commissions/process", methods=["POST"])
@admin_required
def process_referral_commissions(referral_id):
    admin = get_current_user()
    try:
        ReferralHelper.get_referral(referral_id)
        stats = CommissionPaymentHelper.process_referral_payments(referral_id, actor_id=admin.id)
        db.session.commit()
    except PartnerNetworkError as e:
        return error_response(e)
    except Exception as e:
        return server_error_response(f"Batch processing failed for referral {referral_id}", e)

    stats['total_amount'] = float(stats['total_amount'])
    return jsonify({"success": True, "stats": stats}), 200
