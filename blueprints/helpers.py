#=======================================================================================
#
# Shared helpers for the JSON blueprints: session auth and error responses
#
#=======================================================================================
from functools import wraps
from flask import jsonify, request, session, current_app
from extensions import db
from models import User
from partners.exceptions import (
    PartnerNetworkError, PartnerNotFound, ReferralNotFound, CommissionPaymentNotFound,
    CycleDetected, AlreadyAttached, InvalidStatusTransition, InvalidPaymentTransition,
    ReferralNotEligible, ReferralValidationError
)
from partners.hierarchy import PartnerHierarchyHelper


ERROR_STATUS_CODES = {
    PartnerNotFound: 404,
    ReferralNotFound: 404,
    CommissionPaymentNotFound: 404,
    CycleDetected: 409,
    AlreadyAttached: 409,
    InvalidStatusTransition: 409,
    InvalidPaymentTransition: 409,
    ReferralNotEligible: 400,
    ReferralValidationError: 400,
}

ERROR_CODES = {
    PartnerNotFound: "partner_not_found",
    ReferralNotFound: "referral_not_found",
    CommissionPaymentNotFound: "commission_payment_not_found",
    CycleDetected: "cycle_detected",
    AlreadyAttached: "already_attached",
    InvalidStatusTransition: "invalid_status_transition",
    InvalidPaymentTransition: "invalid_payment_transition",
    ReferralNotEligible: "referral_not_eligible",
    ReferralValidationError: "validation_error",
}


def get_current_user():
    user_id = session.get("user_id")
    if not user_id:
        return None
    return db.session.get(User, user_id)


def login_required_api(f):
    """
    Decorator for JSON routes that need a signed-in partner.
    Answers 401 instead of redirecting to the login page.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if not user or not user.is_active:
            return jsonify({"error": "Unauthorized"}), 401
        return f(*args, **kwargs)

    return decorated_function


def admin_required(f):
    """
    Decorator to restrict access to admin-only routes.
    - 401 when no user is signed in or the account is deactivated.
    - Fetches the user from the database (to get current role).
    - 403 when the user is not an admin.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if not user or not user.is_active:
            return jsonify({"error": "Unauthorized"}), 401

        if user.role != "admin":
            current_app.logger.warning(f"Non-admin user {user.id} denied admin route")
            return jsonify({"error": "Forbidden"}), 403

        return f(*args, **kwargs)

    return decorated_function


def error_response(exc: PartnerNetworkError):
    """Roll back the request transaction and translate a business-rule error to JSON"""
    db.session.rollback()

    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    code = ERROR_CODES.get(type(exc), "partner_network_error")
    current_app.logger.info(f"Request rejected ({status_code} {code}): {exc}")
    return jsonify({"error": str(exc), "code": code}), status_code


def server_error_response(message: str, exc: Exception):
    db.session.rollback()
    current_app.logger.exception(f"{message}: {exc}")
    return jsonify({"error": message}), 500


def parse_int_arg(value, name):
    """Optional integer query argument; raises ReferralValidationError on junk"""
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ReferralValidationError(f"{name} must be an integer")


def get_json_object():
    """
    Request body as a dict. A missing or unparseable body reads as {},
    any other JSON value (list, string, number) returns None.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def can_view_partner(user: User, partner_id: int) -> bool:
    """Admins see every partner, others only themselves and their downline"""
    if user.is_admin or user.id == partner_id:
        return True
    return PartnerHierarchyHelper.is_descendant(user.id, partner_id)
