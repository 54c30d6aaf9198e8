from flask import request, jsonify, session, Blueprint, current_app
from flask_login import login_user, logout_user
from extensions import db
from models import User
from partners.audit import AuditHelper
from partners.exceptions import PartnerNetworkError
from partners.hierarchy import PartnerHierarchyHelper
from utils import validate_email, validate_phone, generate_referral_code, generate_partner_id, clean_text
from blueprints.helpers import get_json_object, error_response, server_error_response

#==================================================================================================================

bp = Blueprint("auth", __name__, url_prefix="")


#===========================================================================
#      SIGN UP ROUTE.
#==============================================================================
@bp.route("/api/signup", methods=["POST"])
def signup():
    """
    Create a new partner and, when a referral code is supplied, recruit
    them under the partner who owns that code.
    """
    data = get_json_object()
    if not data:
        return jsonify({"error": "Invalid or missing JSON body"}), 400

    email = clean_text(data.get("email")).lower()
    password = data.get("password") if isinstance(data.get("password"), str) else ""
    first_name = clean_text(data.get("firstName"))
    last_name = clean_text(data.get("lastName"))
    company = clean_text(data.get("company")) or None
    phone = clean_text(data.get("phone")) or None
    referral_code = clean_text(data.get("referralCode")).upper()

    # -----------------------------------------
    #  BASIC VALIDATION
    # -----------------------------------------
    if not email or not password or not first_name or not last_name:
        return jsonify({"error": "email, password, firstName and lastName are required"}), 400

    if not validate_email(email):
        return jsonify({"error": "Invalid email address"}), 400

    if phone and not validate_phone(phone):
        return jsonify({"error": "Invalid phone number"}), 400

    if len(password) < 6:
        return jsonify({"error": "Password must be at least 6 characters"}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({"error": "Email already registered"}), 400

    referrer = None
    if referral_code:
        referrer = User.query.filter_by(referral_code=referral_code).first()
        if not referrer:
            return jsonify({"error": "Invalid referral code"}), 400

    try:
        new_user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            company=company,
            phone=phone,
        )
        new_user.set_password(password)
        new_user.referral_code = generate_referral_code()
        new_user.partner_id = generate_partner_id(new_user)

        db.session.add(new_user)
        db.session.flush()

        AuditHelper.log_event(
            'partner_registered', 'user', new_user.id,
            actor_id=new_user.id,
            details={'referral_code_used': referral_code or None},
            ip_address=request.remote_addr
        )

        # -------------------------------------
        #  HIERARCHY
        # -------------------------------------
        if referrer:
            PartnerHierarchyHelper.attach_partner(new_user.id, referrer.id, actor_id=new_user.id)

        db.session.commit()

    except PartnerNetworkError as e:
        return error_response(e)
    except Exception as e:
        return server_error_response("Signup failed. Please try again.", e)

    current_app.logger.info(
        f"Partner {new_user.id} registered" + (f" under {referrer.id}" if referrer else "")
    )
    return jsonify({
        "status": "success",
        "message": "Signup successful",
        "user": new_user.to_dict()
    }), 201


# --------------------------------------------------
#      Login Route
# --------------------------------------------------
@bp.route("/api/login", methods=["POST"])
def login():
    """
    Authenticate a partner.
    Expected JSON:
    {
        "email": "",
        "password": ""
    }
    """
    data = get_json_object()
    if data is None:
        return jsonify({"error": "JSON object body required"}), 400
    email = clean_text(data.get("email")).lower()
    password = data.get("password") if isinstance(data.get("password"), str) else ""

    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        current_app.logger.info(f"Failed login for {email}")
        return jsonify({"error": "Invalid credentials"}), 401

    if not user.is_active:
        return jsonify({"error": "Account is deactivated"}), 403

    session["user_id"] = user.id
    login_user(user)

    return jsonify({
        "message": "Login successful",
        "user": user.to_dict()
    }), 200


@bp.route("/api/logout", methods=["POST"])
def logout():
    logout_user()
    session.pop("user_id", None)
    return jsonify({"message": "Logged out"}), 200
