from flask import Blueprint, jsonify, request
from partners.exceptions import PartnerNetworkError
from partners.tree_queries import PartnerTreeHelper
from blueprints.helpers import (
    login_required_api, get_current_user, can_view_partner, error_response, server_error_response,
    parse_int_arg
)


bp = Blueprint('partners', __name__, url_prefix="")


# ----------------------------------------------------------------------------------
# SIGNED-IN PARTNER
# ----------------------------------------------------------------------------------
@bp.route("/api/partners/me", methods=["GET"])
@login_required_api
def get_me():
    user = get_current_user()
    return jsonify(user.to_dict()), 200


#=======================================================================================
#      HIERARCHY VIEWS
#=======================================================================================
@bp.route("/api/partners/<int:partner_id>/upline", methods=["GET"])
@login_required_api
def get_upline(partner_id):
    """Ancestor chain of a partner, nearest first"""
    try:
        if not can_view_partner(get_current_user(), partner_id):
            return jsonify({"error": "Forbidden"}), 403

        upline = PartnerTreeHelper.get_upline(partner_id)
    except PartnerNetworkError as e:
        return error_response(e)
    except Exception as e:
        return server_error_response(f"Error getting upline for partner {partner_id}", e)

    return jsonify({
        "success": True,
        "partnerId": partner_id,
        "upline": [
            dict(edge.to_dict(), name=edge.parent.display_name, partnerCode=edge.parent.partner_id)
            for edge in upline
        ]
    }), 200


@bp.route("/api/partners/<int:partner_id>/downline", methods=["GET"])
@login_required_api
def get_downline(partner_id):
    """Nested downline tree, optionally truncated with ?maxDepth=N"""
    try:
        if not can_view_partner(get_current_user(), partner_id):
            return jsonify({"error": "Forbidden"}), 403

        max_depth = parse_int_arg(request.args.get("maxDepth"), "maxDepth")
        if max_depth is not None and max_depth < 0:
            return jsonify({"error": "maxDepth must be zero or positive"}), 400

        tree = PartnerTreeHelper.get_downline(partner_id, max_depth=max_depth)
    except PartnerNetworkError as e:
        return error_response(e)
    except Exception as e:
        return server_error_response(f"Error getting downline for partner {partner_id}", e)

    return jsonify({
        "success": True,
        "tree": tree.to_dict(),
        "size": tree.size()
    }), 200


@bp.route("/api/partners/<int:partner_id>/network", methods=["GET"])
@login_required_api
def get_network(partner_id):
    try:
        if not can_view_partner(get_current_user(), partner_id):
            return jsonify({"error": "Forbidden"}), 403

        network_summary = PartnerTreeHelper.get_network_summary(partner_id)
    except PartnerNetworkError as e:
        return error_response(e)
    except Exception as e:
        return server_error_response(f"Error getting network for partner {partner_id}", e)

    return jsonify({
        "success": True,
        "network": network_summary
    }), 200
