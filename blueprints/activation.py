#======================================================================================
#
#   ACTIVATION ENDPOINTS
#
#======================================================================================
import logging
from flask import Blueprint, jsonify, g
from blueprints.auth_helpers import token_required, admin_required
from ledger.activation import ActivationLedger
from utils import get_json_body, require_int_id

logger = logging.getLogger(__name__)

bp = Blueprint("activation", __name__, url_prefix="/api")


@bp.route("/submitActivationRequest", methods=["POST"])
@token_required
def submit_activation_request():
    data = get_json_body()
    outcome = ActivationLedger.submit_request(g.user.id, data.get("utrNumber"))
    return jsonify(outcome.to_dict()), 200


@bp.route("/approveActivation", methods=["POST"])
@admin_required
def approve_activation():
    data = get_json_body()
    request_id = require_int_id(data, "requestId", "Request ID is required")

    outcome = ActivationLedger.approve(request_id, g.admin.id)
    if outcome.has_warning:
        logger.warning(f"Activation {request_id} approved with warning: {outcome.warning}")
    return jsonify(outcome.to_dict()), 200


@bp.route("/rejectActivation", methods=["POST"])
@admin_required
def reject_activation():
    data = get_json_body()
    request_id = require_int_id(data, "requestId", "Request ID is required")

    outcome = ActivationLedger.reject(request_id, data.get("reason"), g.admin.id)
    return jsonify(outcome.to_dict()), 200
