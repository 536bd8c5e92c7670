#======================================================================================
#
#   WITHDRAWAL ENDPOINTS
#
#======================================================================================
import logging
from flask import Blueprint, jsonify, g
from blueprints.auth_helpers import token_required, admin_required
from ledger.withdrawal import WithdrawalLedger
from utils import get_json_body, require_int_id

logger = logging.getLogger(__name__)

bp = Blueprint("withdrawals", __name__, url_prefix="/api")


@bp.route("/createWithdrawalRequest", methods=["POST"])
@token_required
def create_withdrawal_request():
    data = get_json_body()
    outcome = WithdrawalLedger.create_request(g.user.id, data.get("amount"), data.get("upiId"))
    return jsonify(outcome.to_dict()), 200


@bp.route("/approveWithdrawal", methods=["POST"])
@admin_required
def approve_withdrawal():
    data = get_json_body()
    withdrawal_id = require_int_id(data, "withdrawalId", "Withdrawal ID is required")

    outcome = WithdrawalLedger.approve(withdrawal_id, data.get("adminNote"), g.admin.id)
    return jsonify(outcome.to_dict()), 200


@bp.route("/rejectWithdrawal", methods=["POST"])
@admin_required
def reject_withdrawal():
    data = get_json_body()
    withdrawal_id = require_int_id(data, "withdrawalId", "Withdrawal ID is required")

    outcome = WithdrawalLedger.reject(withdrawal_id, data.get("reason"), g.admin.id)
    return jsonify(outcome.to_dict()), 200
