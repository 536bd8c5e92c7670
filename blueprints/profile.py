from flask import Blueprint, jsonify, g, current_app
from models import Transaction
from blueprints.auth_helpers import token_required
from ledger.withdrawal import WithdrawalLedger
from utils import get_limit_arg


bp = Blueprint("profile", __name__, url_prefix="/api/user")

# ----------------------------------------------------------------------------------
# 1️⃣ DASHBOARD DATA: wallet, referral stats, referral link
# ----------------------------------------------------------------------------------
@bp.route("/profile", methods=["GET"])
@token_required
def get_user_profile():
    return jsonify(g.user.to_dict(base_url=current_app.config.get("APP_URL"))), 200


#==========================================================================
# TRANSACTION HISTORY (newest first)
#==========================================================================
@bp.route("/transactions", methods=["GET"])
@token_required
def get_user_transactions():
    transactions = Transaction.query.filter_by(user_id=g.user.id)\
                                    .order_by(Transaction.created_at.desc(), Transaction.id.desc())\
                                    .limit(get_limit_arg(50, 200))\
                                    .all()
    return jsonify({
        "balance": g.user.balance,
        "transactions": [t.to_dict() for t in transactions],
    }), 200


@bp.route("/withdrawals", methods=["GET"])
@token_required
def get_user_withdrawals():
    withdrawals = WithdrawalLedger.get_user_withdrawals(g.user.id, limit=get_limit_arg(20, 100))
    return jsonify({"withdrawals": [w.to_dict() for w in withdrawals]}), 200
