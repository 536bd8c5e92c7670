from flask import Blueprint, jsonify, current_app
from blueprints.auth_helpers import issue_id_token
from ledger.accounts import AccountService, ReferralCodeHelper
from utils import get_json_body


bp = Blueprint("auth", __name__, url_prefix="/api")


@bp.route("/register", methods=["POST"])
def register():
    """
    Create a new user, optionally referred by an active user's code.
    Returns the profile and a bearer token for the new account.
    """
    data = get_json_body()

    user = AccountService.register(
        name=data.get("name") or data.get("fullName"),
        email=data.get("email"),
        phone=data.get("phone"),
        password=data.get("password"),
        referral_code=data.get("referralCode"),
    )

    return jsonify({
        "success": True,
        "message": "Registration successful",
        "token": issue_id_token(user.id),
        "user": user.to_dict(base_url=current_app.config.get("APP_URL")),
    }), 201


@bp.route("/referral-codes/<code>", methods=["GET"])
def check_referral_code(code):
    return jsonify(ReferralCodeHelper.lookup(code)), 200
