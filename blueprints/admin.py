#======================================================================================
#
# ADMIN ENDPOINTS: earnings and payouts, dashboard counters, review queues
#
#======================================================================================
import logging
from flask import Blueprint, jsonify, request, g
from sqlalchemy import func
from extensions import db
from models import (
    User, ActivationRequest, Withdrawal, AdminStats, SupportTicket, Transaction,
    RequestStatus, TicketStatus, TransactionType, UserRole,
)
from blueprints.auth_helpers import admin_required
from ledger.admin_account import AdminAccountResolver
from ledger.exceptions import NotFoundError, ValidationError
from ledger.withdrawal import WithdrawalLedger
from utils import get_json_body, get_limit_arg

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.route("/earnings", methods=["GET"])
@admin_required
def admin_earnings():
    stats = db.session.get(AdminStats, AdminStats.EARNINGS_ID)

    try:
        admin_id = AdminAccountResolver.get_admin_user_id()
        admin_balance = db.session.get(User, admin_id).balance
    except NotFoundError:
        logger.warning("Earnings requested but no admin account resolves")
        admin_id, admin_balance = None, 0

    return jsonify({
        "totalEarnings": stats.total_earnings if stats else 0,
        "totalActivations": stats.total_activations if stats else 0,
        "adminUserId": admin_id,
        "adminWalletBalance": admin_balance,
    }), 200


@admin_bp.route("/dashboard", methods=["GET"])
@admin_required
def admin_dashboard():
    def count_status(model, status):
        return model.query.filter_by(status=status).count()

    approved_withdrawn = db.session.query(func.coalesce(func.sum(Withdrawal.amount), 0))\
                                   .filter(Withdrawal.status == RequestStatus.APPROVED.value)\
                                   .scalar()

    return jsonify({
        "users": {
            "total": User.query.filter_by(role=UserRole.USER.value).count(),
            "active": User.query.filter_by(role=UserRole.USER.value, is_referral_active=True).count(),
        },
        "activations": {
            "pending": count_status(ActivationRequest, RequestStatus.PENDING.value),
            "approved": count_status(ActivationRequest, RequestStatus.APPROVED.value),
            "rejected": count_status(ActivationRequest, RequestStatus.REJECTED.value),
        },
        "withdrawals": {
            "pending": count_status(Withdrawal, RequestStatus.PENDING.value),
            "approved": count_status(Withdrawal, RequestStatus.APPROVED.value),
            "rejected": count_status(Withdrawal, RequestStatus.REJECTED.value),
            "totalPaidOut": int(approved_withdrawn or 0),
        },
        "support": {
            "pending": count_status(SupportTicket, TicketStatus.PENDING.value),
            "replied": count_status(SupportTicket, TicketStatus.REPLIED.value),
            "resolved": count_status(SupportTicket, TicketStatus.RESOLVED.value),
        },
    }), 200


@admin_bp.route("/activation-requests", methods=["GET"])
@admin_required
def list_activation_requests():
    status = request.args.get("status", RequestStatus.PENDING.value).upper()
    query = ActivationRequest.query
    if status != "ALL":
        query = query.filter_by(status=status)

    requests_ = query.order_by(ActivationRequest.created_at.desc())\
                     .limit(get_limit_arg(100, 500))\
                     .all()
    return jsonify({"requests": [r.to_dict() for r in requests_]}), 200


@admin_bp.route("/withdrawals", methods=["GET"])
@admin_required
def list_withdrawals():
    status = request.args.get("status", RequestStatus.PENDING.value).upper()
    withdrawals = WithdrawalLedger.get_withdrawals(
        status=None if status == "ALL" else status,
        limit=get_limit_arg(100, 500),
    )
    return jsonify({"withdrawals": [w.to_dict() for w in withdrawals]}), 200


@admin_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    query = User.query
    search = (request.args.get("q") or "").strip()
    if search:
        like = f"%{search}%"
        query = query.filter(
            User.name.ilike(like) | User.email.ilike(like) | User.referral_code.ilike(like)
        )

    users = query.order_by(User.created_at.desc()).limit(get_limit_arg(100, 500)).all()
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@admin_bp.route("/earnings/withdraw", methods=["POST"])
@admin_required
def withdraw_earnings():
    data = get_json_body()
    outcome = WithdrawalLedger.admin_payout(g.admin.id, data.get("amount"), data.get("bankDetails"))
    return jsonify(outcome.to_dict()), 200


@admin_bp.route("/earnings/withdrawals", methods=["GET"])
@admin_required
def list_admin_payouts():
    payouts = WithdrawalLedger.get_admin_payouts(limit=get_limit_arg(50, 200))
    return jsonify({"withdrawals": [p.to_dict() for p in payouts]}), 200


CREDIT_TYPES = (TransactionType.CREDIT.value, TransactionType.REFERRAL_BONUS.value)
DEBIT_TYPES = (TransactionType.DEBIT.value, TransactionType.WITHDRAWAL.value)


@admin_bp.route("/transactions", methods=["GET"])
@admin_required
def list_transactions():
    """Every ledger line on the platform, newest first, optionally one type."""
    txn_type = (request.args.get("type") or "ALL").strip().upper()
    query = Transaction.query
    if txn_type != "ALL":
        if txn_type not in TransactionType.__members__:
            raise ValidationError("Invalid transaction type")
        query = query.filter_by(type=txn_type)

    transactions = query.order_by(Transaction.created_at.desc(), Transaction.id.desc())\
                        .limit(get_limit_arg(100, 500))\
                        .all()

    def total(types):
        return int(db.session.query(func.coalesce(func.sum(Transaction.amount), 0))
                   .filter(Transaction.type.in_(types))
                   .scalar() or 0)

    return jsonify({
        "transactions": [t.to_dict() for t in transactions],
        "totals": {
            "credits": total(CREDIT_TYPES),
            "debits": total(DEBIT_TYPES),
        },
    }), 200
