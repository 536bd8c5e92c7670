from flask import Blueprint, jsonify, g, request
from blueprints.auth_helpers import token_required
from ledger.notifications import NotificationHelper
from utils import get_limit_arg

bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@bp.route("", methods=["GET"])
@token_required
def list_notifications():
    unread_only = request.args.get("unread", "").lower() in ("1", "true", "yes")
    items = NotificationHelper.list_for_user(g.user.id, limit=get_limit_arg(10, 50), unread_only=unread_only)
    return jsonify({
        "notifications": [n.to_dict() for n in items],
        "unreadCount": NotificationHelper.unread_count(g.user.id),
    }), 200


@bp.route("/unread-count", methods=["GET"])
@token_required
def unread_count():
    return jsonify({"unreadCount": NotificationHelper.unread_count(g.user.id)}), 200


@bp.route("/<int:notification_id>/read", methods=["POST"])
@token_required
def mark_read(notification_id):
    notification = NotificationHelper.mark_read(notification_id, g.user.id)
    return jsonify({"success": True, "notification": notification.to_dict()}), 200


@bp.route("/read-all", methods=["POST"])
@token_required
def mark_all_read():
    updated = NotificationHelper.mark_all_read(g.user.id)
    return jsonify({"success": True, "updated": updated}), 200
