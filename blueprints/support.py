#======================================================================================
#
#   SUPPORT ENDPOINTS (user side + admin ticket desk)
#
#======================================================================================
from flask import Blueprint, jsonify, g, request
from blueprints.auth_helpers import token_required, admin_required
from ledger.support import SupportService, SUCCESS_MESSAGE
from utils import get_json_body, get_limit_arg

bp = Blueprint("support", __name__, url_prefix="/api")


@bp.route("/submitSupportTicket", methods=["POST"])
@token_required
def submit_support_ticket():
    ticket = SupportService.submit_ticket(g.user.id, get_json_body())
    return jsonify({"success": True, "message": SUCCESS_MESSAGE, "ticketId": ticket.id}), 200


@bp.route("/sendSupportEmail", methods=["POST"])
def send_support_email():
    SupportService.send_email(get_json_body())
    return jsonify({"success": True, "message": SUCCESS_MESSAGE}), 200


# ----------------------------------------------------------------------------------
# Admin ticket desk
# ----------------------------------------------------------------------------------
@bp.route("/admin/support-tickets", methods=["GET"])
@admin_required
def list_support_tickets():
    tickets = SupportService.list_tickets(request.args.get("status"), limit=get_limit_arg(100, 500))
    return jsonify({"tickets": [t.to_dict() for t in tickets]}), 200


@bp.route("/admin/support-tickets/<int:ticket_id>/resolve", methods=["POST"])
@admin_required
def resolve_support_ticket(ticket_id):
    ticket = SupportService.resolve(ticket_id)
    return jsonify({"success": True, "message": "Ticket marked as resolved", "ticket": ticket.to_dict()}), 200


@bp.route("/admin/support-tickets/<int:ticket_id>/reopen", methods=["POST"])
@admin_required
def reopen_support_ticket(ticket_id):
    ticket = SupportService.reopen(ticket_id)
    return jsonify({"success": True, "message": "Ticket reopened", "ticket": ticket.to_dict()}), 200


@bp.route("/admin/support-tickets/<int:ticket_id>/reply", methods=["POST"])
@admin_required
def reply_support_ticket(ticket_id):
    data = get_json_body()
    ticket = SupportService.reply(ticket_id, data.get("message"))
    return jsonify({"success": True, "message": "Reply sent successfully!", "ticket": ticket.to_dict()}), 200
