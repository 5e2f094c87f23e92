from flask import Blueprint, jsonify, request

from ..services import notification_service

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
def list_notifications():
    limit = request.args.get("limit", default=50, type=int)
    kind = request.args.get("kind")
    return jsonify([n.to_dict() for n in notification_service.list_notifications(limit=limit, kind=kind)])
