from core.imports import Blueprint, jsonify, request, get_jwt_identity
from core.auth import role_required
from services import notifications

notification_bp = Blueprint("notifications", __name__)


@notification_bp.route('/api/notifications', methods=['GET'])
@role_required()
def list_notifications():
    unread_only = request.args.get("unread", "").lower() in ("1", "true", "yes")
    items = notifications.list_notifications(get_jwt_identity(), unread_only=unread_only)
    return jsonify({"notifications": [n.to_dict() for n in items], "count": len(items)}), 200


@notification_bp.route('/api/notifications/unread-count', methods=['GET'])
@role_required()
def unread_count():
    return jsonify({"unread_count": notifications.unread_count(get_jwt_identity())}), 200


@notification_bp.route('/api/notifications/<notification_id>/read', methods=['PATCH'])
@role_required()
def mark_read(notification_id):
    notification = notifications.mark_read(get_jwt_identity(), notification_id)
    return jsonify({"message": "Notification marked as read", "notification": notification.to_dict()}), 200


@notification_bp.route('/api/notifications/read-all', methods=['PATCH'])
@role_required()
def mark_all_read():
    updated = notifications.mark_all_read(get_jwt_identity())
    return jsonify({"message": "All notifications marked as read", "updated": updated}), 200


@notification_bp.route('/api/notifications/<notification_id>', methods=['DELETE'])
@role_required()
def delete_notification(notification_id):
    notifications.delete_notification(get_jwt_identity(), notification_id)
    return jsonify({"message": "Notification deleted"}), 200
