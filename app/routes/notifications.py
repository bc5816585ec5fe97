from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import select, update, or_, and_
from ..extensions import db
from ..models import Notification
from ..utils.auth import is_admin, login_required
from ..utils.helpers import parse_bool, utcnow
from ..utils.serializers import serialize_notification

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


def visible_now(now):
    return or_(
        Notification.is_scheduled.is_(False),
        and_(Notification.is_scheduled.is_(True), Notification.scheduled_for <= now),
    )


@notifications_bp.route("", methods=["GET"])
@login_required
def list_notifications():
    """
    Notifications for the signed-in user (admins see every notification)
    ---
    tags:
      - Notifications
    security:
      - Bearer: []
    parameters:
      - in: query
        name: unread_only
        type: boolean
      - in: query
        name: limit
        type: integer
        default: 50
    responses:
      200:
        description: Newest first; scheduled notifications appear once due
    """
    try:
        user = g.current_user
        limit = min(max(request.args.get("limit", 50, type=int) or 50, 1), 200)
        filters = [visible_now(utcnow())]
        if not is_admin(user):
            filters.append(Notification.user_id == user.id)
        if parse_bool(request.args.get("unread_only") or request.args.get("unreadOnly")):
            filters.append(Notification.read.is_(False))

        notifications = db.session.scalars(
            select(Notification)
            .where(*filters)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        ).all()

        return jsonify({
            "status": "success",
            "notifications": [serialize_notification(n) for n in notifications]
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to fetch notifications: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch notifications", "details": str(e)}), 500


@notifications_bp.route("", methods=["PATCH"])
@login_required
def update_notifications():
    try:
        user = g.current_user
        data = request.get_json(force=True, silent=True) or {}

        if parse_bool(data.get("mark_all_as_read")):
            stmt = update(Notification).where(Notification.read.is_(False))
            if not is_admin(user):
                stmt = stmt.where(Notification.user_id == user.id)
            result = db.session.execute(stmt.values(read=True).execution_options(synchronize_session=False))
            db.session.commit()
            return jsonify({
                "status": "success",
                "message": "All notifications marked as read",
                "updated": result.rowcount
            }), 200

        notification_id = data.get("notification_id")
        if notification_id is not None and "read" in data:
            notification = db.session.get(Notification, notification_id)
            if not notification:
                return jsonify({"status": "error", "message": "Notification not found"}), 404
            if not is_admin(user) and notification.user_id != user.id:
                return jsonify({"status": "error", "message": "Forbidden"}), 403

            notification.read = bool(parse_bool(data.get("read")))
            db.session.commit()
            return jsonify({
                "status": "success",
                "message": "Notification updated",
                "notification": serialize_notification(notification)
            }), 200

        return jsonify({"status": "error", "message": "Invalid request"}), 400

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update notifications: {e}")
        return jsonify({"status": "error", "message": "Failed to update notification", "details": str(e)}), 500
