from flask import Blueprint, jsonify, request, current_app
from sqlalchemy import select, func
from app.extensions import db
from app.models import Notification, User
from app.services.admin_logger import log_current_admin
from app.services.notifications import create_notification
from app.utils.auth import admin_required
from app.utils.helpers import build_pagination, get_pagination, parse_bool, parse_datetime, utcnow
from app.utils.serializers import serialize_notification

admin_notifications_bp = Blueprint(
    "admin_notifications", __name__, url_prefix="/api/admin/notifications"
)


def delivery_status(notification, now):
    if notification.is_scheduled and notification.scheduled_for and notification.scheduled_for > now:
        return "scheduled"
    return "active"


def serialize_admin_notification(notification, now):
    data = serialize_notification(notification)
    data["status"] = delivery_status(notification, now)
    data["user"] = (
        {"id": notification.user.id, "name": notification.user.name, "email": notification.user.email}
        if notification.user
        else None
    )
    return data


def _schedule_fields(data):
    """Returns (is_scheduled, scheduled_for, error)."""
    is_scheduled = bool(parse_bool(data.get("is_scheduled")))
    if not is_scheduled:
        return False, None, None
    try:
        scheduled_for = parse_datetime(data.get("scheduled_for"))
    except ValueError:
        return None, None, "Invalid scheduled_for"
    if not scheduled_for:
        return None, None, "scheduled_for is required for scheduled notifications"
    return True, scheduled_for, None


@admin_notifications_bp.route("", methods=["GET"])
@admin_required
def list_notifications():
    try:
        page, limit, offset = get_pagination(default_limit=50)
        now = utcnow()
        filters = []
        status = request.args.get("status")
        if status == "scheduled":
            filters += [Notification.is_scheduled.is_(True), Notification.scheduled_for > now]
        elif status == "active":
            filters.append((Notification.is_scheduled.is_(False)) | (Notification.scheduled_for <= now))
        notification_type = (request.args.get("type") or "").upper()
        if notification_type:
            filters.append(Notification.type == notification_type)

        total = db.session.scalar(select(func.count(Notification.id)).where(*filters)) or 0
        notifications = db.session.scalars(
            select(Notification)
            .where(*filters)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()

        return jsonify({
            "status": "success",
            "notifications": [serialize_admin_notification(n, now) for n in notifications],
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list notifications: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch notifications", "details": str(e)}), 500


@admin_notifications_bp.route("", methods=["POST"])
@admin_required
def create_admin_notification():
    try:
        data = request.get_json(force=True) or {}
        title = (data.get("title") or "").strip()
        message = (data.get("message") or "").strip()
        if not title or not message:
            return jsonify({"status": "error", "message": "Title and message are required"}), 400

        user_id = data.get("user_id")
        if user_id and not db.session.get(User, user_id):
            return jsonify({"status": "error", "message": "User not found"}), 404

        is_scheduled, scheduled_for, error = _schedule_fields(data)
        if error:
            return jsonify({"status": "error", "message": error}), 400

        notification = create_notification(
            (data.get("type") or "SYSTEM").upper(),
            title,
            message,
            user_id=user_id or None,
            link_url=data.get("link_url"),
            image=data.get("image"),
            is_scheduled=is_scheduled,
            scheduled_for=scheduled_for,
        )
        db.session.commit()

        log_current_admin("CREATE", "Notification", notification.id, title)
        return jsonify({
            "status": "success",
            "notification": serialize_admin_notification(notification, utcnow())
        }), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create notification: {e}")
        return jsonify({"status": "error", "message": "Failed to create notification", "details": str(e)}), 500


@admin_notifications_bp.route("/<int:notification_id>", methods=["GET"])
@admin_required
def get_notification(notification_id):
    notification = db.session.get(Notification, notification_id)
    if not notification:
        return jsonify({"status": "error", "message": "Notification not found"}), 404
    return jsonify({"status": "success", "notification": serialize_admin_notification(notification, utcnow())}), 200


@admin_notifications_bp.route("/<int:notification_id>", methods=["PUT"])
@admin_required
def update_notification(notification_id):
    try:
        notification = db.session.get(Notification, notification_id)
        if not notification:
            return jsonify({"status": "error", "message": "Notification not found"}), 404

        data = request.get_json(force=True) or {}
        for field in ("title", "message"):
            if field in data:
                value = (data.get(field) or "").strip()
                if not value:
                    return jsonify({"status": "error", "message": f"{field} cannot be empty"}), 400
                setattr(notification, field, value)
        for field in ("link_url", "image"):
            if field in data:
                setattr(notification, field, data.get(field))
        if "read" in data:
            notification.read = bool(parse_bool(data.get("read")))
        if "is_scheduled" in data or "scheduled_for" in data:
            merged = {
                "is_scheduled": data.get("is_scheduled", notification.is_scheduled),
                "scheduled_for": data.get("scheduled_for", notification.scheduled_for),
            }
            is_scheduled, scheduled_for, error = _schedule_fields(merged)
            if error:
                return jsonify({"status": "error", "message": error}), 400
            notification.is_scheduled = is_scheduled
            notification.scheduled_for = scheduled_for

        db.session.commit()
        log_current_admin("UPDATE", "Notification", notification.id, notification.title)
        return jsonify({
            "status": "success",
            "notification": serialize_admin_notification(notification, utcnow())
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update notification {notification_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update notification", "details": str(e)}), 500


@admin_notifications_bp.route("/<int:notification_id>", methods=["DELETE"])
@admin_required
def delete_notification(notification_id):
    try:
        notification = db.session.get(Notification, notification_id)
        if not notification:
            return jsonify({"status": "error", "message": "Notification not found"}), 404

        title = notification.title
        db.session.delete(notification)
        db.session.commit()

        log_current_admin("DELETE", "Notification", notification_id, title)
        return jsonify({"status": "success", "message": "Notification deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete notification {notification_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete notification", "details": str(e)}), 500
