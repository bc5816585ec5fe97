# Audit trail browser
from datetime import timedelta

from flask import Blueprint, jsonify, request, current_app
from sqlalchemy import select, func
from app.extensions import db
from app.models import ADMIN_ACTION_TYPES, AdminLog
from app.utils.auth import admin_required
from app.utils.helpers import build_pagination, get_pagination, iso, parse_datetime

admin_logs_bp = Blueprint("admin_logs", __name__, url_prefix="/api/admin/logs")


def serialize_log(entry):
    return {
        "id": entry.id,
        "action_type": entry.action_type,
        "resource_type": entry.resource_type,
        "resource_id": entry.resource_id,
        "description": entry.description,
        "details": entry.details,
        "ip_address": entry.ip_address,
        "user_agent": entry.user_agent,
        "metadata": entry.request_meta,
        "user": (
            {"id": entry.user.id, "name": entry.user.name, "email": entry.user.email}
            if entry.user
            else None
        ),
        "created_at": iso(entry.created_at),
    }


@admin_logs_bp.route("", methods=["GET"])
@admin_required
def list_logs():
    """
    GET /api/admin/logs - Admin audit log

    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: user_id
        in: query
        type: integer
      - name: action_type
        in: query
        type: string
      - name: resource_type
        in: query
        type: string
      - name: start_date
        in: query
        type: string
      - name: end_date
        in: query
        type: string
        description: Inclusive of the whole day
      - name: search
        in: query
        type: string
    responses:
      200:
        description: Newest entries first
    """
    try:
        page, limit, offset = get_pagination(default_limit=50, max_limit=200)
        filters = []

        user_id = request.args.get("user_id", type=int)
        if user_id:
            filters.append(AdminLog.user_id == user_id)
        action_type = (request.args.get("action_type") or "").upper()
        if action_type:
            if action_type not in ADMIN_ACTION_TYPES:
                return jsonify({"status": "error", "message": "Invalid action_type"}), 400
            filters.append(AdminLog.action_type == action_type)
        resource_type = (request.args.get("resource_type") or "").strip()
        if resource_type:
            filters.append(AdminLog.resource_type == resource_type)

        try:
            start = parse_datetime(request.args.get("start_date"))
            end = parse_datetime(request.args.get("end_date"))
        except ValueError:
            return jsonify({"status": "error", "message": "Invalid date format"}), 400
        if start:
            filters.append(AdminLog.created_at >= start)
        if end:
            end = end.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
            filters.append(AdminLog.created_at < end)

        search = (request.args.get("search") or "").strip()
        if search:
            filters.append(func.lower(AdminLog.description).like(f"%{search.lower()}%"))

        total = db.session.scalar(select(func.count(AdminLog.id)).where(*filters)) or 0
        entries = db.session.scalars(
            select(AdminLog)
            .where(*filters)
            .order_by(AdminLog.created_at.desc(), AdminLog.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()

        return jsonify({
            "status": "success",
            "logs": [serialize_log(e) for e in entries],
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list admin logs: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch logs", "details": str(e)}), 500
