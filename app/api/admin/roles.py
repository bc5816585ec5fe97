from flask import Blueprint, jsonify, request, current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from app.extensions import db
from app.models import Role
from app.services.admin_logger import log_current_admin
from app.utils.auth import admin_required
from app.utils.helpers import iso

admin_roles_bp = Blueprint("admin_roles", __name__, url_prefix="/api/admin/roles")


def serialize_role(role):
    return {
        "id": role.id,
        "name": role.name,
        "permissions": role.permissions or {},
        "created_at": iso(role.created_at),
    }


@admin_roles_bp.route("", methods=["GET"])
@admin_required
def list_roles():
    roles = db.session.scalars(select(Role).order_by(Role.name.asc())).all()
    return jsonify({"status": "success", "roles": [serialize_role(r) for r in roles]}), 200


@admin_roles_bp.route("", methods=["POST"])
@admin_required
def create_role():
    try:
        data = request.get_json(force=True) or {}
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify({"status": "error", "message": "Role name is required"}), 400

        permissions = data.get("permissions") or {}
        if not isinstance(permissions, (dict, list)):
            return jsonify({"status": "error", "message": "permissions must be a JSON object or list"}), 400

        if db.session.scalar(select(Role.id).where(Role.name == name)):
            return jsonify({"status": "error", "message": "A role with this name already exists"}), 409

        role = Role(name=name, permissions=permissions)
        db.session.add(role)
        db.session.commit()

        log_current_admin("CREATE", "Role", role.id, role.name)
        return jsonify({"status": "success", "role": serialize_role(role)}), 201

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "A role with this name already exists", "details": str(e.orig)}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create role: {e}")
        return jsonify({"status": "error", "message": "Failed to create role", "details": str(e)}), 500
