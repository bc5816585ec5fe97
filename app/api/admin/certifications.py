# Certifications and the product categories each one unlocks
from flask import Blueprint, jsonify, request, current_app
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from app.extensions import db
from app.models import Category, Certification, CertificationCategory, User
from app.services.admin_logger import log_current_admin
from app.utils.auth import admin_required
from app.utils.helpers import iso, parse_bool
from app.utils.serializers import serialize_user

admin_certifications_bp = Blueprint(
    "admin_certifications", __name__, url_prefix="/api/admin/certifications"
)


def serialize_certification(certification, user_count=None):
    data = {
        "id": certification.id,
        "name": certification.name,
        "description": certification.description,
        "is_active": certification.is_active,
        "categories": [
            {"id": link.category.id, "name": link.category.name, "slug": link.category.slug}
            for link in certification.certification_categories
            if link.category
        ],
        "created_at": iso(certification.created_at),
        "updated_at": iso(certification.updated_at),
    }
    if user_count is not None:
        data["user_count"] = user_count
    return data


def _user_count(certification_id):
    return db.session.scalar(
        select(func.count(User.id)).where(User.certification_id == certification_id)
    ) or 0


def _resolve_categories(category_ids):
    """Return (ids, error message)."""
    if category_ids is None:
        return [], None
    if not isinstance(category_ids, list):
        return None, "category_ids must be a list"
    try:
        ids = sorted({int(c) for c in category_ids})
    except (TypeError, ValueError):
        return None, "category_ids must contain integers"
    found = set(db.session.scalars(select(Category.id).where(Category.id.in_(ids))).all()) if ids else set()
    missing = [c for c in ids if c not in found]
    if missing:
        return None, f"Unknown category ids: {', '.join(str(c) for c in missing)}"
    return ids, None


def _replace_categories(certification, category_ids):
    certification.certification_categories.clear()
    db.session.flush()
    for category_id in category_ids:
        certification.certification_categories.append(CertificationCategory(category_id=category_id))


@admin_certifications_bp.route("", methods=["GET"])
@admin_required
def list_certifications():
    try:
        filters = []
        search = (request.args.get("search") or "").strip()
        if search:
            filters.append(func.lower(Certification.name).like(f"%{search.lower()}%"))
        if request.args.get("is_active") is not None:
            filters.append(Certification.is_active.is_(bool(parse_bool(request.args.get("is_active")))))

        certifications = db.session.scalars(
            select(Certification).where(*filters).order_by(Certification.name.asc())
        ).all()
        return jsonify({
            "status": "success",
            "certifications": [serialize_certification(c, _user_count(c.id)) for c in certifications]
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list certifications: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch certifications", "details": str(e)}), 500


@admin_certifications_bp.route("", methods=["POST"])
@admin_required
def create_certification():
    try:
        data = request.get_json(force=True) or {}
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify({"status": "error", "message": "Certification name is required"}), 400
        if db.session.scalar(select(Certification.id).where(Certification.name == name)):
            return jsonify({"status": "error", "message": "A certification with this name already exists"}), 409

        category_ids, error = _resolve_categories(data.get("category_ids"))
        if error:
            return jsonify({"status": "error", "message": error}), 400

        certification = Certification(
            name=name,
            description=data.get("description"),
            is_active=parse_bool(data.get("is_active")) is not False,
        )
        db.session.add(certification)
        db.session.flush()
        _replace_categories(certification, category_ids)
        db.session.commit()

        log_current_admin("CREATE", "Certification", certification.id, certification.name,
                          details={"category_ids": category_ids})
        return jsonify({"status": "success", "certification": serialize_certification(certification, 0)}), 201

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "A certification with this name already exists", "details": str(e.orig)}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create certification: {e}")
        return jsonify({"status": "error", "message": "Failed to create certification", "details": str(e)}), 500


@admin_certifications_bp.route("/<int:certification_id>", methods=["GET"])
@admin_required
def get_certification(certification_id):
    certification = db.session.get(Certification, certification_id)
    if not certification:
        return jsonify({"status": "error", "message": "Certification not found"}), 404
    return jsonify({
        "status": "success",
        "certification": serialize_certification(certification, _user_count(certification.id))
    }), 200


@admin_certifications_bp.route("/<int:certification_id>", methods=["PUT"])
@admin_required
def update_certification(certification_id):
    try:
        certification = db.session.get(Certification, certification_id)
        if not certification:
            return jsonify({"status": "error", "message": "Certification not found"}), 404

        data = request.get_json(force=True) or {}
        if "name" in data:
            name = (data.get("name") or "").strip()
            if not name:
                return jsonify({"status": "error", "message": "Certification name cannot be empty"}), 400
            clash = db.session.scalar(
                select(Certification.id).where(Certification.name == name, Certification.id != certification.id)
            )
            if clash:
                return jsonify({"status": "error", "message": "A certification with this name already exists"}), 409
            certification.name = name
        if "description" in data:
            certification.description = data.get("description")
        if "is_active" in data:
            certification.is_active = bool(parse_bool(data.get("is_active")))
        if "category_ids" in data:
            category_ids, error = _resolve_categories(data.get("category_ids"))
            if error:
                return jsonify({"status": "error", "message": error}), 400
            _replace_categories(certification, category_ids)

        db.session.commit()
        log_current_admin("UPDATE", "Certification", certification.id, certification.name)
        return jsonify({
            "status": "success",
            "certification": serialize_certification(certification, _user_count(certification.id))
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update certification {certification_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update certification", "details": str(e)}), 500


@admin_certifications_bp.route("/<int:certification_id>", methods=["DELETE"])
@admin_required
def delete_certification(certification_id):
    try:
        certification = db.session.get(Certification, certification_id)
        if not certification:
            return jsonify({"status": "error", "message": "Certification not found"}), 404

        name = certification.name
        for user in certification.users:
            user.certification_id = None
        db.session.delete(certification)
        db.session.commit()

        log_current_admin("DELETE", "Certification", certification_id, name)
        return jsonify({"status": "success", "message": "Certification deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete certification {certification_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete certification", "details": str(e)}), 500


@admin_certifications_bp.route("/<int:certification_id>/users", methods=["GET"])
@admin_required
def certification_users(certification_id):
    certification = db.session.get(Certification, certification_id)
    if not certification:
        return jsonify({"status": "error", "message": "Certification not found"}), 404

    users = db.session.scalars(
        select(User).where(User.certification_id == certification_id).order_by(User.name.asc())
    ).all()
    return jsonify({"status": "success", "users": [serialize_user(u) for u in users]}), 200
