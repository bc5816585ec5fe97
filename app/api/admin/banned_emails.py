from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from app.extensions import db
from app.models import BannedEmail
from app.services.admin_logger import log_current_admin
from app.utils.auth import admin_required
from app.utils.helpers import iso, normalize_email

admin_banned_emails_bp = Blueprint(
    "admin_banned_emails", __name__, url_prefix="/api/admin/banned-emails"
)


def serialize_banned_email(entry):
    return {
        "id": entry.id,
        "email": entry.email,
        "reason": entry.reason,
        "banned_by": entry.banned_by,
        "created_at": iso(entry.created_at),
    }


@admin_banned_emails_bp.route("", methods=["GET"])
@admin_required
def list_banned_emails():
    entries = db.session.scalars(
        select(BannedEmail).order_by(BannedEmail.created_at.desc(), BannedEmail.id.desc())
    ).all()
    return jsonify({"status": "success", "banned_emails": [serialize_banned_email(e) for e in entries]}), 200


@admin_banned_emails_bp.route("", methods=["POST"])
@admin_required
def ban_email():
    try:
        data = request.get_json(force=True) or {}
        email = normalize_email(data.get("email"))
        if not email:
            return jsonify({"status": "error", "message": "Email is required"}), 400
        if db.session.scalar(select(BannedEmail.id).where(BannedEmail.email == email)):
            return jsonify({"status": "error", "message": "Email is already banned"}), 400

        entry = BannedEmail(
            email=email,
            reason=(data.get("reason") or "").strip() or None,
            banned_by=g.current_user.id,
        )
        db.session.add(entry)
        db.session.commit()

        log_current_admin("CREATE", "BannedEmail", entry.id, email, details={"reason": entry.reason})
        return jsonify({"status": "success", "banned_email": serialize_banned_email(entry)}), 201

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "Email is already banned", "details": str(e.orig)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to ban email: {e}")
        return jsonify({"status": "error", "message": "Failed to ban email", "details": str(e)}), 500


@admin_banned_emails_bp.route("", methods=["DELETE"])
@admin_required
def unban_email():
    try:
        email = normalize_email(request.args.get("email"))
        if not email:
            return jsonify({"status": "error", "message": "email parameter is required"}), 400

        entry = db.session.scalar(select(BannedEmail).where(BannedEmail.email == email))
        if not entry:
            return jsonify({"status": "error", "message": "Email is not banned"}), 404

        entry_id = entry.id
        db.session.delete(entry)
        db.session.commit()

        log_current_admin("DELETE", "BannedEmail", entry_id, email)
        return jsonify({"status": "success", "message": "Email unbanned"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to unban email: {e}")
        return jsonify({"status": "error", "message": "Failed to unban email", "details": str(e)}), 500
