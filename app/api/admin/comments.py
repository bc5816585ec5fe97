from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy import select, func
from app.extensions import db
from app.models import MODERATION_STATUSES, Comment
from app.routes.blogs import serialize_comment
from app.services.admin_logger import log_current_admin
from app.utils.auth import admin_required
from app.utils.helpers import build_pagination, get_pagination, iso, utcnow

admin_comments_bp = Blueprint("admin_comments", __name__, url_prefix="/api/admin/comments")

REVIEW_ACTIONS = {"approve": "APPROVED", "reject": "REJECTED"}


def serialize_admin_comment(comment):
    data = serialize_comment(comment)
    data["blog"] = {"id": comment.blog.id, "title": comment.blog.title, "slug": comment.blog.slug} if comment.blog else None
    data["user_email"] = comment.user.email if comment.user else None
    data["reviewed_by"] = comment.reviewed_by
    data["reviewed_at"] = iso(comment.reviewed_at)
    return data


@admin_comments_bp.route("", methods=["GET"])
@admin_required
def list_comments():
    try:
        page, limit, offset = get_pagination(default_limit=20)
        filters = []
        status = (request.args.get("status") or "").upper()
        if status in MODERATION_STATUSES:
            filters.append(Comment.status == status)
        blog_id = request.args.get("blog_id", type=int)
        if blog_id:
            filters.append(Comment.blog_id == blog_id)

        total = db.session.scalar(select(func.count(Comment.id)).where(*filters)) or 0
        comments = db.session.scalars(
            select(Comment).where(*filters).order_by(Comment.created_at.desc(), Comment.id.desc()).offset(offset).limit(limit)
        ).all()

        return jsonify({
            "status": "success",
            "comments": [serialize_admin_comment(c) for c in comments],
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list comments: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch comments", "details": str(e)}), 500


@admin_comments_bp.route("/<int:comment_id>", methods=["PUT"])
@admin_required
def moderate_comment(comment_id):
    try:
        comment = db.session.get(Comment, comment_id)
        if not comment:
            return jsonify({"status": "error", "message": "Comment not found"}), 404

        data = request.get_json(force=True) or {}
        action = (data.get("action") or "").lower()
        if action not in REVIEW_ACTIONS:
            return jsonify({"status": "error", "message": "action must be approve or reject"}), 400

        comment.status = REVIEW_ACTIONS[action]
        comment.reviewed_by = g.current_user.id
        comment.reviewed_at = utcnow()
        db.session.commit()

        log_current_admin(
            "APPROVE" if action == "approve" else "REJECT", "Comment", comment.id,
            details={"blog_id": comment.blog_id},
        )
        return jsonify({"status": "success", "comment": serialize_admin_comment(comment)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to moderate comment {comment_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update comment", "details": str(e)}), 500


@admin_comments_bp.route("/<int:comment_id>", methods=["DELETE"])
@admin_required
def delete_comment(comment_id):
    try:
        comment = db.session.get(Comment, comment_id)
        if not comment:
            return jsonify({"status": "error", "message": "Comment not found"}), 404

        db.session.delete(comment)
        db.session.commit()

        log_current_admin("DELETE", "Comment", comment_id)
        return jsonify({"status": "success", "message": "Comment deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete comment {comment_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete comment", "details": str(e)}), 500
