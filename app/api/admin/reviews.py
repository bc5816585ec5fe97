from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy import select, func
from app.extensions import db
from app.models import MODERATION_STATUSES, ProductReview
from app.routes.reviews import serialize_review
from app.services.admin_logger import log_current_admin
from app.utils.auth import admin_required
from app.utils.helpers import build_pagination, get_pagination, iso, utcnow

admin_reviews_bp = Blueprint("admin_reviews", __name__, url_prefix="/api/admin/reviews")


def serialize_admin_review(review):
    data = serialize_review(review)
    data["product_name"] = review.product.name if review.product else None
    data["user_email"] = review.user.email if review.user else None
    data["reviewed_by"] = review.reviewed_by
    data["reviewed_at"] = iso(review.reviewed_at)
    return data


@admin_reviews_bp.route("", methods=["GET"])
@admin_required
def list_reviews():
    try:
        page, limit, offset = get_pagination(default_limit=20)
        filters = []
        status = (request.args.get("status") or "").upper()
        if status in MODERATION_STATUSES:
            filters.append(ProductReview.status == status)
        product_id = request.args.get("product_id", type=int)
        if product_id:
            filters.append(ProductReview.product_id == product_id)

        total = db.session.scalar(select(func.count(ProductReview.id)).where(*filters)) or 0
        reviews = db.session.scalars(
            select(ProductReview)
            .where(*filters)
            .order_by(ProductReview.created_at.desc(), ProductReview.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()

        return jsonify({
            "status": "success",
            "reviews": [serialize_admin_review(r) for r in reviews],
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list reviews: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch reviews", "details": str(e)}), 500


@admin_reviews_bp.route("/<int:review_id>", methods=["PATCH"])
@admin_required
def moderate_review(review_id):
    try:
        review = db.session.get(ProductReview, review_id)
        if not review:
            return jsonify({"status": "error", "message": "Review not found"}), 404

        data = request.get_json(force=True) or {}
        if "status" not in data and "company_response" not in data:
            return jsonify({"status": "error", "message": "status or company_response is required"}), 400

        action = "UPDATE"
        if "status" in data:
            status = (data.get("status") or "").upper()
            if status not in ("APPROVED", "REJECTED"):
                return jsonify({"status": "error", "message": "status must be APPROVED or REJECTED"}), 400
            review.status = status
            action = "APPROVE" if status == "APPROVED" else "REJECT"
        if "company_response" in data:
            review.company_response = (data.get("company_response") or "").strip() or None

        review.reviewed_by = g.current_user.id
        review.reviewed_at = utcnow()
        db.session.commit()

        log_current_admin(
            action, "ProductReview", review.id,
            details={"product_id": review.product_id, "status": review.status},
        )
        return jsonify({"status": "success", "review": serialize_admin_review(review)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to moderate review {review_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update review", "details": str(e)}), 500


@admin_reviews_bp.route("/<int:review_id>", methods=["DELETE"])
@admin_required
def delete_review(review_id):
    try:
        review = db.session.get(ProductReview, review_id)
        if not review:
            return jsonify({"status": "error", "message": "Review not found"}), 404

        product_id = review.product_id
        db.session.delete(review)
        db.session.commit()

        log_current_admin("DELETE", "ProductReview", review_id, details={"product_id": product_id})
        return jsonify({"status": "success", "message": "Review deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete review {review_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete review", "details": str(e)}), 500
