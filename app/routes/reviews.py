from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from ..extensions import db
from ..models import Order, OrderItem, Product, ProductReview
from ..utils.auth import login_required, optional_auth
from ..utils.helpers import build_pagination, get_pagination, iso, parse_bool

reviews_bp = Blueprint("reviews", __name__, url_prefix="/api")

REVIEW_SORTS = {
    "most-recent": (ProductReview.created_at.desc(), ProductReview.id.desc()),
    "highest-rated": (ProductReview.rating.desc(), ProductReview.created_at.desc()),
    "lowest-rated": (ProductReview.rating.asc(), ProductReview.created_at.desc()),
}


def reviewer_name(user):
    if not user:
        return "Anonymous"
    if user.name:
        return user.name
    if user.email:
        return user.email.split("@")[0]
    return "Anonymous"


def serialize_review(review, is_own=False):
    return {
        "id": review.id,
        "product_id": review.product_id,
        "user_id": review.user_id,
        "reviewer_name": reviewer_name(review.user),
        "rating": review.rating,
        "title": review.title,
        "content": review.content,
        "verified_buyer": review.verified_buyer,
        "status": review.status,
        "company_response": review.company_response,
        "helpful_count": review.helpful_count,
        "not_helpful_count": review.not_helpful_count,
        "is_own_review": is_own,
        "created_at": iso(review.created_at),
    }


def review_stats(product_ids):
    rows = db.session.execute(
        select(ProductReview.rating, func.count(ProductReview.id))
        .where(ProductReview.product_id.in_(product_ids))
        .where(ProductReview.status == "APPROVED")
        .group_by(ProductReview.rating)
    ).all()
    counts = {rating: count for rating, count in rows}
    total = sum(counts.values())
    overall = sum(r * c for r, c in counts.items()) / total if total else 0
    return {
        "overall_rating": round(overall, 1),
        "total_reviews": total,
        "breakdown": {str(star): counts.get(star, 0) for star in range(5, 0, -1)},
    }


def has_purchased(user_id, product_id):
    return db.session.scalar(
        select(OrderItem.id)
        .join(Order, Order.id == OrderItem.order_id)
        .where(Order.user_id == user_id)
        .where(OrderItem.product_id == product_id)
        .where(Order.status.in_(("SHIPPED", "DELIVERED")))
        .limit(1)
    ) is not None


@reviews_bp.route("/products/<int:product_id>/reviews", methods=["GET"])
def list_product_reviews(product_id):
    try:
        if not db.session.get(Product, product_id):
            return jsonify({"status": "error", "message": "Product not found"}), 404

        page, limit, offset = get_pagination(default_limit=5)
        sort = REVIEW_SORTS.get(request.args.get("sort_by", "most-recent"), REVIEW_SORTS["most-recent"])
        filters = [ProductReview.product_id == product_id, ProductReview.status == "APPROVED"]

        total = db.session.scalar(select(func.count(ProductReview.id)).where(*filters)) or 0
        reviews = db.session.scalars(
            select(ProductReview).where(*filters).order_by(*sort).offset(offset).limit(limit)
        ).all()

        return jsonify({
            "status": "success",
            "reviews": [serialize_review(r) for r in reviews],
            "stats": review_stats([product_id]),
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list reviews for product {product_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch reviews", "details": str(e)}), 500


@reviews_bp.route("/products/<int:product_id>/reviews", methods=["POST"])
@login_required
def create_product_review(product_id):
    """
    Submit a product review (held for moderation)
    ---
    tags:
      - Reviews
    security:
      - Bearer: []
    parameters:
      - in: path
        name: product_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [rating, content]
          properties:
            rating:
              type: integer
              minimum: 1
              maximum: 5
            title:
              type: string
            content:
              type: string
    responses:
      201:
        description: Review submitted
      400:
        description: Invalid rating, missing content or duplicate review
      404:
        description: Product not found
    """
    try:
        data = request.get_json(force=True) or {}
        rating = data.get("rating")
        content = (data.get("content") or "").strip()

        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            return jsonify({"status": "error", "message": "Rating must be an integer between 1 and 5"}), 400
        if not content:
            return jsonify({"status": "error", "message": "Review content is required"}), 400

        product = db.session.get(Product, product_id)
        if not product:
            return jsonify({"status": "error", "message": "Product not found"}), 404

        user = g.current_user
        existing = db.session.scalar(
            select(ProductReview.id)
            .where(ProductReview.product_id == product_id)
            .where(ProductReview.user_id == user.id)
        )
        if existing:
            return jsonify({"status": "error", "message": "You have already reviewed this product"}), 400

        review = ProductReview(
            product_id=product_id,
            user_id=user.id,
            rating=rating,
            title=(data.get("title") or "").strip() or None,
            content=content,
            verified_buyer=has_purchased(user.id, product_id),
            status="PENDING",
        )
        db.session.add(review)
        db.session.commit()

        return jsonify({
            "status": "success",
            "message": "Review submitted and awaiting moderation",
            "review": serialize_review(review, is_own=True)
        }), 201

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "You have already reviewed this product", "details": str(e.orig)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create review for product {product_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to submit review", "details": str(e)}), 500


# -----------------------------------------------------------------------------
# GET /api/reviews
# Purpose:
#   Reviews aggregated over a product, a category, or the featured products.
# -----------------------------------------------------------------------------
@reviews_bp.route("/reviews", methods=["GET"])
@optional_auth
def aggregate_reviews():
    try:
        page, limit, offset = get_pagination(default_limit=5)
        product_id = request.args.get("product_id", type=int)
        category_id = request.args.get("category_id", type=int)
        featured = parse_bool(request.args.get("featured"))

        if product_id:
            product_ids = [product_id]
        elif category_id:
            product_ids = db.session.scalars(select(Product.id).where(Product.category_id == category_id)).all()
        elif featured:
            product_ids = db.session.scalars(select(Product.id).where(Product.featured.is_(True))).all()
        else:
            product_ids = []

        if not product_ids:
            return jsonify({
                "status": "success",
                "reviews": [],
                "stats": {"overall_rating": 0, "total_reviews": 0, "breakdown": {str(s): 0 for s in range(5, 0, -1)}},
                "pagination": build_pagination(page, limit, 0)
            }), 200

        sort = REVIEW_SORTS.get(request.args.get("sort_by", "most-recent"), REVIEW_SORTS["most-recent"])
        filters = [ProductReview.product_id.in_(product_ids), ProductReview.status == "APPROVED"]
        total = db.session.scalar(select(func.count(ProductReview.id)).where(*filters)) or 0
        reviews = [
            serialize_review(r)
            for r in db.session.scalars(
                select(ProductReview).where(*filters).order_by(*sort).offset(offset).limit(limit)
            ).all()
        ]

        user = g.current_user
        if user and page == 1:
            own_pending = db.session.scalars(
                select(ProductReview)
                .where(ProductReview.product_id.in_(product_ids))
                .where(ProductReview.user_id == user.id)
                .where(ProductReview.status == "PENDING")
                .order_by(ProductReview.created_at.desc())
            ).all()
            reviews = [serialize_review(r, is_own=True) for r in own_pending] + reviews

        return jsonify({
            "status": "success",
            "reviews": reviews,
            "stats": review_stats(product_ids),
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to aggregate reviews: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch reviews", "details": str(e)}), 500


@reviews_bp.route("/reviews/<int:review_id>/helpful", methods=["POST"])
def mark_review_helpful(review_id):
    try:
        review = db.session.get(ProductReview, review_id)
        if not review:
            return jsonify({"status": "error", "message": "Review not found"}), 404

        data = request.get_json(force=True, silent=True) or {}
        if "helpful" not in data:
            return jsonify({"status": "error", "message": "helpful is required"}), 400

        if parse_bool(data.get("helpful")):
            review.helpful_count = (review.helpful_count or 0) + 1
        else:
            review.not_helpful_count = (review.not_helpful_count or 0) + 1
        db.session.commit()

        return jsonify({
            "status": "success",
            "helpful_count": review.helpful_count,
            "not_helpful_count": review.not_helpful_count
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to record helpful vote on review {review_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to record vote", "details": str(e)}), 500
