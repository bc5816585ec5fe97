# Social media planning calendar
from datetime import datetime

from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy import select
from app.extensions import db
from app.models import SocialMediaPost, User
from app.services.admin_logger import log_current_admin
from app.services.social_media import CONTENT_TYPES, PLATFORMS, POST_STATUSES, get_limits, validate_post
from app.utils.auth import admin_required
from app.utils.helpers import iso, parse_bool, parse_datetime, utcnow

admin_social_media_bp = Blueprint(
    "admin_social_media", __name__, url_prefix="/api/admin/social-media"
)


def _person(user_id):
    if not user_id:
        return None
    user = db.session.get(User, user_id)
    return {"id": user.id, "name": user.name, "email": user.email} if user else None


def serialize_post(post):
    return {
        "id": post.id,
        "platform": post.platform,
        "content_type": post.content_type,
        "scheduled_date": iso(post.scheduled_date),
        "caption": post.caption,
        "images": post.images or [],
        "videos": post.videos or [],
        "hashtags": post.hashtags or [],
        "status": post.status,
        "created_by": _person(post.created_by),
        "assigned_reviewer": _person(post.assigned_reviewer_id),
        "reviewed_by": _person(post.reviewed_by),
        "reviewed_at": iso(post.reviewed_at),
        "review_comments": post.review_comments,
        "published_at": iso(post.published_at),
        "created_at": iso(post.created_at),
        "updated_at": iso(post.updated_at),
    }


def _month_range(month):
    start = datetime.strptime(month, "%Y-%m")
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def _media_lists(data, post=None):
    def pick(key):
        if key in data:
            value = data.get(key) or []
            return value if isinstance(value, list) else [value]
        return (getattr(post, key) or []) if post else []
    return pick("images"), pick("videos"), pick("hashtags")


def _reviewer(reviewer_id):
    """Returns (id, error message)."""
    if not reviewer_id:
        return None, None
    user = db.session.get(User, reviewer_id)
    if not user or user.role != "ADMIN":
        return None, "Assigned reviewer must be an admin"
    return user.id, None


@admin_social_media_bp.route("", methods=["GET"])
@admin_required
def list_posts():
    """
    GET /api/admin/social-media - Planned posts

    ---
    tags:
      - Social Media
    security:
      - Bearer: []
    parameters:
      - name: month
        in: query
        type: string
        description: YYYY-MM
      - name: status
        in: query
        type: string
      - name: platform
        in: query
        type: string
    responses:
      200:
        description: Posts ordered by scheduled date
      400:
        description: Bad month format
    """
    try:
        filters = []
        month = request.args.get("month")
        if month:
            try:
                start, end = _month_range(month)
            except ValueError:
                return jsonify({"status": "error", "message": "month must be in YYYY-MM format"}), 400
            filters += [SocialMediaPost.scheduled_date >= start, SocialMediaPost.scheduled_date < end]
        status = (request.args.get("status") or "").upper()
        if status in POST_STATUSES:
            filters.append(SocialMediaPost.status == status)
        platform = (request.args.get("platform") or "").upper()
        if platform in PLATFORMS:
            filters.append(SocialMediaPost.platform == platform)

        posts = db.session.scalars(
            select(SocialMediaPost).where(*filters).order_by(SocialMediaPost.scheduled_date.asc(), SocialMediaPost.id.asc())
        ).all()
        return jsonify({"status": "success", "posts": [serialize_post(p) for p in posts]}), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list social media posts: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch posts", "details": str(e)}), 500


@admin_social_media_bp.route("", methods=["POST"])
@admin_required
def create_post():
    try:
        data = request.get_json(force=True) or {}
        platform = (data.get("platform") or "INSTAGRAM").upper()
        content_type = (data.get("content_type") or "POST").upper()
        status = (data.get("status") or "DRAFT").upper()
        if platform not in PLATFORMS:
            return jsonify({"status": "error", "message": "Invalid platform"}), 400
        if content_type not in CONTENT_TYPES:
            return jsonify({"status": "error", "message": "Invalid content type"}), 400
        if status not in POST_STATUSES:
            return jsonify({"status": "error", "message": "Invalid status"}), 400

        try:
            scheduled_date = parse_datetime(data.get("scheduled_date"))
        except ValueError:
            return jsonify({"status": "error", "message": "Invalid scheduled_date"}), 400
        if not scheduled_date:
            return jsonify({"status": "error", "message": "scheduled_date is required"}), 400

        caption = data.get("caption") or ""
        images, videos, hashtags = _media_lists(data)
        validation = validate_post(platform, content_type, caption, hashtags, images, videos)
        if status != "DRAFT" and not validation["is_valid"]:
            return jsonify({
                "status": "error",
                "message": "Post does not meet platform requirements",
                "errors": validation["errors"],
                "warnings": validation["warnings"]
            }), 400

        reviewer_id = None
        if status == "PENDING_REVIEW":
            reviewer_id, error = _reviewer(data.get("assigned_reviewer_id"))
            if error:
                return jsonify({"status": "error", "message": error}), 400

        post = SocialMediaPost(
            platform=platform,
            content_type=content_type,
            scheduled_date=scheduled_date,
            caption=caption,
            images=images,
            videos=videos,
            hashtags=hashtags,
            status=status,
            created_by=g.current_user.id,
            assigned_reviewer_id=reviewer_id,
        )
        db.session.add(post)
        db.session.commit()

        log_current_admin("CREATE", "SocialMediaPost", post.id, f"{platform} {content_type}")
        return jsonify({
            "status": "success",
            "post": serialize_post(post),
            "warnings": validation["warnings"]
        }), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create social media post: {e}")
        return jsonify({"status": "error", "message": "Failed to create post", "details": str(e)}), 500


@admin_social_media_bp.route("/validate", methods=["POST"])
@admin_required
def validate():
    data = request.get_json(force=True) or {}
    platform = (data.get("platform") or "INSTAGRAM").upper()
    content_type = (data.get("content_type") or "POST").upper()
    try:
        limits = get_limits(platform, content_type)
    except ValueError as e:
        return jsonify({"status": "error", "message": str(e)}), 400

    images, videos, hashtags = _media_lists(data)
    result = validate_post(platform, content_type, data.get("caption") or "", hashtags, images, videos)
    return jsonify({"status": "success", "limits": limits, **result}), 200


@admin_social_media_bp.route("/pending-reviews", methods=["GET"])
@admin_required
def pending_reviews():
    filters = [SocialMediaPost.status == "PENDING_REVIEW"]
    if parse_bool(request.args.get("mine")):
        filters.append(SocialMediaPost.assigned_reviewer_id == g.current_user.id)

    posts = db.session.scalars(
        select(SocialMediaPost).where(*filters).order_by(SocialMediaPost.scheduled_date.asc())
    ).all()
    return jsonify({"status": "success", "posts": [serialize_post(p) for p in posts], "total": len(posts)}), 200


@admin_social_media_bp.route("/<int:post_id>", methods=["GET"])
@admin_required
def get_post(post_id):
    post = db.session.get(SocialMediaPost, post_id)
    if not post:
        return jsonify({"status": "error", "message": "Post not found"}), 404
    return jsonify({"status": "success", "post": serialize_post(post)}), 200


@admin_social_media_bp.route("/<int:post_id>", methods=["PUT"])
@admin_required
def update_post(post_id):
    try:
        post = db.session.get(SocialMediaPost, post_id)
        if not post:
            return jsonify({"status": "error", "message": "Post not found"}), 404

        data = request.get_json(force=True) or {}
        platform = (data.get("platform") or post.platform).upper()
        content_type = (data.get("content_type") or post.content_type).upper()
        status = (data.get("status") or post.status).upper()
        if platform not in PLATFORMS:
            return jsonify({"status": "error", "message": "Invalid platform"}), 400
        if content_type not in CONTENT_TYPES:
            return jsonify({"status": "error", "message": "Invalid content type"}), 400
        if status not in POST_STATUSES:
            return jsonify({"status": "error", "message": "Invalid status"}), 400

        if "scheduled_date" in data:
            try:
                scheduled_date = parse_datetime(data.get("scheduled_date"))
            except ValueError:
                return jsonify({"status": "error", "message": "Invalid scheduled_date"}), 400
            if not scheduled_date:
                return jsonify({"status": "error", "message": "scheduled_date is required"}), 400
            post.scheduled_date = scheduled_date

        caption = data["caption"] if "caption" in data else post.caption
        images, videos, hashtags = _media_lists(data, post)
        validation = validate_post(platform, content_type, caption or "", hashtags, images, videos)
        if status != "DRAFT" and not validation["is_valid"]:
            return jsonify({
                "status": "error",
                "message": "Post does not meet platform requirements",
                "errors": validation["errors"],
                "warnings": validation["warnings"]
            }), 400

        if status == "PENDING_REVIEW":
            if "assigned_reviewer_id" in data:
                reviewer_id, error = _reviewer(data.get("assigned_reviewer_id"))
                if error:
                    return jsonify({"status": "error", "message": error}), 400
                post.assigned_reviewer_id = reviewer_id
        else:
            post.assigned_reviewer_id = None

        if status in ("APPROVED", "REJECTED") and status != post.status:
            post.reviewed_by = g.current_user.id
            post.reviewed_at = utcnow()
            post.review_comments = data.get("review_comments")
        elif "review_comments" in data:
            post.review_comments = data.get("review_comments")

        post.platform = platform
        post.content_type = content_type
        post.status = status
        post.caption = caption
        post.images = images
        post.videos = videos
        post.hashtags = hashtags
        db.session.commit()

        action = {"APPROVED": "APPROVE", "REJECTED": "REJECT"}.get(status, "UPDATE")
        log_current_admin(action, "SocialMediaPost", post.id, f"{platform} {content_type}")
        return jsonify({
            "status": "success",
            "post": serialize_post(post),
            "warnings": validation["warnings"]
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update social media post {post_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update post", "details": str(e)}), 500


@admin_social_media_bp.route("/<int:post_id>", methods=["DELETE"])
@admin_required
def delete_post(post_id):
    try:
        post = db.session.get(SocialMediaPost, post_id)
        if not post:
            return jsonify({"status": "error", "message": "Post not found"}), 404

        label = f"{post.platform} {post.content_type}"
        db.session.delete(post)
        db.session.commit()

        log_current_admin("DELETE", "SocialMediaPost", post_id, label)
        return jsonify({"status": "success", "message": "Post deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete social media post {post_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete post", "details": str(e)}), 500
