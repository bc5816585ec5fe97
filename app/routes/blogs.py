from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from ..extensions import db
from ..models import PUBLISH_STATUSES, Blog, Comment
from ..services.admin_logger import log_current_admin
from ..utils.auth import admin_required, is_admin, login_required, optional_auth
from ..utils.helpers import build_pagination, get_pagination, iso, slugify, utcnow

blogs_bp = Blueprint("blogs", __name__, url_prefix="/api/blogs")


def serialize_blog(blog, include_content=True):
    data = {
        "id": blog.id,
        "title": blog.title,
        "slug": blog.slug,
        "excerpt": blog.excerpt,
        "image": blog.image,
        "author": blog.author,
        "status": blog.status,
        "published_at": iso(blog.published_at),
        "created_at": iso(blog.created_at),
        "updated_at": iso(blog.updated_at),
    }
    if include_content:
        data["content"] = blog.content
    return data


def serialize_comment(comment):
    return {
        "id": comment.id,
        "blog_id": comment.blog_id,
        "content": comment.content,
        "status": comment.status,
        "user": {"id": comment.user.id, "name": comment.user.name} if comment.user else None,
        "created_at": iso(comment.created_at),
    }


def slug_taken(slug, exclude_id=None):
    stmt = select(Blog.id).where(Blog.slug == slug)
    if exclude_id:
        stmt = stmt.where(Blog.id != exclude_id)
    return db.session.scalar(stmt) is not None


@blogs_bp.route("", methods=["GET"])
@optional_auth
def list_blogs():
    try:
        page, limit, offset = get_pagination(default_limit=10)
        filters = []

        status = (request.args.get("status") or "").upper()
        if is_admin(g.current_user):
            if status in PUBLISH_STATUSES:
                filters.append(Blog.status == status)
        else:
            filters.append(Blog.status == "PUBLISHED")

        search = (request.args.get("search") or "").strip()
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(or_(
                func.lower(Blog.title).like(pattern),
                func.lower(Blog.excerpt).like(pattern),
            ))

        total = db.session.scalar(select(func.count(Blog.id)).where(*filters)) or 0
        blogs = db.session.scalars(
            select(Blog).where(*filters)
            .order_by(Blog.published_at.desc(), Blog.created_at.desc(), Blog.id.desc())
            .offset(offset).limit(limit)
        ).all()

        return jsonify({
            "status": "success",
            "blogs": [serialize_blog(b, include_content=False) for b in blogs],
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list blogs: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch blogs", "details": str(e)}), 500


@blogs_bp.route("", methods=["POST"])
@admin_required
def create_blog():
    try:
        data = request.get_json(force=True) or {}
        title = (data.get("title") or "").strip()
        if not title:
            return jsonify({"status": "error", "message": "Title is required"}), 400

        status = (data.get("status") or "DRAFT").upper()
        if status not in PUBLISH_STATUSES:
            return jsonify({"status": "error", "message": "Status must be DRAFT or PUBLISHED"}), 400

        slug = slugify(data.get("slug") or title)
        if slug_taken(slug):
            return jsonify({"status": "error", "message": "A blog with this slug already exists"}), 409

        blog = Blog(
            title=title,
            slug=slug,
            excerpt=data.get("excerpt"),
            content=data.get("content"),
            image=data.get("image"),
            author=data.get("author") or g.current_user.name,
            status=status,
            published_at=utcnow() if status == "PUBLISHED" else None,
        )
        db.session.add(blog)
        db.session.commit()

        log_current_admin("CREATE", "Blog", blog.id, blog.title)
        return jsonify({"status": "success", "blog": serialize_blog(blog)}), 201

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "A blog with this slug already exists", "details": str(e.orig)}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create blog: {e}")
        return jsonify({"status": "error", "message": "Failed to create blog", "details": str(e)}), 500


@blogs_bp.route("/<int:blog_id>", methods=["GET"])
@optional_auth
def get_blog(blog_id):
    blog = db.session.get(Blog, blog_id)
    if not blog or (blog.status != "PUBLISHED" and not is_admin(g.current_user)):
        return jsonify({"status": "error", "message": "Blog not found"}), 404
    return jsonify({"status": "success", "blog": serialize_blog(blog)}), 200


@blogs_bp.route("/<int:blog_id>", methods=["PUT"])
@admin_required
def update_blog(blog_id):
    try:
        blog = db.session.get(Blog, blog_id)
        if not blog:
            return jsonify({"status": "error", "message": "Blog not found"}), 404

        data = request.get_json(force=True) or {}
        if "title" in data:
            title = (data.get("title") or "").strip()
            if not title:
                return jsonify({"status": "error", "message": "Title cannot be empty"}), 400
            blog.title = title
        if "slug" in data:
            slug = slugify(data.get("slug") or blog.title)
            if slug_taken(slug, exclude_id=blog.id):
                return jsonify({"status": "error", "message": "A blog with this slug already exists"}), 409
            blog.slug = slug
        if "status" in data:
            status = (data.get("status") or "").upper()
            if status not in PUBLISH_STATUSES:
                return jsonify({"status": "error", "message": "Status must be DRAFT or PUBLISHED"}), 400
            if status == "PUBLISHED" and not blog.published_at:
                blog.published_at = utcnow()
            blog.status = status
        for field in ("excerpt", "content", "image", "author"):
            if field in data:
                setattr(blog, field, data.get(field))

        db.session.commit()
        log_current_admin("UPDATE", "Blog", blog.id, blog.title)
        return jsonify({"status": "success", "blog": serialize_blog(blog)}), 200

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "A blog with this slug already exists", "details": str(e.orig)}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update blog {blog_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update blog", "details": str(e)}), 500


@blogs_bp.route("/<int:blog_id>", methods=["DELETE"])
@admin_required
def delete_blog(blog_id):
    try:
        blog = db.session.get(Blog, blog_id)
        if not blog:
            return jsonify({"status": "error", "message": "Blog not found"}), 404

        title = blog.title
        db.session.delete(blog)
        db.session.commit()
        log_current_admin("DELETE", "Blog", blog_id, title)
        return jsonify({"status": "success", "message": "Blog deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete blog {blog_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete blog", "details": str(e)}), 500


@blogs_bp.route("/<int:blog_id>/duplicate", methods=["POST"])
@admin_required
def duplicate_blog(blog_id):
    try:
        blog = db.session.get(Blog, blog_id)
        if not blog:
            return jsonify({"status": "error", "message": "Blog not found"}), 404

        base = f"copy-of-{blog.slug}"
        slug = base
        counter = 1
        while slug_taken(slug):
            slug = f"{base}-{counter}"
            counter += 1

        copy = Blog(
            title=f"Copy of {blog.title}",
            slug=slug,
            excerpt=blog.excerpt,
            content=blog.content,
            image=blog.image,
            author=blog.author,
            status="DRAFT",
            published_at=None,
        )
        db.session.add(copy)
        db.session.commit()

        log_current_admin("CREATE", "Blog", copy.id, copy.title, details={"duplicated_from": blog.id})
        return jsonify({"status": "success", "blog": serialize_blog(copy)}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to duplicate blog {blog_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to duplicate blog", "details": str(e)}), 500


@blogs_bp.route("/bulk", methods=["PATCH"])
@admin_required
def bulk_update_blogs():
    try:
        data = request.get_json(force=True) or {}
        blog_ids = data.get("blog_ids") or []
        status = (data.get("status") or "").upper()
        if not isinstance(blog_ids, list) or not blog_ids:
            return jsonify({"status": "error", "message": "blog_ids must be a non-empty list"}), 400
        if status not in PUBLISH_STATUSES:
            return jsonify({"status": "error", "message": "Status must be DRAFT or PUBLISHED"}), 400

        blogs = db.session.scalars(select(Blog).where(Blog.id.in_(blog_ids))).all()
        now = utcnow()
        for blog in blogs:
            if status == "PUBLISHED" and not blog.published_at:
                blog.published_at = now
            blog.status = status
        updated_ids = [b.id for b in blogs]
        db.session.commit()

        log_current_admin(
            "BULK_OPERATION", "Blog",
            description=f"Set {len(updated_ids)} blogs to {status}",
            details={"blog_ids": updated_ids, "status": status},
        )
        return jsonify({"status": "success", "updated": len(updated_ids)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Bulk blog update failed: {e}")
        return jsonify({"status": "error", "message": "Failed to update blogs", "details": str(e)}), 500


@blogs_bp.route("/bulk", methods=["DELETE"])
@admin_required
def bulk_delete_blogs():
    try:
        data = request.get_json(force=True) or {}
        blog_ids = data.get("blog_ids") or []
        if not isinstance(blog_ids, list) or not blog_ids:
            return jsonify({"status": "error", "message": "blog_ids must be a non-empty list"}), 400

        blogs = db.session.scalars(select(Blog).where(Blog.id.in_(blog_ids))).all()
        deleted_ids = [b.id for b in blogs]
        for blog in blogs:
            db.session.delete(blog)
        db.session.commit()

        log_current_admin(
            "BULK_OPERATION", "Blog",
            description=f"Deleted {len(deleted_ids)} blogs",
            details={"blog_ids": deleted_ids},
        )
        return jsonify({"status": "success", "deleted": len(deleted_ids)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Bulk blog delete failed: {e}")
        return jsonify({"status": "error", "message": "Failed to delete blogs", "details": str(e)}), 500


@blogs_bp.route("/slug/<slug>", methods=["GET"])
@optional_auth
def get_blog_by_slug(slug):
    blog = db.session.scalar(select(Blog).where(Blog.slug == slug))
    if not blog or (blog.status != "PUBLISHED" and not is_admin(g.current_user)):
        return jsonify({"status": "error", "message": "Blog not found"}), 404
    return jsonify({"status": "success", "blog": serialize_blog(blog)}), 200


@blogs_bp.route("/slug/<slug>/comments", methods=["GET"])
@optional_auth
def list_blog_comments(slug):
    try:
        blog = db.session.scalar(select(Blog).where(Blog.slug == slug))
        if not blog:
            return jsonify({"status": "error", "message": "Blog not found"}), 404

        visible = Comment.status == "APPROVED"
        if g.current_user:
            visible = or_(
                visible,
                (Comment.user_id == g.current_user.id) & (Comment.status == "PENDING"),
            )

        comments = db.session.scalars(
            select(Comment).where(Comment.blog_id == blog.id).where(visible)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
        ).all()
        return jsonify({"status": "success", "comments": [serialize_comment(c) for c in comments]}), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list comments for {slug}: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch comments", "details": str(e)}), 500


@blogs_bp.route("/slug/<slug>/comments", methods=["POST"])
@login_required
def create_blog_comment(slug):
    try:
        blog = db.session.scalar(select(Blog).where(Blog.slug == slug))
        if not blog:
            return jsonify({"status": "error", "message": "Blog not found"}), 404

        data = request.get_json(force=True) or {}
        content = (data.get("content") or "").strip()
        if not content:
            return jsonify({"status": "error", "message": "Comment content is required"}), 400

        comment = Comment(blog_id=blog.id, user_id=g.current_user.id, content=content, status="PENDING")
        db.session.add(comment)
        db.session.commit()
        return jsonify({
            "status": "success",
            "message": "Comment submitted for review",
            "comment": serialize_comment(comment)
        }), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create comment on {slug}: {e}")
        return jsonify({"status": "error", "message": "Failed to create comment", "details": str(e)}), 500
