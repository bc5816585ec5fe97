from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from ..extensions import db
from ..models import PUBLISH_STATUSES, Page
from ..services.admin_logger import create_change_details, log_current_admin
from ..utils.auth import admin_required
from ..utils.helpers import build_pagination, get_pagination, iso, slugify

pages_bp = Blueprint("pages", __name__, url_prefix="/api/pages")

PAGE_FIELDS = ("name", "description", "content", "template", "sections", "seo_title", "seo_description", "seo_url")


def serialize_page(page):
    return {
        "id": page.id,
        "name": page.name,
        "slug": page.slug,
        "description": page.description,
        "content": page.content,
        "template": page.template,
        "status": page.status,
        "sections": page.sections or [],
        "seo_title": page.seo_title,
        "seo_description": page.seo_description,
        "seo_url": page.seo_url,
        "created_at": iso(page.created_at),
        "updated_at": iso(page.updated_at),
    }


def slug_taken(slug, exclude_id=None):
    stmt = select(Page.id).where(Page.slug == slug)
    if exclude_id:
        stmt = stmt.where(Page.id != exclude_id)
    return db.session.scalar(stmt) is not None


@pages_bp.route("", methods=["GET"])
def list_pages():
    try:
        page, limit, offset = get_pagination(default_limit=10)
        filters = []
        search = (request.args.get("search") or "").strip()
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(or_(func.lower(Page.name).like(pattern), func.lower(Page.slug).like(pattern)))

        total = db.session.scalar(select(func.count(Page.id)).where(*filters)) or 0
        pages = db.session.scalars(
            select(Page).where(*filters).order_by(Page.updated_at.desc(), Page.id.desc()).offset(offset).limit(limit)
        ).all()

        return jsonify({
            "status": "success",
            "pages": [serialize_page(p) for p in pages],
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list pages: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch pages", "details": str(e)}), 500


@pages_bp.route("", methods=["POST"])
@admin_required
def create_page():
    """
    Create a CMS page
    ---
    tags:
      - Pages
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [name]
          properties:
            name:
              type: string
            slug:
              type: string
            template:
              type: string
              default: Default
            status:
              type: string
              enum: [DRAFT, PUBLISHED]
    responses:
      201:
        description: Page created
      409:
        description: Slug already in use
    """
    try:
        data = request.get_json(force=True) or {}
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify({"status": "error", "message": "Page name is required"}), 400

        slug = slugify(data.get("slug") or name)
        if not slug:
            return jsonify({"status": "error", "message": "A valid slug could not be derived"}), 400
        if slug_taken(slug):
            return jsonify({"status": "error", "message": "A page with this slug already exists"}), 409

        status = (data.get("status") or "DRAFT").upper()
        if status not in PUBLISH_STATUSES:
            return jsonify({"status": "error", "message": "Invalid status"}), 400

        page = Page(slug=slug, status=status, template=data.get("template") or "Default")
        for field in PAGE_FIELDS:
            if field in data and field != "template":
                setattr(page, field, data[field])
        page.name = name

        db.session.add(page)
        db.session.commit()

        log_current_admin("CREATE", "Page", page.id, page.name, details={"slug": page.slug})
        return jsonify({"status": "success", "page": serialize_page(page)}), 201

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "A page with this slug already exists", "details": str(e.orig)}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create page: {e}")
        return jsonify({"status": "error", "message": "Failed to create page", "details": str(e)}), 500


@pages_bp.route("/<int:page_id>", methods=["GET"])
def get_page(page_id):
    page = db.session.get(Page, page_id)
    if not page:
        return jsonify({"status": "error", "message": "Page not found"}), 404
    return jsonify({"status": "success", "page": serialize_page(page)}), 200


@pages_bp.route("/<int:page_id>", methods=["PUT"])
@admin_required
def update_page(page_id):
    try:
        page = db.session.get(Page, page_id)
        if not page:
            return jsonify({"status": "error", "message": "Page not found"}), 404

        data = request.get_json(force=True) or {}
        before = serialize_page(page)

        if "name" in data and not (data.get("name") or "").strip():
            return jsonify({"status": "error", "message": "Page name cannot be empty"}), 400
        if "slug" in data:
            slug = slugify(data.get("slug"))
            if not slug:
                return jsonify({"status": "error", "message": "Slug cannot be empty"}), 400
            if slug_taken(slug, exclude_id=page.id):
                return jsonify({"status": "error", "message": "A page with this slug already exists"}), 409
            page.slug = slug
        if "status" in data:
            status = (data.get("status") or "").upper()
            if status not in PUBLISH_STATUSES:
                return jsonify({"status": "error", "message": "Invalid status"}), 400
            page.status = status

        for field in PAGE_FIELDS:
            if field in data:
                value = data[field]
                setattr(page, field, value.strip() if field == "name" else value)
        if not page.template:
            page.template = "Default"

        db.session.commit()

        after = serialize_page(page)
        log_current_admin(
            "UPDATE", "Page", page.id, page.name,
            details=create_change_details(
                {k: before[k] for k in ("name", "slug", "status", "template")},
                {k: after[k] for k in ("name", "slug", "status", "template")},
            ),
        )
        return jsonify({"status": "success", "page": after}), 200

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "A page with this slug already exists", "details": str(e.orig)}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update page {page_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update page", "details": str(e)}), 500


@pages_bp.route("/<int:page_id>", methods=["DELETE"])
@admin_required
def delete_page(page_id):
    try:
        page = db.session.get(Page, page_id)
        if not page:
            return jsonify({"status": "error", "message": "Page not found"}), 404

        name = page.name
        db.session.delete(page)
        db.session.commit()

        log_current_admin("DELETE", "Page", page_id, name)
        return jsonify({"status": "success", "message": "Page deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete page {page_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete page", "details": str(e)}), 500


@pages_bp.route("/slug/<string:slug>", methods=["GET"])
def get_page_by_slug(slug):
    page = db.session.scalar(select(Page).where(Page.slug == slug).where(Page.status == "PUBLISHED"))
    if not page:
        return jsonify({"status": "error", "message": "Page not found"}), 404
    return jsonify({"status": "success", "page": serialize_page(page)}), 200
