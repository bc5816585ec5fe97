from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import delete, select, func
from sqlalchemy.exc import IntegrityError
from ..extensions import db
from ..models import Category, CertificationCategory, Product
from ..services.admin_logger import log_current_admin
from ..utils.auth import admin_required
from ..utils.helpers import slugify, utcnow
from ..utils.serializers import serialize_category

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


def product_count(category_id):
    return db.session.scalar(
        select(func.count(Product.id)).where(Product.category_id == category_id)
    ) or 0


@categories_bp.route("", methods=["GET"])
def list_categories():
    """
    List categories with their product counts
    ---
    tags:
      - Catalog
    responses:
      200:
        description: Categories
    """
    try:
        counts = dict(
            db.session.execute(
                select(Product.category_id, func.count(Product.id)).group_by(Product.category_id)
            ).all()
        )
        categories = db.session.scalars(select(Category).order_by(Category.name.asc())).all()
        return jsonify({
            "status": "success",
            "categories": [serialize_category(c, counts.get(c.id, 0)) for c in categories]
        }), 200
    except Exception as e:
        current_app.logger.error(f"Failed to list categories: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch categories", "details": str(e)}), 500


@categories_bp.route("", methods=["POST"])
@admin_required
def create_category():
    try:
        data = request.get_json(force=True) or {}
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify({"status": "error", "message": "Name is required"}), 400

        slug = slugify(data.get("slug") or name)
        if db.session.scalar(select(Category.id).where(Category.slug == slug)):
            return jsonify({"status": "error", "message": "A category with this slug already exists"}), 409

        category = Category(
            name=name,
            slug=slug,
            description=data.get("description"),
            image=data.get("image"),
            icon=data.get("icon"),
        )
        db.session.add(category)
        db.session.commit()

        log_current_admin("CREATE", "Category", category.id, category.name)
        return jsonify({"status": "success", "category": serialize_category(category, 0)}), 201

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "A category with this slug already exists", "details": str(e.orig)}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create category: {e}")
        return jsonify({"status": "error", "message": "Failed to create category", "details": str(e)}), 500


@categories_bp.route("/<int:category_id>", methods=["GET"])
def get_category(category_id):
    category = db.session.get(Category, category_id)
    if not category:
        return jsonify({"status": "error", "message": "Category not found"}), 404
    return jsonify({
        "status": "success",
        "category": serialize_category(category, product_count(category.id))
    }), 200


@categories_bp.route("/<int:category_id>", methods=["PUT"])
@admin_required
def update_category(category_id):
    try:
        category = db.session.get(Category, category_id)
        if not category:
            return jsonify({"status": "error", "message": "Category not found"}), 404

        data = request.get_json(force=True) or {}
        before = serialize_category(category)

        if "name" in data:
            name = (data.get("name") or "").strip()
            if not name:
                return jsonify({"status": "error", "message": "Name cannot be empty"}), 400
            category.name = name
        if "slug" in data:
            slug = slugify(data.get("slug") or category.name)
            clash = db.session.scalar(
                select(Category.id).where(Category.slug == slug, Category.id != category.id)
            )
            if clash:
                return jsonify({"status": "error", "message": "A category with this slug already exists"}), 409
            category.slug = slug
        for field in ("description", "image", "icon"):
            if field in data:
                setattr(category, field, data.get(field))

        db.session.commit()
        log_current_admin(
            "UPDATE", "Category", category.id, category.name,
            details={"before": before, "after": serialize_category(category)},
        )
        return jsonify({"status": "success", "category": serialize_category(category, product_count(category.id))}), 200

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "A category with this slug already exists", "details": str(e.orig)}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update category {category_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update category", "details": str(e)}), 500


@categories_bp.route("/<int:category_id>", methods=["DELETE"])
@admin_required
def delete_category(category_id):
    try:
        category = db.session.get(Category, category_id)
        if not category:
            return jsonify({"status": "error", "message": "Category not found"}), 404

        count = product_count(category.id)
        if count:
            return jsonify({
                "status": "error",
                "message": f"Cannot delete category with {count} product(s). Move or delete the products first."
            }), 400

        name = category.name
        db.session.execute(
            delete(CertificationCategory).where(CertificationCategory.category_id == category.id)
        )
        db.session.delete(category)
        db.session.commit()
        log_current_admin("DELETE", "Category", category_id, name)
        return jsonify({"status": "success", "message": "Category deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete category {category_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete category", "details": str(e)}), 500


@categories_bp.route("/<int:category_id>/duplicate", methods=["POST"])
@admin_required
def duplicate_category(category_id):
    try:
        category = db.session.get(Category, category_id)
        if not category:
            return jsonify({"status": "error", "message": "Category not found"}), 404

        stamp = int(utcnow().timestamp() * 1000)
        copy = Category(
            name=f"Copy of {category.name}",
            slug=f"{category.slug}-copy-{stamp}",
            description=category.description,
            image=category.image,
            icon=category.icon,
        )
        db.session.add(copy)
        db.session.commit()

        log_current_admin("CREATE", "Category", copy.id, copy.name, details={"duplicated_from": category.id})
        return jsonify({"status": "success", "category": serialize_category(copy, 0)}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to duplicate category {category_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to duplicate category", "details": str(e)}), 500


@categories_bp.route("/bulk", methods=["DELETE"])
@admin_required
def bulk_delete_categories():
    try:
        data = request.get_json(force=True) or {}
        category_ids = data.get("category_ids") or []
        if not isinstance(category_ids, list) or not category_ids:
            return jsonify({"status": "error", "message": "category_ids must be a non-empty list"}), 400

        categories = db.session.scalars(select(Category).where(Category.id.in_(category_ids))).all()
        blocked = [c.name for c in categories if product_count(c.id)]
        if blocked:
            return jsonify({
                "status": "error",
                "message": f"Cannot delete categories with products: {', '.join(blocked)}",
                "categories": blocked
            }), 400

        deleted_ids = [c.id for c in categories]
        if deleted_ids:
            db.session.execute(
                delete(CertificationCategory).where(CertificationCategory.category_id.in_(deleted_ids))
            )
        for category in categories:
            db.session.delete(category)
        db.session.commit()

        log_current_admin(
            "BULK_OPERATION", "Category",
            description=f"Deleted {len(deleted_ids)} categories",
            details={"category_ids": deleted_ids},
        )
        return jsonify({"status": "success", "deleted": len(deleted_ids)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Bulk category delete failed: {e}")
        return jsonify({"status": "error", "message": "Failed to delete categories", "details": str(e)}), 500
