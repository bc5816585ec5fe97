from decimal import Decimal

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from ..extensions import db
from ..models import Category, OrderItem, Product, ProductReview
from ..services.admin_logger import log_current_admin
from ..utils.auth import admin_required
from ..utils.helpers import build_pagination, money, parse_bool, parse_decimal
from ..utils.serializers import serialize_product

products_bp = Blueprint("products", __name__, url_prefix="/api/products")

SORT_OPTIONS = {
    "newest": (Product.created_at.desc(), Product.id.desc()),
    "oldest": (Product.created_at.asc(), Product.id.asc()),
    "price-asc": (Product.price.asc(), Product.id.asc()),
    "price-desc": (Product.price.desc(), Product.id.desc()),
    "name-asc": (Product.name.asc(),),
    "name-desc": (Product.name.desc(),),
}
RELATED_LIMIT = 4
EDITABLE_FIELDS = ("description", "image", "images", "attributes")


def rating_stats(product_id):
    avg, count = db.session.execute(
        select(func.avg(ProductReview.rating), func.count(ProductReview.id))
        .where(ProductReview.product_id == product_id)
        .where(ProductReview.status == "APPROVED")
    ).one()
    return {
        "average_rating": round(float(avg), 1) if avg is not None else 0,
        "review_count": count or 0,
    }


def apply_product_fields(product, data):
    """Copy validated fields from ``data``; returns an error message or None."""
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            return "Name cannot be empty"
        product.name = name

    for field in ("price", "sale_price"):
        if field in data:
            try:
                value = parse_decimal(data.get(field), field)
            except ValueError as e:
                return str(e)
            if value is not None and value < 0:
                return f"{field} must be at least 0"
            if field == "price" and value is None:
                return "price is required"
            setattr(product, field, value)

    if "discount_percentage" in data:
        value = data.get("discount_percentage")
        if value is not None:
            try:
                value = int(value)
            except (TypeError, ValueError):
                return "discount_percentage must be an integer"
            if value < 0 or value > 100:
                return "discount_percentage must be between 0 and 100"
        product.discount_percentage = value

    if "category_id" in data:
        category_id = data.get("category_id")
        if category_id is not None and not db.session.get(Category, category_id):
            return "Category not found"
        product.category_id = category_id

    if "featured" in data:
        product.featured = bool(parse_bool(data.get("featured")))

    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(product, field, data.get(field))
    return None


@products_bp.route("", methods=["GET"])
def list_products():
    """
    List products
    ---
    tags:
      - Catalog
    parameters:
      - in: query
        name: category_id
        type: integer
      - in: query
        name: search
        type: string
      - in: query
        name: featured
        type: boolean
      - in: query
        name: min_price
        type: number
      - in: query
        name: max_price
        type: number
      - in: query
        name: sort_by
        type: string
        enum: [newest, oldest, price-asc, price-desc, name-asc, name-desc]
      - in: query
        name: page
        type: integer
      - in: query
        name: limit
        type: integer
    responses:
      200:
        description: Products (paginated only when page or limit is given)
    """
    try:
        stmt = select(Product)
        count_stmt = select(func.count(Product.id))
        filters = []

        category_id = request.args.get("category_id", type=int)
        if category_id:
            filters.append(Product.category_id == category_id)

        search = (request.args.get("search") or "").strip()
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(or_(
                func.lower(Product.name).like(pattern),
                func.lower(Product.description).like(pattern),
            ))

        if request.args.get("featured") is not None:
            filters.append(Product.featured.is_(bool(parse_bool(request.args.get("featured")))))

        try:
            min_price = parse_decimal(request.args.get("min_price"), "min_price")
            max_price = parse_decimal(request.args.get("max_price"), "max_price")
        except ValueError as e:
            return jsonify({"status": "error", "message": str(e)}), 400
        if min_price is not None:
            filters.append(Product.price >= min_price)
        if max_price is not None:
            filters.append(Product.price <= max_price)

        if filters:
            stmt = stmt.where(*filters)
            count_stmt = count_stmt.where(*filters)

        sort_by = request.args.get("sort_by", "newest")
        stmt = stmt.order_by(*SORT_OPTIONS.get(sort_by, SORT_OPTIONS["newest"]))

        response = {"status": "success"}
        if "page" in request.args or "limit" in request.args:
            page = max(request.args.get("page", 1, type=int) or 1, 1)
            limit = min(max(request.args.get("limit", 12, type=int) or 12, 1), 100)
            total = db.session.scalar(count_stmt) or 0
            stmt = stmt.offset((page - 1) * limit).limit(limit)
            pagination = build_pagination(page, limit, total)
            pagination["hasNextPage"] = page < pagination["totalPages"]
            pagination["hasPreviousPage"] = page > 1
            response["pagination"] = pagination

        products = db.session.scalars(stmt).all()
        response["products"] = [serialize_product(p) for p in products]
        return jsonify(response), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list products: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch products", "details": str(e)}), 500


@products_bp.route("", methods=["POST"])
@admin_required
def create_product():
    try:
        data = request.get_json(force=True) or {}
        if not (data.get("name") or "").strip() or data.get("price") is None:
            return jsonify({"status": "error", "message": "Name and price are required"}), 400

        product = Product(featured=False)
        error = apply_product_fields(product, data)
        if error:
            status = 404 if error == "Category not found" else 400
            return jsonify({"status": "error", "message": error}), status

        db.session.add(product)
        db.session.commit()

        log_current_admin("CREATE", "Product", product.id, product.name)
        return jsonify({"status": "success", "product": serialize_product(product)}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create product: {e}")
        return jsonify({"status": "error", "message": "Failed to create product", "details": str(e)}), 500


@products_bp.route("/<int:product_id>", methods=["GET"])
def get_product(product_id):
    try:
        product = db.session.get(Product, product_id)
        if not product:
            return jsonify({"status": "error", "message": "Product not found"}), 404

        data = serialize_product(product)
        data.update(rating_stats(product.id))
        return jsonify({"status": "success", "product": data}), 200

    except Exception as e:
        current_app.logger.error(f"Failed to fetch product {product_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch product", "details": str(e)}), 500


@products_bp.route("/<int:product_id>", methods=["PUT"])
@admin_required
def update_product(product_id):
    try:
        product = db.session.get(Product, product_id)
        if not product:
            return jsonify({"status": "error", "message": "Product not found"}), 404

        data = request.get_json(force=True) or {}
        before = serialize_product(product, include_category=False)
        error = apply_product_fields(product, data)
        if error:
            db.session.rollback()
            status = 404 if error == "Category not found" else 400
            return jsonify({"status": "error", "message": error}), status

        db.session.commit()
        log_current_admin(
            "UPDATE", "Product", product.id, product.name,
            details={"before": before, "after": serialize_product(product, include_category=False)},
        )
        return jsonify({"status": "success", "product": serialize_product(product)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update product {product_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update product", "details": str(e)}), 500


@products_bp.route("/<int:product_id>", methods=["DELETE"])
@admin_required
def delete_product(product_id):
    try:
        product = db.session.get(Product, product_id)
        if not product:
            return jsonify({"status": "error", "message": "Product not found"}), 404

        name = product.name
        db.session.delete(product)
        db.session.commit()
        log_current_admin("DELETE", "Product", product_id, name)
        return jsonify({"status": "success", "message": "Product deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete product {product_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete product", "details": str(e)}), 500


@products_bp.route("/<int:product_id>/duplicate", methods=["POST"])
@admin_required
def duplicate_product(product_id):
    try:
        product = db.session.get(Product, product_id)
        if not product:
            return jsonify({"status": "error", "message": "Product not found"}), 404

        copy = Product(
            name=f"Copy of {product.name}",
            description=product.description,
            price=product.price,
            sale_price=product.sale_price,
            discount_percentage=product.discount_percentage,
            image=product.image,
            images=list(product.images or []),
            category_id=product.category_id,
            featured=False,
            attributes=product.attributes,
        )
        db.session.add(copy)
        db.session.commit()

        log_current_admin("CREATE", "Product", copy.id, copy.name, details={"duplicated_from": product.id})
        return jsonify({"status": "success", "product": serialize_product(copy)}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to duplicate product {product_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to duplicate product", "details": str(e)}), 500


@products_bp.route("/<int:product_id>/related", methods=["GET"])
def related_products(product_id):
    """
    Up to four related products: bought together, then same category, then featured.
    """
    try:
        product = db.session.get(Product, product_id)
        if not product:
            return jsonify({"status": "error", "message": "Product not found"}), 404

        chosen = []
        seen = {product.id}

        def take(candidates):
            for candidate in candidates:
                if len(chosen) >= RELATED_LIMIT:
                    return
                if candidate is not None and candidate.id not in seen:
                    seen.add(candidate.id)
                    chosen.append(candidate)

        # --- Frequently bought together ---
        order_ids = select(OrderItem.order_id).where(OrderItem.product_id == product.id)
        co_purchased = db.session.execute(
            select(OrderItem.product_id, func.count(OrderItem.id).label("times"))
            .where(OrderItem.order_id.in_(order_ids))
            .where(OrderItem.product_id.is_not(None))
            .where(OrderItem.product_id != product.id)
            .group_by(OrderItem.product_id)
            .order_by(func.count(OrderItem.id).desc())
            .limit(RELATED_LIMIT)
        ).all()
        take(db.session.get(Product, row.product_id) for row in co_purchased)

        # --- Same category ---
        if len(chosen) < RELATED_LIMIT and product.category_id is not None:
            take(db.session.scalars(
                select(Product)
                .where(Product.category_id == product.category_id)
                .where(Product.id.not_in(seen))
                .order_by(Product.created_at.desc(), Product.id.desc())
                .limit(RELATED_LIMIT)
            ).all())

        # --- Featured ---
        if len(chosen) < RELATED_LIMIT:
            take(db.session.scalars(
                select(Product)
                .where(Product.featured.is_(True))
                .where(Product.id.not_in(seen))
                .order_by(Product.created_at.desc(), Product.id.desc())
                .limit(RELATED_LIMIT)
            ).all())

        return jsonify({"status": "success", "products": [serialize_product(p) for p in chosen]}), 200

    except Exception as e:
        current_app.logger.error(f"Failed to fetch related products for {product_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch related products", "details": str(e)}), 500


@products_bp.route("/bulk", methods=["PATCH"])
@admin_required
def bulk_update_products():
    try:
        data = request.get_json(force=True) or {}
        product_ids = data.get("product_ids") or []
        updates = data.get("updates") or {}
        if not isinstance(product_ids, list) or not product_ids:
            return jsonify({"status": "error", "message": "product_ids must be a non-empty list"}), 400
        if not isinstance(updates, dict) or not updates:
            return jsonify({"status": "error", "message": "No updates provided"}), 400

        values = {}
        if "category_id" in updates:
            category_id = updates.get("category_id")
            if category_id is not None and not db.session.get(Category, category_id):
                return jsonify({"status": "error", "message": "Category not found"}), 404
            values["category_id"] = category_id
        if "featured" in updates:
            values["featured"] = bool(parse_bool(updates.get("featured")))
        if "price" in updates:
            try:
                price = parse_decimal(updates.get("price"), "price")
            except ValueError as e:
                return jsonify({"status": "error", "message": str(e)}), 400
            if price is None or price < 0:
                return jsonify({"status": "error", "message": "price must be at least 0"}), 400
            values["price"] = price
        if "discount_percentage" in updates:
            discount = updates.get("discount_percentage")
            if discount is not None:
                try:
                    discount = int(discount)
                except (TypeError, ValueError):
                    return jsonify({"status": "error", "message": "discount_percentage must be an integer"}), 400
            values["discount_percentage"] = discount

        if not values:
            return jsonify({"status": "error", "message": "No supported updates provided"}), 400

        products = db.session.scalars(select(Product).where(Product.id.in_(product_ids))).all()
        for product in products:
            for key, value in values.items():
                setattr(product, key, value)
        db.session.commit()

        log_current_admin(
            "BULK_OPERATION", "Product",
            description=f"Bulk updated {len(products)} products",
            details={"product_ids": [p.id for p in products], "updates": {
                k: (money(v) if isinstance(v, Decimal) else v) for k, v in values.items()
            }},
        )
        return jsonify({"status": "success", "updated": len(products)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Bulk product update failed: {e}")
        return jsonify({"status": "error", "message": "Failed to update products", "details": str(e)}), 500


@products_bp.route("/bulk", methods=["DELETE"])
@admin_required
def bulk_delete_products():
    try:
        data = request.get_json(force=True) or {}
        product_ids = data.get("product_ids") or []
        if not isinstance(product_ids, list) or not product_ids:
            return jsonify({"status": "error", "message": "product_ids must be a non-empty list"}), 400

        products = db.session.scalars(select(Product).where(Product.id.in_(product_ids))).all()
        deleted_ids = [p.id for p in products]
        for product in products:
            db.session.delete(product)
        db.session.commit()

        log_current_admin(
            "BULK_OPERATION", "Product",
            description=f"Deleted {len(deleted_ids)} products",
            details={"product_ids": deleted_ids},
        )
        return jsonify({"status": "success", "deleted": len(deleted_ids)}), 200

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "Some products could not be deleted", "details": str(e.orig)}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Bulk product delete failed: {e}")
        return jsonify({"status": "error", "message": "Failed to delete products", "details": str(e)}), 500
