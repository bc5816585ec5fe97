from decimal import Decimal

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import select
from ..extensions import db
from ..models import Cart, CartItem, Product
from ..services.certifications import can_purchase
from ..utils.auth import login_required
from ..utils.helpers import money

cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


def get_or_create_cart(user):
    cart = db.session.scalar(select(Cart).where(Cart.user_id == user.id))
    if not cart:
        cart = Cart(user_id=user.id)
        db.session.add(cart)
        db.session.flush()
    return cart


def serialize_cart(cart):
    items = []
    subtotal = Decimal("0")
    for item in cart.items:
        product = item.product
        line_total = Decimal(product.price) * item.quantity
        subtotal += line_total
        items.append({
            "id": item.id,
            "product_id": product.id,
            "quantity": item.quantity,
            "line_total": money(line_total),
            "product": {
                "id": product.id,
                "name": product.name,
                "price": money(product.price),
                "image": product.image,
                "category_id": product.category_id,
            },
        })
    return {"id": cart.id, "items": items, "subtotal": money(subtotal)}


def add_product(cart, user, product_id, quantity):
    """Add or increment one line. Returns ``(item, error, status)``."""
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        return None, "Quantity must be an integer", 400
    if not product_id or quantity < 1:
        return None, "product_id and a quantity of at least 1 are required", 400

    product = db.session.get(Product, product_id)
    if not product:
        return None, "Product not found", 404

    allowed, reason = can_purchase(user, product)
    if not allowed:
        return None, reason, 403

    item = db.session.scalar(
        select(CartItem)
        .where(CartItem.cart_id == cart.id)
        .where(CartItem.product_id == product.id)
    )
    if item:
        item.quantity += quantity
    else:
        item = CartItem(cart_id=cart.id, product_id=product.id, quantity=quantity)
        db.session.add(item)
    db.session.flush()
    return item, None, None


# -----------------------------------------------------------------------------
# GET /api/cart
# Purpose:
#   Current user's cart with product summaries and subtotal.
# -----------------------------------------------------------------------------
@cart_bp.route("", methods=["GET"])
@login_required
def view_cart():
    try:
        cart = get_or_create_cart(g.current_user)
        db.session.commit()
        return jsonify({"status": "success", "cart": serialize_cart(cart)}), 200
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to load cart: {e}")
        return jsonify({"status": "error", "message": "Failed to load cart", "details": str(e)}), 500


# -----------------------------------------------------------------------------
# POST /api/cart
# Purpose:
#   Add a product; an existing line has its quantity incremented.
# -----------------------------------------------------------------------------
@cart_bp.route("", methods=["POST"])
@login_required
def add_to_cart():
    """
    Add a product to the cart
    ---
    tags:
      - Cart
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [product_id, quantity]
          properties:
            product_id:
              type: integer
            quantity:
              type: integer
              minimum: 1
    responses:
      201:
        description: Item added
      403:
        description: Certification does not allow this product
      404:
        description: Product not found
    """
    try:
        data = request.get_json(force=True) or {}
        if data.get("product_id") is None or data.get("quantity") is None:
            return jsonify({"status": "error", "message": "product_id and quantity are required"}), 400

        cart = get_or_create_cart(g.current_user)
        item, error, status = add_product(cart, g.current_user, data.get("product_id"), data.get("quantity"))
        if error:
            db.session.rollback()
            return jsonify({"status": "error", "message": error}), status

        db.session.commit()
        return jsonify({
            "status": "success",
            "message": "Item added to cart",
            "item_id": item.id,
            "cart": serialize_cart(cart)
        }), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to add to cart: {e}")
        return jsonify({"status": "error", "message": "Failed to add item", "details": str(e)}), 500


# -----------------------------------------------------------------------------
# POST /api/cart/add-items
# Purpose:
#   Add several products at once (e.g. "buy the whole routine").
# -----------------------------------------------------------------------------
@cart_bp.route("/add-items", methods=["POST"])
@login_required
def add_items_to_cart():
    try:
        data = request.get_json(force=True) or {}
        entries = data.get("items")
        if not isinstance(entries, list) or not entries:
            return jsonify({"status": "error", "message": "items must be a non-empty list"}), 400

        cart = get_or_create_cart(g.current_user)
        added, rejected = [], []
        for entry in entries:
            entry = entry if isinstance(entry, dict) else {}
            product_id = entry.get("product_id")
            item, error, _ = add_product(cart, g.current_user, product_id, entry.get("quantity", 1))
            if error:
                rejected.append({"product_id": product_id, "reason": error})
            else:
                added.append({"item_id": item.id, "product_id": item.product_id, "quantity": item.quantity})

        db.session.commit()
        return jsonify({
            "status": "success",
            "added": added,
            "rejected": rejected,
            "cart": serialize_cart(cart)
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to add items to cart: {e}")
        return jsonify({"status": "error", "message": "Failed to add items", "details": str(e)}), 500


def _own_item(item_id):
    cart = db.session.scalar(select(Cart).where(Cart.user_id == g.current_user.id))
    if not cart:
        return None
    return db.session.scalar(
        select(CartItem).where(CartItem.id == item_id).where(CartItem.cart_id == cart.id)
    )


@cart_bp.route("/<int:item_id>", methods=["PATCH"])
@login_required
def update_cart_item(item_id):
    try:
        data = request.get_json(force=True) or {}
        try:
            quantity = int(data.get("quantity"))
        except (TypeError, ValueError):
            return jsonify({"status": "error", "message": "Quantity must be an integer"}), 400
        if quantity <= 0:
            return jsonify({"status": "error", "message": "Quantity must be greater than 0"}), 400

        item = _own_item(item_id)
        if not item:
            return jsonify({"status": "error", "message": "Cart item not found"}), 404

        item.quantity = quantity
        db.session.commit()
        return jsonify({"status": "success", "cart": serialize_cart(item.cart)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update cart item {item_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update item", "details": str(e)}), 500


@cart_bp.route("/<int:item_id>", methods=["DELETE"])
@login_required
def remove_cart_item(item_id):
    try:
        item = _own_item(item_id)
        if not item:
            return jsonify({"status": "error", "message": "Cart item not found"}), 404

        cart = item.cart
        db.session.delete(item)
        db.session.commit()
        return jsonify({"status": "success", "message": "Item removed", "cart": serialize_cart(cart)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to remove cart item {item_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to remove item", "details": str(e)}), 500


@cart_bp.route("", methods=["DELETE"])
@login_required
def clear_cart():
    try:
        cart = db.session.scalar(select(Cart).where(Cart.user_id == g.current_user.id))
        if cart:
            cart.items.clear()
            db.session.commit()
        return jsonify({"status": "success", "message": "Cart cleared"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to clear cart: {e}")
        return jsonify({"status": "error", "message": "Failed to clear cart", "details": str(e)}), 500
