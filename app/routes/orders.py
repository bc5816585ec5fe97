from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import select, func, or_, cast, String
from ..extensions import db
from ..models import ORDER_STATUSES, Order, OrderItem
from ..services.admin_logger import log_current_admin
from ..services.checkout import CheckoutError, place_order
from ..services.notifications import create_notification
from ..utils.auth import admin_required, is_admin, login_required
from ..utils.helpers import build_pagination, get_pagination
from ..utils.serializers import serialize_order

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

SORT_COLUMNS = {
    "date": Order.created_at,
    "total": Order.total,
    "status": Order.status,
}


def status_notification(order, new_status):
    short_id = str(order.id)[:8]
    if new_status == "SHIPPED":
        return (
            "ORDER_SHIPPED",
            "Your order has shipped",
            f"Your order #{short_id} has been shipped and is on its way!",
        )
    if new_status == "DELIVERED":
        return (
            "ORDER_DELIVERED",
            "Your order was delivered",
            f"Your order #{short_id} has been delivered. We hope you enjoy it!",
        )
    if new_status == "CANCELLED":
        return (
            "ORDER_STATUS",
            "Your order was cancelled",
            f"Your order #{short_id} has been cancelled. Contact us if you have any questions.",
        )
    return (
        "ORDER_STATUS",
        "Order status updated",
        f"Your order #{short_id} is now {new_status.lower()}.",
    )


@orders_bp.route("", methods=["POST"])
@login_required
def checkout():
    """
    Check out the current cart
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            shipping_address:
              type: object
            coupon_code:
              type: string
    responses:
      201:
        description: Order created
      400:
        description: Empty cart or invalid coupon
      403:
        description: Banned account or certification denial
    """
    try:
        data = request.get_json(force=True, silent=True) or {}
        order = place_order(
            g.current_user,
            shipping_address=data.get("shipping_address"),
            coupon_code=data.get("coupon_code"),
        )
        order = db.session.get(Order, order.id)
        return jsonify({
            "status": "success",
            "message": "Order placed successfully",
            "order": serialize_order(order)
        }), 201

    except CheckoutError as e:
        db.session.rollback()
        payload = {"status": "error", "message": e.message}
        payload.update(e.extra)
        return jsonify(payload), e.status
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Checkout failed for user {g.current_user.id}: {e}")
        return jsonify({"status": "error", "message": "Failed to create order", "details": str(e)}), 500


@orders_bp.route("", methods=["GET"])
@login_required
def list_orders():
    try:
        user = g.current_user
        page, limit, offset = get_pagination(default_limit=50)
        filters = []

        if is_admin(user):
            user_id = request.args.get("user_id", type=int)
            if user_id:
                filters.append(Order.user_id == user_id)
        else:
            filters.append(Order.user_id == user.id)

        status = (request.args.get("status") or "all").upper()
        if status != "ALL":
            filters.append(Order.status == status)

        search = (request.args.get("search") or "").strip()
        if search:
            matching = select(OrderItem.order_id).where(
                func.lower(OrderItem.product_name).like(f"%{search.lower()}%")
            )
            filters.append(or_(cast(Order.id, String).like(f"%{search}%"), Order.id.in_(matching)))

        column = SORT_COLUMNS.get(request.args.get("sort_by", "date"), Order.created_at)
        direction = column.asc() if request.args.get("sort_order") == "asc" else column.desc()

        total = db.session.scalar(select(func.count(Order.id)).where(*filters)) or 0
        orders = db.session.scalars(
            select(Order).where(*filters).order_by(direction, Order.id.desc()).offset(offset).limit(limit)
        ).all()

        return jsonify({
            "status": "success",
            "orders": [serialize_order(o) for o in orders],
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list orders: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch orders", "details": str(e)}), 500


@orders_bp.route("/<int:order_id>", methods=["GET"])
@login_required
def get_order(order_id):
    order = db.session.get(Order, order_id)
    if not order or (not is_admin(g.current_user) and order.user_id != g.current_user.id):
        return jsonify({"status": "error", "message": "Order not found"}), 404
    return jsonify({"status": "success", "order": serialize_order(order)}), 200


@orders_bp.route("/<int:order_id>", methods=["PATCH"])
@admin_required
def update_order_status(order_id):
    try:
        order = db.session.get(Order, order_id)
        if not order:
            return jsonify({"status": "error", "message": "Order not found"}), 404

        data = request.get_json(force=True) or {}
        new_status = (data.get("status") or "").upper()
        if new_status not in ORDER_STATUSES:
            return jsonify({
                "status": "error",
                "message": f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}"
            }), 400

        previous = order.status
        order.status = new_status
        if previous != new_status and order.user_id:
            type_, title, message = status_notification(order, new_status)
            create_notification(
                type_,
                title,
                message,
                user_id=order.user_id,
                link_url=f"/orders/{order.id}",
                details={"order_id": order.id, "status": new_status, "previous_status": previous},
            )
        db.session.commit()

        log_current_admin(
            "UPDATE", "Order", order.id, f"#{order.id}",
            details={"before": {"status": previous}, "after": {"status": new_status}},
        )
        return jsonify({"status": "success", "order": serialize_order(order)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update order {order_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update order", "details": str(e)}), 500
