from decimal import Decimal

from flask import current_app
from sqlalchemy import select

from ..extensions import db
from ..models import BannedEmail, Cart, Order, OrderItem
from .affiliates import process_order_referral
from .certifications import can_purchase
from .coupons import CouponError, record_usage, validate_coupon
from .email_service import get_email_service
from .notifications import notify_admins
from .points import award_for_action
from ..utils.helpers import quantize


class CheckoutError(Exception):
    def __init__(self, message, status=400, **extra):
        super().__init__(message)
        self.message = message
        self.status = status
        self.extra = extra


def place_order(user, shipping_address=None, coupon_code=None):
    """Turn ``user``'s cart into a PENDING order and commit it.

    Raises CheckoutError; everything after the commit is best-effort.
    """
    if db.session.scalar(select(BannedEmail.id).where(BannedEmail.email == user.email)):
        raise CheckoutError("This account is not allowed to place orders", 403)

    cart = db.session.scalar(select(Cart).where(Cart.user_id == user.id))
    if not cart or not cart.items:
        raise CheckoutError("Your cart is empty", 400)

    for item in cart.items:
        allowed, reason = can_purchase(user, item.product)
        if not allowed:
            raise CheckoutError(
                reason, 403, product_id=item.product.id, product_name=item.product.name
            )

    subtotal = quantize(sum(
        (Decimal(item.product.price) * item.quantity for item in cart.items),
        Decimal("0"),
    ))

    coupon = None
    discount = Decimal("0")
    if coupon_code:
        cart_items = [{"product_id": item.product_id} for item in cart.items]
        try:
            coupon, discount = validate_coupon(coupon_code, subtotal, user.id, cart_items)
        except CouponError as e:
            raise CheckoutError(e.message, e.status)

    total = max(Decimal("0"), subtotal - discount)

    order = Order(
        user_id=user.id,
        status="PENDING",
        subtotal=subtotal,
        discount_amount=discount,
        total=quantize(total),
        coupon_code=coupon.code if coupon else None,
        shipping_address=shipping_address,
    )
    for item in cart.items:
        order.items.append(OrderItem(
            product_id=item.product.id,
            product_name=item.product.name,
            quantity=item.quantity,
            price=item.product.price,
        ))
    db.session.add(order)
    db.session.flush()

    if coupon:
        record_usage(coupon, user.id, order.id, discount)

    cart.items.clear()
    db.session.commit()

    _after_order(order, user)
    return order


def _after_order(order, user):
    """Referral rewards, purchase points, admin notification and email."""
    try:
        process_order_referral(order, user)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Referral processing failed for order {order.id}: {e}")

    try:
        award_for_action(
            user,
            "OWN_PURCHASE",
            "PURCHASE",
            order_value=order.total,
            reference_id=order.id,
            description=f"Purchase order #{order.id}",
        )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Awarding purchase points failed for order {order.id}: {e}")

    try:
        notify_admins(
            "ORDER",
            "New order",
            f"New order #{order.id} from {user.name or user.email} - {order.total:.2f}€",
            link_url=f"/admin/orders/{order.id}",
            details={
                "order_id": order.id,
                "total": float(order.total),
                "coupon_code": order.coupon_code,
                "discount_amount": float(order.discount_amount or 0),
            },
        )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Order notification failed for order {order.id}: {e}")

    email_service = get_email_service()
    if email_service:
        result = email_service.send_order_confirmation(
            to_email=user.email,
            customer_name=user.name,
            order_id=order.id,
            items=[
                {"name": i.product_name, "quantity": i.quantity, "price": float(i.price)}
                for i in order.items
            ],
            subtotal=float(order.subtotal),
            discount=float(order.discount_amount or 0),
            total=float(order.total),
            coupon_code=order.coupon_code,
        )
        if not result.get("success"):
            current_app.logger.warning(
                f"Order confirmation email failed for order {order.id}: {result.get('error')}"
            )
