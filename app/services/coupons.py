from decimal import Decimal

from flask import current_app
from sqlalchemy import func, select

from ..extensions import db
from ..models import Coupon, CouponUsage, PointsRedemption, Product
from ..utils.helpers import quantize, utcnow


class CouponError(Exception):
    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


def normalize_code(code):
    return (code or "").strip().upper()


def _cart_products(cart_items):
    """Map ``cart_items`` (dicts with product_id) to Product rows."""
    ids = []
    for item in cart_items or []:
        product_id = item.get("product_id") if isinstance(item, dict) else item
        if product_id is None:
            continue
        try:
            ids.append(int(product_id))
        except (TypeError, ValueError):
            raise CouponError(f"Invalid product id: {product_id}", 400)
    if not ids:
        return []
    return db.session.scalars(select(Product).where(Product.id.in_(ids))).all()


def _as_ids(values):
    return {int(v) for v in values or []}


def check_eligibility(coupon, products):
    included_products = _as_ids(coupon.included_products)
    excluded_products = _as_ids(coupon.excluded_products)
    included_categories = _as_ids(coupon.included_categories)
    excluded_categories = _as_ids(coupon.excluded_categories)

    for product in products:
        if included_products and product.id not in included_products:
            raise CouponError(f"This coupon is not valid for {product.name}")
        if product.id in excluded_products:
            raise CouponError(f"This coupon cannot be used with {product.name}")
        if included_categories and product.category_id not in included_categories:
            raise CouponError(f"This coupon is not valid for products in the category of {product.name}")
        if product.category_id is not None and product.category_id in excluded_categories:
            raise CouponError(f"This coupon cannot be used with products in the category of {product.name}")


def compute_discount(coupon, subtotal):
    subtotal = Decimal(subtotal)
    if coupon.discount_type == "PERCENTAGE":
        discount = subtotal * Decimal(coupon.discount_value) / Decimal(100)
        if coupon.max_discount_amount is not None:
            discount = min(discount, Decimal(coupon.max_discount_amount))
    else:
        discount = min(Decimal(coupon.discount_value), subtotal)
    return quantize(max(discount, Decimal("0")))


def user_usage_count(coupon, user_id):
    return db.session.scalar(
        select(func.count(CouponUsage.id))
        .where(CouponUsage.coupon_id == coupon.id)
        .where(CouponUsage.user_id == user_id)
    ) or 0


def validate_coupon(code, subtotal, user_id=None, cart_items=None):
    """Return ``(coupon, discount)`` or raise CouponError with an HTTP status."""
    code = normalize_code(code)
    if not code:
        raise CouponError("Coupon code is required", 400)

    coupon = db.session.scalar(select(Coupon).where(Coupon.code == code))
    if not coupon:
        raise CouponError("Invalid coupon code", 404)
    if not coupon.is_active:
        raise CouponError("This coupon is not active")

    now = utcnow()
    if coupon.valid_from and now < coupon.valid_from:
        raise CouponError("This coupon is not yet valid")
    if coupon.valid_until and now > coupon.valid_until:
        raise CouponError("This coupon has expired")
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        raise CouponError("This coupon has reached its usage limit")

    if coupon.user_usage_limit is not None and user_id is not None:
        if user_usage_count(coupon, user_id) >= coupon.user_usage_limit:
            raise CouponError("You have already used this coupon the maximum number of times")

    if cart_items:
        check_eligibility(coupon, _cart_products(cart_items))

    subtotal = Decimal(str(subtotal or 0))
    if coupon.min_purchase_amount is not None:
        compared = subtotal
        if coupon.min_purchase_includes_delivery:
            compared += current_app.config["DELIVERY_COST"]
        if compared < coupon.min_purchase_amount:
            if coupon.min_purchase_includes_delivery:
                required = quantize(coupon.min_purchase_amount - current_app.config["DELIVERY_COST"])
                raise CouponError(f"Minimum purchase of {required}€ required (excluding delivery)")
            raise CouponError(
                f"Minimum purchase of {quantize(coupon.min_purchase_amount)}€ required"
            )

    return coupon, compute_discount(coupon, subtotal)


def record_usage(coupon, user_id, order_id, discount):
    """Count one checkout against ``coupon`` and close any matching redemption."""
    coupon.used_count = (coupon.used_count or 0) + 1
    db.session.add(
        CouponUsage(
            coupon_id=coupon.id,
            user_id=user_id,
            order_id=order_id,
            discount_amount=discount,
        )
    )
    redemptions = db.session.scalars(
        select(PointsRedemption).where(PointsRedemption.coupon_code == coupon.code)
    ).all()
    for redemption in redemptions:
        redemption.status = "USED"


def coupon_state(coupon, now=None):
    """One of active, inactive, expired, scheduled, limit_reached."""
    now = now or utcnow()
    if not coupon.is_active:
        return "inactive"
    if coupon.valid_until and coupon.valid_until < now:
        return "expired"
    if coupon.valid_from and coupon.valid_from > now:
        return "scheduled"
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        return "limit_reached"
    return "active"


def is_usable_now(coupon, now=None):
    return coupon is not None and coupon_state(coupon, now) == "active"
