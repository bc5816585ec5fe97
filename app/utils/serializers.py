"""JSON shapes shared by several blueprints."""

from .helpers import iso, money


def serialize_user(user, include_private=False):
    data = {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "is_active": user.is_active,
        "points_balance": user.points_balance,
        "certification_id": user.certification_id,
        "certification": (
            {"id": user.certification.id, "name": user.certification.name}
            if user.certification
            else None
        ),
        "created_at": iso(user.created_at),
    }
    if include_private:
        data["permissions"] = user.permissions
        data["certificate_url"] = user.certificate_url
        data["updated_at"] = iso(user.updated_at)
    return data


def serialize_category(category, product_count=None):
    data = {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "image": category.image,
        "icon": category.icon,
        "created_at": iso(category.created_at),
        "updated_at": iso(category.updated_at),
    }
    if product_count is not None:
        data["product_count"] = product_count
    return data


def serialize_product(product, include_category=True):
    data = {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price": money(product.price),
        "sale_price": money(product.sale_price),
        "discount_percentage": product.discount_percentage,
        "image": product.image,
        "images": product.images or [],
        "category_id": product.category_id,
        "featured": product.featured,
        "attributes": product.attributes,
        "created_at": iso(product.created_at),
        "updated_at": iso(product.updated_at),
    }
    if include_category:
        data["category"] = (
            {
                "id": product.category.id,
                "name": product.category.name,
                "slug": product.category.slug,
            }
            if product.category
            else None
        )
    return data


def serialize_order(order):
    return {
        "id": order.id,
        "user_id": order.user_id,
        "status": order.status,
        "subtotal": money(order.subtotal),
        "discount_amount": money(order.discount_amount),
        "total": money(order.total),
        "coupon_code": order.coupon_code,
        "shipping_address": order.shipping_address,
        "customer": (
            {"id": order.user.id, "name": order.user.name, "email": order.user.email}
            if order.user
            else None
        ),
        "items": [
            {
                "id": item.id,
                "product_id": item.product_id,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "price": money(item.price),
                "image": item.product.image if item.product else None,
            }
            for item in order.items
        ],
        "created_at": iso(order.created_at),
        "updated_at": iso(order.updated_at),
    }


def serialize_coupon(coupon):
    return {
        "id": coupon.id,
        "code": coupon.code,
        "description": coupon.description,
        "discount_type": coupon.discount_type,
        "discount_value": money(coupon.discount_value),
        "min_purchase_amount": money(coupon.min_purchase_amount),
        "max_discount_amount": money(coupon.max_discount_amount),
        "min_purchase_includes_delivery": coupon.min_purchase_includes_delivery,
        "usage_limit": coupon.usage_limit,
        "user_usage_limit": coupon.user_usage_limit,
        "used_count": coupon.used_count,
        "valid_from": iso(coupon.valid_from),
        "valid_until": iso(coupon.valid_until),
        "is_active": coupon.is_active,
        "source": coupon.source,
        "included_products": coupon.included_products or [],
        "excluded_products": coupon.excluded_products or [],
        "included_categories": coupon.included_categories or [],
        "excluded_categories": coupon.excluded_categories or [],
        "created_at": iso(coupon.created_at),
        "updated_at": iso(coupon.updated_at),
    }


def serialize_reward(reward):
    return {
        "id": reward.id,
        "name": reward.name,
        "description": reward.description,
        "points_cost": reward.points_cost,
        "discount_type": reward.discount_type,
        "discount_value": money(reward.discount_value),
        "min_purchase_amount": money(reward.min_purchase_amount),
        "max_discount_amount": money(reward.max_discount_amount),
        "stock": reward.stock,
        "redeemed_count": reward.redeemed_count,
        "is_active": reward.is_active,
        "valid_from": iso(reward.valid_from),
        "valid_until": iso(reward.valid_until),
        "created_at": iso(reward.created_at),
    }


def serialize_redemption(redemption):
    return {
        "id": redemption.id,
        "user_id": redemption.user_id,
        "reward_id": redemption.reward_id,
        "reward_name": redemption.reward.name if redemption.reward else None,
        "coupon_id": redemption.coupon_id,
        "coupon_code": redemption.coupon_code,
        "points_spent": redemption.points_spent,
        "status": redemption.status,
        "created_at": iso(redemption.created_at),
    }


def serialize_points_transaction(tx):
    return {
        "id": tx.id,
        "user_id": tx.user_id,
        "amount": tx.amount,
        "type": tx.type,
        "balance_before": tx.balance_before,
        "balance_after": tx.balance_after,
        "reference_id": tx.reference_id,
        "description": tx.description,
        "created_at": iso(tx.created_at),
    }


def serialize_notification(notification):
    return {
        "id": notification.id,
        "type": (notification.type or "").lower(),
        "title": notification.title,
        "message": notification.message,
        "image": notification.image,
        "link_url": notification.link_url,
        "user_id": notification.user_id,
        "read": notification.read,
        "metadata": notification.details,
        "is_scheduled": notification.is_scheduled,
        "scheduled_for": iso(notification.scheduled_for),
        "created_at": iso(notification.created_at),
    }


def serialize_salon(salon):
    return {
        "id": salon.id,
        "name": salon.name,
        "address": salon.address,
        "city": salon.city,
        "postal_code": salon.postal_code,
        "phone": salon.phone,
        "email": salon.email,
        "website": salon.website,
        "description": salon.description,
        "latitude": money(salon.latitude),
        "longitude": money(salon.longitude),
        "status": salon.status,
        "is_active": salon.is_active,
        "rejection_reason": salon.rejection_reason,
        "user_id": salon.user_id,
        "reviewed_by": salon.reviewed_by,
        "reviewed_at": iso(salon.reviewed_at),
        "created_at": iso(salon.created_at),
        "updated_at": iso(salon.updated_at),
    }
