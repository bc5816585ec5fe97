from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from ..extensions import db
from ..models import DISCOUNT_TYPES, Coupon, CouponUsage
from ..services.admin_logger import create_change_details, log_current_admin
from ..services.coupons import CouponError, coupon_state, normalize_code, validate_coupon
from ..utils.auth import admin_required, login_required
from ..utils.helpers import build_pagination, get_pagination, money, parse_bool, parse_datetime, parse_decimal, utcnow
from ..utils.serializers import serialize_coupon

coupons_bp = Blueprint("coupons", __name__, url_prefix="/api/coupons")

ELIGIBILITY_FIELDS = (
    "included_products",
    "excluded_products",
    "included_categories",
    "excluded_categories",
)


def apply_coupon_fields(coupon, data, creating=False):
    """Validate ``data`` onto ``coupon``; returns an error message or None."""
    if creating or "code" in data:
        code = normalize_code(data.get("code"))
        if not code:
            return "Coupon code is required"
        coupon.code = code

    if creating or "discount_type" in data:
        discount_type = (data.get("discount_type") or "").upper()
        if discount_type not in DISCOUNT_TYPES:
            return "discount_type must be PERCENTAGE or FIXED"
        coupon.discount_type = discount_type

    if creating or "discount_value" in data:
        try:
            value = parse_decimal(data.get("discount_value"), "discount_value")
        except ValueError as e:
            return str(e)
        if value is None or value <= 0:
            return "discount_value must be greater than 0"
        coupon.discount_value = value

    if coupon.discount_type == "PERCENTAGE" and coupon.discount_value > 100:
        return "Percentage discount cannot exceed 100"

    for field in ("min_purchase_amount", "max_discount_amount"):
        if field in data:
            try:
                value = parse_decimal(data.get(field), field)
            except ValueError as e:
                return str(e)
            if value is not None and value < 0:
                return f"{field} cannot be negative"
            setattr(coupon, field, value)

    for field in ("usage_limit", "user_usage_limit"):
        if field in data:
            value = data.get(field)
            if value in (None, ""):
                setattr(coupon, field, None)
                continue
            try:
                value = int(value)
            except (TypeError, ValueError):
                return f"{field} must be an integer"
            if value < 1:
                return f"{field} must be at least 1"
            setattr(coupon, field, value)

    for field in ("valid_from", "valid_until"):
        if field in data:
            try:
                setattr(coupon, field, parse_datetime(data.get(field)))
            except ValueError:
                return f"{field} must be an ISO date"
    if coupon.valid_from and coupon.valid_until and coupon.valid_until < coupon.valid_from:
        return "valid_until must be after valid_from"

    if "is_active" in data:
        coupon.is_active = bool(parse_bool(data.get("is_active")))
    if "min_purchase_includes_delivery" in data:
        coupon.min_purchase_includes_delivery = bool(parse_bool(data.get("min_purchase_includes_delivery")))
    if "description" in data:
        coupon.description = data.get("description")

    for field in ELIGIBILITY_FIELDS:
        if field in data:
            values = data.get(field) or []
            if not isinstance(values, list):
                return f"{field} must be a list"
            try:
                setattr(coupon, field, [int(v) for v in values])
            except (TypeError, ValueError):
                return f"{field} must contain integer ids"
    return None


# -----------------------------------------------------------------------------
# POST /api/coupons/validate
# Purpose:
#   Check a code against the shopper's cart and return the discount.
# -----------------------------------------------------------------------------
@coupons_bp.route("/validate", methods=["POST"])
@login_required
def validate():
    """
    Validate a coupon for the current cart
    ---
    tags:
      - Coupons
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [code]
          properties:
            code:
              type: string
            subtotal:
              type: number
            cart_items:
              type: array
              items:
                type: object
                properties:
                  product_id:
                    type: integer
    responses:
      200:
        description: Coupon is valid
      400:
        description: Coupon cannot be applied
      404:
        description: Unknown code
    """
    try:
        data = request.get_json(force=True) or {}
        try:
            subtotal = parse_decimal(data.get("subtotal"), "subtotal") or 0
        except ValueError as e:
            return jsonify({"status": "error", "message": str(e)}), 400

        coupon, discount = validate_coupon(
            data.get("code"), subtotal, g.current_user.id, data.get("cart_items")
        )
        return jsonify({
            "status": "success",
            "valid": True,
            "coupon": {
                "id": coupon.id,
                "code": coupon.code,
                "description": coupon.description,
                "discount_type": coupon.discount_type,
                "discount_value": money(coupon.discount_value),
            },
            "discount_amount": f"{discount:.2f}"
        }), 200

    except CouponError as e:
        return jsonify({"status": "error", "valid": False, "message": e.message}), e.status
    except Exception as e:
        current_app.logger.error(f"Coupon validation failed: {e}")
        return jsonify({"status": "error", "message": "Failed to validate coupon", "details": str(e)}), 500


@coupons_bp.route("", methods=["GET"])
@admin_required
def list_coupons():
    try:
        page, limit, offset = get_pagination(default_limit=20)
        now = utcnow()
        filters = []

        search = (request.args.get("search") or "").strip()
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(or_(
                func.lower(Coupon.code).like(pattern),
                func.lower(Coupon.description).like(pattern),
            ))

        status = (request.args.get("status") or "").lower()
        if status == "active":
            filters += [
                Coupon.is_active.is_(True),
                or_(Coupon.valid_from.is_(None), Coupon.valid_from <= now),
                or_(Coupon.valid_until.is_(None), Coupon.valid_until >= now),
            ]
        elif status == "inactive":
            filters.append(Coupon.is_active.is_(False))
        elif status == "expired":
            filters.append(Coupon.valid_until < now)
        elif status == "scheduled":
            filters.append(Coupon.valid_from > now)

        total = db.session.scalar(select(func.count(Coupon.id)).where(*filters)) or 0
        coupons = db.session.scalars(
            select(Coupon).where(*filters).order_by(Coupon.created_at.desc(), Coupon.id.desc())
            .offset(offset).limit(limit)
        ).all()

        return jsonify({
            "status": "success",
            "coupons": [dict(serialize_coupon(c), state=coupon_state(c, now)) for c in coupons],
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list coupons: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch coupons", "details": str(e)}), 500


@coupons_bp.route("", methods=["POST"])
@admin_required
def create_coupon():
    try:
        data = request.get_json(force=True) or {}
        coupon = Coupon(is_active=True, used_count=0, source="MANUAL")
        error = apply_coupon_fields(coupon, data, creating=True)
        if error:
            return jsonify({"status": "error", "message": error}), 400

        if db.session.scalar(select(Coupon.id).where(Coupon.code == coupon.code)):
            return jsonify({"status": "error", "message": "A coupon with this code already exists"}), 409

        db.session.add(coupon)
        db.session.commit()

        log_current_admin("CREATE", "Coupon", coupon.id, coupon.code)
        return jsonify({"status": "success", "coupon": serialize_coupon(coupon)}), 201

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "A coupon with this code already exists", "details": str(e.orig)}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create coupon: {e}")
        return jsonify({"status": "error", "message": "Failed to create coupon", "details": str(e)}), 500


@coupons_bp.route("/<int:coupon_id>", methods=["GET"])
@admin_required
def get_coupon(coupon_id):
    coupon = db.session.get(Coupon, coupon_id)
    if not coupon:
        return jsonify({"status": "error", "message": "Coupon not found"}), 404
    return jsonify({"status": "success", "coupon": dict(serialize_coupon(coupon), state=coupon_state(coupon))}), 200


@coupons_bp.route("/<int:coupon_id>", methods=["PUT"])
@admin_required
def update_coupon(coupon_id):
    try:
        coupon = db.session.get(Coupon, coupon_id)
        if not coupon:
            return jsonify({"status": "error", "message": "Coupon not found"}), 404

        data = request.get_json(force=True) or {}
        before = serialize_coupon(coupon)
        error = apply_coupon_fields(coupon, data)
        if error:
            db.session.rollback()
            return jsonify({"status": "error", "message": error}), 400

        clash = db.session.scalar(
            select(Coupon.id).where(Coupon.code == coupon.code, Coupon.id != coupon.id)
        )
        if clash:
            db.session.rollback()
            return jsonify({"status": "error", "message": "A coupon with this code already exists"}), 409

        db.session.commit()
        after = serialize_coupon(coupon)
        log_current_admin("UPDATE", "Coupon", coupon.id, coupon.code, details=create_change_details(before, after))
        return jsonify({"status": "success", "coupon": after}), 200

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "A coupon with this code already exists", "details": str(e.orig)}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update coupon {coupon_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update coupon", "details": str(e)}), 500


@coupons_bp.route("/<int:coupon_id>", methods=["DELETE"])
@admin_required
def delete_coupon(coupon_id):
    try:
        coupon = db.session.get(Coupon, coupon_id)
        if not coupon:
            return jsonify({"status": "error", "message": "Coupon not found"}), 404

        code = coupon.code
        db.session.delete(coupon)
        db.session.commit()
        log_current_admin("DELETE", "Coupon", coupon_id, code)
        return jsonify({"status": "success", "message": "Coupon deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete coupon {coupon_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete coupon", "details": str(e)}), 500


@coupons_bp.route("/<int:coupon_id>/duplicate", methods=["POST"])
@admin_required
def duplicate_coupon(coupon_id):
    try:
        coupon = db.session.get(Coupon, coupon_id)
        if not coupon:
            return jsonify({"status": "error", "message": "Coupon not found"}), 404

        data = request.get_json(force=True, silent=True) or {}
        suffix = normalize_code(data.get("code_suffix")) or "COPY"
        base = f"{coupon.code}_{suffix}"
        code = base
        counter = 1
        while db.session.scalar(select(Coupon.id).where(Coupon.code == code)):
            code = f"{base}{counter}"
            counter += 1

        copy = Coupon(
            code=code,
            description=coupon.description,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            min_purchase_amount=coupon.min_purchase_amount,
            max_discount_amount=coupon.max_discount_amount,
            min_purchase_includes_delivery=coupon.min_purchase_includes_delivery,
            usage_limit=coupon.usage_limit,
            user_usage_limit=coupon.user_usage_limit,
            used_count=0,
            valid_from=coupon.valid_from,
            valid_until=coupon.valid_until,
            is_active=False,
            source="MANUAL",
            **{field: list(getattr(coupon, field) or []) for field in ELIGIBILITY_FIELDS},
        )
        db.session.add(copy)
        db.session.commit()

        log_current_admin("CREATE", "Coupon", copy.id, copy.code, details={"duplicated_from": coupon.id})
        return jsonify({"status": "success", "coupon": serialize_coupon(copy)}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to duplicate coupon {coupon_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to duplicate coupon", "details": str(e)}), 500


@coupons_bp.route("/bulk", methods=["POST"])
@admin_required
def bulk_coupons():
    try:
        data = request.get_json(force=True) or {}
        coupon_ids = data.get("coupon_ids") or []
        action = (data.get("action") or "").lower()
        if not isinstance(coupon_ids, list) or not coupon_ids:
            return jsonify({"status": "error", "message": "coupon_ids must be a non-empty list"}), 400
        if action not in ("activate", "deactivate", "delete"):
            return jsonify({"status": "error", "message": "action must be activate, deactivate or delete"}), 400

        coupons = db.session.scalars(select(Coupon).where(Coupon.id.in_(coupon_ids))).all()
        affected_ids = [c.id for c in coupons]
        for coupon in coupons:
            if action == "delete":
                db.session.delete(coupon)
            else:
                coupon.is_active = action == "activate"
        db.session.commit()

        log_current_admin(
            "BULK_OPERATION", "Coupon",
            description=f"Bulk {action} on {len(affected_ids)} coupons",
            details={"coupon_ids": affected_ids, "action": action},
        )
        return jsonify({"status": "success", "action": action, "affected": len(affected_ids)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Bulk coupon operation failed: {e}")
        return jsonify({"status": "error", "message": "Bulk operation failed", "details": str(e)}), 500


@coupons_bp.route("/analytics", methods=["GET"])
@admin_required
def coupon_analytics():
    try:
        now = utcnow()
        coupons = db.session.scalars(select(Coupon)).all()

        breakdown = {"active": 0, "inactive": 0, "expired": 0, "scheduled": 0, "limit_reached": 0}
        for coupon in coupons:
            breakdown[coupon_state(coupon, now)] += 1

        total_discount = db.session.scalar(
            select(func.coalesce(func.sum(CouponUsage.discount_amount), 0))
        )

        top = sorted(coupons, key=lambda c: c.used_count or 0, reverse=True)[:5]
        top_coupons = [
            {
                "id": c.id,
                "code": c.code,
                "used_count": c.used_count,
                "usage_limit": c.usage_limit,
                "usage_percentage": (
                    round((c.used_count or 0) / c.usage_limit * 100, 1) if c.usage_limit else None
                ),
            }
            for c in top
            if c.used_count
        ]

        return jsonify({
            "status": "success",
            "analytics": {
                "total_coupons": len(coupons),
                "active_coupons": breakdown["active"],
                "expired_coupons": breakdown["expired"],
                "total_usage": sum(c.used_count or 0 for c in coupons),
                "total_discount_given": money(total_discount),
                "top_coupons": top_coupons,
                "status_breakdown": breakdown,
            }
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to compute coupon analytics: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch analytics", "details": str(e)}), 500
