import math
from decimal import Decimal

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import select, func, or_
from ..extensions import db
from ..models import MODERATION_STATUSES, Salon, User
from ..services.admin_logger import log_current_admin
from ..services.email_service import get_email_service
from ..services.geocoding import GeocodingError, geocode_address
from ..services.notifications import create_notification, notify_admins
from ..utils.auth import admin_required, is_admin, login_required, optional_auth
from ..utils.helpers import parse_bool, utcnow
from ..utils.serializers import serialize_salon

salons_bp = Blueprint("salons", __name__, url_prefix="/api/salons")
geocode_bp = Blueprint("geocode", __name__, url_prefix="/api/geocode")

EARTH_RADIUS_KM = 6371.0
EDITABLE_FIELDS = ("name", "address", "city", "postal_code", "phone", "email", "website", "description")
BULK_ACTIONS = ("approve", "reject", "activate", "deactivate")


def haversine_km(lat1, lng1, lat2, lng2):
    lat1, lng1, lat2, lng2 = map(math.radians, (float(lat1), float(lng1), float(lat2), float(lng2)))
    a = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def _coordinate(value):
    if value in (None, ""):
        return None
    return Decimal(str(value))


def fill_coordinates(salon):
    """Geocode the salon's address; a failure leaves the coordinates empty."""
    try:
        result = geocode_address(salon.address, salon.city, salon.postal_code)
        salon.latitude = _coordinate(result["lat"])
        salon.longitude = _coordinate(result["lng"])
    except GeocodingError as e:
        current_app.logger.warning(f"Geocoding failed for salon '{salon.name}': {e.message}")


def apply_review(salon, action, reviewer, rejection_reason=None):
    """Approve / reject / (de)activate ``salon`` and notify its owner."""
    now = utcnow()
    if action == "approve":
        salon.status = "APPROVED"
        salon.is_active = True
        salon.rejection_reason = None
    elif action == "reject":
        salon.status = "REJECTED"
        salon.is_active = False
        salon.rejection_reason = rejection_reason
    elif action == "activate":
        salon.is_active = True
    elif action == "deactivate":
        salon.is_active = False

    if action in ("approve", "reject"):
        salon.reviewed_by = reviewer.id
        salon.reviewed_at = now
        if salon.user_id:
            approved = action == "approve"
            create_notification(
                "SALON_APPROVED" if approved else "SALON_REJECTED",
                "Salon approved" if approved else "Salon not approved",
                (
                    f"Your salon \"{salon.name}\" is now listed in the directory."
                    if approved
                    else f"Your salon \"{salon.name}\" was not approved. Reason: {rejection_reason}"
                ),
                user_id=salon.user_id,
                link_url="/salons/my-salon",
                details={"salon_id": salon.id, "rejection_reason": rejection_reason},
            )


def email_review_result(salon, approved):
    owner = db.session.get(User, salon.user_id) if salon.user_id else None
    if not owner:
        return
    email_service = get_email_service()
    if not email_service:
        return
    result = email_service.send_salon_review_result(
        owner.email, owner.name, salon.name, approved, salon.rejection_reason
    )
    if not result.get("success"):
        current_app.logger.warning(f"Salon review email failed for salon {salon.id}: {result.get('error')}")


@salons_bp.route("", methods=["GET"])
@optional_auth
def list_salons():
    """
    Salon directory
    ---
    tags:
      - Salons
    parameters:
      - in: query
        name: city
        type: string
      - in: query
        name: search
        type: string
      - in: query
        name: lat
        type: number
      - in: query
        name: lng
        type: number
      - in: query
        name: status
        type: string
        description: Admins only
    responses:
      200:
        description: Salons, sorted by distance when lat/lng are given
    """
    try:
        filters = []
        if is_admin(g.current_user):
            status = (request.args.get("status") or "").upper()
            if status in MODERATION_STATUSES:
                filters.append(Salon.status == status)
        else:
            filters += [Salon.status == "APPROVED", Salon.is_active.is_(True)]

        city = (request.args.get("city") or "").strip()
        if city:
            filters.append(func.lower(Salon.city) == city.lower())

        search = (request.args.get("search") or "").strip()
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(or_(
                func.lower(Salon.name).like(pattern),
                func.lower(Salon.address).like(pattern),
                func.lower(Salon.city).like(pattern),
            ))

        salons = db.session.scalars(select(Salon).where(*filters).order_by(Salon.name.asc())).all()
        result = [serialize_salon(s) for s in salons]

        lat = request.args.get("lat", type=float)
        lng = request.args.get("lng", type=float)
        if lat is not None and lng is not None:
            for data, salon in zip(result, salons):
                if salon.latitude is not None and salon.longitude is not None:
                    data["distance_km"] = round(haversine_km(lat, lng, salon.latitude, salon.longitude), 2)
                else:
                    data["distance_km"] = None
            result.sort(key=lambda d: (d["distance_km"] is None, d["distance_km"] or 0))

        return jsonify({"status": "success", "salons": result, "total": len(result)}), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list salons: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch salons", "details": str(e)}), 500


@salons_bp.route("", methods=["POST"])
@login_required
def create_salon():
    try:
        data = request.get_json(force=True) or {}
        name = (data.get("name") or "").strip()
        address = (data.get("address") or "").strip()
        city = (data.get("city") or "").strip()
        if not name or not address or not city:
            return jsonify({"status": "error", "message": "Name, address and city are required"}), 400

        user = g.current_user
        admin = is_admin(user)
        salon = Salon(
            name=name,
            address=address,
            city=city,
            postal_code=data.get("postal_code"),
            phone=data.get("phone"),
            email=data.get("email"),
            website=data.get("website"),
            description=data.get("description"),
            user_id=data.get("user_id") if admin and data.get("user_id") else user.id,
            status="APPROVED" if admin else "PENDING",
            is_active=admin,
        )
        if admin:
            salon.reviewed_by = user.id
            salon.reviewed_at = utcnow()

        try:
            salon.latitude = _coordinate(data.get("latitude"))
            salon.longitude = _coordinate(data.get("longitude"))
        except Exception:
            return jsonify({"status": "error", "message": "latitude and longitude must be numbers"}), 400
        if salon.latitude is None or salon.longitude is None:
            fill_coordinates(salon)

        db.session.add(salon)
        db.session.flush()

        if not admin:
            notify_admins(
                "NEW_SALON",
                "New salon submitted",
                f"{user.name or user.email} submitted \"{salon.name}\" ({salon.city}) for approval.",
                link_url="/admin/salons",
                details={"salon_id": salon.id},
            )
        db.session.commit()

        if admin:
            log_current_admin("CREATE", "Salon", salon.id, salon.name)
        return jsonify({"status": "success", "salon": serialize_salon(salon)}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create salon: {e}")
        return jsonify({"status": "error", "message": "Failed to create salon", "details": str(e)}), 500


@salons_bp.route("/my-salon", methods=["GET"])
@login_required
def my_salon():
    salon = db.session.scalar(
        select(Salon).where(Salon.user_id == g.current_user.id).order_by(Salon.created_at.desc())
    )
    if not salon:
        return jsonify({"status": "error", "message": "You have not registered a salon"}), 404
    return jsonify({"status": "success", "salon": serialize_salon(salon)}), 200


@salons_bp.route("/<int:salon_id>", methods=["GET"])
@optional_auth
def get_salon(salon_id):
    salon = db.session.get(Salon, salon_id)
    user = g.current_user
    visible = salon is not None and (
        (salon.status == "APPROVED" and salon.is_active)
        or is_admin(user)
        or (user is not None and salon.user_id == user.id)
    )
    if not visible:
        return jsonify({"status": "error", "message": "Salon not found"}), 404
    return jsonify({"status": "success", "salon": serialize_salon(salon)}), 200


@salons_bp.route("/<int:salon_id>", methods=["PUT"])
@login_required
def update_salon(salon_id):
    try:
        salon = db.session.get(Salon, salon_id)
        if not salon:
            return jsonify({"status": "error", "message": "Salon not found"}), 404

        user = g.current_user
        admin = is_admin(user)
        if not admin and salon.user_id != user.id:
            return jsonify({"status": "error", "message": "You can only edit your own salon"}), 403

        data = request.get_json(force=True) or {}
        address_changed = False
        for field in EDITABLE_FIELDS:
            if field in data:
                value = data.get(field)
                if field in ("name", "address", "city") and not (value or "").strip():
                    return jsonify({"status": "error", "message": f"{field} cannot be empty"}), 400
                if field in ("address", "city", "postal_code") and value != getattr(salon, field):
                    address_changed = True
                setattr(salon, field, value.strip() if isinstance(value, str) else value)

        if "latitude" in data or "longitude" in data:
            try:
                salon.latitude = _coordinate(data.get("latitude", salon.latitude))
                salon.longitude = _coordinate(data.get("longitude", salon.longitude))
            except Exception:
                return jsonify({"status": "error", "message": "latitude and longitude must be numbers"}), 400
        elif address_changed:
            fill_coordinates(salon)

        if admin:
            if "status" in data:
                status = (data.get("status") or "").upper()
                if status not in MODERATION_STATUSES:
                    return jsonify({"status": "error", "message": "Invalid status"}), 400
                salon.status = status
            if "is_active" in data:
                salon.is_active = bool(parse_bool(data.get("is_active")))
        elif salon.status == "APPROVED":
            salon.status = "PENDING"
            salon.is_active = False
            notify_admins(
                "NEW_SALON",
                "Salon updated",
                f"\"{salon.name}\" was edited by its owner and needs re-approval.",
                link_url="/admin/salons",
                details={"salon_id": salon.id},
            )

        db.session.commit()
        if admin:
            log_current_admin("UPDATE", "Salon", salon.id, salon.name)
        return jsonify({"status": "success", "salon": serialize_salon(salon)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update salon {salon_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update salon", "details": str(e)}), 500


@salons_bp.route("/<int:salon_id>", methods=["DELETE"])
@admin_required
def delete_salon(salon_id):
    try:
        salon = db.session.get(Salon, salon_id)
        if not salon:
            return jsonify({"status": "error", "message": "Salon not found"}), 404

        name = salon.name
        db.session.delete(salon)
        db.session.commit()
        log_current_admin("DELETE", "Salon", salon_id, name)
        return jsonify({"status": "success", "message": "Salon deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete salon {salon_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete salon", "details": str(e)}), 500


@salons_bp.route("/<int:salon_id>/review", methods=["POST"])
@admin_required
def review_salon(salon_id):
    try:
        salon = db.session.get(Salon, salon_id)
        if not salon:
            return jsonify({"status": "error", "message": "Salon not found"}), 404

        data = request.get_json(force=True) or {}
        action = (data.get("action") or "").lower()
        reason = (data.get("rejection_reason") or "").strip()
        if action not in ("approve", "reject"):
            return jsonify({"status": "error", "message": "action must be approve or reject"}), 400
        if action == "reject" and not reason:
            return jsonify({"status": "error", "message": "A rejection reason is required"}), 400

        apply_review(salon, action, g.current_user, reason or None)
        db.session.commit()

        email_review_result(salon, action == "approve")
        log_current_admin(
            "APPROVE" if action == "approve" else "REJECT", "Salon", salon.id, salon.name,
            details={"rejection_reason": salon.rejection_reason},
        )
        return jsonify({"status": "success", "salon": serialize_salon(salon)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to review salon {salon_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to review salon", "details": str(e)}), 500


@salons_bp.route("/bulk", methods=["POST"])
@admin_required
def bulk_salons():
    try:
        data = request.get_json(force=True) or {}
        salon_ids = data.get("salon_ids") or []
        action = (data.get("action") or "").lower()
        reason = (data.get("rejection_reason") or "").strip()
        if not isinstance(salon_ids, list) or not salon_ids:
            return jsonify({"status": "error", "message": "salon_ids must be a non-empty list"}), 400
        if action not in BULK_ACTIONS:
            return jsonify({"status": "error", "message": f"action must be one of: {', '.join(BULK_ACTIONS)}"}), 400
        if action == "reject" and not reason:
            return jsonify({"status": "error", "message": "A rejection reason is required"}), 400

        salons = db.session.scalars(select(Salon).where(Salon.id.in_(salon_ids))).all()
        for salon in salons:
            apply_review(salon, action, g.current_user, reason or None)
        affected_ids = [s.id for s in salons]
        db.session.commit()

        if action in ("approve", "reject"):
            for salon in salons:
                email_review_result(salon, action == "approve")

        log_current_admin(
            "BULK_OPERATION", "Salon",
            description=f"Bulk {action} on {len(affected_ids)} salons",
            details={"salon_ids": affected_ids, "action": action},
        )
        return jsonify({"status": "success", "action": action, "affected": len(affected_ids)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Bulk salon operation failed: {e}")
        return jsonify({"status": "error", "message": "Bulk operation failed", "details": str(e)}), 500


@geocode_bp.route("", methods=["GET"])
def geocode():
    """
    Geocode a Portuguese address through OpenStreetMap Nominatim
    ---
    tags:
      - Salons
    parameters:
      - in: query
        name: address
        type: string
        required: true
      - in: query
        name: city
        type: string
        required: true
      - in: query
        name: postal_code
        type: string
    responses:
      200:
        description: Coordinates found
      400:
        description: Missing address or city
      404:
        description: No match
    """
    address = (request.args.get("address") or "").strip()
    city = (request.args.get("city") or "").strip()
    postal_code = (request.args.get("postal_code") or request.args.get("postalCode") or "").strip() or None
    if not address or not city:
        return jsonify({"status": "error", "message": "Address and city are required"}), 400

    try:
        result = geocode_address(address, city, postal_code)
        return jsonify({"status": "success", **result}), 200
    except GeocodingError as e:
        return jsonify({"status": "error", "message": e.message}), e.status
    except Exception as e:
        current_app.logger.error(f"Geocoding failed: {e}")
        return jsonify({"status": "error", "message": "Geocoding service unavailable", "details": str(e)}), 500
