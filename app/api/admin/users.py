# Admin user management
from flask import Blueprint, jsonify, request, current_app, g
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from app.extensions import db
from app.models import Cart, Certification, Order, User
from app.routes.auth import MIN_PASSWORD_LENGTH
from app.services.admin_logger import create_change_details, log_current_admin
from app.services.points import PointsError, adjust_points
from app.utils.auth import admin_required, hash_password
from app.utils.helpers import build_pagination, get_pagination, money, normalize_email, parse_bool
from app.utils.serializers import serialize_points_transaction, serialize_user

admin_users_bp = Blueprint("admin_users", __name__, url_prefix="/api/admin/users")

USER_ROLES = ("USER", "ADMIN")
AUDITED_FIELDS = ("name", "email", "role", "is_active", "certification_id", "permissions")


def _active_certification(certification_id):
    certification = db.session.get(Certification, certification_id)
    if not certification or not certification.is_active:
        return None
    return certification


def _snapshot(user):
    return {field: getattr(user, field) for field in AUDITED_FIELDS}


@admin_users_bp.route("", methods=["GET"])
@admin_required
def list_users():
    """
    GET /api/admin/users - Users with order totals

    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: search
        in: query
        type: string
        description: Matches name or email
      - name: role
        in: query
        type: string
        enum: [USER, ADMIN]
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    responses:
      200:
        description: Paginated users, each with order_count and total_spent
    """
    try:
        page, limit, offset = get_pagination(default_limit=20)
        filters = []
        search = (request.args.get("search") or "").strip()
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern)))
        role = (request.args.get("role") or "").upper()
        if role in USER_ROLES:
            filters.append(User.role == role)

        total = db.session.scalar(select(func.count(User.id)).where(*filters)) or 0

        order_count = func.count(Order.id).label("order_count")
        total_spent = func.coalesce(func.sum(Order.total), 0).label("total_spent")
        rows = db.session.execute(
            select(User, order_count, total_spent)
            .outerjoin(Order, Order.user_id == User.id)
            .where(*filters)
            .group_by(User.id)
            .order_by(User.created_at.desc(), User.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()

        users = []
        for row in rows:
            data = serialize_user(row.User, include_private=True)
            data["order_count"] = row.order_count
            data["total_spent"] = money(row.total_spent)
            users.append(data)

        return jsonify({
            "status": "success",
            "users": users,
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list users: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch users", "details": str(e)}), 500


@admin_users_bp.route("", methods=["POST"])
@admin_required
def create_user():
    try:
        data = request.get_json(force=True) or {}
        email = normalize_email(data.get("email"))
        password = data.get("password") or ""
        role = (data.get("role") or "USER").upper()

        if not email or not password:
            return jsonify({"status": "error", "message": "Email and password are required"}), 400
        if len(password) < MIN_PASSWORD_LENGTH:
            return jsonify({
                "status": "error",
                "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            }), 400
        if role not in USER_ROLES:
            return jsonify({"status": "error", "message": "Invalid role"}), 400
        if db.session.scalar(select(User.id).where(User.email == email)):
            return jsonify({"status": "error", "message": "Email already exists"}), 400

        certification_id = data.get("certification_id")
        if certification_id and not _active_certification(certification_id):
            return jsonify({"status": "error", "message": "Invalid or inactive certification"}), 400

        user = User(
            email=email,
            password_hash=hash_password(password),
            name=(data.get("name") or "").strip() or None,
            role=role,
            is_active=parse_bool(data.get("is_active")) is not False,
            permissions=data.get("permissions"),
            certification_id=certification_id or None,
        )
        db.session.add(user)
        db.session.flush()
        db.session.add(Cart(user_id=user.id))
        db.session.commit()

        log_current_admin("CREATE", "User", user.id, user.email, details={"role": user.role})
        return jsonify({"status": "success", "user": serialize_user(user, include_private=True)}), 201

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": "Email already exists", "details": str(e.orig)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create user: {e}")
        return jsonify({"status": "error", "message": "Failed to create user", "details": str(e)}), 500


@admin_users_bp.route("/<int:user_id>", methods=["GET"])
@admin_required
def get_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify({"status": "error", "message": "User not found"}), 404

    data = serialize_user(user, include_private=True)
    data["order_count"] = len(user.orders)
    data["total_spent"] = money(sum((o.total for o in user.orders), 0))
    data["recent_transactions"] = [
        serialize_points_transaction(tx)
        for tx in sorted(user.points_transactions, key=lambda t: t.id, reverse=True)[:10]
    ]
    return jsonify({"status": "success", "user": data}), 200


@admin_users_bp.route("/<int:user_id>", methods=["PATCH"])
@admin_required
def update_user(user_id):
    try:
        user = db.session.get(User, user_id)
        if not user:
            return jsonify({"status": "error", "message": "User not found"}), 404

        data = request.get_json(force=True) or {}
        before = _snapshot(user)

        if "email" in data:
            email = normalize_email(data.get("email"))
            if not email:
                return jsonify({"status": "error", "message": "Email cannot be empty"}), 400
            clash = db.session.scalar(select(User.id).where(User.email == email, User.id != user.id))
            if clash:
                return jsonify({"status": "error", "message": "Email already exists"}), 400
            user.email = email
        if "name" in data:
            user.name = (data.get("name") or "").strip() or None
        if data.get("password"):
            if len(data["password"]) < MIN_PASSWORD_LENGTH:
                return jsonify({
                    "status": "error",
                    "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
                }), 400
            user.password_hash = hash_password(data["password"])
        if "role" in data:
            role = (data.get("role") or "").upper()
            if role not in USER_ROLES:
                return jsonify({"status": "error", "message": "Invalid role"}), 400
            user.role = role
        if "permissions" in data:
            user.permissions = data.get("permissions")
        if "is_active" in data:
            user.is_active = bool(parse_bool(data.get("is_active")))
        if "certification_id" in data:
            certification_id = data.get("certification_id")
            if certification_id and not _active_certification(certification_id):
                return jsonify({"status": "error", "message": "Invalid or inactive certification"}), 400
            user.certification_id = certification_id or None

        db.session.commit()

        log_current_admin(
            "UPDATE", "User", user.id, user.email,
            details=create_change_details(before, _snapshot(user)),
        )
        return jsonify({"status": "success", "user": serialize_user(user, include_private=True)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update user {user_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update user", "details": str(e)}), 500


@admin_users_bp.route("/<int:user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id):
    try:
        if user_id == g.current_user.id:
            return jsonify({"status": "error", "message": "You cannot delete your own account"}), 400

        user = db.session.get(User, user_id)
        if not user:
            return jsonify({"status": "error", "message": "User not found"}), 404

        email = user.email
        db.session.delete(user)
        db.session.commit()

        log_current_admin("DELETE", "User", user_id, email)
        return jsonify({"status": "success", "message": "User deleted", "deleted_user_id": user_id}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete user {user_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete user", "details": str(e)}), 500


@admin_users_bp.route("/<int:user_id>/certification", methods=["PATCH"])
@admin_required
def set_user_certification(user_id):
    try:
        user = db.session.get(User, user_id)
        if not user:
            return jsonify({"status": "error", "message": "User not found"}), 404

        data = request.get_json(force=True) or {}
        certification_id = data.get("certification_id")
        previous = user.certification_id
        if certification_id:
            if not _active_certification(certification_id):
                return jsonify({"status": "error", "message": "Invalid or inactive certification"}), 400
            user.certification_id = certification_id
        else:
            user.certification_id = None
        db.session.commit()

        log_current_admin(
            "UPDATE", "User", user.id,
            description=f'Changed certification of User "{user.email}"',
            details=create_change_details({"certification_id": previous}, {"certification_id": user.certification_id}),
        )
        return jsonify({"status": "success", "user": serialize_user(user, include_private=True)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to set certification for user {user_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update certification", "details": str(e)}), 500


# -----------------------------------------------------------------------------
# POST /api/admin/users/<id>/points
# Purpose:
#   Manual points correction, positive or negative.
# -----------------------------------------------------------------------------
@admin_users_bp.route("/<int:user_id>/points", methods=["POST"])
@admin_required
def adjust_user_points(user_id):
    try:
        user = db.session.get(User, user_id)
        if not user:
            return jsonify({"status": "error", "message": "User not found"}), 404

        data = request.get_json(force=True) or {}
        try:
            amount = int(data.get("amount"))
        except (TypeError, ValueError):
            return jsonify({"status": "error", "message": "amount must be an integer"}), 400

        tx = adjust_points(user, amount, (data.get("description") or "").strip() or None, g.current_user.id)
        db.session.commit()

        log_current_admin(
            "UPDATE", "User", user.id,
            description=f'Adjusted points of User "{user.email}" by {amount}',
            details={"amount": amount, "balance_after": user.points_balance},
        )
        return jsonify({
            "status": "success",
            "transaction": serialize_points_transaction(tx),
            "points_balance": user.points_balance
        }), 200

    except PointsError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to adjust points for user {user_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to adjust points", "details": str(e)}), 500
