from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from ..extensions import db
from ..models import User, Cart, BannedEmail, Certification
from ..services.affiliates import process_signup_referral
from ..services.notifications import notify_admins
from ..utils.auth import (
    check_password,
    generate_token,
    hash_password,
    login_required,
)
from ..utils.helpers import normalize_email
from ..utils.serializers import serialize_user

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

MIN_PASSWORD_LENGTH = 6


def is_banned(email):
    return (
        db.session.scalar(select(BannedEmail.id).where(BannedEmail.email == email))
        is not None
    )


@auth_bp.route("/register", methods=["POST"])
def register_user():
    """
    Register a new customer or professional account
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [email, password, name]
          properties:
            email:
              type: string
            password:
              type: string
              minLength: 6
            name:
              type: string
            user_type:
              type: string
              enum: [customer, professional]
            certification_id:
              type: integer
            certificate_url:
              type: string
            affiliate_code:
              type: string
    responses:
      201:
        description: User registered
      400:
        description: Validation error or email already in use
      403:
        description: Email is banned
    """
    try:
        data = request.get_json(force=True) or {}
        email = normalize_email(data.get("email"))
        password = data.get("password") or ""
        name = (data.get("name") or "").strip()
        user_type = (data.get("user_type") or "customer").lower()
        certification_id = data.get("certification_id")
        certificate_url = data.get("certificate_url")
        affiliate_code = data.get("affiliate_code")

        # Validate required fields
        if not email or not password or not name:
            return jsonify({
                "status": "error",
                "message": "Missing required fields (email, password, name)"
            }), 400

        if len(password) < MIN_PASSWORD_LENGTH:
            return jsonify({
                "status": "error",
                "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            }), 400

        if user_type not in ("customer", "professional"):
            return jsonify({
                "status": "error",
                "message": f"User type '{user_type}' is not supported"
            }), 400

        if is_banned(email):
            return jsonify({
                "status": "error",
                "message": "This email address is not allowed to register"
            }), 403

        existing = db.session.scalar(select(User).where(User.email == email))
        if existing:
            return jsonify({
                "status": "error",
                "message": "Email already exists"
            }), 400

        certification = None
        if certification_id:
            certification = db.session.get(Certification, certification_id)
            if not certification or not certification.is_active:
                return jsonify({
                    "status": "error",
                    "message": "Invalid or inactive certification"
                }), 400

        user = User(
            email=email,
            password_hash=hash_password(password),
            name=name,
            role="USER",
            certification_id=certification.id if certification else None,
            certificate_url=certificate_url,
        )
        db.session.add(user)
        db.session.flush()
        db.session.add(Cart(user_id=user.id))

        if user_type == "professional":
            if certificate_url:
                message = f"{name} ({email}) registered as a professional and uploaded a certificate for review."
            else:
                message = f"{name} ({email}) registered as a professional without uploading a certificate."
            notify_admins(
                "NEW_PROFESSIONAL_CERTIFICATION",
                "New professional registration",
                message,
                link_url="/admin/users",
                details={
                    "user_id": user.id,
                    "certification_id": user.certification_id,
                    "certificate_url": certificate_url,
                },
            )
        else:
            notify_admins(
                "NEW_CUSTOMER",
                "New customer",
                f"{name} ({email}) just created an account.",
                link_url="/admin/users",
                details={"user_id": user.id},
            )

        db.session.commit()

        referral = None
        if affiliate_code:
            try:
                referral = process_signup_referral(user, affiliate_code)
                db.session.commit()
            except Exception as e:
                db.session.rollback()
                current_app.logger.error(f"Failed to record referral for user {user.id}: {e}")

        return jsonify({
            "status": "success",
            "message": "User registered successfully",
            "user": serialize_user(user),
            "referred": referral is not None,
        }), 201

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({
            "status": "error",
            "message": "Database integrity error",
            "details": str(e.orig)
        }), 400

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Registration failed: {e}")
        return jsonify({
            "status": "error",
            "message": "Internal server error",
            "details": str(e)
        }), 500


@auth_bp.route("/login", methods=["POST"])
def login_user():
    """
    Log in and receive a bearer token
    ---
    tags:
      - Authentication
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [email, password]
          properties:
            email:
              type: string
            password:
              type: string
    responses:
      200:
        description: Login successful
      401:
        description: Invalid credentials
    """
    try:
        data = request.get_json(force=True) or {}
        email = normalize_email(data.get("email"))
        password = data.get("password")

        if not email or not password:
            return jsonify({
                "status": "error",
                "message": "Email and password required"
            }), 400

        user = db.session.scalar(select(User).where(User.email == email))
        if not user or not check_password(password, user.password_hash):
            return jsonify({
                "status": "error",
                "message": "Invalid credentials"
            }), 401

        if not user.is_active:
            return jsonify({
                "status": "error",
                "message": "Account is disabled"
            }), 401

        return jsonify({
            "status": "success",
            "message": "Login successful",
            "token": generate_token(user),
            "user": serialize_user(user)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Login failed: {e}")
        return jsonify({
            "status": "error",
            "message": "Internal server error",
            "details": str(e)
        }), 500


@auth_bp.route("/check-email", methods=["POST"])
def check_email_exists():
    """
    Checks if an email is already registered.
    """
    try:
        data = request.get_json(force=True) or {}
        email = normalize_email(data.get("email"))

        if not email:
            return jsonify({
                "status": "error",
                "message": "Email is required"
            }), 400

        existing = db.session.scalar(select(User.id).where(User.email == email))
        return jsonify({"exists": existing is not None}), 200

    except Exception as e:
        return jsonify({
            "status": "error",
            "message": "Internal server error",
            "details": str(e)
        }), 500


@auth_bp.route("/me", methods=["GET"])
@login_required
def get_profile():
    user = g.current_user
    return jsonify({
        "status": "success",
        "user": serialize_user(user, include_private=True),
        "points_balance": user.points_balance,
    }), 200


@auth_bp.route("/me", methods=["PATCH"])
@login_required
def update_profile():
    try:
        data = request.get_json(force=True) or {}
        user = g.current_user

        if "name" in data:
            name = (data.get("name") or "").strip()
            if not name:
                return jsonify({"status": "error", "message": "Name cannot be empty"}), 400
            user.name = name

        new_password = data.get("password") or data.get("new_password")
        if new_password:
            if not check_password(data.get("current_password"), user.password_hash):
                return jsonify({
                    "status": "error",
                    "message": "Current password is incorrect"
                }), 400
            if len(new_password) < MIN_PASSWORD_LENGTH:
                return jsonify({
                    "status": "error",
                    "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
                }), 400
            user.password_hash = hash_password(new_password)

        db.session.commit()
        return jsonify({
            "status": "success",
            "message": "Profile updated",
            "user": serialize_user(user, include_private=True)
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Profile update failed: {e}")
        return jsonify({
            "status": "error",
            "message": "Internal server error",
            "details": str(e)
        }), 500
