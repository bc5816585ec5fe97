from datetime import datetime, timedelta, timezone
from functools import wraps

import bcrypt
import jwt
from flask import current_app, g, jsonify, request

from ..extensions import db
from ..models import User


def hash_password(password):
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password, stored_hash):
    if not password or not stored_hash:
        return False
    if isinstance(stored_hash, str):
        stored_hash = stored_hash.encode("utf-8")
    return bcrypt.checkpw(password.encode("utf-8"), stored_hash)


def generate_token(user):
    now = datetime.now(timezone.utc)
    payload = {
        "user_id": user.id,
        "email": user.email,
        "role": user.role,
        "iat": now,
        "exp": now + timedelta(hours=current_app.config["JWT_EXPIRATION_HOURS"]),
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm="HS256")


def _user_from_request():
    """Resolve the bearer token to an active user.

    Returns ``(user, None)`` or ``(None, reason)``.
    """
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None, "Authentication required"

    token = header.split(" ", 1)[1].strip()
    try:
        payload = jwt.decode(
            token, current_app.config["SECRET_KEY"], algorithms=["HS256"]
        )
    except jwt.ExpiredSignatureError:
        return None, "Token has expired"
    except jwt.InvalidTokenError:
        return None, "Invalid token"

    user = db.session.get(User, payload.get("user_id"))
    if not user or not user.is_active:
        return None, "User not found or inactive"
    return user, None


def login_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user, reason = _user_from_request()
        if not user:
            return jsonify({"status": "error", "message": reason}), 401
        g.current_user = user
        return f(*args, **kwargs)

    return decorated


def admin_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user, reason = _user_from_request()
        if not user:
            return jsonify({"status": "error", "message": reason}), 401
        if user.role != "ADMIN":
            return jsonify({"status": "error", "message": "Admin access required"}), 403
        g.current_user = user
        return f(*args, **kwargs)

    return decorated


def optional_auth(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user, _ = _user_from_request()
        g.current_user = user
        return f(*args, **kwargs)

    return decorated


def is_admin(user):
    return bool(user) and user.role == "ADMIN"
