from flask import Blueprint, jsonify, request, current_app
from sqlalchemy import select
from app.extensions import db
from app.models import DISCOUNT_TYPES, PointsRedemption, Reward
from app.services.admin_logger import log_current_admin
from app.utils.auth import admin_required
from app.utils.helpers import parse_bool, parse_datetime, parse_decimal, utcnow
from app.utils.serializers import serialize_redemption, serialize_reward

admin_rewards_bp = Blueprint("admin_rewards", __name__, url_prefix="/api/admin/rewards")


def apply_reward_fields(reward, data):
    """Returns an error message or None."""
    try:
        if "name" in data:
            name = (data.get("name") or "").strip()
            if not name:
                return "Reward name is required"
            reward.name = name
        if "description" in data:
            reward.description = data.get("description")
        if "points_cost" in data:
            reward.points_cost = int(data.get("points_cost"))
        if "discount_type" in data:
            discount_type = (data.get("discount_type") or "").upper()
            if discount_type not in DISCOUNT_TYPES:
                return "discount_type must be PERCENTAGE or FIXED"
            reward.discount_type = discount_type
        if "discount_value" in data:
            reward.discount_value = parse_decimal(data.get("discount_value"), "discount_value")
        for field in ("min_purchase_amount", "max_discount_amount"):
            if field in data:
                setattr(reward, field, parse_decimal(data.get(field), field))
        if "stock" in data:
            stock = data.get("stock")
            reward.stock = None if stock in (None, "") else int(stock)
        if "valid_from" in data:
            reward.valid_from = parse_datetime(data.get("valid_from")) or utcnow()
        if "valid_until" in data:
            reward.valid_until = parse_datetime(data.get("valid_until"))
    except (TypeError, ValueError) as e:
        return str(e)
    if "is_active" in data:
        reward.is_active = bool(parse_bool(data.get("is_active")))

    if not reward.name:
        return "Reward name is required"
    if reward.points_cost is None or reward.points_cost <= 0:
        return "points_cost must be greater than 0"
    if reward.discount_type not in DISCOUNT_TYPES:
        return "discount_type must be PERCENTAGE or FIXED"
    if reward.discount_value is None or reward.discount_value <= 0:
        return "discount_value must be greater than 0"
    if reward.discount_type == "PERCENTAGE" and reward.discount_value > 100:
        return "Percentage discount cannot exceed 100"
    if reward.stock is not None and reward.stock < 0:
        return "stock cannot be negative"
    return None


@admin_rewards_bp.route("", methods=["GET"])
@admin_required
def list_rewards():
    rewards = db.session.scalars(select(Reward).order_by(Reward.created_at.desc(), Reward.id.desc())).all()
    return jsonify({"status": "success", "rewards": [serialize_reward(r) for r in rewards]}), 200


@admin_rewards_bp.route("", methods=["POST"])
@admin_required
def create_reward():
    try:
        data = request.get_json(force=True) or {}
        reward = Reward(is_active=True, redeemed_count=0, valid_from=utcnow())
        error = apply_reward_fields(reward, data)
        if error:
            return jsonify({"status": "error", "message": error}), 400

        db.session.add(reward)
        db.session.commit()

        log_current_admin("CREATE", "Reward", reward.id, reward.name)
        return jsonify({"status": "success", "reward": serialize_reward(reward)}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create reward: {e}")
        return jsonify({"status": "error", "message": "Failed to create reward", "details": str(e)}), 500


@admin_rewards_bp.route("/<int:reward_id>", methods=["GET"])
@admin_required
def get_reward(reward_id):
    reward = db.session.get(Reward, reward_id)
    if not reward:
        return jsonify({"status": "error", "message": "Reward not found"}), 404
    return jsonify({"status": "success", "reward": serialize_reward(reward)}), 200


@admin_rewards_bp.route("/<int:reward_id>", methods=["PUT"])
@admin_required
def update_reward(reward_id):
    try:
        reward = db.session.get(Reward, reward_id)
        if not reward:
            return jsonify({"status": "error", "message": "Reward not found"}), 404

        error = apply_reward_fields(reward, request.get_json(force=True) or {})
        if error:
            db.session.rollback()
            return jsonify({"status": "error", "message": error}), 400

        db.session.commit()
        log_current_admin("UPDATE", "Reward", reward.id, reward.name)
        return jsonify({"status": "success", "reward": serialize_reward(reward)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update reward {reward_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update reward", "details": str(e)}), 500


@admin_rewards_bp.route("/<int:reward_id>", methods=["DELETE"])
@admin_required
def delete_reward(reward_id):
    try:
        reward = db.session.get(Reward, reward_id)
        if not reward:
            return jsonify({"status": "error", "message": "Reward not found"}), 404

        name = reward.name
        db.session.delete(reward)
        db.session.commit()

        log_current_admin("DELETE", "Reward", reward_id, name)
        return jsonify({"status": "success", "message": "Reward deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete reward {reward_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete reward", "details": str(e)}), 500


@admin_rewards_bp.route("/<int:reward_id>/redemptions", methods=["GET"])
@admin_required
def reward_redemptions(reward_id):
    reward = db.session.get(Reward, reward_id)
    if not reward:
        return jsonify({"status": "error", "message": "Reward not found"}), 404

    redemptions = db.session.scalars(
        select(PointsRedemption)
        .where(PointsRedemption.reward_id == reward_id)
        .order_by(PointsRedemption.created_at.desc(), PointsRedemption.id.desc())
    ).all()

    result = []
    for redemption in redemptions:
        data = serialize_redemption(redemption)
        data["user"] = {
            "id": redemption.user.id,
            "name": redemption.user.name,
            "email": redemption.user.email,
        } if redemption.user else None
        result.append(data)
    return jsonify({"status": "success", "redemptions": result}), 200
