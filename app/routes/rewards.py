import random
import string

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import select, or_
from ..extensions import db
from ..models import Coupon, PointsRedemption, Reward
from ..services.affiliates import check_redemption_milestone
from ..services.coupons import is_usable_now
from ..services.points import PointsError, deduct_points
from ..utils.auth import login_required, optional_auth
from ..utils.helpers import utcnow
from ..utils.serializers import serialize_coupon, serialize_redemption, serialize_reward

rewards_bp = Blueprint("rewards", __name__, url_prefix="/api/rewards")


def in_stock(reward):
    return reward.stock is None or (reward.redeemed_count or 0) < reward.stock


def is_currently_valid(reward, now):
    if reward.valid_from and reward.valid_from > now:
        return False
    if reward.valid_until and reward.valid_until < now:
        return False
    return True


def redemption_coupon_code():
    suffix = "".join(random.choices(string.ascii_uppercase, k=6))
    return f"REW{int(utcnow().timestamp() * 1000)}{suffix}"


@rewards_bp.route("", methods=["GET"])
@optional_auth
def list_available_rewards():
    try:
        now = utcnow()
        rewards = db.session.scalars(
            select(Reward)
            .where(Reward.is_active.is_(True))
            .where(Reward.valid_from <= now)
            .where(or_(Reward.valid_until.is_(None), Reward.valid_until >= now))
            .order_by(Reward.points_cost.asc())
        ).all()

        response = {
            "status": "success",
            "rewards": [serialize_reward(r) for r in rewards if in_stock(r)],
        }
        if g.current_user:
            response["points_balance"] = g.current_user.points_balance
        return jsonify(response), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list rewards: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch rewards", "details": str(e)}), 500


# -----------------------------------------------------------------------------
# POST /api/rewards/redeem
# Purpose:
#   Spend points on a reward and issue a single-use discount coupon.
# -----------------------------------------------------------------------------
@rewards_bp.route("/redeem", methods=["POST"])
@login_required
def redeem_reward():
    """
    Redeem points for a reward coupon
    ---
    tags:
      - Rewards
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [reward_id]
          properties:
            reward_id:
              type: integer
    responses:
      201:
        description: Coupon issued
      400:
        description: Reward unavailable or insufficient points
      404:
        description: Reward not found
    """
    try:
        data = request.get_json(force=True) or {}
        reward_id = data.get("reward_id")
        if not reward_id:
            return jsonify({"status": "error", "message": "reward_id is required"}), 400

        reward = db.session.get(Reward, reward_id)
        if not reward:
            return jsonify({"status": "error", "message": "Reward not found"}), 404

        now = utcnow()
        user = g.current_user
        if not reward.is_active:
            return jsonify({"status": "error", "message": "Reward is not available"}), 400
        if not is_currently_valid(reward, now):
            return jsonify({"status": "error", "message": "Reward is not currently valid"}), 400
        if not in_stock(reward):
            return jsonify({"status": "error", "message": "Reward is out of stock"}), 400
        if (user.points_balance or 0) < reward.points_cost:
            return jsonify({"status": "error", "message": "Insufficient points balance"}), 400

        code = redemption_coupon_code()
        deduct_points(
            user,
            reward.points_cost,
            "REDEMPTION",
            reference_id=reward.id,
            description=f"Redeemed reward: {reward.name}",
        )
        coupon = Coupon(
            code=code,
            description=f"Reward: {reward.name}",
            discount_type=reward.discount_type,
            discount_value=reward.discount_value,
            min_purchase_amount=reward.min_purchase_amount,
            max_discount_amount=reward.max_discount_amount,
            usage_limit=1,
            user_usage_limit=1,
            used_count=0,
            valid_from=reward.valid_from,
            valid_until=reward.valid_until,
            is_active=True,
            source="REDEMPTION",
        )
        db.session.add(coupon)
        db.session.flush()

        redemption = PointsRedemption(
            user_id=user.id,
            reward_id=reward.id,
            coupon_id=coupon.id,
            points_spent=reward.points_cost,
            coupon_code=code,
            status="ACTIVE" if is_usable_now(coupon, now) else "PENDING",
        )
        db.session.add(redemption)
        reward.redeemed_count = (reward.redeemed_count or 0) + 1
        db.session.commit()

        try:
            if check_redemption_milestone(user):
                db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Redemption milestone check failed for user {user.id}: {e}")

        return jsonify({
            "status": "success",
            "message": "Reward redeemed successfully",
            "coupon_code": code,
            "coupon": serialize_coupon(coupon),
            "redemption": serialize_redemption(redemption),
            "points_balance": user.points_balance
        }), 201

    except PointsError as e:
        db.session.rollback()
        return jsonify({"status": "error", "message": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Reward redemption failed: {e}")
        return jsonify({"status": "error", "message": "Failed to redeem reward", "details": str(e)}), 500


@rewards_bp.route("/my-coupons", methods=["GET"])
@login_required
def my_coupons():
    try:
        now = utcnow()
        redemptions = db.session.scalars(
            select(PointsRedemption)
            .where(PointsRedemption.user_id == g.current_user.id)
            .order_by(PointsRedemption.created_at.desc(), PointsRedemption.id.desc())
        ).all()

        result = []
        for redemption in redemptions:
            data = serialize_redemption(redemption)
            coupon = redemption.coupon
            data["coupon"] = serialize_coupon(coupon) if coupon else None
            data["is_usable"] = (
                redemption.status in ("PENDING", "ACTIVE") and is_usable_now(coupon, now)
            )
            result.append(data)

        return jsonify({"status": "success", "coupons": result}), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list redeemed coupons: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch coupons", "details": str(e)}), 500
