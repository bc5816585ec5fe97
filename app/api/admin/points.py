# Points configuration and the points ledger
from datetime import timedelta

from flask import Blueprint, jsonify, request, current_app
from sqlalchemy import select, func
from app.extensions import db
from app.models import POINTS_ACTION_TYPES, POINTS_TRANSACTION_TYPES, PointsConfiguration, PointsTransaction
from app.services.admin_logger import log_current_admin
from app.utils.auth import admin_required
from app.utils.helpers import (
    build_pagination,
    get_pagination,
    iso,
    money,
    parse_bool,
    parse_datetime,
    parse_decimal,
    utcnow,
)
from app.utils.serializers import serialize_points_transaction

admin_points_bp = Blueprint("admin_points", __name__, url_prefix="/api/admin")


def serialize_configuration(config):
    return {
        "id": config.id,
        "action_type": config.action_type,
        "points_amount": config.points_amount,
        "tiered_config": config.tiered_config,
        "min_order_value": money(config.min_order_value),
        "max_points_per_transaction": config.max_points_per_transaction,
        "is_active": config.is_active,
        "valid_from": iso(config.valid_from),
        "valid_until": iso(config.valid_until),
        "created_at": iso(config.created_at),
        "updated_at": iso(config.updated_at),
    }


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_tiered_config(tiered_config):
    """Return an error message, or None when every tier is well formed."""
    if tiered_config is None:
        return None
    if not isinstance(tiered_config, dict) or not isinstance(tiered_config.get("tiers"), list):
        return "tiered_config must be an object with a tiers list"
    for index, tier in enumerate(tiered_config["tiers"], start=1):
        if not isinstance(tier, dict):
            return f"Tier {index} must be an object"
        minimum = tier.get("min_order_value")
        maximum = tier.get("max_order_value")
        points = tier.get("points")
        if not _is_number(minimum) or minimum < 0:
            return f"Tier {index}: min_order_value must be a number >= 0"
        if maximum is not None and not _is_number(maximum):
            return f"Tier {index}: max_order_value must be a number or null"
        if not _is_number(points) or points < 0:
            return f"Tier {index}: points must be a number >= 0"
    return None


def apply_configuration_fields(config, data):
    """Copy request fields onto ``config``; returns an error message or None."""
    if "action_type" in data:
        if data.get("action_type") not in POINTS_ACTION_TYPES:
            return f"action_type must be one of: {', '.join(POINTS_ACTION_TYPES)}"
        config.action_type = data["action_type"]
    if "tiered_config" in data:
        error = validate_tiered_config(data.get("tiered_config"))
        if error:
            return error
        config.tiered_config = data.get("tiered_config")
    try:
        for field in ("points_amount", "max_points_per_transaction"):
            if field in data:
                value = data.get(field)
                setattr(config, field, None if value in (None, "") else int(value))
        if "min_order_value" in data:
            config.min_order_value = parse_decimal(data.get("min_order_value"), "min_order_value")
        if "valid_from" in data:
            config.valid_from = parse_datetime(data.get("valid_from")) or utcnow()
        if "valid_until" in data:
            config.valid_until = parse_datetime(data.get("valid_until"))
    except (TypeError, ValueError) as e:
        return str(e)
    if "is_active" in data:
        config.is_active = bool(parse_bool(data.get("is_active")))
    if config.points_amount is not None and config.points_amount < 0:
        return "points_amount must be >= 0"
    return None


@admin_points_bp.route("/points-config", methods=["GET"])
@admin_required
def list_configurations():
    filters = []
    if request.args.get("is_active") is not None:
        filters.append(PointsConfiguration.is_active.is_(bool(parse_bool(request.args.get("is_active")))))
    configs = db.session.scalars(
        select(PointsConfiguration)
        .where(*filters)
        .order_by(PointsConfiguration.action_type.asc(), PointsConfiguration.created_at.desc(), PointsConfiguration.id.desc())
    ).all()
    return jsonify({"status": "success", "configurations": [serialize_configuration(c) for c in configs]}), 200


@admin_points_bp.route("/points-config", methods=["POST"])
@admin_required
def create_configuration():
    """
    Create a points configuration
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [action_type]
          properties:
            action_type:
              type: string
              enum: [OWN_PURCHASE, REFERRAL_SIGNUP, REFERRAL_FIRST_ORDER, REFERRAL_REPEAT_ORDER]
            points_amount:
              type: integer
            tiered_config:
              type: object
            min_order_value:
              type: number
            max_points_per_transaction:
              type: integer
    responses:
      201:
        description: Configuration created
      400:
        description: Validation error
    """
    try:
        data = request.get_json(force=True) or {}
        if not data.get("action_type"):
            return jsonify({"status": "error", "message": "action_type is required"}), 400
        if data.get("points_amount") in (None, "") and not data.get("tiered_config"):
            return jsonify({"status": "error", "message": "points_amount or tiered_config is required"}), 400

        config = PointsConfiguration(is_active=True)
        error = apply_configuration_fields(config, data)
        if error:
            return jsonify({"status": "error", "message": error}), 400
        if config.valid_from is None:
            config.valid_from = utcnow()

        db.session.add(config)
        db.session.commit()

        log_current_admin("CREATE", "PointsConfiguration", config.id, config.action_type)
        return jsonify({"status": "success", "configuration": serialize_configuration(config)}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create points configuration: {e}")
        return jsonify({"status": "error", "message": "Failed to create configuration", "details": str(e)}), 500


@admin_points_bp.route("/points-config/<int:config_id>", methods=["GET"])
@admin_required
def get_configuration(config_id):
    config = db.session.get(PointsConfiguration, config_id)
    if not config:
        return jsonify({"status": "error", "message": "Configuration not found"}), 404
    return jsonify({"status": "success", "configuration": serialize_configuration(config)}), 200


@admin_points_bp.route("/points-config/<int:config_id>", methods=["PUT"])
@admin_required
def update_configuration(config_id):
    try:
        config = db.session.get(PointsConfiguration, config_id)
        if not config:
            return jsonify({"status": "error", "message": "Configuration not found"}), 404

        data = request.get_json(force=True) or {}
        error = apply_configuration_fields(config, data)
        if error:
            db.session.rollback()
            return jsonify({"status": "error", "message": error}), 400
        if config.points_amount is None and not config.tiered_config:
            db.session.rollback()
            return jsonify({"status": "error", "message": "points_amount or tiered_config is required"}), 400

        db.session.commit()
        log_current_admin("UPDATE", "PointsConfiguration", config.id, config.action_type)
        return jsonify({"status": "success", "configuration": serialize_configuration(config)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update points configuration {config_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update configuration", "details": str(e)}), 500


@admin_points_bp.route("/points-config/<int:config_id>", methods=["DELETE"])
@admin_required
def delete_configuration(config_id):
    try:
        config = db.session.get(PointsConfiguration, config_id)
        if not config:
            return jsonify({"status": "error", "message": "Configuration not found"}), 404

        action_type = config.action_type
        db.session.delete(config)
        db.session.commit()

        log_current_admin("DELETE", "PointsConfiguration", config_id, action_type)
        return jsonify({"status": "success", "message": "Configuration deleted"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete points configuration {config_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to delete configuration", "details": str(e)}), 500


@admin_points_bp.route("/points-transactions", methods=["GET"])
@admin_required
def list_transactions():
    try:
        page, limit, offset = get_pagination(default_limit=50)
        filters = []
        user_id = request.args.get("user_id", type=int)
        if user_id:
            filters.append(PointsTransaction.user_id == user_id)
        tx_type = (request.args.get("type") or "").upper()
        if tx_type:
            if tx_type not in POINTS_TRANSACTION_TYPES:
                return jsonify({"status": "error", "message": "Invalid transaction type"}), 400
            filters.append(PointsTransaction.type == tx_type)
        try:
            start = parse_datetime(request.args.get("start_date"))
            end = parse_datetime(request.args.get("end_date"))
        except ValueError:
            return jsonify({"status": "error", "message": "Invalid date format"}), 400
        if start:
            filters.append(PointsTransaction.created_at >= start)
        if end:
            end = end.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
            filters.append(PointsTransaction.created_at < end)

        total = db.session.scalar(select(func.count(PointsTransaction.id)).where(*filters)) or 0
        transactions = db.session.scalars(
            select(PointsTransaction)
            .where(*filters)
            .order_by(PointsTransaction.created_at.desc(), PointsTransaction.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()

        result = []
        for tx in transactions:
            data = serialize_points_transaction(tx)
            data["user"] = {"id": tx.user.id, "name": tx.user.name, "email": tx.user.email} if tx.user else None
            result.append(data)

        return jsonify({
            "status": "success",
            "transactions": result,
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list points transactions: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch transactions", "details": str(e)}), 500
