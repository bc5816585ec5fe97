# Admin view of the affiliate program
from flask import Blueprint, jsonify, request, current_app
from sqlalchemy import select, func, or_
from app.extensions import db
from app.models import AFFILIATE_TIERS, Affiliate, AffiliateReferral, PointsTransaction, User
from app.services.admin_logger import create_change_details, log_current_admin
from app.services.affiliates import TIER_BENEFITS, affiliate_stats, auto_promote
from app.utils.auth import admin_required
from app.utils.helpers import build_pagination, get_pagination, iso, parse_bool, utcnow
from app.utils.serializers import serialize_points_transaction

admin_affiliates_bp = Blueprint("admin_affiliates", __name__, url_prefix="/api/admin")


def serialize_affiliate(affiliate):
    user = affiliate.user
    return {
        "id": affiliate.id,
        "affiliate_code": affiliate.affiliate_code,
        "is_active": affiliate.is_active,
        "tier": affiliate.tier,
        "tier_benefits": TIER_BENEFITS[affiliate.tier],
        "tier_updated_at": iso(affiliate.tier_updated_at),
        "stats": affiliate_stats(affiliate),
        "current_points_balance": affiliate.current_points_balance,
        "approved_at": iso(affiliate.approved_at),
        "created_at": iso(affiliate.created_at),
        "user": {"id": user.id, "name": user.name, "email": user.email} if user else None,
    }


@admin_affiliates_bp.route("/affiliates", methods=["GET"])
@admin_required
def list_affiliates():
    try:
        page, limit, offset = get_pagination(default_limit=20)
        filters = []
        search = (request.args.get("search") or "").strip()
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(or_(
                func.lower(User.name).like(pattern),
                func.lower(User.email).like(pattern),
                func.lower(Affiliate.affiliate_code).like(pattern),
            ))
        tier = (request.args.get("tier") or "").upper()
        if tier in AFFILIATE_TIERS:
            filters.append(Affiliate.tier == tier)
        if request.args.get("is_active") is not None:
            filters.append(Affiliate.is_active.is_(bool(parse_bool(request.args.get("is_active")))))

        base = select(Affiliate).join(User, User.id == Affiliate.user_id).where(*filters)
        total = db.session.scalar(select(func.count()).select_from(base.subquery())) or 0
        affiliates = db.session.scalars(
            base.order_by(Affiliate.created_at.desc(), Affiliate.id.desc()).offset(offset).limit(limit)
        ).all()

        return jsonify({
            "status": "success",
            "affiliates": [serialize_affiliate(a) for a in affiliates],
            "pagination": build_pagination(page, limit, total)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list affiliates: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch affiliates", "details": str(e)}), 500


@admin_affiliates_bp.route("/affiliates/<int:affiliate_id>", methods=["GET"])
@admin_required
def get_affiliate(affiliate_id):
    affiliate = db.session.get(Affiliate, affiliate_id)
    if not affiliate:
        return jsonify({"status": "error", "message": "Affiliate not found"}), 404
    return jsonify({"status": "success", "affiliate": serialize_affiliate(affiliate)}), 200


@admin_affiliates_bp.route("/affiliates/<int:affiliate_id>", methods=["PATCH"])
@admin_required
def update_affiliate(affiliate_id):
    try:
        affiliate = db.session.get(Affiliate, affiliate_id)
        if not affiliate:
            return jsonify({"status": "error", "message": "Affiliate not found"}), 404

        data = request.get_json(force=True) or {}
        before = {"is_active": affiliate.is_active, "tier": affiliate.tier}

        if "tier" in data:
            tier = (data.get("tier") or "").upper()
            if tier not in AFFILIATE_TIERS:
                return jsonify({"status": "error", "message": f"tier must be one of: {', '.join(AFFILIATE_TIERS)}"}), 400
            if tier != affiliate.tier:
                affiliate.tier = tier
                affiliate.tier_updated_at = utcnow()
        if "is_active" in data:
            affiliate.is_active = bool(parse_bool(data.get("is_active")))

        db.session.commit()

        after = {"is_active": affiliate.is_active, "tier": affiliate.tier}
        action = "UPDATE"
        if before["is_active"] != after["is_active"] and before["tier"] == after["tier"]:
            action = "ACTIVATE" if after["is_active"] else "DEACTIVATE"
        log_current_admin(
            action, "Affiliate", affiliate.id, affiliate.affiliate_code,
            details=create_change_details(before, after),
        )
        return jsonify({"status": "success", "affiliate": serialize_affiliate(affiliate)}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update affiliate {affiliate_id}: {e}")
        return jsonify({"status": "error", "message": "Failed to update affiliate", "details": str(e)}), 500


@admin_affiliates_bp.route("/affiliates/<int:affiliate_id>/referrals", methods=["GET"])
@admin_required
def affiliate_referrals(affiliate_id):
    affiliate = db.session.get(Affiliate, affiliate_id)
    if not affiliate:
        return jsonify({"status": "error", "message": "Affiliate not found"}), 404

    referrals = db.session.scalars(
        select(AffiliateReferral)
        .where(AffiliateReferral.affiliate_id == affiliate_id)
        .order_by(AffiliateReferral.created_at.desc())
    ).all()
    return jsonify({
        "status": "success",
        "referrals": [
            {
                "id": r.id,
                "status": r.status,
                "first_order_id": r.first_order_id,
                "created_at": iso(r.created_at),
                "user": {
                    "id": r.referred_user.id,
                    "name": r.referred_user.name,
                    "email": r.referred_user.email,
                } if r.referred_user else None,
            }
            for r in referrals
        ]
    }), 200


@admin_affiliates_bp.route("/affiliates/<int:affiliate_id>/transactions", methods=["GET"])
@admin_required
def affiliate_transactions(affiliate_id):
    affiliate = db.session.get(Affiliate, affiliate_id)
    if not affiliate:
        return jsonify({"status": "error", "message": "Affiliate not found"}), 404

    transactions = db.session.scalars(
        select(PointsTransaction)
        .where(PointsTransaction.user_id == affiliate.user_id)
        .order_by(PointsTransaction.created_at.desc(), PointsTransaction.id.desc())
    ).all()
    return jsonify({
        "status": "success",
        "transactions": [serialize_points_transaction(tx) for tx in transactions]
    }), 200


@admin_affiliates_bp.route("/affiliate-tiers/distribution", methods=["GET"])
@admin_required
def tier_distribution():
    counts = dict(db.session.execute(
        select(Affiliate.tier, func.count(Affiliate.id)).group_by(Affiliate.tier)
    ).all())
    distribution = {tier: counts.get(tier, 0) for tier in AFFILIATE_TIERS}
    return jsonify({
        "status": "success",
        "distribution": distribution,
        "total": sum(distribution.values())
    }), 200


@admin_affiliates_bp.route("/affiliate-tiers/promote-all", methods=["POST"])
@admin_required
def promote_all():
    try:
        affiliates = db.session.scalars(select(Affiliate)).all()
        promoted = sum(1 for affiliate in affiliates if auto_promote(affiliate))
        db.session.commit()

        log_current_admin(
            "BULK_OPERATION", "Affiliate",
            description=f"Re-evaluated tiers for {len(affiliates)} affiliates ({promoted} changed)",
            details={"total": len(affiliates), "promoted": promoted},
        )
        return jsonify({"status": "success", "total": len(affiliates), "promoted": promoted}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Tier promotion run failed: {e}")
        return jsonify({"status": "error", "message": "Failed to promote affiliates", "details": str(e)}), 500
