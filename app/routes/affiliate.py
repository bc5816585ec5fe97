from collections import defaultdict
from datetime import timedelta

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import select, func
from ..extensions import db
from ..models import (
    AffiliateLinkClick,
    AffiliateReferral,
    Order,
    PointsTransaction,
    User,
)
from ..services.admin_logger import extract_request_info
from ..services.affiliates import (
    TIER_BENEFITS,
    TIER_ORDER,
    TIER_THRESHOLDS,
    affiliate_stats,
    find_active_affiliate,
    get_or_create_affiliate,
)
from ..utils.auth import login_required
from ..utils.helpers import iso, money, utcnow

affiliate_bp = Blueprint("affiliate", __name__, url_prefix="/api/affiliate")

NON_CERTIFIED_PROFESSIONAL = "PROFESSIONAL_NON_CERTIFIED"


def _blocked(user):
    return user.certification is not None and user.certification.name == NON_CERTIFIED_PROFESSIONAL


def _next_tier(tier):
    index = TIER_ORDER.index(tier)
    if index + 1 < len(TIER_ORDER):
        name = TIER_ORDER[index + 1]
        return {"tier": name, "requirements": TIER_THRESHOLDS[name]}
    return None


def _current_affiliate():
    """Caller's affiliate record (created on first access), or an error response."""
    user = g.current_user
    if _blocked(user):
        return None, (jsonify({
            "status": "error",
            "message": "The affiliate program is not available for your account type"
        }), 403)
    affiliate = get_or_create_affiliate(user)
    db.session.commit()
    return affiliate, None


# -----------------------------------------------------------------------------
# GET /api/affiliate
# Purpose:
#   Affiliate dashboard: code, share link, tier, stats and balance.
# -----------------------------------------------------------------------------
@affiliate_bp.route("", methods=["GET"])
@login_required
def affiliate_dashboard():
    try:
        affiliate, error = _current_affiliate()
        if error:
            return error

        frontend_url = current_app.config["FRONTEND_URL"].rstrip("/")
        return jsonify({
            "status": "success",
            "affiliate": {
                "id": affiliate.id,
                "affiliate_code": affiliate.affiliate_code,
                "affiliate_link": f"{frontend_url}/?ref={affiliate.affiliate_code}",
                "is_active": affiliate.is_active,
                "tier": affiliate.tier,
                "tier_benefits": TIER_BENEFITS[affiliate.tier],
                "next_tier": _next_tier(affiliate.tier),
                "tier_updated_at": iso(affiliate.tier_updated_at),
                "stats": affiliate_stats(affiliate),
                "current_points_balance": affiliate.current_points_balance,
                "points_balance": g.current_user.points_balance,
                "approved_at": iso(affiliate.approved_at),
            }
        }), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to load affiliate dashboard: {e}")
        return jsonify({"status": "error", "message": "Failed to load affiliate data", "details": str(e)}), 500


@affiliate_bp.route("/referrals", methods=["GET"])
@login_required
def my_referrals():
    try:
        affiliate, error = _current_affiliate()
        if error:
            return error

        referrals = db.session.scalars(
            select(AffiliateReferral)
            .where(AffiliateReferral.affiliate_id == affiliate.id)
            .order_by(AffiliateReferral.created_at.desc())
        ).all()

        result = []
        for referral in referrals:
            orders = db.session.scalars(
                select(Order).where(Order.user_id == referral.referred_user_id).order_by(Order.created_at.desc())
            ).all()
            user = referral.referred_user
            result.append({
                "id": referral.id,
                "status": referral.status,
                "first_order_id": referral.first_order_id,
                "created_at": iso(referral.created_at),
                "user": {"id": user.id, "name": user.name, "email": user.email},
                "orders": [
                    {"id": o.id, "total": money(o.total), "status": o.status, "created_at": iso(o.created_at)}
                    for o in orders
                ],
            })

        return jsonify({"status": "success", "referrals": result}), 200

    except Exception as e:
        current_app.logger.error(f"Failed to list referrals: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch referrals", "details": str(e)}), 500


@affiliate_bp.route("/referrals-stats", methods=["GET"])
@login_required
def referral_stats():
    try:
        affiliate, error = _current_affiliate()
        if error:
            return error

        counts = dict(db.session.execute(
            select(AffiliateReferral.status, func.count(AffiliateReferral.id))
            .where(AffiliateReferral.affiliate_id == affiliate.id)
            .group_by(AffiliateReferral.status)
        ).all())
        total = sum(counts.values())
        active = counts.get("ACTIVE", 0)
        clicks = db.session.scalar(
            select(func.count(AffiliateLinkClick.id)).where(AffiliateLinkClick.affiliate_id == affiliate.id)
        ) or 0

        return jsonify({
            "status": "success",
            "stats": {
                "total": total,
                "pending": counts.get("PENDING", 0),
                "active": active,
                "inactive": counts.get("INACTIVE", 0),
                "conversion_rate": round(active / total * 100, 2) if total else 0,
                "clicks": clicks,
                "click_conversion_rate": round(total / clicks * 100, 2) if clicks else 0,
            }
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to compute referral stats: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch stats", "details": str(e)}), 500


@affiliate_bp.route("/top-referrals", methods=["GET"])
@login_required
def top_referrals():
    try:
        affiliate, error = _current_affiliate()
        if error:
            return error

        spend = func.coalesce(func.sum(Order.total), 0)
        rows = db.session.execute(
            select(User, spend.label("total_spent"), func.count(Order.id).label("order_count"))
            .join(AffiliateReferral, AffiliateReferral.referred_user_id == User.id)
            .outerjoin(Order, Order.user_id == User.id)
            .where(AffiliateReferral.affiliate_id == affiliate.id)
            .group_by(User.id)
            .order_by(spend.desc())
            .limit(5)
        ).all()

        return jsonify({
            "status": "success",
            "top_referrals": [
                {
                    "user": {"id": row.User.id, "name": row.User.name, "email": row.User.email},
                    "total_spent": money(row.total_spent),
                    "order_count": row.order_count,
                }
                for row in rows
            ]
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to compute top referrals: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch top referrals", "details": str(e)}), 500


@affiliate_bp.route("/earnings-breakdown", methods=["GET"])
@login_required
def earnings_breakdown():
    try:
        period = request.args.get("period", "month")
        if period not in ("month", "year"):
            return jsonify({"status": "error", "message": "period must be month or year"}), 400

        transactions = db.session.scalars(
            select(PointsTransaction)
            .where(PointsTransaction.user_id == g.current_user.id)
            .where(PointsTransaction.amount > 0)
        ).all()

        buckets = defaultdict(int)
        for tx in transactions:
            key = tx.created_at.strftime("%Y-%m" if period == "month" else "%Y")
            buckets[key] += tx.amount

        return jsonify({
            "status": "success",
            "period": period,
            "breakdown": [{"period": key, "points": buckets[key]} for key in sorted(buckets)]
        }), 200

    except Exception as e:
        current_app.logger.error(f"Failed to compute earnings breakdown: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch earnings", "details": str(e)}), 500


@affiliate_bp.route("/analytics", methods=["GET"])
@login_required
def affiliate_analytics():
    try:
        affiliate, error = _current_affiliate()
        if error:
            return error

        days = max(min(request.args.get("days", 30, type=int) or 30, 365), 1)
        start = (utcnow() - timedelta(days=days - 1)).replace(hour=0, minute=0, second=0, microsecond=0)

        series = {}
        for offset in range(days):
            day = (start + timedelta(days=offset)).strftime("%Y-%m-%d")
            series[day] = {"date": day, "clicks": 0, "signups": 0, "first_orders": 0}

        clicks = db.session.scalars(
            select(AffiliateLinkClick.created_at)
            .where(AffiliateLinkClick.affiliate_id == affiliate.id)
            .where(AffiliateLinkClick.created_at >= start)
        ).all()
        for created_at in clicks:
            day = created_at.strftime("%Y-%m-%d")
            if day in series:
                series[day]["clicks"] += 1

        referrals = db.session.scalars(
            select(AffiliateReferral).where(AffiliateReferral.affiliate_id == affiliate.id)
        ).all()
        for referral in referrals:
            day = referral.created_at.strftime("%Y-%m-%d")
            if day in series:
                series[day]["signups"] += 1
            if referral.first_order_id:
                order = db.session.get(Order, referral.first_order_id)
                if order:
                    order_day = order.created_at.strftime("%Y-%m-%d")
                    if order_day in series:
                        series[order_day]["first_orders"] += 1

        return jsonify({"status": "success", "days": days, "analytics": list(series.values())}), 200

    except Exception as e:
        current_app.logger.error(f"Failed to compute affiliate analytics: {e}")
        return jsonify({"status": "error", "message": "Failed to fetch analytics", "details": str(e)}), 500


@affiliate_bp.route("/track-click", methods=["POST"])
def track_click():
    try:
        data = request.get_json(force=True, silent=True) or {}
        code = (data.get("affiliate_code") or "").strip()
        if not code:
            return jsonify({"status": "error", "message": "affiliate_code is required"}), 400

        affiliate = find_active_affiliate(code)
        if not affiliate:
            return jsonify({"status": "error", "message": "Affiliate not found"}), 404

        info = extract_request_info()
        db.session.add(AffiliateLinkClick(
            affiliate_id=affiliate.id,
            ip_address=info["ip_address"],
            user_agent=(info["user_agent"] or "")[:500] or None,
        ))
        db.session.commit()
        return jsonify({"status": "success", "message": "Click tracked"}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to track affiliate click: {e}")
        return jsonify({"status": "error", "message": "Failed to track click", "details": str(e)}), 500


@affiliate_bp.route("/validate-code", methods=["GET"])
def validate_code():
    code = (request.args.get("code") or "").strip().upper()
    if not code:
        return jsonify({"status": "error", "message": "code is required"}), 400
    return jsonify({"status": "success", "valid": find_active_affiliate(code) is not None}), 200
