from decimal import Decimal

from sqlalchemy import or_, select

from ..extensions import db
from ..models import Affiliate, PointsConfiguration, PointsTransaction
from ..utils.helpers import utcnow


class PointsError(Exception):
    pass


def get_active_configuration(action_type, now=None):
    """Newest active configuration for ``action_type`` valid at ``now``."""
    now = now or utcnow()
    return db.session.scalars(
        select(PointsConfiguration)
        .where(PointsConfiguration.action_type == action_type)
        .where(PointsConfiguration.is_active.is_(True))
        .where(PointsConfiguration.valid_from <= now)
        .where(
            or_(
                PointsConfiguration.valid_until.is_(None),
                PointsConfiguration.valid_until >= now,
            )
        )
        .order_by(PointsConfiguration.created_at.desc(), PointsConfiguration.id.desc())
    ).first()


def _points_for_tiers(tiered_config, order_value):
    tiers = (tiered_config or {}).get("tiers") or []
    for tier in tiers:
        low = Decimal(str(tier.get("min_order_value", 0)))
        high = tier.get("max_order_value")
        if order_value >= low and (high is None or order_value <= Decimal(str(high))):
            return int(tier.get("points", 0))
    return 0


def calculate_points(action_type, order_value=None):
    config = get_active_configuration(action_type)
    if not config:
        return 0

    value = Decimal(str(order_value)) if order_value is not None else None

    if (
        config.min_order_value is not None
        and value is not None
        and value < config.min_order_value
    ):
        return 0

    if config.tiered_config and (config.tiered_config.get("tiers") or []):
        points = _points_for_tiers(config.tiered_config, value or Decimal("0"))
    else:
        points = config.points_amount or 0

    if config.max_points_per_transaction is not None:
        points = min(points, config.max_points_per_transaction)
    return max(int(points), 0)


def _affiliate_for(user):
    return db.session.scalar(select(Affiliate).where(Affiliate.user_id == user.id))


def _record(user, amount, transaction_type, reference_id, description):
    before = user.points_balance or 0
    tx = PointsTransaction(
        user_id=user.id,
        amount=amount,
        type=transaction_type,
        balance_before=before,
        balance_after=before + amount,
        reference_id=str(reference_id) if reference_id is not None else None,
        description=description,
    )
    user.points_balance = before + amount
    db.session.add(tx)
    return tx


def award_points(user, amount, transaction_type, reference_id=None, description=None):
    if amount is None or amount <= 0:
        raise PointsError("Points amount must be positive")

    tx = _record(user, amount, transaction_type, reference_id, description)

    affiliate = _affiliate_for(user)
    if affiliate:
        affiliate.total_points_earned = (affiliate.total_points_earned or 0) + amount
        affiliate.current_points_balance = (affiliate.current_points_balance or 0) + amount

    db.session.flush()
    return tx


def deduct_points(user, amount, transaction_type="REDEMPTION", reference_id=None, description=None):
    if amount is None or amount <= 0:
        raise PointsError("Points amount must be positive")
    if (user.points_balance or 0) < amount:
        raise PointsError("Insufficient points balance")

    tx = _record(user, -amount, transaction_type, reference_id, description)

    affiliate = _affiliate_for(user)
    if affiliate:
        affiliate.current_points_balance = max(
            (affiliate.current_points_balance or 0) - amount, 0
        )

    db.session.flush()
    return tx


def adjust_points(user, amount, description, admin_id):
    """Manual admin correction; positive or negative, never below zero."""
    if not amount:
        raise PointsError("Adjustment amount must be non-zero")
    if (user.points_balance or 0) + amount < 0:
        raise PointsError("Adjustment would result in a negative balance")

    tx = _record(
        user,
        amount,
        "MANUAL_ADJUSTMENT",
        admin_id,
        description or "Manual adjustment by admin",
    )

    affiliate = _affiliate_for(user)
    if affiliate:
        affiliate.current_points_balance = max(
            (affiliate.current_points_balance or 0) + amount, 0
        )
        if amount > 0:
            affiliate.total_points_earned = (affiliate.total_points_earned or 0) + amount

    db.session.flush()
    return tx


def award_for_action(user, action_type, transaction_type, order_value=None, reference_id=None, description=None):
    """Award whatever the active configuration grants; None when it grants nothing."""
    points = calculate_points(action_type, order_value)
    if points <= 0:
        return None
    return award_points(user, points, transaction_type, reference_id, description)
