import random
import re
import string

from flask import current_app
from sqlalchemy import func, select

from ..extensions import db
from ..models import Affiliate, AffiliateReferral, PointsRedemption
from ..utils.helpers import utcnow
from .email_service import get_email_service
from .notifications import create_notification
from .points import award_for_action

TIER_ORDER = ["BRONZE", "SILVER", "GOLD", "PLATINUM"]

TIER_THRESHOLDS = {
    "BRONZE": {"total_referrals": 0, "total_points_earned": 0, "active_referrals": 0},
    "SILVER": {"total_referrals": 10, "total_points_earned": 500, "active_referrals": 5},
    "GOLD": {"total_referrals": 50, "total_points_earned": 2500, "active_referrals": 25},
    "PLATINUM": {
        "total_referrals": 200,
        "total_points_earned": 10000,
        "active_referrals": 100,
    },
}

TIER_BENEFITS = {
    "BRONZE": {
        "commission_bonus": 0,
        "description": "Standard commission rates, access to all rewards",
    },
    "SILVER": {
        "commission_bonus": 5,
        "description": "5% commission bonus, priority support, exclusive rewards",
    },
    "GOLD": {
        "commission_bonus": 10,
        "description": "10% commission bonus, dedicated support, premium rewards",
    },
    "PLATINUM": {
        "commission_bonus": 20,
        "description": "20% commission bonus, VIP support, exclusive rewards, early access",
    },
}

MILESTONES = {
    "first_referral": (
        "First Referral!",
        "Congratulations! You've got your first referral. Keep sharing your link to earn more points!",
    ),
    "referrals_10": (
        "10 Referrals Milestone!",
        "Amazing! You've reached 10 referrals. You're building a great network!",
    ),
    "referrals_100": (
        "100 Referrals Achievement!",
        "Incredible! You've reached 100 referrals. You're a top affiliate!",
    ),
    "points_1000": (
        "1000 Points Milestone!",
        "Congratulations! You've earned over {points} points. Keep up the great work!",
    ),
    "first_redemption": (
        "First Reward Redeemed!",
        "Great! You've redeemed your first reward. Enjoy your discount!",
    ),
}

CODE_ATTEMPTS = 10


def _code_prefix(email):
    local = (email or "").split("@")[0]
    return re.sub(r"[^A-Z0-9]", "", local.upper())[:8]


def generate_affiliate_code(user):
    prefix = _code_prefix(user.email)
    alphabet = string.ascii_uppercase + string.digits
    for _ in range(CODE_ATTEMPTS):
        code = prefix + "".join(random.choices(alphabet, k=4))
        taken = db.session.scalar(
            select(Affiliate.id).where(Affiliate.affiliate_code == code)
        )
        if not taken:
            return code
    return f"AFF{user.id}"


def get_affiliate(user):
    return db.session.scalar(select(Affiliate).where(Affiliate.user_id == user.id))


def get_or_create_affiliate(user):
    """Affiliates are auto-approved on creation."""
    affiliate = get_affiliate(user)
    if affiliate:
        return affiliate

    affiliate = Affiliate(
        user_id=user.id,
        affiliate_code=generate_affiliate_code(user),
        is_active=True,
        tier="BRONZE",
        approved_at=utcnow(),
    )
    db.session.add(affiliate)
    db.session.flush()
    return affiliate


def find_active_affiliate(code):
    if not code:
        return None
    return db.session.scalar(
        select(Affiliate)
        .where(Affiliate.affiliate_code == code.strip().upper())
        .where(Affiliate.is_active.is_(True))
    )


def create_referral(affiliate, referred_user):
    existing = db.session.scalar(
        select(AffiliateReferral).where(
            AffiliateReferral.referred_user_id == referred_user.id
        )
    )
    if existing:
        return existing

    referral = AffiliateReferral(
        affiliate_id=affiliate.id, referred_user_id=referred_user.id, status="PENDING"
    )
    db.session.add(referral)
    affiliate.total_referrals = (affiliate.total_referrals or 0) + 1
    db.session.flush()
    return referral


def activate_referral(referral, order):
    if referral.status != "PENDING":
        return False
    referral.status = "ACTIVE"
    referral.first_order_id = order.id
    affiliate = referral.affiliate
    affiliate.active_referrals = (affiliate.active_referrals or 0) + 1
    db.session.flush()
    return True


def calculate_tier(stats):
    """Highest tier whose three thresholds are all met."""
    for tier in reversed(TIER_ORDER):
        threshold = TIER_THRESHOLDS[tier]
        if all((stats.get(key) or 0) >= value for key, value in threshold.items()):
            return tier
    return "BRONZE"


def affiliate_stats(affiliate):
    return {
        "total_referrals": affiliate.total_referrals or 0,
        "total_points_earned": affiliate.total_points_earned or 0,
        "active_referrals": affiliate.active_referrals or 0,
    }


def auto_promote(affiliate):
    """Re-evaluate the tier; returns True when it changed."""
    new_tier = calculate_tier(affiliate_stats(affiliate))
    if new_tier == affiliate.tier:
        return False

    previous = affiliate.tier
    affiliate.tier = new_tier
    affiliate.tier_updated_at = utcnow()
    create_notification(
        "SYSTEM",
        f"Tier Upgrade to {new_tier}!",
        f"Congratulations! You've been promoted to {new_tier} tier. Keep up the great work!",
        user_id=affiliate.user_id,
        details={"tier": new_tier, "previous_tier": previous},
    )
    db.session.flush()
    return True


def notify_milestone(user, milestone, **data):
    title, template = MILESTONES[milestone]
    message = template.format(**data)
    create_notification(
        "SYSTEM",
        title,
        message,
        user_id=user.id,
        details={"milestone_type": milestone, **data},
    )

    email_service = get_email_service()
    if email_service and not email_service.disabled:
        result = email_service.send_affiliate_milestone(user.email, user.name, title, message)
        if not result.get("success"):
            current_app.logger.warning(
                f"Milestone email failed for user {user.id}: {result.get('error')}"
            )


def check_milestones(affiliate, previous_points=None, include_referrals=True):
    """Send notifications for referral-count and points milestones just reached."""
    user = affiliate.user
    total = affiliate.total_referrals or 0
    if include_referrals:
        if total == 1:
            notify_milestone(user, "first_referral", referrals=total)
        elif total == 10:
            notify_milestone(user, "referrals_10", referrals=total)
        elif total == 100:
            notify_milestone(user, "referrals_100", referrals=total)

    points = affiliate.total_points_earned or 0
    if previous_points is not None and previous_points < 1000 <= points:
        notify_milestone(user, "points_1000", points=points)


def check_redemption_milestone(user):
    count = db.session.scalar(
        select(func.count(PointsRedemption.id)).where(PointsRedemption.user_id == user.id)
    )
    if count == 1:
        notify_milestone(user, "first_redemption")
        return True
    return False


def process_signup_referral(new_user, affiliate_code):
    """Link a freshly registered user to the affiliate owning ``affiliate_code``."""
    affiliate = find_active_affiliate(affiliate_code)
    if not affiliate or affiliate.user_id == new_user.id:
        return None

    referral = create_referral(affiliate, new_user)
    previous_points = affiliate.total_points_earned or 0
    award_for_action(
        affiliate.user,
        "REFERRAL_SIGNUP",
        "AFFILIATE_SIGNUP",
        reference_id=new_user.id,
        description=f"Referral signup: {new_user.email}",
    )
    auto_promote(affiliate)
    check_milestones(affiliate, previous_points)
    return referral


def process_order_referral(order, buyer):
    """Award the referring affiliate for ``order``; returns the referral or None."""
    referral = db.session.scalar(
        select(AffiliateReferral).where(AffiliateReferral.referred_user_id == buyer.id)
    )
    if not referral or referral.status == "INACTIVE":
        return None

    affiliate = referral.affiliate
    if not affiliate.is_active:
        return None

    previous_points = affiliate.total_points_earned or 0
    if referral.status == "PENDING":
        activate_referral(referral, order)
        action_type = "REFERRAL_FIRST_ORDER"
        description = f"Referral first order #{order.id}"
    else:
        action_type = "REFERRAL_REPEAT_ORDER"
        description = f"Referral order #{order.id}"

    order.affiliate_referral_id = referral.id
    award_for_action(
        affiliate.user,
        action_type,
        "AFFILIATE_PURCHASE",
        order_value=order.total,
        reference_id=order.id,
        description=description,
    )
    auto_promote(affiliate)
    check_milestones(affiliate, previous_points, include_referrals=False)
    return referral
