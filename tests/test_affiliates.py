import pytest
import json
from datetime import timedelta
from decimal import Decimal
from app.models import (
    Affiliate,
    AffiliateLinkClick,
    AffiliateReferral,
    Cart,
    CartItem,
    Certification,
    Notification,
    PointsConfiguration,
    PointsRedemption,
    Reward,
)
from app.services.affiliates import auto_promote, calculate_tier, check_milestones, check_redemption_milestone
from app.utils.helpers import utcnow


@pytest.fixture
def affiliate(client, auth_headers, db_session, sample_user):
    """The sample user's affiliate record, created by opening the dashboard."""
    client.get('/api/affiliate', headers=auth_headers)
    return db_session.query(Affiliate).filter_by(user_id=sample_user.id).one()


@pytest.mark.affiliates
class TestAffiliateDashboard:
    """Test suite for the affiliate dashboard."""

    def test_dashboard_creates_affiliate(self, client, auth_headers):
        response = client.get('/api/affiliate', headers=auth_headers)

        assert response.status_code == 200
        data = json.loads(response.data)['affiliate']
        assert data['tier'] == 'BRONZE'
        assert data['affiliate_code'].startswith('CUSTOMER')
        assert data['affiliate_link'].endswith(f"?ref={data['affiliate_code']}")
        assert data['next_tier']['tier'] == 'SILVER'

    def test_dashboard_is_stable(self, client, auth_headers):
        first = json.loads(client.get('/api/affiliate', headers=auth_headers).data)
        second = json.loads(client.get('/api/affiliate', headers=auth_headers).data)

        assert first['affiliate']['affiliate_code'] == second['affiliate']['affiliate_code']

    def test_non_certified_professional_blocked(self, client, db_session, auth_headers, sample_user):
        certification = Certification(name="PROFESSIONAL_NON_CERTIFIED")
        db_session.add(certification)
        db_session.flush()
        sample_user.certification_id = certification.id
        db_session.commit()

        response = client.get('/api/affiliate', headers=auth_headers)

        assert response.status_code == 403

    def test_validate_code(self, client, affiliate):
        response = client.get(f'/api/affiliate/validate-code?code={affiliate.affiliate_code.lower()}')

        assert json.loads(response.data)['valid'] is True
        response = client.get('/api/affiliate/validate-code?code=NOPE')
        assert json.loads(response.data)['valid'] is False

    def test_track_click(self, client, db_session, affiliate):
        response = client.post(
            '/api/affiliate/track-click',
            data=json.dumps({"affiliate_code": affiliate.affiliate_code}),
            content_type='application/json'
        )

        assert response.status_code == 200
        assert db_session.query(AffiliateLinkClick).filter_by(affiliate_id=affiliate.id).count() == 1

    def test_track_click_unknown_code(self, client):
        response = client.post(
            '/api/affiliate/track-click',
            data=json.dumps({"affiliate_code": "GHOST"}),
            content_type='application/json'
        )

        assert response.status_code == 404

    def test_earnings_breakdown_period(self, client, auth_headers):
        response = client.get('/api/affiliate/earnings-breakdown?period=week', headers=auth_headers)

        assert response.status_code == 400


@pytest.mark.affiliates
class TestReferralFlow:
    """Signup and order referrals award the affiliate."""

    @pytest.fixture
    def configs(self, db_session):
        yesterday = utcnow() - timedelta(days=1)
        db_session.add_all([
            PointsConfiguration(action_type="REFERRAL_SIGNUP", points_amount=10, valid_from=yesterday),
            PointsConfiguration(action_type="REFERRAL_FIRST_ORDER", points_amount=50, valid_from=yesterday),
            PointsConfiguration(action_type="REFERRAL_REPEAT_ORDER", points_amount=5, valid_from=yesterday),
        ])
        db_session.commit()

    def register(self, client, code):
        return client.post(
            '/api/auth/register',
            data=json.dumps({
                "email": "friend@example.com",
                "password": "password123",
                "name": "Friend",
                "affiliate_code": code,
            }),
            content_type='application/json'
        )

    def test_signup_with_code_creates_referral(self, client, db_session, affiliate, sample_user, configs):
        response = self.register(client, affiliate.affiliate_code)

        assert response.status_code == 201
        assert json.loads(response.data)['referred'] is True

        db_session.refresh(affiliate)
        assert affiliate.total_referrals == 1
        assert affiliate.total_points_earned == 10
        db_session.refresh(sample_user)
        assert sample_user.points_balance == 10
        assert db_session.query(Notification).filter_by(
            user_id=sample_user.id, title='First Referral!'
        ).count() == 1

    def test_unknown_code_still_registers(self, client, db_session):
        response = self.register(client, "UNKNOWN1")

        assert response.status_code == 201
        assert json.loads(response.data)['referred'] is False
        assert db_session.query(AffiliateReferral).count() == 0

    def test_first_and_repeat_orders(self, client, db_session, affiliate, sample_user, sample_product, configs, login_as):
        self.register(client, affiliate.affiliate_code)
        referral = db_session.query(AffiliateReferral).one()
        friend = referral.referred_user
        headers = login_as(friend)

        for _ in range(2):
            cart = db_session.query(Cart).filter_by(user_id=friend.id).one()
            db_session.add(CartItem(cart_id=cart.id, product_id=sample_product.id, quantity=1))
            db_session.commit()
            response = client.post('/api/orders', headers=headers)
            assert response.status_code == 201

        db_session.refresh(referral)
        db_session.refresh(affiliate)
        assert referral.status == 'ACTIVE'
        assert referral.first_order_id is not None
        assert affiliate.active_referrals == 1
        assert affiliate.total_points_earned == 10 + 50 + 5

        response = client.get('/api/affiliate/referrals-stats', headers=login_as(sample_user))
        stats = json.loads(response.data)['stats']
        assert stats['total'] == 1
        assert stats['active'] == 1
        assert stats['conversion_rate'] == 100.0


@pytest.mark.affiliates
class TestTiers:
    """Unit tests for tier calculation."""

    def test_all_thresholds_required(self):
        assert calculate_tier({"total_referrals": 12, "total_points_earned": 600, "active_referrals": 4}) == 'BRONZE'
        assert calculate_tier({"total_referrals": 12, "total_points_earned": 600, "active_referrals": 5}) == 'SILVER'
        assert calculate_tier({"total_referrals": 250, "total_points_earned": 20000, "active_referrals": 150}) == 'PLATINUM'

    def test_auto_promote_notifies(self, db_session, affiliate, sample_user):
        affiliate.total_referrals = 50
        affiliate.total_points_earned = 3000
        affiliate.active_referrals = 30

        assert auto_promote(affiliate) is True
        db_session.commit()

        assert affiliate.tier == 'GOLD'
        assert affiliate.tier_updated_at is not None
        assert db_session.query(Notification).filter_by(
            user_id=sample_user.id, title='Tier Upgrade to GOLD!'
        ).count() == 1


@pytest.mark.affiliates
class TestMilestones:
    """Milestone notifications for referral counts, points and redemptions."""

    def titles(self, db_session, user):
        return [n.title for n in db_session.query(Notification).filter_by(user_id=user.id).order_by(Notification.id)]

    @pytest.mark.parametrize("referrals, title", [
        (1, 'First Referral!'),
        (10, '10 Referrals Milestone!'),
        (100, '100 Referrals Achievement!'),
    ])
    def test_referral_milestones(self, db_session, affiliate, sample_user, referrals, title):
        affiliate.total_referrals = referrals

        check_milestones(affiliate)
        db_session.commit()

        assert self.titles(db_session, sample_user) == [title]

    def test_no_milestone_between_thresholds(self, db_session, affiliate, sample_user):
        affiliate.total_referrals = 7

        check_milestones(affiliate)
        db_session.commit()

        assert self.titles(db_session, sample_user) == []

    def test_referral_milestones_skipped_for_orders(self, db_session, affiliate, sample_user):
        affiliate.total_referrals = 1

        check_milestones(affiliate, include_referrals=False)
        db_session.commit()

        assert self.titles(db_session, sample_user) == []

    def test_crossing_1000_points(self, db_session, affiliate, sample_user):
        affiliate.total_referrals = 3
        affiliate.total_points_earned = 1040

        check_milestones(affiliate, previous_points=980)
        db_session.commit()

        notification = db_session.query(Notification).filter_by(user_id=sample_user.id).one()
        assert notification.title == '1000 Points Milestone!'
        assert '1040 points' in notification.message
        assert notification.details['milestone_type'] == 'points_1000'

    def test_already_past_1000_points(self, db_session, affiliate, sample_user):
        affiliate.total_referrals = 3
        affiliate.total_points_earned = 1500

        check_milestones(affiliate, previous_points=1200)
        db_session.commit()

        assert self.titles(db_session, sample_user) == []

    def test_first_redemption_only(self, db_session, sample_user):
        reward = Reward(name="5€ off", points_cost=100, discount_type="FIXED", discount_value=Decimal("5"))
        db_session.add(reward)
        db_session.flush()
        db_session.add(PointsRedemption(
            user_id=sample_user.id, reward_id=reward.id, coupon_code="REWFIRST", points_spent=100,
        ))
        db_session.flush()

        assert check_redemption_milestone(sample_user) is True

        db_session.add(PointsRedemption(
            user_id=sample_user.id, reward_id=reward.id, coupon_code="REWSECOND", points_spent=100,
        ))
        db_session.flush()

        assert check_redemption_milestone(sample_user) is False
        db_session.commit()
        assert self.titles(db_session, sample_user) == ['First Reward Redeemed!']
