import pytest
import json
from datetime import timedelta
from decimal import Decimal
from app.models import Coupon, Notification, PointsConfiguration, PointsRedemption, PointsTransaction, Reward
from app.services.points import (
    PointsError,
    adjust_points,
    award_points,
    calculate_points,
    deduct_points,
)
from app.utils.helpers import utcnow


def add_config(db_session, **kwargs):
    kwargs.setdefault("is_active", True)
    kwargs.setdefault("valid_from", utcnow() - timedelta(days=1))
    config = PointsConfiguration(**kwargs)
    db_session.add(config)
    db_session.commit()
    return config


@pytest.mark.points
class TestPointsLedger:
    """Unit tests for the points service."""

    def test_award_records_balances(self, db_session, sample_user):
        tx = award_points(sample_user, 40, "PURCHASE", reference_id=7, description="Order 7")
        db_session.commit()

        assert sample_user.points_balance == 40
        assert (tx.balance_before, tx.balance_after) == (0, 40)
        assert tx.reference_id == "7"

    def test_award_rejects_non_positive(self, db_session, sample_user):
        with pytest.raises(PointsError):
            award_points(sample_user, 0, "PURCHASE")

    def test_deduct_insufficient_balance(self, db_session, sample_user):
        with pytest.raises(PointsError, match="Insufficient"):
            deduct_points(sample_user, 10)

    def test_deduct_writes_negative_transaction(self, db_session, user_factory):
        user = user_factory("rich@example.com", points=100)

        tx = deduct_points(user, 30)
        db_session.commit()

        assert user.points_balance == 70
        assert tx.amount == -30
        assert tx.type == "REDEMPTION"

    def test_adjust_never_below_zero(self, db_session, user_factory):
        user = user_factory("low@example.com", points=5)

        with pytest.raises(PointsError, match="negative balance"):
            adjust_points(user, -10, "Correction", admin_id=1)

    def test_flat_configuration(self, db_session):
        add_config(db_session, action_type="OWN_PURCHASE", points_amount=15)

        assert calculate_points("OWN_PURCHASE", Decimal("50")) == 15
        assert calculate_points("REFERRAL_SIGNUP") == 0

    def test_min_order_value_and_cap(self, db_session):
        add_config(
            db_session,
            action_type="OWN_PURCHASE",
            points_amount=500,
            min_order_value=Decimal("20"),
            max_points_per_transaction=100,
        )

        assert calculate_points("OWN_PURCHASE", Decimal("10")) == 0
        assert calculate_points("OWN_PURCHASE", Decimal("25")) == 100

    def test_tiered_configuration(self, db_session):
        add_config(
            db_session,
            action_type="REFERRAL_FIRST_ORDER",
            tiered_config={"tiers": [
                {"min_order_value": 0, "max_order_value": 49.99, "points": 10},
                {"min_order_value": 50, "max_order_value": None, "points": 50},
            ]},
        )

        assert calculate_points("REFERRAL_FIRST_ORDER", Decimal("30")) == 10
        assert calculate_points("REFERRAL_FIRST_ORDER", Decimal("120")) == 50

    def test_inactive_or_expired_configuration_ignored(self, db_session):
        add_config(db_session, action_type="OWN_PURCHASE", points_amount=10, is_active=False)
        add_config(
            db_session, action_type="OWN_PURCHASE", points_amount=20,
            valid_until=utcnow() - timedelta(hours=1),
        )

        assert calculate_points("OWN_PURCHASE", Decimal("100")) == 0


@pytest.mark.rewards
class TestRewards:
    """Test suite for the reward catalog and redemptions."""

    @pytest.fixture
    def reward(self, db_session):
        reward = Reward(
            name="5€ off",
            points_cost=100,
            discount_type="FIXED",
            discount_value=Decimal("5"),
            stock=2,
            is_active=True,
            valid_from=utcnow() - timedelta(days=1),
        )
        db_session.add(reward)
        db_session.commit()
        return reward

    def redeem(self, client, headers, reward_id):
        return client.post(
            '/api/rewards/redeem',
            data=json.dumps({"reward_id": reward_id}),
            content_type='application/json',
            headers=headers
        )

    def test_list_shows_balance_when_logged_in(self, client, auth_headers, reward):
        response = client.get('/api/rewards', headers=auth_headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert [r['name'] for r in data['rewards']] == ['5€ off']
        assert data['points_balance'] == 0

    def test_list_anonymous(self, client, reward):
        response = client.get('/api/rewards')

        data = json.loads(response.data)
        assert 'points_balance' not in data

    def test_out_of_stock_hidden(self, client, db_session, reward):
        reward.redeemed_count = 2
        db_session.commit()

        response = client.get('/api/rewards')

        assert json.loads(response.data)['rewards'] == []

    def test_redeem_insufficient_points(self, client, auth_headers, reward):
        response = self.redeem(client, auth_headers, reward.id)

        assert response.status_code == 400
        assert json.loads(response.data)['message'] == 'Insufficient points balance'

    def test_redeem_issues_single_use_coupon(self, client, db_session, user_factory, login_as, reward):
        user = user_factory("saver@example.com", points=150)
        headers = login_as(user)

        response = self.redeem(client, headers, reward.id)

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['points_balance'] == 50
        assert data['coupon_code'].startswith('REW')
        assert data['redemption']['status'] == 'ACTIVE'

        coupon = db_session.query(Coupon).filter_by(code=data['coupon_code']).one()
        assert coupon.usage_limit == 1
        assert coupon.source == 'REDEMPTION'
        assert db_session.query(PointsTransaction).filter_by(user_id=user.id, type='REDEMPTION').count() == 1
        assert db_session.query(Notification).filter_by(user_id=user.id, title='First Reward Redeemed!').count() == 1

    def test_my_coupons(self, client, user_factory, login_as, reward):
        user = user_factory("saver@example.com", points=150)
        headers = login_as(user)
        self.redeem(client, headers, reward.id)

        response = client.get('/api/rewards/my-coupons', headers=headers)

        assert response.status_code == 200
        coupons = json.loads(response.data)['coupons']
        assert len(coupons) == 1
        assert coupons[0]['is_usable'] is True
        assert coupons[0]['reward_name'] == '5€ off'

    def test_inactive_reward(self, client, db_session, user_factory, login_as, reward):
        reward.is_active = False
        db_session.commit()
        headers = login_as(user_factory("saver@example.com", points=150))

        response = self.redeem(client, headers, reward.id)

        assert response.status_code == 400
        assert db_session.query(PointsRedemption).count() == 0

    def test_redeem_out_of_stock(self, client, db_session, user_factory, login_as, reward):
        reward.redeemed_count = 2
        db_session.commit()
        user = user_factory("saver@example.com", points=150)
        headers = login_as(user)

        response = self.redeem(client, headers, reward.id)

        assert response.status_code == 400
        assert json.loads(response.data)['message'] == 'Reward is out of stock'
        db_session.refresh(user)
        assert user.points_balance == 150
