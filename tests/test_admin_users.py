import pytest
import json
from app.models import BannedEmail, Cart, Certification, PointsConfiguration, PointsTransaction, User


@pytest.mark.admin
class TestAdminUsers:
    """Test suite for /api/admin/users."""

    def test_list_requires_admin(self, client, auth_headers):
        response = client.get('/api/admin/users', headers=auth_headers)

        assert response.status_code == 403

    def test_list_with_search(self, client, admin_headers, sample_user):
        response = client.get('/api/admin/users?search=customer', headers=admin_headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert [u['email'] for u in data['users']] == ['customer@example.com']
        assert data['users'][0]['order_count'] == 0
        assert data['users'][0]['total_spent'] == 0

    def test_create_user_gets_cart(self, client, db_session, admin_headers):
        response = client.post(
            '/api/admin/users',
            data=json.dumps({"email": "Staff@Example.com", "password": "password123", "role": "admin"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 201
        user = json.loads(response.data)['user']
        assert user['email'] == 'staff@example.com'
        assert user['role'] == 'ADMIN'
        assert db_session.query(Cart).filter_by(user_id=user['id']).count() == 1

    def test_create_duplicate_email(self, client, admin_headers, sample_user):
        response = client.post(
            '/api/admin/users',
            data=json.dumps({"email": "customer@example.com", "password": "password123"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_disable_user(self, client, db_session, admin_headers, sample_user):
        response = client.patch(
            f'/api/admin/users/{sample_user.id}',
            data=json.dumps({"is_active": False}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        db_session.refresh(sample_user)
        assert sample_user.is_active is False

    def test_cannot_delete_self(self, client, admin_headers, sample_admin):
        response = client.delete(f'/api/admin/users/{sample_admin.id}', headers=admin_headers)

        assert response.status_code == 400

    def test_delete_user(self, client, db_session, admin_headers, sample_user):
        user_id = sample_user.id

        response = client.delete(f'/api/admin/users/{user_id}', headers=admin_headers)

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(User, user_id) is None

    def test_set_certification(self, client, db_session, admin_headers, sample_user):
        certification = Certification(name="Certified Technician")
        db_session.add(certification)
        db_session.commit()

        response = client.patch(
            f'/api/admin/users/{sample_user.id}/certification',
            data=json.dumps({"certification_id": certification.id}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        assert json.loads(response.data)['user']['certification']['name'] == 'Certified Technician'

    def test_inactive_certification_rejected(self, client, db_session, admin_headers, sample_user):
        certification = Certification(name="Retired", is_active=False)
        db_session.add(certification)
        db_session.commit()

        response = client.patch(
            f'/api/admin/users/{sample_user.id}/certification',
            data=json.dumps({"certification_id": certification.id}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_adjust_points(self, client, db_session, admin_headers, sample_admin, sample_user):
        response = client.post(
            f'/api/admin/users/{sample_user.id}/points',
            data=json.dumps({"amount": 25, "description": "Goodwill"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['points_balance'] == 25
        assert data['transaction']['type'] == 'MANUAL_ADJUSTMENT'
        tx = db_session.query(PointsTransaction).filter_by(user_id=sample_user.id).one()
        assert tx.reference_id == str(sample_admin.id)

    def test_adjust_points_below_zero(self, client, admin_headers, sample_user):
        response = client.post(
            f'/api/admin/users/{sample_user.id}/points',
            data=json.dumps({"amount": -5}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400
        assert 'negative balance' in json.loads(response.data)['message']

    def test_user_detail_has_recent_transactions(self, client, admin_headers, sample_user):
        client.post(
            f'/api/admin/users/{sample_user.id}/points',
            data=json.dumps({"amount": 10}),
            content_type='application/json',
            headers=admin_headers
        )

        response = client.get(f'/api/admin/users/{sample_user.id}', headers=admin_headers)

        assert len(json.loads(response.data)['user']['recent_transactions']) == 1


@pytest.mark.admin
class TestRolesAndBans:
    """Roles and banned e-mail addresses."""

    def test_create_role(self, client, admin_headers):
        response = client.post(
            '/api/admin/roles',
            data=json.dumps({"name": "Editor", "permissions": {"blogs": ["read", "write"]}}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 201
        listed = json.loads(client.get('/api/admin/roles', headers=admin_headers).data)
        assert listed['roles'][0]['permissions'] == {"blogs": ["read", "write"]}

    def test_duplicate_role(self, client, admin_headers):
        for _ in range(2):
            response = client.post(
                '/api/admin/roles',
                data=json.dumps({"name": "Editor"}),
                content_type='application/json',
                headers=admin_headers
            )

        assert response.status_code == 409

    def test_ban_and_unban(self, client, db_session, admin_headers, sample_admin):
        response = client.post(
            '/api/admin/banned-emails',
            data=json.dumps({"email": " Spammer@Example.com ", "reason": "Fraud"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 201
        entry = db_session.query(BannedEmail).one()
        assert entry.email == 'spammer@example.com'
        assert entry.banned_by == sample_admin.id

        response = client.delete('/api/admin/banned-emails?email=spammer@example.com', headers=admin_headers)
        assert response.status_code == 200
        assert db_session.query(BannedEmail).count() == 0

    def test_ban_twice(self, client, db_session, admin_headers):
        db_session.add(BannedEmail(email="spammer@example.com"))
        db_session.commit()

        response = client.post(
            '/api/admin/banned-emails',
            data=json.dumps({"email": "spammer@example.com"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_unban_unknown(self, client, admin_headers):
        response = client.delete('/api/admin/banned-emails?email=nobody@example.com', headers=admin_headers)

        assert response.status_code == 404


@pytest.mark.admin
class TestCertificationsAdmin:
    """Certifications and the categories they unlock."""

    def test_create_with_categories(self, client, admin_headers, sample_category):
        response = client.post(
            '/api/admin/certifications',
            data=json.dumps({"name": "Gel Pro", "category_ids": [sample_category.id]}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 201
        certification = json.loads(response.data)['certification']
        assert certification['categories'][0]['slug'] == 'gel-polish'
        assert certification['user_count'] == 0

    def test_unknown_category(self, client, admin_headers):
        response = client.post(
            '/api/admin/certifications',
            data=json.dumps({"name": "Gel Pro", "category_ids": [404]}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400
        assert 'Unknown category ids: 404' in json.loads(response.data)['message']

    def test_non_numeric_category_ids(self, client, admin_headers):
        response = client.post(
            '/api/admin/certifications',
            data=json.dumps({"name": "Gel Pro", "category_ids": ["gel"]}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400
        assert json.loads(response.data)['message'] == 'category_ids must contain integers'

    def test_replace_categories(self, client, db_session, admin_headers, sample_category):
        created = client.post(
            '/api/admin/certifications',
            data=json.dumps({"name": "Gel Pro", "category_ids": [sample_category.id]}),
            content_type='application/json',
            headers=admin_headers
        )
        certification_id = json.loads(created.data)['certification']['id']

        response = client.put(
            f'/api/admin/certifications/{certification_id}',
            data=json.dumps({"category_ids": []}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        assert json.loads(response.data)['certification']['categories'] == []

    def test_delete_unlinks_users(self, client, db_session, admin_headers, sample_user):
        certification = Certification(name="Gel Pro")
        db_session.add(certification)
        db_session.flush()
        sample_user.certification_id = certification.id
        db_session.commit()

        response = client.delete(f'/api/admin/certifications/{certification.id}', headers=admin_headers)

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(User, sample_user.id).certification_id is None


@pytest.mark.admin
@pytest.mark.points
class TestPointsAdmin:
    """Points configurations and the transaction ledger."""

    def test_create_configuration(self, client, admin_headers):
        response = client.post(
            '/api/admin/points-config',
            data=json.dumps({"action_type": "OWN_PURCHASE", "points_amount": 10, "min_order_value": 15}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 201
        config = json.loads(response.data)['configuration']
        assert config['min_order_value'] == 15.0
        assert config['is_active'] is True
        assert config['valid_from'] is not None

    def test_unknown_action_type(self, client, admin_headers):
        response = client.post(
            '/api/admin/points-config',
            data=json.dumps({"action_type": "BIRTHDAY", "points_amount": 10}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_amount_or_tiers_required(self, client, admin_headers):
        response = client.post(
            '/api/admin/points-config',
            data=json.dumps({"action_type": "OWN_PURCHASE"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_malformed_tiers(self, client, admin_headers):
        response = client.post(
            '/api/admin/points-config',
            data=json.dumps({
                "action_type": "REFERRAL_FIRST_ORDER",
                "tiered_config": {"tiers": [{"min_order_value": -1, "points": 5}]},
            }),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400
        assert 'Tier 1' in json.loads(response.data)['message']

    def test_deactivate_configuration(self, client, db_session, admin_headers):
        config = PointsConfiguration(action_type="OWN_PURCHASE", points_amount=10)
        db_session.add(config)
        db_session.commit()

        response = client.put(
            f'/api/admin/points-config/{config.id}',
            data=json.dumps({"is_active": False}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        assert json.loads(response.data)['configuration']['is_active'] is False

    def test_transactions_filter_by_type(self, client, admin_headers, sample_user):
        client.post(
            f'/api/admin/users/{sample_user.id}/points',
            data=json.dumps({"amount": 10}),
            content_type='application/json',
            headers=admin_headers
        )

        adjustments = client.get('/api/admin/points-transactions?type=manual_adjustment', headers=admin_headers)
        purchases = client.get('/api/admin/points-transactions?type=PURCHASE', headers=admin_headers)
        invalid = client.get('/api/admin/points-transactions?type=GIFT', headers=admin_headers)

        data = json.loads(adjustments.data)
        assert data['pagination']['total'] == 1
        assert data['transactions'][0]['user']['email'] == 'customer@example.com'
        assert json.loads(purchases.data)['transactions'] == []
        assert invalid.status_code == 400
