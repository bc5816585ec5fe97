import pytest
import json
from datetime import timedelta
from decimal import Decimal
from app.models import (
    BannedEmail,
    Cart,
    CartItem,
    Certification,
    CertificationCategory,
    Coupon,
    CouponUsage,
    Notification,
    PointsConfiguration,
)
from app.utils.helpers import utcnow


def fill_cart(db_session, user, product, quantity=2):
    cart = db_session.query(Cart).filter_by(user_id=user.id).one()
    db_session.add(CartItem(cart_id=cart.id, product_id=product.id, quantity=quantity))
    db_session.commit()
    return cart


@pytest.mark.cart
class TestCart:
    """Test suite for the shopping cart."""

    def test_view_empty_cart(self, client, auth_headers):
        response = client.get('/api/cart', headers=auth_headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['cart']['items'] == []
        assert data['cart']['subtotal'] == 0

    def test_add_to_cart_merges_lines(self, client, auth_headers, sample_product):
        for _ in range(2):
            response = client.post(
                '/api/cart',
                data=json.dumps({"product_id": sample_product.id, "quantity": 2}),
                content_type='application/json',
                headers=auth_headers
            )
            assert response.status_code == 201

        data = json.loads(response.data)
        assert len(data['cart']['items']) == 1
        assert data['cart']['items'][0]['quantity'] == 4
        assert data['cart']['subtotal'] == 80.0

    def test_add_unknown_product(self, client, auth_headers):
        response = client.post(
            '/api/cart',
            data=json.dumps({"product_id": 9999, "quantity": 1}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 404

    def test_add_zero_quantity(self, client, auth_headers, sample_product):
        response = client.post(
            '/api/cart',
            data=json.dumps({"product_id": sample_product.id, "quantity": 0}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 400

    def test_restricted_category_needs_certification(self, client, db_session, auth_headers, sample_product):
        """A category linked to any certification is closed to uncertified users."""
        certification = Certification(name="Gel Specialist", is_active=True)
        db_session.add(certification)
        db_session.flush()
        db_session.add(CertificationCategory(
            certification_id=certification.id, category_id=sample_product.category_id
        ))
        db_session.commit()

        response = client.post(
            '/api/cart',
            data=json.dumps({"product_id": sample_product.id, "quantity": 1}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 403
        assert 'requires a certification' in json.loads(response.data)['message']

    def test_add_items_reports_rejections(self, client, auth_headers, sample_product):
        response = client.post(
            '/api/cart/add-items',
            data=json.dumps({"items": [
                {"product_id": sample_product.id, "quantity": 1},
                {"product_id": 9999, "quantity": 1},
            ]}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert len(data['added']) == 1
        assert data['rejected'][0]['product_id'] == 9999

    def test_update_and_remove_item(self, client, db_session, auth_headers, sample_user, sample_product):
        cart = fill_cart(db_session, sample_user, sample_product)
        item_id = cart.items[0].id

        response = client.patch(
            f'/api/cart/{item_id}',
            data=json.dumps({"quantity": 5}),
            content_type='application/json',
            headers=auth_headers
        )
        assert response.status_code == 200
        assert json.loads(response.data)['cart']['items'][0]['quantity'] == 5

        response = client.delete(f'/api/cart/{item_id}', headers=auth_headers)
        assert response.status_code == 200
        assert json.loads(response.data)['cart']['items'] == []

    def test_cannot_touch_other_users_item(self, client, db_session, admin_headers, sample_user, sample_product):
        cart = fill_cart(db_session, sample_user, sample_product)

        response = client.delete(f'/api/cart/{cart.items[0].id}', headers=admin_headers)

        assert response.status_code == 404


@pytest.mark.orders
class TestCheckout:
    """Test suite for placing orders."""

    def test_checkout_empty_cart(self, client, auth_headers):
        response = client.post(
            '/api/orders',
            data=json.dumps({}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 400
        assert json.loads(response.data)['message'] == 'Your cart is empty'

    def test_certification_outside_its_categories(self, client, db_session, auth_headers, sample_user, sample_product):
        """A certified user may only buy from the categories their certification unlocks."""
        fill_cart(db_session, sample_user, sample_product, quantity=1)
        certification = Certification(name="Nail Art Basics", is_active=True)
        db_session.add(certification)
        db_session.flush()
        sample_user.certification_id = certification.id
        db_session.commit()

        response = client.post(
            '/api/orders',
            data=json.dumps({}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 403
        data = json.loads(response.data)
        assert data['message'].startswith('Your Nail Art Basics certification does not allow purchasing')
        assert data['product_id'] == sample_product.id
        assert db_session.query(CartItem).count() == 1

    def test_checkout_creates_order_and_clears_cart(self, client, db_session, auth_headers, sample_user, sample_product):
        fill_cart(db_session, sample_user, sample_product, quantity=2)

        response = client.post(
            '/api/orders',
            data=json.dumps({"shipping_address": {"city": "Lisbon"}}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 201
        order = json.loads(response.data)['order']
        assert order['status'] == 'PENDING'
        assert order['subtotal'] == 40.0
        assert order['total'] == 40.0
        assert order['items'][0]['product_name'] == 'Evo Gel 101'
        assert order['shipping_address'] == {"city": "Lisbon"}

        cart = db_session.query(Cart).filter_by(user_id=sample_user.id).one()
        assert cart.items == []
        assert db_session.query(Notification).filter_by(type='ORDER').count() == 1

    def test_checkout_with_coupon(self, client, db_session, auth_headers, sample_user, sample_product, sample_coupon):
        fill_cart(db_session, sample_user, sample_product, quantity=2)

        response = client.post(
            '/api/orders',
            data=json.dumps({"coupon_code": "save10"}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 201
        order = json.loads(response.data)['order']
        assert order['discount_amount'] == 4.0
        assert order['total'] == 36.0
        assert order['coupon_code'] == 'SAVE10'

        db_session.refresh(sample_coupon)
        assert sample_coupon.used_count == 1
        assert db_session.query(CouponUsage).filter_by(coupon_id=sample_coupon.id).count() == 1

    def test_fixed_coupon_never_makes_total_negative(self, client, db_session, auth_headers, sample_user, sample_product):
        db_session.add(Coupon(code="BIG", discount_type="FIXED", discount_value=Decimal("500")))
        db_session.commit()
        fill_cart(db_session, sample_user, sample_product, quantity=1)

        response = client.post(
            '/api/orders',
            data=json.dumps({"coupon_code": "BIG"}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 201
        assert json.loads(response.data)['order']['total'] == 0.0

    def test_checkout_with_expired_coupon(self, client, db_session, auth_headers, sample_user, sample_product):
        db_session.add(Coupon(
            code="OLD", discount_type="FIXED", discount_value=Decimal("5"),
            valid_until=utcnow() - timedelta(days=1),
        ))
        db_session.commit()
        fill_cart(db_session, sample_user, sample_product)

        response = client.post(
            '/api/orders',
            data=json.dumps({"coupon_code": "OLD"}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 400
        assert 'expired' in json.loads(response.data)['message']

    def test_banned_user_cannot_order(self, client, db_session, auth_headers, sample_user, sample_product):
        fill_cart(db_session, sample_user, sample_product)
        db_session.add(BannedEmail(email=sample_user.email))
        db_session.commit()

        response = client.post('/api/orders', headers=auth_headers)

        assert response.status_code == 403

    def test_checkout_awards_purchase_points(self, client, db_session, auth_headers, sample_user, sample_product):
        db_session.add(PointsConfiguration(
            action_type="OWN_PURCHASE",
            points_amount=25,
            is_active=True,
            valid_from=utcnow() - timedelta(days=1),
        ))
        db_session.commit()
        fill_cart(db_session, sample_user, sample_product)

        response = client.post('/api/orders', headers=auth_headers)

        assert response.status_code == 201
        db_session.refresh(sample_user)
        assert sample_user.points_balance == 25


@pytest.mark.orders
class TestOrderManagement:
    """Test suite for order history and status changes."""

    @pytest.fixture
    def placed_order(self, client, db_session, auth_headers, sample_user, sample_product):
        fill_cart(db_session, sample_user, sample_product)
        response = client.post('/api/orders', headers=auth_headers)
        return json.loads(response.data)['order']

    def test_user_sees_own_orders(self, client, auth_headers, placed_order):
        response = client.get('/api/orders', headers=auth_headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert [o['id'] for o in data['orders']] == [placed_order['id']]
        assert data['pagination']['total'] == 1

    def test_other_user_cannot_read_order(self, client, user_factory, login_as, placed_order):
        headers = login_as(user_factory("other@example.com"))

        response = client.get(f"/api/orders/{placed_order['id']}", headers=headers)

        assert response.status_code == 404

    def test_admin_updates_status_and_notifies(self, client, db_session, admin_headers, placed_order, sample_user):
        response = client.patch(
            f"/api/orders/{placed_order['id']}",
            data=json.dumps({"status": "shipped"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        assert json.loads(response.data)['order']['status'] == 'SHIPPED'
        notification = db_session.query(Notification).filter_by(
            user_id=sample_user.id, type='ORDER_SHIPPED'
        ).one()
        assert 'shipped' in notification.message

    def test_invalid_status(self, client, admin_headers, placed_order):
        response = client.patch(
            f"/api/orders/{placed_order['id']}",
            data=json.dumps({"status": "LOST"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_customer_cannot_update_status(self, client, auth_headers, placed_order):
        response = client.patch(
            f"/api/orders/{placed_order['id']}",
            data=json.dumps({"status": "DELIVERED"}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 403
