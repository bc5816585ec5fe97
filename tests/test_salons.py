import pytest
import json
from decimal import Decimal
from app.models import Notification, Salon
from app.services import geocoding
from app.services.geocoding import GeocodingError, geocode_address


@pytest.fixture
def approved_salon(db_session, sample_user):
    salon = Salon(
        name="Lisboa Nails",
        address="Rua Augusta 10",
        city="Lisboa",
        latitude=Decimal("38.7100000"),
        longitude=Decimal("-9.1370000"),
        status="APPROVED",
        is_active=True,
        user_id=sample_user.id,
    )
    db_session.add(salon)
    db_session.commit()
    return salon


@pytest.fixture
def pending_salon(db_session, user_factory):
    owner = user_factory("owner@example.com", name="Salon Owner")
    salon = Salon(
        name="Porto Gel Studio",
        address="Rua de Santa Catarina 5",
        city="Porto",
        latitude=Decimal("41.1490000"),
        longitude=Decimal("-8.6060000"),
        status="PENDING",
        is_active=False,
        user_id=owner.id,
    )
    db_session.add(salon)
    db_session.commit()
    return salon


@pytest.mark.salons
class TestSalonDirectory:
    """Test suite for the public salon directory."""

    def test_public_list_hides_pending(self, client, approved_salon, pending_salon):
        response = client.get('/api/salons')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['total'] == 1
        assert data['salons'][0]['name'] == 'Lisboa Nails'

    def test_admin_filters_by_status(self, client, admin_headers, approved_salon, pending_salon):
        response = client.get('/api/salons?status=pending', headers=admin_headers)

        assert [s['name'] for s in json.loads(response.data)['salons']] == ['Porto Gel Studio']

    def test_distance_sorting(self, client, db_session, approved_salon, pending_salon):
        pending_salon.status = 'APPROVED'
        pending_salon.is_active = True
        db_session.commit()

        response = client.get('/api/salons?lat=41.15&lng=-8.61')

        salons = json.loads(response.data)['salons']
        assert [s['name'] for s in salons] == ['Porto Gel Studio', 'Lisboa Nails']
        assert salons[0]['distance_km'] < 1
        assert salons[1]['distance_km'] > 250

    def test_pending_salon_hidden_from_strangers(self, client, pending_salon):
        response = client.get(f'/api/salons/{pending_salon.id}')

        assert response.status_code == 404

    def test_my_salon_missing(self, client, auth_headers):
        response = client.get('/api/salons/my-salon', headers=auth_headers)

        assert response.status_code == 404
        assert json.loads(response.data)['message'] == 'You have not registered a salon'


@pytest.mark.salons
class TestSalonSubmission:
    """Salon registration and moderation."""

    def submit(self, client, headers, **payload):
        payload.setdefault("name", "Faro Beauty")
        payload.setdefault("address", "Rua de Santo António 1")
        payload.setdefault("city", "Faro")
        return client.post(
            '/api/salons',
            data=json.dumps(payload),
            content_type='application/json',
            headers=headers
        )

    def test_missing_fields(self, client, auth_headers):
        response = self.submit(client, auth_headers, city="")

        assert response.status_code == 400

    def test_customer_submission_is_pending(self, client, db_session, auth_headers, sample_admin):
        response = self.submit(client, auth_headers)

        assert response.status_code == 201
        salon = json.loads(response.data)['salon']
        assert salon['status'] == 'PENDING'
        assert salon['is_active'] is False
        assert salon['latitude'] == 38.7223
        assert salon['longitude'] == -9.1393
        assert db_session.query(Notification).filter_by(type='NEW_SALON', user_id=None).count() == 1

    def test_explicit_coordinates_kept(self, client, auth_headers):
        response = self.submit(client, auth_headers, latitude=37.0194, longitude=-7.9304)

        salon = json.loads(response.data)['salon']
        assert salon['latitude'] == 37.0194

    def test_admin_submission_is_approved(self, client, admin_headers, sample_admin):
        response = self.submit(client, admin_headers)

        salon = json.loads(response.data)['salon']
        assert salon['status'] == 'APPROVED'
        assert salon['is_active'] is True
        assert salon['reviewed_by'] == sample_admin.id

    def test_reject_requires_reason(self, client, admin_headers, pending_salon):
        response = client.post(
            f'/api/salons/{pending_salon.id}/review',
            data=json.dumps({"action": "reject"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_approve_notifies_owner(self, client, db_session, admin_headers, pending_salon):
        response = client.post(
            f'/api/salons/{pending_salon.id}/review',
            data=json.dumps({"action": "approve"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        db_session.refresh(pending_salon)
        assert pending_salon.status == 'APPROVED'
        assert pending_salon.is_active is True
        assert db_session.query(Notification).filter_by(
            user_id=pending_salon.user_id, type='SALON_APPROVED'
        ).count() == 1

    def test_owner_edit_requeues_salon(self, client, db_session, auth_headers, approved_salon):
        response = client.put(
            f'/api/salons/{approved_salon.id}',
            data=json.dumps({"phone": "+351 210 000 000"}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 200
        salon = json.loads(response.data)['salon']
        assert salon['status'] == 'PENDING'
        assert salon['is_active'] is False

    def test_non_owner_cannot_edit(self, client, auth_headers, pending_salon):
        response = client.put(
            f'/api/salons/{pending_salon.id}',
            data=json.dumps({"phone": "123"}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 403

    def test_bulk_approve(self, client, admin_headers, pending_salon, approved_salon):
        response = client.post(
            '/api/salons/bulk',
            data=json.dumps({"salon_ids": [pending_salon.id, approved_salon.id], "action": "approve"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        assert json.loads(response.data)['affected'] == 2
        listed = json.loads(client.get('/api/salons').data)
        assert listed['total'] == 2

    def test_delete_is_admin_only(self, client, auth_headers, approved_salon):
        response = client.delete(f'/api/salons/{approved_salon.id}', headers=auth_headers)

        assert response.status_code == 403


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code
        self.ok = status_code < 400
        self.text = json.dumps(payload)

    def json(self):
        return self.payload


@pytest.mark.salons
class TestGeocoding:
    """Test suite for address lookup."""

    def test_endpoint_requires_address_and_city(self, client):
        response = client.get('/api/geocode?address=Rua+Augusta')

        assert response.status_code == 400

    def test_endpoint_success(self, client):
        response = client.get('/api/geocode?address=Rua+Augusta+10&city=Lisboa')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['lat'] == 38.7223
        assert data['display_name'] == 'Rua Augusta 10, Lisboa'

    def test_falls_back_to_city_centre(self, app, monkeypatch):
        calls = []

        def fake_search(query, with_details=True):
            calls.append(query)
            if with_details:
                return FakeResponse([])
            return FakeResponse([{"lat": "41.1579", "lon": "-8.6291", "display_name": "Porto"}])

        monkeypatch.setattr(geocoding, "_search", fake_search)
        with app.app_context():
            result = geocode_address("Rua Inexistente 99", "Porto", "4000-000")

        assert calls == ["Rua Inexistente 99, Porto, 4000-000, Portugal", "Porto, Portugal"]
        assert result['lat'] == 41.1579
        assert result['lng'] == -8.6291
        assert result['note'] == geocoding.CITY_CENTRE_NOTE

    def test_no_match(self, app, monkeypatch):
        monkeypatch.setattr(geocoding, "_search", lambda query, with_details=True: FakeResponse([]))

        with app.app_context():
            with pytest.raises(GeocodingError) as excinfo:
                geocode_address("Nowhere", "Atlantis")

        assert excinfo.value.status == 404

    def test_upstream_error(self, app, monkeypatch):
        monkeypatch.setattr(
            geocoding, "_search", lambda query, with_details=True: FakeResponse({"error": "down"}, 503)
        )

        with app.app_context():
            with pytest.raises(GeocodingError) as excinfo:
                geocode_address("Rua Augusta", "Lisboa")

        assert excinfo.value.status == 503
