import pytest
import json
from datetime import timedelta
from app.models import Notification
from app.utils.helpers import utcnow


@pytest.fixture
def notifications(db_session, sample_user, user_factory):
    other = user_factory("other@example.com")
    items = [
        Notification(type="ORDER", title="Order placed", message="Thanks!", user_id=sample_user.id),
        Notification(type="SYSTEM", title="Someone else", message="Not yours", user_id=other.id),
        Notification(type="NEW_SALON", title="Admin only", message="Review me", user_id=None),
        Notification(
            type="PROMOTION", title="Coming soon", message="Sale starts tomorrow",
            user_id=sample_user.id, is_scheduled=True, scheduled_for=utcnow() + timedelta(days=1),
        ),
    ]
    db_session.add_all(items)
    db_session.commit()
    return items


@pytest.mark.notifications
class TestNotifications:
    """Test suite for /api/notifications."""

    def test_user_sees_only_own_due_notifications(self, client, auth_headers, notifications):
        response = client.get('/api/notifications', headers=auth_headers)

        assert response.status_code == 200
        data = json.loads(response.data)['notifications']
        assert [n['title'] for n in data] == ['Order placed']
        assert data[0]['type'] == 'order'

    def test_admin_sees_everything_due(self, client, admin_headers, notifications):
        response = client.get('/api/notifications', headers=admin_headers)

        titles = {n['title'] for n in json.loads(response.data)['notifications']}
        assert titles == {'Order placed', 'Someone else', 'Admin only'}

    def test_scheduled_notification_appears_when_due(self, client, db_session, auth_headers, notifications):
        notifications[3].scheduled_for = utcnow() - timedelta(minutes=1)
        db_session.commit()

        response = client.get('/api/notifications', headers=auth_headers)

        assert len(json.loads(response.data)['notifications']) == 2

    def test_mark_one_read(self, client, db_session, auth_headers, notifications):
        response = client.patch(
            '/api/notifications',
            data=json.dumps({"notification_id": notifications[0].id, "read": True}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 200
        unread = client.get('/api/notifications?unread_only=true', headers=auth_headers)
        assert json.loads(unread.data)['notifications'] == []

    def test_cannot_mark_someone_elses(self, client, auth_headers, notifications):
        response = client.patch(
            '/api/notifications',
            data=json.dumps({"notification_id": notifications[1].id, "read": True}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 403

    def test_mark_all_read(self, client, db_session, auth_headers, sample_user, notifications):
        response = client.patch(
            '/api/notifications',
            data=json.dumps({"mark_all_as_read": True}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 200
        assert json.loads(response.data)['updated'] == 2
        db_session.expire_all()
        assert db_session.query(Notification).filter_by(read=False).count() == 2

    def test_invalid_patch(self, client, auth_headers):
        response = client.patch(
            '/api/notifications',
            data=json.dumps({"notification_id": 1}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 400


@pytest.mark.notifications
@pytest.mark.admin
class TestAdminNotifications:
    """Test suite for /api/admin/notifications."""

    def create(self, client, headers, **payload):
        return client.post(
            '/api/admin/notifications',
            data=json.dumps(payload),
            content_type='application/json',
            headers=headers
        )

    def test_title_and_message_required(self, client, admin_headers):
        response = self.create(client, admin_headers, title="Hello")

        assert response.status_code == 400

    def test_unknown_recipient(self, client, admin_headers):
        response = self.create(client, admin_headers, title="Hi", message="There", user_id=9999)

        assert response.status_code == 404

    def test_scheduled_requires_date(self, client, admin_headers):
        response = self.create(client, admin_headers, title="Hi", message="There", is_scheduled=True)

        assert response.status_code == 400

    def test_create_scheduled(self, client, admin_headers, sample_user):
        when = (utcnow() + timedelta(days=2)).isoformat()
        response = self.create(
            client, admin_headers,
            title="Black Friday", message="40% off gels", type="promotion",
            user_id=sample_user.id, is_scheduled=True, scheduled_for=when,
        )

        assert response.status_code == 201
        data = json.loads(response.data)['notification']
        assert data['status'] == 'scheduled'
        assert data['type'] == 'promotion'
        assert data['user']['email'] == 'customer@example.com'

    def test_status_filter(self, client, admin_headers, notifications):
        scheduled = client.get('/api/admin/notifications?status=scheduled', headers=admin_headers)
        active = client.get('/api/admin/notifications?status=active', headers=admin_headers)

        assert [n['title'] for n in json.loads(scheduled.data)['notifications']] == ['Coming soon']
        assert json.loads(active.data)['pagination']['total'] == 3

    def test_unschedule(self, client, admin_headers, notifications):
        response = client.put(
            f'/api/admin/notifications/{notifications[3].id}',
            data=json.dumps({"is_scheduled": False}),
            content_type='application/json',
            headers=admin_headers
        )

        data = json.loads(response.data)['notification']
        assert data['status'] == 'active'
        assert data['scheduled_for'] is None

    def test_delete(self, client, db_session, admin_headers, notifications):
        response = client.delete(f'/api/admin/notifications/{notifications[0].id}', headers=admin_headers)

        assert response.status_code == 200
        assert db_session.query(Notification).count() == 3
