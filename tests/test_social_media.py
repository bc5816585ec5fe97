import pytest
import json
from datetime import datetime
from app.models import SocialMediaPost
from app.services.social_media import get_limits, validate_post


@pytest.fixture
def draft_post(db_session, sample_admin):
    post = SocialMediaPost(
        platform="INSTAGRAM",
        content_type="POST",
        scheduled_date=datetime(2026, 11, 5, 10, 0),
        caption="New autumn shades",
        images=["https://cdn.example.com/autumn.jpg"],
        status="DRAFT",
        created_by=sample_admin.id,
    )
    db_session.add(post)
    db_session.commit()
    return post


@pytest.mark.social
class TestPostRules:
    """Unit tests for per-platform publishing limits."""

    def test_twitter_caption_limit(self):
        result = validate_post("TWITTER", "POST", "x" * 281, images=["a.jpg"])

        assert result['is_valid'] is False
        assert 'Caption exceeds maximum length of 280' in result['errors'][0]

    def test_media_required(self):
        result = validate_post("INSTAGRAM", "POST", "Hello")

        assert "At least one image or video is required" in result['errors']

    def test_cannot_mix_media(self):
        result = validate_post("INSTAGRAM", "POST", "Hello", images=["a.jpg"], videos=["b.mp4"])

        assert "Cannot mix images and videos in a single post" in result['errors']

    def test_single_image_platforms(self):
        result = validate_post("LINKEDIN", "POST", "Hello", images=["a.jpg", "b.jpg"])

        assert result['is_valid'] is False

    def test_too_many_hashtags(self):
        result = validate_post("LINKEDIN", "POST", "Hello", hashtags=["#a"] * 6, images=["a.jpg"])

        assert any('Too many hashtags' in e for e in result['errors'])

    def test_low_remaining_caption_warning(self):
        result = validate_post("TWITTER", "POST", "x" * 250, images=["a.jpg"])

        assert result['is_valid'] is True
        assert result['warnings'] == ["Only 30 characters remaining in caption"]

    def test_story_has_no_caption_warning(self):
        result = validate_post("INSTAGRAM", "STORY", "", images=["a.jpg"])

        assert result == {"is_valid": True, "errors": [], "warnings": []}

    def test_unknown_platform(self):
        with pytest.raises(ValueError):
            get_limits("MYSPACE", "POST")


@pytest.mark.social
class TestSocialMediaCalendar:
    """Test suite for /api/admin/social-media."""

    def create(self, client, headers, **payload):
        payload.setdefault("platform", "instagram")
        payload.setdefault("content_type", "post")
        payload.setdefault("scheduled_date", "2026-11-10T09:30:00Z")
        return client.post(
            '/api/admin/social-media',
            data=json.dumps(payload),
            content_type='application/json',
            headers=headers
        )

    def test_requires_admin(self, client, auth_headers):
        response = client.get('/api/admin/social-media', headers=auth_headers)

        assert response.status_code == 403

    def test_draft_may_be_incomplete(self, client, admin_headers):
        response = self.create(client, admin_headers, caption="Idea")

        assert response.status_code == 201
        post = json.loads(response.data)['post']
        assert post['status'] == 'DRAFT'
        assert post['platform'] == 'INSTAGRAM'
        assert post['created_by']['name'] == 'Test Admin'

    def test_non_draft_must_be_valid(self, client, admin_headers):
        response = self.create(client, admin_headers, caption="Idea", status="APPROVED")

        assert response.status_code == 400
        assert json.loads(response.data)['errors']

    def test_scheduled_date_required(self, client, admin_headers):
        response = self.create(client, admin_headers, scheduled_date=None)

        assert response.status_code == 400

    def test_reviewer_must_be_admin(self, client, admin_headers, sample_user):
        response = self.create(
            client, admin_headers,
            caption="Ready", images=["a.jpg"], status="PENDING_REVIEW",
            assigned_reviewer_id=sample_user.id,
        )

        assert response.status_code == 400

    def test_pending_review_queue(self, client, admin_headers, sample_admin):
        self.create(
            client, admin_headers,
            caption="Ready", images=["a.jpg"], status="PENDING_REVIEW",
            assigned_reviewer_id=sample_admin.id,
        )

        response = client.get('/api/admin/social-media/pending-reviews?mine=true', headers=admin_headers)

        data = json.loads(response.data)
        assert data['total'] == 1
        assert data['posts'][0]['assigned_reviewer']['id'] == sample_admin.id

    def test_month_filter(self, client, admin_headers, draft_post):
        november = client.get('/api/admin/social-media?month=2026-11', headers=admin_headers)
        december = client.get('/api/admin/social-media?month=2026-12', headers=admin_headers)
        invalid = client.get('/api/admin/social-media?month=november', headers=admin_headers)

        assert len(json.loads(november.data)['posts']) == 1
        assert json.loads(december.data)['posts'] == []
        assert invalid.status_code == 400

    def test_approve_records_reviewer(self, client, admin_headers, sample_admin, draft_post):
        response = client.put(
            f'/api/admin/social-media/{draft_post.id}',
            data=json.dumps({"status": "APPROVED", "review_comments": "Looks great"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        post = json.loads(response.data)['post']
        assert post['status'] == 'APPROVED'
        assert post['reviewed_by']['id'] == sample_admin.id
        assert post['review_comments'] == 'Looks great'

    def test_validate_endpoint(self, client, admin_headers):
        response = client.post(
            '/api/admin/social-media/validate',
            data=json.dumps({"platform": "twitter", "content_type": "post", "caption": "Hi", "images": ["a.jpg"]}),
            content_type='application/json',
            headers=admin_headers
        )

        data = json.loads(response.data)
        assert data['is_valid'] is True
        assert data['limits']['caption_max_length'] == 280

    def test_delete(self, client, db_session, admin_headers, draft_post):
        response = client.delete(f'/api/admin/social-media/{draft_post.id}', headers=admin_headers)

        assert response.status_code == 200
        assert db_session.query(SocialMediaPost).count() == 0
