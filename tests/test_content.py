import pytest
import json
from decimal import Decimal
from app.models import Blog, Comment, Order, OrderItem, ProductReview
from app.utils.helpers import utcnow


@pytest.fixture
def published_blog(db_session):
    blog = Blog(
        title="Winter Nail Care",
        slug="winter-nail-care",
        excerpt="Keep cuticles healthy",
        content="<p>Oil daily.</p>",
        status="PUBLISHED",
        published_at=utcnow(),
    )
    db_session.add(blog)
    db_session.commit()
    return blog


@pytest.fixture
def draft_blog(db_session):
    blog = Blog(title="Spring Colours", slug="spring-colours", status="DRAFT")
    db_session.add(blog)
    db_session.commit()
    return blog


@pytest.mark.blogs
class TestBlogs:
    """Test suite for blog posts."""

    def test_public_list_hides_drafts(self, client, published_blog, draft_blog):
        response = client.get('/api/blogs')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert [b['slug'] for b in data['blogs']] == ['winter-nail-care']
        assert 'content' not in data['blogs'][0]

    def test_admin_filters_by_status(self, client, admin_headers, published_blog, draft_blog):
        response = client.get('/api/blogs?status=draft', headers=admin_headers)

        assert [b['slug'] for b in json.loads(response.data)['blogs']] == ['spring-colours']

    def test_draft_by_slug_is_hidden(self, client, draft_blog):
        response = client.get('/api/blogs/slug/spring-colours')

        assert response.status_code == 404

    def test_create_blog_defaults(self, client, admin_headers):
        response = client.post(
            '/api/blogs',
            data=json.dumps({"title": "Gel Removal 101", "content": "Soak, wait, push."}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 201
        blog = json.loads(response.data)['blog']
        assert blog['slug'] == 'gel-removal-101'
        assert blog['status'] == 'DRAFT'
        assert blog['author'] == 'Test Admin'

    def test_create_blog_duplicate_slug(self, client, admin_headers, published_blog):
        response = client.post(
            '/api/blogs',
            data=json.dumps({"title": "Winter nail care"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 409

    def test_publish_sets_published_at(self, client, admin_headers, draft_blog):
        response = client.put(
            f'/api/blogs/{draft_blog.id}',
            data=json.dumps({"status": "PUBLISHED"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        assert json.loads(response.data)['blog']['published_at'] is not None

    def test_bulk_status(self, client, admin_headers, published_blog, draft_blog):
        response = client.patch(
            '/api/blogs/bulk',
            data=json.dumps({"blog_ids": [published_blog.id, draft_blog.id], "status": "DRAFT"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        assert json.loads(response.data)['updated'] == 2


@pytest.mark.blogs
class TestComments:
    """Test suite for blog comments and their moderation."""

    def post_comment(self, client, headers, content="Lovely tips!"):
        return client.post(
            '/api/blogs/slug/winter-nail-care/comments',
            data=json.dumps({"content": content}),
            content_type='application/json',
            headers=headers
        )

    def test_comment_requires_login(self, client, published_blog):
        response = self.post_comment(client, {})

        assert response.status_code == 401

    def test_comment_starts_pending(self, client, auth_headers, published_blog):
        response = self.post_comment(client, auth_headers)

        assert response.status_code == 201
        assert json.loads(response.data)['comment']['status'] == 'PENDING'

    def test_empty_comment(self, client, auth_headers, published_blog):
        response = self.post_comment(client, auth_headers, content="   ")

        assert response.status_code == 400

    def test_author_sees_own_pending_comment(self, client, auth_headers, published_blog):
        self.post_comment(client, auth_headers)

        own = client.get('/api/blogs/slug/winter-nail-care/comments', headers=auth_headers)
        anonymous = client.get('/api/blogs/slug/winter-nail-care/comments')

        assert len(json.loads(own.data)['comments']) == 1
        assert json.loads(anonymous.data)['comments'] == []

    def test_admin_approves_comment(self, client, db_session, admin_headers, auth_headers, published_blog, sample_admin):
        comment_id = json.loads(self.post_comment(client, auth_headers).data)['comment']['id']

        response = client.put(
            f'/api/admin/comments/{comment_id}',
            data=json.dumps({"action": "approve"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        comment = db_session.get(Comment, comment_id)
        assert comment.status == 'APPROVED'
        assert comment.reviewed_by == sample_admin.id
        public = client.get('/api/blogs/slug/winter-nail-care/comments')
        assert len(json.loads(public.data)['comments']) == 1

    def test_invalid_moderation_action(self, client, admin_headers, auth_headers, published_blog):
        comment_id = json.loads(self.post_comment(client, auth_headers).data)['comment']['id']

        response = client.put(
            f'/api/admin/comments/{comment_id}',
            data=json.dumps({"action": "hide"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_admin_lists_pending(self, client, admin_headers, auth_headers, published_blog):
        self.post_comment(client, auth_headers)

        response = client.get('/api/admin/comments?status=pending', headers=admin_headers)

        assert response.status_code == 200
        assert len(json.loads(response.data)['comments']) == 1


@pytest.mark.reviews
class TestProductReviews:
    """Test suite for product reviews."""

    def submit(self, client, headers, product_id, **payload):
        payload.setdefault("rating", 5)
        payload.setdefault("content", "Lasts three weeks!")
        return client.post(
            f'/api/products/{product_id}/reviews',
            data=json.dumps(payload),
            content_type='application/json',
            headers=headers
        )

    def test_submit_review_pending(self, client, auth_headers, sample_product):
        response = self.submit(client, auth_headers, sample_product.id)

        assert response.status_code == 201
        review = json.loads(response.data)['review']
        assert review['status'] == 'PENDING'
        assert review['verified_buyer'] is False
        assert review['is_own_review'] is True

    def test_rating_bounds(self, client, auth_headers, sample_product):
        response = self.submit(client, auth_headers, sample_product.id, rating=6)

        assert response.status_code == 400

    def test_one_review_per_product(self, client, auth_headers, sample_product):
        self.submit(client, auth_headers, sample_product.id)
        response = self.submit(client, auth_headers, sample_product.id)

        assert response.status_code == 400

    def test_verified_buyer(self, client, db_session, auth_headers, sample_user, sample_product):
        order = Order(user_id=sample_user.id, status="DELIVERED", subtotal=Decimal("20"), total=Decimal("20"))
        order.items.append(OrderItem(
            product_id=sample_product.id, product_name=sample_product.name, quantity=1, price=Decimal("20"),
        ))
        db_session.add(order)
        db_session.commit()

        response = self.submit(client, auth_headers, sample_product.id)

        assert json.loads(response.data)['review']['verified_buyer'] is True

    def test_only_approved_reviews_listed(self, client, db_session, sample_user, sample_product, user_factory):
        other = user_factory("other@example.com")
        db_session.add_all([
            ProductReview(product_id=sample_product.id, user_id=sample_user.id, rating=4, content="Good", status="APPROVED"),
            ProductReview(product_id=sample_product.id, user_id=other.id, rating=1, content="Bad", status="PENDING"),
        ])
        db_session.commit()

        response = client.get(f'/api/products/{sample_product.id}/reviews')

        data = json.loads(response.data)
        assert len(data['reviews']) == 1
        assert data['stats']['overall_rating'] == 4.0
        assert data['stats']['breakdown']['4'] == 1

    def test_aggregate_includes_own_pending(self, client, auth_headers, sample_product, sample_category):
        self.submit(client, auth_headers, sample_product.id)

        response = client.get(f'/api/reviews?category_id={sample_category.id}', headers=auth_headers)

        reviews = json.loads(response.data)['reviews']
        assert len(reviews) == 1
        assert reviews[0]['is_own_review'] is True

    def test_aggregate_without_scope(self, client):
        response = client.get('/api/reviews')

        data = json.loads(response.data)
        assert data['reviews'] == []
        assert data['stats']['total_reviews'] == 0

    def test_helpful_vote(self, client, auth_headers, sample_product):
        review_id = json.loads(self.submit(client, auth_headers, sample_product.id).data)['review']['id']

        response = client.post(
            f'/api/reviews/{review_id}/helpful',
            data=json.dumps({"helpful": True}),
            content_type='application/json'
        )

        assert response.status_code == 200
        assert json.loads(response.data)['helpful_count'] == 1

    def test_admin_moderates_and_responds(self, client, db_session, admin_headers, auth_headers, sample_product):
        review_id = json.loads(self.submit(client, auth_headers, sample_product.id).data)['review']['id']

        response = client.patch(
            f'/api/admin/reviews/{review_id}',
            data=json.dumps({"status": "approved", "company_response": "Thank you!"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        review = db_session.get(ProductReview, review_id)
        assert review.status == 'APPROVED'
        assert review.company_response == 'Thank you!'

    def test_admin_patch_requires_fields(self, client, admin_headers, auth_headers, sample_product):
        review_id = json.loads(self.submit(client, auth_headers, sample_product.id).data)['review']['id']

        response = client.patch(
            f'/api/admin/reviews/{review_id}',
            data=json.dumps({}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 400
