import pytest
import io
import json
import os
from app.models import AdminLog, GalleryItem, Page


@pytest.fixture
def about_page(db_session):
    page = Page(name="About Us", slug="about-us", status="PUBLISHED", sections=[{"type": "hero"}])
    db_session.add(page)
    db_session.commit()
    return page


@pytest.mark.content
class TestPages:
    """Test suite for CMS pages."""

    def test_create_page(self, client, db_session, admin_headers):
        response = client.post(
            '/api/pages',
            data=json.dumps({"name": "Find a Salon", "seo_title": "Salons"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 201
        page = json.loads(response.data)['page']
        assert page['slug'] == 'find-a-salon'
        assert page['template'] == 'Default'
        assert page['status'] == 'DRAFT'
        assert db_session.query(AdminLog).filter_by(resource_type='Page', action_type='CREATE').count() == 1

    def test_create_requires_admin(self, client, auth_headers):
        response = client.post(
            '/api/pages',
            data=json.dumps({"name": "Sneaky"}),
            content_type='application/json',
            headers=auth_headers
        )

        assert response.status_code == 403

    def test_duplicate_slug(self, client, admin_headers, about_page):
        response = client.post(
            '/api/pages',
            data=json.dumps({"name": "About us"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 409

    def test_public_slug_lookup_only_published(self, client, db_session, about_page):
        assert client.get('/api/pages/slug/about-us').status_code == 200

        about_page.status = 'DRAFT'
        db_session.commit()
        assert client.get('/api/pages/slug/about-us').status_code == 404

    def test_update_logs_changes(self, client, db_session, admin_headers, about_page):
        response = client.put(
            f'/api/pages/{about_page.id}',
            data=json.dumps({"name": "Our Story", "slug": "our-story"}),
            content_type='application/json',
            headers=admin_headers
        )

        assert response.status_code == 200
        assert json.loads(response.data)['page']['slug'] == 'our-story'
        log = db_session.query(AdminLog).filter_by(resource_type='Page', action_type='UPDATE').one()
        assert log.details['changes']['name'] == {'from': 'About Us', 'to': 'Our Story'}

    def test_search(self, client, about_page):
        response = client.get('/api/pages?search=about')

        data = json.loads(response.data)
        assert data['pagination']['total'] == 1

    def test_delete(self, client, db_session, admin_headers, about_page):
        response = client.delete(f'/api/pages/{about_page.id}', headers=admin_headers)

        assert response.status_code == 200
        assert db_session.query(Page).count() == 0


@pytest.mark.content
class TestGallery:
    """Test suite for the media gallery (local storage in tests)."""

    def upload(self, client, headers, filename="nail art.png", **form):
        form.setdefault("action", "upload")
        form["file"] = (io.BytesIO(b"\x89PNG fake image bytes"), filename)
        return client.post('/api/gallery', data=form, content_type='multipart/form-data', headers=headers)

    def test_create_folder(self, client, admin_headers):
        response = client.post(
            '/api/gallery',
            data={"action": "create_folder", "name": "Campaigns"},
            content_type='multipart/form-data',
            headers=admin_headers
        )

        assert response.status_code == 201
        assert json.loads(response.data)['item']['type'] == 'FOLDER'

    def test_duplicate_folder_name(self, client, db_session, admin_headers):
        db_session.add(GalleryItem(name="Campaigns", type="FOLDER"))
        db_session.commit()

        response = client.post(
            '/api/gallery',
            data={"action": "create_folder", "name": "Campaigns"},
            content_type='multipart/form-data',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_invalid_action(self, client, admin_headers):
        response = client.post(
            '/api/gallery',
            data={"action": "rename"},
            content_type='multipart/form-data',
            headers=admin_headers
        )

        assert response.status_code == 400

    def test_upload_and_serve(self, app, client, admin_headers):
        response = self.upload(client, admin_headers)

        assert response.status_code == 201
        item = json.loads(response.data)['item']
        assert item['name'] == 'nail art.png'
        assert item['size'] == len(b"\x89PNG fake image bytes")
        assert item['url'].startswith('/api/gallery/files/')
        assert item['url'].endswith('-nail_art.png')

        served = client.get(item['url'])
        assert served.status_code == 200
        assert served.data == b"\x89PNG fake image bytes"

    def test_upload_into_missing_folder(self, client, admin_headers):
        response = self.upload(client, admin_headers, folder_id="999")

        assert response.status_code == 404

    def test_customers_only_see_files(self, client, db_session, auth_headers):
        db_session.add_all([
            GalleryItem(name="Campaigns", type="FOLDER"),
            GalleryItem(name="hero.jpg", type="FILE", url="/api/gallery/files/hero.jpg"),
        ])
        db_session.commit()

        response = client.get('/api/gallery', headers=auth_headers)

        assert [i['name'] for i in json.loads(response.data)['items']] == ['hero.jpg']

    def test_non_empty_folder_not_deleted(self, client, db_session, admin_headers):
        folder = GalleryItem(name="Campaigns", type="FOLDER")
        db_session.add(folder)
        db_session.flush()
        db_session.add(GalleryItem(name="hero.jpg", type="FILE", folder_id=folder.id))
        db_session.commit()

        response = client.delete(f'/api/gallery?id={folder.id}', headers=admin_headers)

        assert response.status_code == 400

    def test_delete_file_removes_it_from_disk(self, app, client, admin_headers):
        item = json.loads(self.upload(client, admin_headers).data)['item']
        path = os.path.join(app.config['UPLOAD_FOLDER'], item['url'].rsplit('/', 1)[1])
        assert os.path.exists(path)

        response = client.delete(f"/api/gallery?id={item['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert not os.path.exists(path)
