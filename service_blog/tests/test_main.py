"""
Tests for the blog HTTP surface.
"""

import pytest
from fastapi.testclient import TestClient

from shared.config import get_config
from shared.errors import InvalidIdentifier, StoreError, UnknownRole, ValidationFailure
from shared.metrics import MetricsCollector
from shared.test_helpers import TestUser, seed_users, seed_posts
from service_blog.app.auth.authenticator import hash_password
from service_blog.app.main import BlogService


@pytest.fixture
def service(tmp_path):
    """Blog service over a seeded sqlite file."""
    config = get_config("blog", 8020, database_url=f"sqlite:///{tmp_path}/blog.db")
    service = BlogService(config, metrics=MetricsCollector("blog"))
    service.init_schema()

    builder = service.open_builder()
    try:
        service.user_ids = seed_users(builder, hash_password(TestUser.password))
        service.post_ids = seed_posts(builder, service.user_ids["user_uma"])
    finally:
        builder.connection.close()
    return service


@pytest.fixture
def client(service):
    """Test client for the blog app."""
    return TestClient(service.app)


@pytest.fixture
def as_actor(service, client):
    """Log a seeded user in; returns their actor and anti-forgery headers."""
    def _headers(username):
        response = client.post("/login", json={"username": username, "password": TestUser.password})
        return {
            "X-Actor-Id": str(service.user_ids[username]),
            "X-CSRF-Token": response.json()["csrf_token"],
        }
    return _headers


class TestServiceEndpoints:
    """Test cases for common endpoints."""

    def test_root(self, client):
        """Test root endpoint."""
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "blog"

    def test_health(self, client):
        """Test health reports the store."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["dependencies"] == {"store": "ok"}

    def test_metrics(self, client):
        """Test metrics are exported after a request."""
        client.get("/")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert b"http_requests_total" in response.content


class TestAntiForgery:
    """Test cases for the anti-forgery token flow."""

    def test_token_requires_actor(self, client):
        """Test anonymous callers get no token."""
        response = client.get("/csrf-token")

        assert response.status_code == 401
        assert response.json()["code"] == "AUTHENTICATION_ERROR"

    def test_claimed_actor_without_login(self, client, service):
        """Test an actor header alone does not yield a token."""
        response = client.get("/csrf-token", headers={"X-Actor-Id": str(service.user_ids["admin_ada"])})

        assert response.status_code == 401
        assert service.token_contexts == {}

    def test_claimed_admin_cannot_write(self, client, service):
        """Test writes from an actor that never logged in are refused."""
        uma = service.user_ids["user_uma"]
        headers = {"X-Actor-Id": str(service.user_ids["admin_ada"]), "X-CSRF-Token": "x" * 64}

        response = client.put(f"/users/{uma}/role", json={"role": "moderator"}, headers=headers)

        assert response.status_code == 401
        login = client.post("/login", json={"username": "user_uma", "password": TestUser.password})
        assert login.json()["user"]["role"] == "user"

    def test_login_issues_token(self, client, service, as_actor):
        """Test the token from login is the one /csrf-token returns."""
        headers = as_actor("user_uma")

        response = client.get("/csrf-token", headers={"X-Actor-Id": headers["X-Actor-Id"]})

        assert response.json()["token"] == headers["X-CSRF-Token"]
        assert len(headers["X-CSRF-Token"]) == 64

    def test_relogin_keeps_token(self, as_actor):
        """Test logging in again reuses the actor's token."""
        assert as_actor("user_uma")["X-CSRF-Token"] == as_actor("user_uma")["X-CSRF-Token"]

    def test_failed_login_issues_no_token(self, client, service):
        """Test bad credentials open no token context."""
        response = client.post("/login", json={"username": "admin_ada", "password": "nope"})

        assert response.status_code == 401
        assert service.token_contexts == {}

    def test_write_without_token(self, client, as_actor):
        """Test writes need the token."""
        headers = as_actor("user_uma")
        del headers["X-CSRF-Token"]

        response = client.post("/posts", json={"title": "t", "content": "c"}, headers=headers)

        assert response.status_code == 403
        assert response.json()["code"] == "ACCESS_DENIED"

    def test_token_of_other_actor(self, client, as_actor):
        """Test a token is bound to the actor it was issued to."""
        uma = as_actor("user_uma")
        headers = as_actor("admin_ada")
        headers["X-Actor-Id"] = uma["X-Actor-Id"]

        response = client.post("/posts", json={"title": "t", "content": "c"}, headers=headers)

        assert response.status_code == 403

    def test_write_without_actor(self, client):
        """Test anonymous writes."""
        response = client.post("/posts", json={"title": "t", "content": "c"})

        assert response.status_code == 401


class TestPostEndpoints:
    """Test cases for post routes."""

    def test_list(self, client):
        """Test the paginated listing."""
        response = client.get("/posts", params={"per_page": 2})

        body = response.json()
        assert response.status_code == 200
        assert body["total"] == 3
        assert [p["title"] for p in body["results"]] == ["Sourdough at home", "Role hierarchies"]
        assert body["pagination"]["has_next"] is True

    def test_search_logs_term(self, client):
        """Test searching through the listing logs the term."""
        response = client.get("/posts", params={"q": "role"})

        assert response.json()["total"] == 1
        assert client.get("/search/popular").json() == [{"search_term": "role", "count": 1}]

    def test_search_invalid_filter(self, client):
        """Test malformed filters are a 422."""
        response = client.get("/posts", params={"q": "uma", "status": "deleted"})

        assert response.status_code == 422
        assert "status" in response.json()["details"]["errors"]

    def test_get_missing(self, client):
        """Test unknown post ids."""
        assert client.get("/posts/9999").status_code == 404

    def test_create(self, client, service, as_actor):
        """Test a user creates a post they own."""
        response = client.post(
            "/posts",
            json={"title": "Fresh", "content": "Body", "category": "news"},
            headers=as_actor("user_uma"),
        )

        assert response.status_code == 201
        post = client.get(f"/posts/{response.json()['id']}").json()
        assert post["user_id"] == service.user_ids["user_uma"]
        assert post["status"] == "published"

    def test_create_as_guest(self, client, as_actor):
        """Test guests cannot create posts."""
        response = client.post("/posts", json={"title": "t", "content": "c"}, headers=as_actor("guest_gail"))

        assert response.status_code == 403

    def test_create_invalid(self, client, as_actor):
        """Test validation errors are reported per field."""
        response = client.post(
            "/posts",
            json={"title": "", "content": "c", "status": "pinned"},
            headers=as_actor("user_uma"),
        )

        assert response.status_code == 422
        assert response.json()["details"]["errors"] == {
            "title": ["The title field is required."],
            "status": ["The selected status is invalid."],
        }

    def test_update_own(self, client, service, as_actor):
        """Test authors edit their own posts."""
        post_id = service.post_ids[0]

        response = client.put(f"/posts/{post_id}", json={"title": "Edited"}, headers=as_actor("user_uma"))

        assert response.status_code == 200
        assert response.json()["title"] == "Edited"

    def test_update_any_as_moderator(self, client, service, as_actor):
        """Test moderators edit anybody's posts."""
        post_id = service.post_ids[0]

        response = client.put(f"/posts/{post_id}", json={"status": "archived"}, headers=as_actor("mod_moe"))

        assert response.status_code == 200
        assert response.json()["status"] == "archived"

    def test_update_without_fields(self, client, service, as_actor):
        """Test an update with nothing updatable."""
        post_id = service.post_ids[0]

        response = client.put(f"/posts/{post_id}", json={"user_id": 1}, headers=as_actor("user_uma"))

        assert response.status_code == 422

    def test_delete_forbidden(self, client, service, as_actor):
        """Test guests cannot delete other people's posts."""
        post_id = service.post_ids[0]

        response = client.delete(f"/posts/{post_id}", headers=as_actor("guest_gail"))

        assert response.status_code == 403
        assert client.get(f"/posts/{post_id}").status_code == 200

    def test_delete_as_moderator(self, client, service, as_actor):
        """Test moderators delete anybody's posts."""
        post_id = service.post_ids[0]

        response = client.delete(f"/posts/{post_id}", headers=as_actor("mod_moe"))

        assert response.json() == {"deleted": True}
        assert client.get(f"/posts/{post_id}").status_code == 404


class TestUserEndpoints:
    """Test cases for registration, login and role changes."""

    def test_register_and_login(self, client):
        """Test a new account can log in."""
        response = client.post("/users", json={
            "username": "new_writer",
            "email": "writer@blog.org",
            "password": "Sup3r$ecret",
            "password_confirmation": "Sup3r$ecret",
        })
        assert response.status_code == 201

        login = client.post("/login", json={"username": "new_writer", "password": "Sup3r$ecret"})

        assert login.status_code == 200
        assert login.json()["user"]["id"] == response.json()["id"]
        assert "password" not in login.json()["user"]
        assert len(login.json()["csrf_token"]) == 64

    def test_bad_login(self, client):
        """Test wrong credentials are a 401."""
        response = client.post("/login", json={"username": "admin_ada", "password": "nope"})

        assert response.status_code == 401

    def test_admin_promotes_user(self, client, service, as_actor):
        """Test an admin changes a lower user's role."""
        user_id = service.user_ids["user_uma"]

        response = client.put(f"/users/{user_id}/role", json={"role": "moderator"}, headers=as_actor("admin_ada"))

        assert response.json() == {"updated": True}

    def test_moderator_cannot_promote_to_admin(self, client, service, as_actor):
        """Test a manager cannot hand out a role above their own."""
        user_id = service.user_ids["user_uma"]

        response = client.put(f"/users/{user_id}/role", json={"role": "admin"}, headers=as_actor("mod_mia"))

        assert response.status_code == 403
        login = client.post("/login", json={"username": "user_uma", "password": TestUser.password})
        assert login.json()["user"]["role"] == "user"

    def test_moderator_cannot_grant_own_level(self, client, service, as_actor):
        """Test a manager cannot create peers."""
        user_id = service.user_ids["user_uma"]

        response = client.put(f"/users/{user_id}/role", json={"role": "moderator"}, headers=as_actor("mod_moe"))

        assert response.status_code == 403

    def test_moderator_demotes_user(self, client, service, as_actor):
        """Test a manager assigns roles below their own."""
        user_id = service.user_ids["user_uma"]

        response = client.put(f"/users/{user_id}/role", json={"role": "guest"}, headers=as_actor("mod_moe"))

        assert response.json() == {"updated": True}

    def test_moderator_cannot_manage_peer(self, client, service, as_actor):
        """Test equal-level actors cannot manage each other."""
        peer = service.user_ids["mod_mia"]

        response = client.put(f"/users/{peer}/role", json={"role": "user"}, headers=as_actor("mod_moe"))

        assert response.status_code == 403

    def test_user_cannot_manage(self, client, service, as_actor):
        """Test manage_users is required."""
        guest = service.user_ids["guest_gail"]

        response = client.put(f"/users/{guest}/role", json={"role": "user"}, headers=as_actor("user_uma"))

        assert response.status_code == 403

    def test_unknown_role_rejected(self, client, service, as_actor):
        """Test roles outside the hierarchy."""
        user_id = service.user_ids["user_uma"]

        response = client.put(f"/users/{user_id}/role", json={"role": "superuser"}, headers=as_actor("admin_ada"))

        assert response.status_code == 422

    def test_stats(self, client, service, as_actor):
        """Test stats need a logged-in actor with view_reports."""
        claimed = client.get("/stats", headers={"X-Actor-Id": str(service.user_ids["admin_ada"])})
        admin = client.get("/stats", headers=as_actor("admin_ada"))
        user = client.get("/stats", headers=as_actor("user_uma"))

        assert claimed.status_code == 401

        assert admin.status_code == 200
        assert {"table_name": "posts", "table_rows": 3} in admin.json()["tables"]
        assert user.status_code == 403


class TestErrorResponses:
    """Test cases for error serialization."""

    def test_validation_details_exposed(self):
        """Test client errors carry their details."""
        body = ValidationFailure({"x": ["bad"]}).to_response().model_dump()

        assert body["code"] == "VALIDATION_FAILED"
        assert body["details"] == {"errors": {"x": ["bad"]}}

    @pytest.mark.parametrize("exc", [
        UnknownRole("root"),
        InvalidIdentifier(";--", "table"),
        StoreError("execute", "no such table: secrets"),
    ])
    def test_internal_details_hidden(self, exc):
        """Test server-side errors answer generically."""
        body = exc.to_response().model_dump()

        assert body["details"] == {}
        assert "secrets" not in body["message"]
        assert ";--" not in body["message"]
