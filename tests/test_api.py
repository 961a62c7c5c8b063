"""Tests for API endpoints."""

import pytest

from signin.errors import UpstreamError
from signin.models import Checkin, GroupMember
from signin.services.directory_sync import DirectorySyncWorker
from signin.services.graph_client import DirectoryGroup, DirectoryUser

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 64 + b"\xff\xd9"


@pytest.fixture
def kiosk(make_user, make_group, make_location, make_key):
    student = make_user(display_name="Sam Student", upn="sam@school.example")
    group = make_group(members=[student])
    location = make_location(name="Library", identifier="library", groups=[group], notes_enabled=True)
    key = make_key(locations=[location], key_value="library-kiosk")
    return {"student": student, "group": group, "location": location, "key": key}


class TestHealthEndpoint:
    """Test health and status endpoints."""

    def test_health_check(self, client):
        """Test health check returns healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert "environment" in data

    def test_status(self, client):
        response = client.get("/api/v1/status")
        assert response.status_code == 200
        assert response.json()["syncEnabled"] is False

    def test_request_id_header(self, client):
        response = client.get("/health", headers={"X-Request-Id": "abc123"})
        assert response.headers["X-Request-Id"] == "abc123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestAuthEndpoints:
    """Test authentication endpoints."""

    def test_providers(self, client):
        response = client.get("/api/auth/providers")
        assert response.status_code == 200
        assert response.json() == {"oidc": False, "local": True}

    def test_login_missing_credentials(self, client):
        """Malformed bodies are 400s with per-field messages."""
        response = client.post("/api/auth/login", json={})
        assert response.status_code == 400
        data = response.json()
        assert "username" in data["fieldErrors"]
        assert "password" in data["fieldErrors"]

    def test_local_admin_login(self, client, admin_password):
        response = client.post("/api/auth/login", json={"username": "admin", "password": admin_password})
        assert response.status_code == 200
        assert response.json()["provider"] == "local"
        assert response.json()["isAdmin"] is True

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["displayName"] == "Local Admin"

    def test_local_admin_wrong_password(self, client):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "wrong"})
        assert response.status_code == 401
        assert response.json()["code"] == "unauthorized"

    def test_local_login_disabled(self, client, local_admin, admin_password):
        local_admin._password_hash = None
        response = client.post("/api/auth/login", json={"username": "admin", "password": admin_password})
        assert response.status_code == 403

    def test_me_requires_session(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_me_for_directory_user(self, client, auth_headers, make_user, make_location, grant):
        user = make_user(display_name="Terry Teacher")
        location = make_location()
        grant(user, location)

        response = client.get("/api/auth/me", headers=auth_headers(user))

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == user.id
        assert data["isAdmin"] is False
        assert data["locationIds"] == [location.id]

    def test_unknown_principal_rejected(self, client, sessions):
        token, _ = sessions.issue("stranger@elsewhere.example", "Stranger", "entra")
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_tampered_token_rejected(self, client, admin_headers):
        headers = {"Authorization": admin_headers["Authorization"] + "x"}
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_logout(self, client):
        """Test logout endpoint."""
        response = client.post("/api/auth/logout")
        assert response.status_code == 204

    def test_oidc_login_not_configured(self, client):
        assert client.get("/api/auth/login", follow_redirects=False).status_code == 400


class TestPortalEndpoints:
    """Test the kiosk portal endpoints."""

    def test_config(self, client, kiosk):
        response = client.get("/api/portal/config", params={"key": "library-kiosk", "location": "LIBRARY"})
        assert response.status_code == 200
        data = response.json()
        assert data["location"]["identifier"] == "library"
        assert data["location"]["notesEnabled"] is True
        assert [user["displayName"] for user in data["users"]] == ["Sam Student"]
        assert data["backgroundImageUrl"] is None

    def test_config_missing_params(self, client):
        response = client.get("/api/portal/config", params={"key": "library-kiosk"})
        assert response.status_code == 400

    def test_config_wrong_key_and_wrong_location_look_the_same(self, client, kiosk, make_location, make_key):
        gym = make_location(identifier="gym")
        make_key(locations=[gym], key_value="gym-kiosk")

        wrong_location = client.get("/api/portal/config", params={"key": "gym-kiosk", "location": "library"})
        unknown_key = client.get("/api/portal/config", params={"key": "nope", "location": "library"})

        assert wrong_location.status_code == unknown_key.status_code == 403
        assert wrong_location.json() == unknown_key.json()

    def test_config_key_is_trimmed(self, client, kiosk):
        response = client.get("/api/portal/config", params={"key": " library-kiosk ", "location": " library "})
        assert response.status_code == 200
        assert response.json()["location"]["identifier"] == "library"

    def test_config_served_when_background_store_fails(self, client, kiosk, monkeypatch):
        class BrokenStore:
            def get_updated_at(self, key):
                raise UpstreamError("failed to read asset")

        monkeypatch.setattr("signin.routers.portal.get_asset_store", lambda db, config: BrokenStore())

        response = client.get("/api/portal/config", params={"key": "library-kiosk", "location": "library"})

        assert response.status_code == 200
        assert response.json()["backgroundImageUrl"] is None
        assert [user["displayName"] for user in response.json()["users"]] == ["Sam Student"]

    def test_checkin(self, client, db, kiosk):
        response = client.post("/api/portal/checkin", json={
            "key": "library-kiosk",
            "location": "library",
            "userId": kiosk["student"].id,
            "direction": "out",
            "notes": " dentist ",
        })

        assert response.status_code == 201
        checkin = db.query(Checkin).one()
        assert checkin.direction == "out"
        assert checkin.notes == "dentist"

    def test_checkin_missing_fields(self, client, kiosk):
        response = client.post("/api/portal/checkin", json={"key": "library-kiosk", "location": "library"})
        assert response.status_code == 400
        assert set(response.json()["fieldErrors"]) == {"userId", "direction"}

    def test_checkin_invalid_json(self, client):
        response = client.post(
            "/api/portal/checkin",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_checkin_bad_direction(self, client, kiosk):
        response = client.post("/api/portal/checkin", json={
            "key": "library-kiosk",
            "location": "library",
            "userId": kiosk["student"].id,
            "direction": "sideways",
        })
        assert response.status_code == 400

    def test_checkin_non_member(self, client, kiosk, make_user):
        outsider = make_user()
        response = client.post("/api/portal/checkin", json={
            "key": "library-kiosk",
            "location": "library",
            "userId": outsider.id,
            "direction": "in",
        })
        assert response.status_code == 403
        assert response.json()["error"] == "user not permitted for this location"

    def test_checkin_malformed_user_id(self, client, db, kiosk):
        response = client.post("/api/portal/checkin", json={
            "key": "library-kiosk",
            "location": "library",
            "userId": "not-a-uuid",
            "direction": "in",
        })
        assert response.status_code == 400
        assert response.json()["fieldErrors"] == {"userId": "must be a UUID"}
        assert db.query(Checkin).count() == 0

    def test_checkin_key_for_other_location_looks_like_unknown_key(self, client, db, kiosk, make_location, make_key):
        gym = make_location(identifier="gym")
        make_key(locations=[gym], key_value="gym-kiosk")

        def attempt(key):
            return client.post("/api/portal/checkin", json={
                "key": key,
                "location": "library",
                "userId": kiosk["student"].id,
                "direction": "in",
            })

        wrong_location = attempt("gym-kiosk")
        unknown_key = attempt("nope")

        assert wrong_location.status_code == unknown_key.status_code == 403
        assert wrong_location.json() == unknown_key.json()
        assert db.query(Checkin).count() == 0

    def test_checkin_after_removal_from_group(self, client, db, kiosk):
        """A user listed by an earlier config load is refused once removed from the group."""
        params = {"key": "library-kiosk", "location": "library"}
        roster = client.get("/api/portal/config", params=params).json()["users"]
        assert kiosk["student"].id in [user["id"] for user in roster]

        db.query(GroupMember).filter(
            GroupMember.group_id == kiosk["group"].id,
            GroupMember.user_id == kiosk["student"].id,
        ).delete(synchronize_session=False)
        db.commit()

        response = client.post("/api/portal/checkin", json={
            **params,
            "userId": kiosk["student"].id,
            "direction": "in",
        })

        assert response.status_code == 403
        assert response.json()["error"] == "user not permitted for this location"
        assert db.query(Checkin).count() == 0

    def test_checkin_appears_in_admin_listing(self, client, admin_headers, kiosk):
        response = client.post("/api/portal/checkin", json={
            "key": "library-kiosk",
            "location": "library",
            "userId": kiosk["student"].id,
            "direction": "in",
            "notes": "late",
        })
        assert response.status_code == 201

        listing = client.get(
            "/api/admin/checkins",
            headers=admin_headers,
            params={"locationId": kiosk["location"].id},
        )

        assert listing.status_code == 200
        records = listing.json()
        assert len(records) == 1
        assert records[0]["userId"] == kiosk["student"].id
        assert records[0]["direction"] == "in"
        assert records[0]["notes"] == "late"

    def test_background_not_set(self, client):
        assert client.get("/api/portal/background").status_code == 404


class TestLocationEndpoints:
    """Test location management endpoints."""

    def test_requires_session(self, client):
        assert client.get("/api/admin/locations").status_code == 401

    def test_create_and_get(self, client, admin_headers, make_group):
        group = make_group()
        response = client.post("/api/admin/locations", headers=admin_headers, json={
            "name": "Main Office",
            "identifier": "Office",
            "groupIds": [group.id],
            "notesEnabled": True,
        })

        assert response.status_code == 201
        created = response.json()
        assert created["identifier"] == "office"
        assert created["groupIds"] == [group.id]

        fetched = client.get(f"/api/admin/locations/{created['id']}", headers=admin_headers)
        assert fetched.status_code == 200
        assert fetched.json()["name"] == "Main Office"

    def test_create_validation(self, client, admin_headers):
        response = client.post("/api/admin/locations", headers=admin_headers, json={"name": "", "identifier": ""})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_input"

    def test_create_conflict(self, client, admin_headers, make_location):
        make_location(identifier="office")
        response = client.post("/api/admin/locations", headers=admin_headers, json={
            "name": "Office 2",
            "identifier": "OFFICE",
        })
        assert response.status_code == 409

    def test_non_admin_cannot_create(self, client, auth_headers, make_user):
        response = client.post("/api/admin/locations", headers=auth_headers(make_user()), json={
            "name": "Office",
            "identifier": "office",
        })
        assert response.status_code == 403

    def test_non_admin_sees_granted_only(self, client, auth_headers, make_user, make_location, grant):
        user = make_user()
        granted = make_location(name="Library")
        hidden = make_location(name="Gym")
        grant(user, granted)
        headers = auth_headers(user)

        listing = client.get("/api/admin/locations", headers=headers)
        assert [location["id"] for location in listing.json()] == [granted.id]

        assert client.get(f"/api/admin/locations/{granted.id}", headers=headers).status_code == 200
        assert client.get(f"/api/admin/locations/{hidden.id}", headers=headers).status_code == 403

    def test_patch_and_delete(self, client, admin_headers, make_location):
        location = make_location(identifier="gym")

        patched = client.patch(f"/api/admin/locations/{location.id}", headers=admin_headers, json={"name": "Gymnasium"})
        assert patched.status_code == 200
        assert patched.json()["name"] == "Gymnasium"
        assert patched.json()["identifier"] == "gym"

        deleted = client.delete(f"/api/admin/locations/{location.id}", headers=admin_headers)
        assert deleted.status_code == 204
        assert client.get(f"/api/admin/locations/{location.id}", headers=admin_headers).status_code == 404

    def test_admin_responses_not_cached(self, client, admin_headers):
        response = client.get("/api/admin/locations", headers=admin_headers)
        assert response.headers["Cache-Control"] == "no-store"


class TestKeyEndpoints:
    """Test key management endpoints."""

    def test_create_generates_value(self, client, admin_headers, make_location):
        location = make_location(name="Library")
        response = client.post("/api/admin/keys", headers=admin_headers, json={
            "description": "Front desk",
            "locationIds": [location.id],
        })

        assert response.status_code == 201
        data = response.json()
        assert len(data["keyValue"]) >= 32
        assert data["locationIds"] == [location.id]
        assert data["locations"][0]["name"] == "Library"

    def test_duplicate_value(self, client, admin_headers, make_key):
        make_key(key_value="shared")
        response = client.post("/api/admin/keys", headers=admin_headers, json={"keyValue": "shared"})
        assert response.status_code == 409

    def test_non_admin_forbidden(self, client, auth_headers, make_user):
        assert client.get("/api/admin/keys", headers=auth_headers(make_user())).status_code == 403

    def test_update_and_delete(self, client, admin_headers, make_key):
        key = make_key()
        patched = client.patch(f"/api/admin/keys/{key.id}", headers=admin_headers, json={"description": "Gym door"})
        assert patched.json()["description"] == "Gym door"

        assert client.delete(f"/api/admin/keys/{key.id}", headers=admin_headers).status_code == 204
        assert client.get(f"/api/admin/keys/{key.id}", headers=admin_headers).status_code == 404


class TestUserAndGroupEndpoints:
    """Test directory user and group endpoints."""

    def test_user_detail(self, client, admin_headers, kiosk):
        student = kiosk["student"]
        response = client.get(f"/api/admin/users/{student.id}", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["upn"] == "sam@school.example"
        assert data["portalLocationIds"] == [kiosk["location"].id]
        assert [group["id"] for group in data["groups"]] == [kiosk["group"].id]
        assert data["locationIds"] == []

    def test_patch_access(self, client, admin_headers, kiosk):
        student = kiosk["student"]
        response = client.patch(f"/api/admin/users/{student.id}", headers=admin_headers, json={
            "isAdmin": True,
            "locationIds": [kiosk["location"].id],
        })

        assert response.status_code == 200
        assert response.json()["user"]["isAdmin"] is True
        assert response.json()["locationIds"] == [kiosk["location"].id]

    def test_patch_without_fields(self, client, admin_headers, kiosk):
        response = client.patch(f"/api/admin/users/{kiosk['student'].id}", headers=admin_headers, json={})
        assert response.status_code == 400

    def test_search_users(self, client, admin_headers, kiosk):
        response = client.get("/api/admin/users", headers=admin_headers, params={"search": "sam"})
        assert [user["upn"] for user in response.json()] == ["sam@school.example"]

    def test_group_members(self, client, admin_headers, kiosk):
        response = client.get(f"/api/admin/groups/{kiosk['group'].id}/members", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["memberIds"] == [kiosk["student"].id]

    def test_unknown_group(self, client, admin_headers):
        assert client.get("/api/admin/groups/missing", headers=admin_headers).status_code == 404


class TestCheckinEndpoints:
    """Test the check-in audit endpoint."""

    def test_admin_listing(self, client, admin_headers, kiosk, make_checkin):
        make_checkin(kiosk["student"], kiosk["location"], direction="in")

        response = client.get("/api/admin/checkins", headers=admin_headers)

        assert response.status_code == 200
        records = response.json()
        assert len(records) == 1
        assert records[0]["userDisplayName"] == "Sam Student"
        assert records[0]["locationIdentifier"] == "library"

    def test_non_admin_limited_to_grants(self, client, auth_headers, make_user, kiosk, make_location, make_checkin, grant):
        viewer = make_user()
        other = make_location()
        make_checkin(kiosk["student"], kiosk["location"])
        make_checkin(kiosk["student"], other)
        grant(viewer, other)

        response = client.get("/api/admin/checkins", headers=auth_headers(viewer))

        assert [record["locationId"] for record in response.json()] == [other.id]

    def test_invalid_filter(self, client, admin_headers):
        response = client.get("/api/admin/checkins", headers=admin_headers, params={"locationId": "not-a-uuid"})
        assert response.status_code == 400
        assert "locationId" in response.json()["fieldErrors"]

    def test_limit_capped(self, client, admin_headers):
        response = client.get("/api/admin/checkins", headers=admin_headers, params={"limit": 501})
        assert response.status_code == 400


class TestSettingsEndpoints:
    """Test the portal background settings."""

    def test_upload_and_serve(self, client, admin_headers, kiosk):
        upload = client.post(
            "/api/admin/settings/portal-background",
            headers=admin_headers,
            files={"file": ("bg.jpg", JPEG_BYTES, "image/jpeg")},
        )
        assert upload.status_code == 200
        assert upload.json()["hasImage"] is True

        served = client.get("/api/portal/background")
        assert served.status_code == 200
        assert served.content == JPEG_BYTES
        assert served.headers["content-type"] == "image/jpeg"
        assert "max-age=300" in served.headers["Cache-Control"]
        assert "Last-Modified" in served.headers

        config = client.get("/api/portal/config", params={"key": "library-kiosk", "location": "library"})
        assert config.json()["backgroundImageUrl"].startswith("/api/portal/background?ts=")

    def test_rejects_non_jpeg(self, client, admin_headers):
        response = client.post(
            "/api/admin/settings/portal-background",
            headers=admin_headers,
            files={"file": ("bg.png", b"\x89PNG\r\n", "image/png")},
        )
        assert response.status_code == 400

    def test_rejects_empty(self, client, admin_headers):
        response = client.post(
            "/api/admin/settings/portal-background",
            headers=admin_headers,
            files={"file": ("bg.jpg", b"", "image/jpeg")},
        )
        assert response.status_code == 400

    def test_delete(self, client, admin_headers):
        client.post(
            "/api/admin/settings/portal-background",
            headers=admin_headers,
            files={"file": ("bg.jpg", JPEG_BYTES, "image/jpeg")},
        )
        assert client.delete("/api/admin/settings/portal-background", headers=admin_headers).status_code == 204
        assert client.get("/api/admin/settings/portal-background", headers=admin_headers).json()["hasImage"] is False


class TestSyncEndpoints:
    """Test directory sync control."""

    class FakeDirectory:
        def list_users(self):
            return [DirectoryUser(object_id="11111111-1111-1111-1111-111111111111", upn="new@school.example")]

        def list_groups(self):
            return [DirectoryGroup(object_id="33333333-3333-3333-3333-333333333333", display_name="Staff")]

        def close(self):
            pass

    def test_not_configured(self, client, admin_headers):
        status = client.get("/api/admin/sync", headers=admin_headers)
        assert status.json() == {"enabled": False, "running": False, "jobs": []}
        assert client.post("/api/admin/sync", headers=admin_headers).status_code == 400

    def test_trigger(self, client, admin_headers, test_settings, session_factory):
        client.app.state.sync_worker = DirectorySyncWorker(test_settings, self.FakeDirectory(), session_factory)

        response = client.post("/api/admin/sync", headers=admin_headers)
        assert response.status_code == 202

        status = client.get("/api/admin/sync", headers=admin_headers).json()
        assert status["enabled"] is True
        assert {job["job"] for job in status["jobs"]} == {"users", "groups"}
        assert all(job["ok"] for job in status["jobs"])
