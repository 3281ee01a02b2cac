"""Profiles, admin user management and profile-picture upload."""
from devsource_platform.context import AppContext
from devsource_platform.errors import UpstreamFailure


def test_get_user_redacts_password(client, alice, bob):
    r = client.get(f"/user/{bob['id']}", headers=alice["headers"])
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Bob"
    assert "password" not in body and "password_hash" not in body


def test_get_missing_user(client, alice):
    r = client.get("/user/999", headers=alice["headers"])
    assert r.status_code == 404
    assert r.json() == {"message": "User not found"}


def test_update_profile_info(client, alice):
    r = client.put(
        "/user/profile-info",
        json={"description": "Backend dev", "address": "Pune"},
        headers=alice["headers"],
    )
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Profile info updated"
    assert body["user"]["description"] == "Backend dev"
    assert body["user"]["address"] == "Pune"
    assert "password_hash" not in body["user"]


def test_update_profile_is_partial(client, alice):
    client.put("/user/profile-info", json={"description": "d1", "address": "a1"}, headers=alice["headers"])
    r = client.put("/user/profile-info", json={"address": "a2"}, headers=alice["headers"])
    assert r.json()["user"]["description"] == "d1"
    assert r.json()["user"]["address"] == "a2"


def test_update_profile_ignores_role_and_password(client, alice):
    r = client.put(
        "/user/profile-info",
        json={"description": "x", "role": "admin", "password": "hijack"},
        headers=alice["headers"],
    )
    assert r.status_code == 200
    assert r.json()["user"]["role"] == "user"
    login = client.post("/login/user", json={"email": "alice@x.com", "password": "alice-pw"})
    assert login.status_code == 200


def test_admin_lists_users_without_passwords(client, admin, alice, bob):
    r = client.get("/getAllUser", headers=admin["headers"])
    assert r.status_code == 200
    users = r.json()
    assert {u["email"] for u in users} == {"root@x.com", "alice@x.com", "bob@x.com"}
    assert all("password_hash" not in u and "password" not in u for u in users)


def test_admin_deletes_user(client, admin, alice, bob):
    r = client.delete(f"/unauthorize/{bob['id']}", headers=admin["headers"])
    assert r.status_code == 200
    assert r.json() == {"message": "User deleted by admin"}

    assert client.get(f"/user/{bob['id']}", headers=alice["headers"]).status_code == 404
    r = client.delete(f"/unauthorize/{bob['id']}", headers=admin["headers"])
    assert r.status_code == 404


def test_upload_profile_picture(client, alice, images):
    r = client.post(
        "/upload/profile-picture",
        files={"profilePicture": ("me.png", b"\x89PNG fake", "image/png")},
        headers=alice["headers"],
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["message"] == "Profile picture updated"
    assert body["user"]["profilePicture"].startswith("https://res.cloudinary.com/")
    assert "password_hash" not in body["user"]
    assert images.uploads[0]["filename"] == "me.png"
    assert images.uploads[0]["content"] == b"\x89PNG fake"

    r = client.get(f"/user/{alice['id']}", headers=alice["headers"])
    assert r.json()["profilePicture"] == body["user"]["profilePicture"]


def test_avatar_shows_in_blog_listing(client, alice):
    client.post(
        "/upload/profile-picture",
        files={"profilePicture": ("me.jpg", b"jpeg", "image/jpeg")},
        headers=alice["headers"],
    )
    client.post("/addBlog", json={"title": "t", "description": "d"}, headers=alice["headers"])
    blogs = client.get("/getAllBlogs", headers=alice["headers"]).json()
    assert blogs[0]["createdByProfile"].endswith(".jpg")


def test_upload_without_file(client, alice):
    r = client.post("/upload/profile-picture", headers=alice["headers"])
    assert r.status_code == 400
    assert r.json()["message"] == "No file uploaded"


def test_upload_rejects_other_formats(client, alice, images):
    r = client.post(
        "/upload/profile-picture",
        files={"profilePicture": ("notes.gif", b"GIF89a", "image/gif")},
        headers=alice["headers"],
    )
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_image_format"
    assert images.uploads == []


def test_upload_upstream_failure(client, alice, images, monkeypatch):
    def _boom(**_kwargs):
        raise UpstreamFailure("Upload failed", error="Cloudinary upload error 502: bad gateway")

    monkeypatch.setattr(images, "upload_image", _boom)
    r = client.post(
        "/upload/profile-picture",
        files={"profilePicture": ("me.png", b"png", "image/png")},
        headers=alice["headers"],
    )
    assert r.status_code == 500
    assert r.json() == {"message": "Upload failed", "error": "Cloudinary upload error 502: bad gateway"}
    assert client.get(f"/user/{alice['id']}", headers=alice["headers"]).json()["profilePicture"] == ""


def test_upload_unexpected_error_is_json(client, alice, images, monkeypatch):
    def _boom(**_kwargs):
        raise RuntimeError("socket closed")

    monkeypatch.setattr(images, "upload_image", _boom)
    r = client.post(
        "/upload/profile-picture",
        files={"profilePicture": ("me.png", b"png", "image/png")},
        headers=alice["headers"],
    )
    assert r.status_code == 500
    assert r.json() == {"message": "Upload failed", "error": "socket closed"}


def test_upload_without_image_host(client, alice):
    ctx: AppContext = client.app.state.ctx
    ctx.images = None
    r = client.post(
        "/upload/profile-picture",
        files={"profilePicture": ("me.png", b"png", "image/png")},
        headers=alice["headers"],
    )
    assert r.status_code == 500
    assert r.json()["error"] == "image_host_not_configured"


def test_context_released_on_shutdown(cfg, images):
    from fastapi.testclient import TestClient

    from devsource_platform.api.server import create_app

    ctx = AppContext(cfg=cfg, images=images)
    app = create_app(context=ctx)
    with TestClient(app) as c:
        assert c.get("/health").json() == {"status": "ok"}
        assert c.get("/").text == "It's working"
        assert c.app.state.ctx is ctx
    assert app.state.ctx is None
    assert ctx.images is None
