"""Project listings (admin-managed)."""
import pytest


def _project(**overrides):
    payload = {"title": "Portfolio", "description": "Site", "type": 2}
    payload.update(overrides)
    return payload


def test_add_and_list_projects(client, admin, alice):
    r = client.post(
        "/addProject",
        json=_project(images=["https://img.test/a.png", "https://img.test/b.png"], endDate="2025-06-30"),
        headers=admin["headers"],
    )
    assert r.status_code == 201
    body = r.json()
    assert body["message"] == "Project added successfully"
    project = body["project"]
    assert project["type"] == 2
    assert project["images"] == ["https://img.test/a.png", "https://img.test/b.png"]
    assert project["endDate"] == "2025-06-30T00:00:00Z"
    assert project["createdAt"].endswith("Z")

    r = client.get("/getAllProjects", headers=alice["headers"])
    assert r.status_code == 200
    assert [p["id"] for p in r.json()] == [project["id"]]


def test_explicit_created_at(client, admin):
    r = client.post("/addProject", json=_project(createdAt="2024-01-15T10:30:00Z"), headers=admin["headers"])
    assert r.status_code == 201
    assert r.json()["project"]["createdAt"] == "2024-01-15T10:30:00Z"
    assert r.json()["project"]["endDate"] is None


@pytest.mark.parametrize("bad_type", [4, 0.5, -1, "1", [1]])
def test_invalid_type(client, admin, bad_type):
    r = client.post("/addProject", json=_project(type=bad_type), headers=admin["headers"])
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid project type. Must be 1, 2, or 3."


def test_type_four_example(client, admin):
    r = client.post("/addProject", json=_project(type=4), headers=admin["headers"])
    assert r.status_code == 400
    assert r.json() == {"message": "Invalid project type. Must be 1, 2, or 3."}


@pytest.mark.parametrize("missing", ["title", "description", "type"])
def test_required_fields(client, admin, missing):
    payload = _project()
    payload.pop(missing)
    r = client.post("/addProject", json=payload, headers=admin["headers"])
    assert r.status_code == 400
    assert r.json()["message"] == "Title, description, and type are required."


def test_invalid_end_date(client, admin):
    r = client.post("/addProject", json=_project(endDate="next tuesday"), headers=admin["headers"])
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_endDate"


def test_users_cannot_add_projects(client, alice):
    r = client.post("/addProject", json=_project(), headers=alice["headers"])
    assert r.status_code == 403
    r = client.get("/getAllProjects", headers=alice["headers"])
    assert r.json() == []


def test_integral_float_type_is_accepted(client, admin):
    r = client.post("/addProject", json=_project(type=3.0), headers=admin["headers"])
    assert r.status_code == 201
    assert r.json()["project"]["type"] == 3
