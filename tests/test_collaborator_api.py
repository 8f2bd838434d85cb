from conftest import PASSWORD

URL = "/api/v1/collaborator/"


def test_admin_lists_collaborators_with_roles(client, make_account):
    _, admin_headers = make_account("Admin", "admin@example.com", is_admin=True)
    make_account("Bia", "bia@example.com")

    response = client.get(URL, headers=admin_headers)

    assert response.status_code == 200
    assert [(c["name"], c["is_admin"]) for c in response.json()] == [("Admin", True), ("Bia", False)]


def test_admin_creates_collaborators(client, make_account):
    _, admin_headers = make_account("Admin", "admin@example.com", is_admin=True)

    response = client.post(
        "/api/v1/collaborator/create",
        json={"name": "Carla", "email": "carla@example.com", "password": PASSWORD, "is_admin": True},
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert response.json()["is_admin"] is True

    login = client.post("/api/v1/auth/login", data={"username": "carla@example.com", "password": PASSWORD})
    assert login.json()["is_admin"] is True


def test_collaborator_creation_validates_fields(client, make_account):
    _, admin_headers = make_account("Admin", "admin@example.com", is_admin=True)

    response = client.post(
        "/api/v1/collaborator/create",
        json={"name": "C", "email": "carla@example.com", "password": PASSWORD},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "name"


def test_collaborator_routes_are_admin_only(client, make_account):
    _, headers = make_account("Bia", "bia@example.com")

    assert client.get(URL, headers=headers).status_code == 403
    assert client.post(
        "/api/v1/collaborator/create",
        json={"name": "Carla", "email": "carla@example.com", "password": PASSWORD},
        headers=headers,
    ).status_code == 403
