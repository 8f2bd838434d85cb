import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import exam_date

CREATE = "/api/v1/exam/create"


def _create(client, headers, days_ahead=20, subject="Cálculo I", shift="morning"):
    return client.post(
        CREATE,
        json={"exam_date": exam_date(days_ahead), "subject": subject, "shift": shift},
        headers=headers,
    )


def test_create_exam_for_the_caller(client, make_account):
    user_id, headers = make_account("Ana", "ana@example.com")

    response = _create(client, headers, subject="  Cálculo I  ")

    assert response.status_code == 201
    body = response.json()
    assert body["user_id"] == user_id
    assert body["subject"] == "Cálculo I"
    assert body["owner_name"] == "Ana"


@pytest.mark.parametrize(
    "days_ahead, subject, shift, field",
    [
        (13, "Cálculo", "morning", "exam_date"),
        (20, "", "morning", "subject"),
        (20, "x" * 129, "morning", "subject"),
        (20, "Cálculo", "evening", "shift"),
    ],
)
def test_create_exam_rejects_rule_violations(client, make_account, days_ahead, subject, shift, field):
    _, headers = make_account("Ana", "ana@example.com")

    response = _create(client, headers, days_ahead=days_ahead, subject=subject, shift=shift)

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == field


def test_list_is_ordered_by_date_and_filterable(client, make_account):
    ana_id, ana = make_account("Ana", "ana@example.com")
    _, bia = make_account("Bia", "bia@example.com")
    _create(client, ana, days_ahead=40, subject="Física")
    _create(client, bia, days_ahead=15, subject="Química")
    _create(client, ana, days_ahead=25, subject="Cálculo")

    everything = client.get("/api/v1/exam/", headers=bia).json()
    assert [exam["subject"] for exam in everything] == ["Química", "Cálculo", "Física"]
    assert [exam["owner_name"] for exam in everything] == ["Bia", "Ana", "Ana"]

    only_ana = client.get("/api/v1/exam/", params={"user_id": ana_id}, headers=bia).json()
    assert [exam["subject"] for exam in only_ana] == ["Cálculo", "Física"]


def test_only_owner_or_admin_can_edit(client, make_account):
    _, ana = make_account("Ana", "ana@example.com")
    _, bia = make_account("Bia", "bia@example.com")
    _, admin = make_account("Admin", "admin@example.com", is_admin=True)
    exam_id = _create(client, ana).json()["id"]
    update = {"exam_date": exam_date(30), "subject": "Cálculo II", "shift": "night"}

    assert client.get(f"/api/v1/exam/{exam_id}", headers=bia).status_code == 403
    assert client.put(f"/api/v1/exam/{exam_id}", json=update, headers=bia).status_code == 403

    owner_update = client.put(f"/api/v1/exam/{exam_id}", json=update, headers=ana)
    assert owner_update.status_code == 200
    assert owner_update.json()["shift"] == "night"

    admin_update = client.put(f"/api/v1/exam/{exam_id}", json={**update, "subject": "Cálculo III"}, headers=admin)
    assert admin_update.status_code == 200
    assert admin_update.json()["subject"] == "Cálculo III"
    assert admin_update.json()["owner_name"] == "Ana"


def test_update_revalidates_the_date(client, make_account):
    _, ana = make_account("Ana", "ana@example.com")
    exam_id = _create(client, ana).json()["id"]

    response = client.put(
        f"/api/v1/exam/{exam_id}",
        json={"exam_date": exam_date(3), "subject": "Cálculo", "shift": "morning"},
        headers=ana,
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "invalid_date"


def test_delete_exam(client, make_account):
    _, ana = make_account("Ana", "ana@example.com")
    _, bia = make_account("Bia", "bia@example.com")
    exam_id = _create(client, ana).json()["id"]

    assert client.delete(f"/api/v1/exam/delete/{exam_id}", headers=bia).status_code == 403
    assert client.delete(f"/api/v1/exam/delete/{exam_id}", headers=ana).status_code == 204
    assert client.delete(f"/api/v1/exam/delete/{exam_id}", headers=ana).status_code == 404
    assert client.get("/api/v1/exam/", headers=ana).json() == []


def test_live_list_pushes_changes(client, make_account):
    ana_id, ana = make_account("Ana", "ana@example.com")
    token = ana["Authorization"].split(" ", 1)[1]

    with client.websocket_connect(f"/api/v1/exam/live?token={token}") as websocket:
        initial = websocket.receive_json()
        assert initial == {"type": "exams", "exams": []}

        exam_id = _create(client, ana, subject="Cálculo").json()["id"]
        created = websocket.receive_json()
        assert [exam["id"] for exam in created["exams"]] == [exam_id]
        assert created["exams"][0]["owner_name"] == "Ana"

        websocket.send_json({"filter": "outra-pessoa"})
        assert websocket.receive_json()["exams"] == []

        websocket.send_json({"filter": ana_id})
        assert len(websocket.receive_json()["exams"]) == 1


def test_live_list_rejects_invalid_tokens(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/v1/exam/live?token=lixo") as websocket:
            websocket.receive_json()

    assert exc_info.value.code == 4401


def test_live_list_survives_non_json_messages(client, make_account):
    _, ana = make_account("Ana", "ana@example.com")
    token = ana["Authorization"].split(" ", 1)[1]
    _create(client, ana, subject="Cálculo")

    with client.websocket_connect(f"/api/v1/exam/live?token={token}") as websocket:
        assert len(websocket.receive_json()["exams"]) == 1

        websocket.send_text("isto não é json")
        assert websocket.receive_json() == {"type": "error", "message": "Mensagem inválida"}

        websocket.send_json({"filter": None})
        assert len(websocket.receive_json()["exams"]) == 1


def test_live_list_is_closed_on_logout(client, make_account):
    _, ana = make_account("Ana", "ana@example.com")
    token = ana["Authorization"].split(" ", 1)[1]

    with client.websocket_connect(f"/api/v1/exam/live?token={token}") as websocket:
        assert websocket.receive_json() == {"type": "exams", "exams": []}

        assert client.post("/api/v1/auth/logout", headers=ana).status_code == 200

        with pytest.raises(WebSocketDisconnect) as exc_info:
            websocket.receive_json()

    assert exc_info.value.code == 4401


def test_live_list_is_closed_when_the_account_is_removed(client, make_account):
    _, admin = make_account("Admin", "admin@example.com", is_admin=True)
    ana_id, ana = make_account("Ana", "ana@example.com")
    token = ana["Authorization"].split(" ", 1)[1]
    _create(client, ana, subject="Cálculo")

    with client.websocket_connect(f"/api/v1/exam/live?token={token}") as websocket:
        assert len(websocket.receive_json()["exams"]) == 1

        response = client.post("/functions/delete-user", json={"userId": ana_id}, headers=admin)
        assert response.status_code == 200

        with pytest.raises(WebSocketDisconnect) as exc_info:
            while True:
                websocket.receive_json()

    assert exc_info.value.code == 4401
