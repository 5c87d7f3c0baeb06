"""Tests for the local ECC stub endpoints."""
import pytest

from ecc_provisioning.stub_app import create_stub_app

SERVER = {
    "host": "h",
    "systemNumber": "00",
    "client": "300",
    "jcoUser": "u",
    "jcoPassword": "p",
    "isTestingServer": True,
}


@pytest.fixture()
def app():
    return create_stub_app(version="9.9.9")


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client


def _create(client, username="JDOE"):
    return client.post("/create_user", json={
        "server": SERVER,
        "username": username,
        "password": "pw",
        "firstname": "John",
        "lastname": "Doe",
        "licenseType": "91",
        "parameters": {},
    })


def test_about_returns_plain_text_version(client):
    response = client.get("/about")
    assert response.status_code == 200
    assert response.data == b"9.9.9"
    assert response.content_type.startswith("text/plain")


def test_health_check(client):
    assert client.get("/health").data == b"ok"


def test_ping_requires_full_server_identity(client):
    assert client.post("/ping", json=SERVER).status_code == 200
    partial = {k: v for k, v in SERVER.items() if k != "jcoPassword"}
    assert client.post("/ping", json=partial).status_code == 400


def test_malformed_body_is_rejected(client):
    response = client.post("/ping", data="not-json", content_type="application/json")
    assert response.status_code == 400


def test_create_user_then_update(client, app):
    assert _create(client).status_code == 201
    assert _create(client).status_code == 200
    assert "JDOE" in app.config["ECC_USERS"]


def test_assign_groups_records_order(client, app):
    _create(client)
    response = client.post("/assign_groups", json={
        "server": SERVER,
        "username": "JDOE",
        "userGroups": [{"group": "B", "fromDate": "", "toDate": ""}, {"group": "A", "fromDate": "", "toDate": ""}],
    })
    assert response.status_code == 200
    assert app.config["ECC_USERS"]["JDOE"]["groups"] == ["B", "A"]


def test_assign_groups_requires_list(client):
    response = client.post("/assign_groups", json={"server": SERVER, "username": "JDOE", "userGroups": None})
    assert response.status_code == 400


def test_lock_unknown_user_is_not_found(client):
    response = client.post("/lock", json={"server": SERVER, "username": "GHOST"})
    assert response.status_code == 404


def test_lock_known_user(client, app):
    _create(client)
    response = client.post("/lock", json={"server": SERVER, "username": "JDOE"})
    assert response.status_code == 200
    assert app.config["ECC_USERS"]["JDOE"]["locked"] is True


def test_status_override_short_circuits():
    app = create_stub_app(status_overrides={"/lock": 503, "/about": 500})
    with app.test_client() as client:
        assert client.get("/about").status_code == 500
        assert client.post("/lock", json={"server": SERVER, "username": "JDOE"}).status_code == 503
    assert app.config["ECC_RECEIVED"] == [{"path": "/lock", "body": {"server": SERVER, "username": "JDOE"}}]


def test_received_bodies_are_recorded(client, app):
    client.post("/ping", json=SERVER)
    assert app.config["ECC_RECEIVED"] == [{"path": "/ping", "body": SERVER}]
