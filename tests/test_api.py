"""
Tests for the JSON API: login/logout, client listing, detail and update.
"""
import pytest
from fastapi.testclient import TestClient

from cockpit.db import store as store_module
from cockpit.main import client_store, create_app
from tests.conftest import ADMIN_PASSWORD, CLIENT_PASSWORD
from tests.factories import login, read_json, valid_payload


@pytest.mark.api
class TestLogin:

    def test_wrong_password_sets_no_cookie(self, client):
        response = login(client, "admin", "wrong")
        assert response.status_code == 401
        assert response.json() == {"message": "Identifiants invalides."}
        assert "set-cookie" not in response.headers
        assert "amiseo_session" not in client.cookies

    def test_unknown_user_gets_same_message(self, client):
        response = login(client, "ghost", "whatever")
        assert response.status_code == 401
        assert response.json() == {"message": "Identifiants invalides."}

    def test_admin_login_sets_session_cookie(self, client):
        response = login(client, "Admin", ADMIN_PASSWORD)
        assert response.status_code == 200
        assert response.json() == {"role": "admin", "redirectTo": "/admin"}
        cookie = response.headers["set-cookie"].lower()
        assert cookie.startswith("amiseo_session=")
        assert "httponly" in cookie
        assert "samesite=lax" in cookie
        assert "path=/" in cookie
        assert "max-age=604800" in cookie
        assert "secure" not in cookie

    def test_client_login_redirects_to_dashboard(self, client):
        response = login(client, "acme", CLIENT_PASSWORD)
        assert response.json() == {"role": "client", "redirectTo": "/dashboard"}

    def test_login_survives_failed_password_upgrade(self, client, users_file, monkeypatch):
        def boom(src, dst):
            raise OSError("read-only filesystem")

        monkeypatch.setattr(store_module.os, "replace", boom)
        response = login(client, "acme", CLIENT_PASSWORD)
        assert response.status_code == 200
        assert response.json() == {"role": "client", "redirectTo": "/dashboard"}
        assert "amiseo_session" in client.cookies
        assert read_json(users_file)[1]["password"] == CLIENT_PASSWORD

    def test_blank_credentials_are_rejected(self, client):
        response = client.post("/api/login", json={"username": "", "password": ""})
        assert response.status_code == 422
        assert response.json()["message"] == "Payload invalide"

    def test_logout_clears_cookie(self, client):
        login(client, "admin", ADMIN_PASSWORD)
        response = client.post("/api/logout")
        assert response.json() == {"ok": True}
        cookie = response.headers["set-cookie"].lower()
        assert "max-age=0" in cookie
        assert client.get("/api/clients").status_code == 403


@pytest.mark.api
class TestClientRead:

    def test_listing_requires_admin(self, client):
        assert client.get("/api/clients").status_code == 403
        login(client, "acme", CLIENT_PASSWORD)
        response = client.get("/api/clients")
        assert response.status_code == 403
        assert response.json() == {"message": "Accès refusé."}

    def test_listing_returns_normalized_records(self, client):
        login(client, "admin", ADMIN_PASSWORD)
        records = client.get("/api/clients").json()
        assert [r["id"] for r in records] == ["c1", "c2"]
        assert records[1]["kpiPeriods"][0]["id"] == "periode-c2"
        assert all(len(r["kpiPeriods"]) >= 1 for r in records)

    def test_admin_reads_any_record(self, client):
        login(client, "admin", ADMIN_PASSWORD)
        response = client.get("/api/clients/c2")
        assert response.status_code == 200
        assert response.json()["monthlyHighlights"] == ["Grew"]

    def test_client_reads_only_own_record(self, client):
        login(client, "acme", CLIENT_PASSWORD)
        assert client.get("/api/clients/c1").status_code == 200
        assert client.get("/api/clients/c2").status_code == 403

    def test_unknown_record(self, client):
        login(client, "admin", ADMIN_PASSWORD)
        response = client.get("/api/clients/nope")
        assert response.status_code == 404
        assert response.json() == {"message": "Client introuvable."}


@pytest.mark.api
class TestClientUpdate:

    def test_requires_admin(self, client, clients_file):
        before = clients_file.read_text(encoding="utf-8")
        assert client.put("/api/clients/c1", json=valid_payload()).status_code == 403
        login(client, "acme", CLIENT_PASSWORD)
        response = client.put("/api/clients/c1", json=valid_payload())
        assert response.status_code == 403
        assert response.json() == {"message": "Accès refusé."}
        assert clients_file.read_text(encoding="utf-8") == before

    def test_path_id_wins(self, client, clients_file):
        login(client, "admin", ADMIN_PASSWORD)
        response = client.put("/api/clients/c1", json=valid_payload(id="someone-else"))
        assert response.status_code == 200
        assert response.json()["id"] == "c1"

        records = read_json(clients_file)
        assert [r["id"] for r in records] == ["c1", "c2"]
        assert records[0]["summary"] == "Quarterly refresh."
        assert records[0] == response.json()

    def test_legacy_mirror_is_written(self, client, clients_file):
        login(client, "admin", ADMIN_PASSWORD)
        client.put("/api/clients/c1", json=valid_payload())
        stored = read_json(clients_file)[0]
        assert stored["monthlyHighlights"] == ["Record month"]
        assert stored["thisMonthActions"] == []
        assert stored["nextMonthActions"] == ["Holiday landing pages"]

    def test_validation_issues(self, client, clients_file):
        login(client, "admin", ADMIN_PASSWORD)
        payload = valid_payload(initiatives=[{"title": "SEO", "status": "finished", "details": "x"}])
        response = client.put("/api/clients/c1", json=payload)
        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "Payload invalide"
        assert body["issues"][0]["path"] == ["initiatives", 0, "status"]
        assert read_json(clients_file)[0]["summary"] == "Monthly SEO retainer."

    def test_non_object_body(self, client):
        login(client, "admin", ADMIN_PASSWORD)
        response = client.put("/api/clients/c1", json=["not", "a", "record"])
        assert response.status_code == 422

    def test_blank_path_id(self, client):
        login(client, "admin", ADMIN_PASSWORD)
        response = client.put("/api/clients/%20", json=valid_payload())
        assert response.status_code == 400
        assert response.json() == {"message": "Client ID manquant."}

    def test_unknown_id_is_appended(self, client, clients_file):
        login(client, "admin", ADMIN_PASSWORD)
        response = client.put("/api/clients/c3", json=valid_payload(id="c3", name="Initech"))
        assert response.status_code == 200
        assert [r["id"] for r in read_json(clients_file)] == ["c1", "c2", "c3"]

    def test_save_into_empty_store(self, empty_client, settings):
        login(empty_client, "admin", ADMIN_PASSWORD)
        response = empty_client.put("/api/clients/c1", json=valid_payload())
        assert response.status_code == 200
        records = read_json(settings.clients_path)
        assert len(records) == 1
        assert records[0]["id"] == "c1"
        assert records[0]["name"] == "Acme"

    def test_disabled_ecommerce_never_reaches_store(self, client, clients_file):
        from cockpit.records import sanitize

        login(client, "admin", ADMIN_PASSWORD)
        draft = dict(valid_payload(), ecommerceEnabled=False, ecommerce={"revenue": "42k"})
        client.put("/api/clients/c1", json=sanitize(draft, "c1"))
        assert "ecommerce" not in read_json(clients_file)[0]


@pytest.mark.api
class TestSqlBackend:

    def test_seeds_from_json_and_saves(self, settings, users_file, clients_file, tmp_path):
        sql_settings = settings.model_copy(update={
            "store_backend": "sql",
            "db_url": f"sqlite:///{tmp_path / 'cockpit.db'}",
        })
        with TestClient(create_app(sql_settings)) as tc:
            login(tc, "admin", ADMIN_PASSWORD)
            assert [r["id"] for r in tc.get("/api/clients").json()] == ["c1", "c2"]
            assert tc.put("/api/clients/c2", json=valid_payload(id="c2")).status_code == 200
            assert tc.get("/api/clients/c2").json()["summary"] == "Quarterly refresh."
        # the JSON seed file is left alone
        assert read_json(clients_file)[1]["summary"] == "Local SEO."


@pytest.mark.api
class TestServerErrors:

    def test_store_failure_is_opaque(self, client, clients_file, monkeypatch):
        """A failed write answers 500 with a generic message and keeps the file."""
        login(client, "admin", ADMIN_PASSWORD)
        before = clients_file.read_text(encoding="utf-8")

        def boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(store_module.os, "replace", boom)
        response = client.put("/api/clients/c1", json=valid_payload())
        assert response.status_code == 500
        assert response.json() == {"message": "Erreur serveur inconnue"}
        assert clients_file.read_text(encoding="utf-8") == before

    def test_unexpected_exception_is_opaque(self, settings, users_file, clients_file):
        def broken_store():
            raise RuntimeError("connection pool exhausted")

        app = create_app(settings)
        app.dependency_overrides[client_store] = broken_store
        with TestClient(app, raise_server_exceptions=False) as tc:
            login(tc, "admin", ADMIN_PASSWORD)
            response = tc.get("/api/clients")
        assert response.status_code == 500
        assert response.json() == {"message": "Erreur serveur inconnue"}
        assert "connection pool" not in response.text
