"""
Shared fixtures: a temporary data directory seeded with clients and users,
and a test client bound to an app built on it.
"""
import json

import pytest
from fastapi.testclient import TestClient

from cockpit.core.config import Settings
from cockpit.core.security import hash_password
from cockpit.main import create_app
from tests.factories import legacy_client, modern_client

ADMIN_PASSWORD = "correct"
CLIENT_PASSWORD = "secret"


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path, session_secret="test-secret", log_level="WARNING")


@pytest.fixture
def users_file(settings):
    users = [
        {"id": "u-admin", "username": "admin", "passwordHash": hash_password(ADMIN_PASSWORD),
         "role": "admin", "displayName": "Maxim"},
        {"id": "u-acme", "username": "Acme", "password": CLIENT_PASSWORD,
         "role": "client", "displayName": "Acme", "clientId": "c1"},
    ]
    settings.users_path.write_text(json.dumps(users), encoding="utf-8")
    return settings.users_path


@pytest.fixture
def clients_file(settings):
    settings.clients_path.write_text(json.dumps([modern_client(), legacy_client()]), encoding="utf-8")
    return settings.clients_path


@pytest.fixture
def client(settings, users_file, clients_file):
    with TestClient(create_app(settings)) as tc:
        yield tc


@pytest.fixture
def empty_client(settings, users_file):
    """App whose clients file does not exist yet."""
    with TestClient(create_app(settings)) as tc:
        yield tc
