# tests/conftest.py
from datetime import date, timedelta

import pytest

from gmao.config import TestConfig
from gmao.extensions import db
from gmao.models import Permission, Role, Utilisateur
from gmao.permissions import ensure_admin_user, ensure_catalog, parse_permission_key
from gmao.wsgi import create_app

ADMIN_NAME = "admin"
ADMIN_PASSWORD = "admin123"


class ApiClient:
    """Cliente de teste que prefixa /api e envia o token Bearer."""

    def __init__(self, client, token=None):
        self.client = client
        self.token = token

    def _headers(self):
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def get(self, url):
        return self.client.get(f"/api{url}", headers=self._headers())

    def post(self, url, json=None):
        return self.client.post(f"/api{url}", json=json or {}, headers=self._headers())

    def put(self, url, json=None):
        return self.client.put(f"/api{url}", json=json or {}, headers=self._headers())

    def delete(self, url):
        return self.client.delete(f"/api{url}", headers=self._headers())


def login(client, nom, password):
    resp = client.post("/api/login", json={"nom": nom, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["token"]


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        ensure_catalog()
        ensure_admin_user(ADMIN_NAME, ADMIN_PASSWORD)
        db.session.commit()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def api(client):
    return ApiClient(client, login(client, ADMIN_NAME, ADMIN_PASSWORD))


@pytest.fixture
def anonymous(client):
    return ApiClient(client)


@pytest.fixture
def make_user(app, client):
    """Cria um usuário com um papel contendo só as chaves pedidas e devolve um ApiClient logado."""
    counter = {"n": 0}

    def _make(*keys, password="secret"):
        counter["n"] += 1
        nom = f"user{counter['n']}"
        with app.app_context():
            perms = []
            for key in keys:
                module, action = parse_permission_key(key)
                perms.append(Permission.query.filter_by(module=module, action=action).one())
            role = Role(nom=f"role-{nom}", cout=0, permissions=perms)
            user = Utilisateur(nom=nom, section="Atelier", roles=[role])
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
        return ApiClient(client, login(client, nom, password))

    return _make


@pytest.fixture
def make_machine(api):
    def _make(**overrides):
        payload = {
            "nom": "Moteur asynchrone 55kW",
            "etat": "OPERATIONNEL",
            "valeur": "12000",
            "type": "Moteur",
            "dateProchaineMaint": (date.today() + timedelta(days=90)).isoformat(),
        }
        payload.update(overrides)
        resp = api.post("/machines", payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["data"]

    return _make


@pytest.fixture
def make_intervention(api, make_machine):
    def _make(machine_id=None, **overrides):
        if machine_id is None:
            machine_id = make_machine()["id"]
        payload = {
            "date": date.today().isoformat(),
            "description": "Rebobinage du stator",
            "typeOperation": "Rénovation",
            "urgence": False,
            "machine_id": machine_id,
        }
        payload.update(overrides)
        resp = api.post("/interventions", payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["data"]

    return _make


@pytest.fixture
def make_renovation(api):
    def _make(intervention_id, **overrides):
        payload = {
            "intervention_id": intervention_id,
            "disponibilitePDR": True,
            "objectif": "Remise à neuf du bobinage",
            "cout": "1500.50",
            "dureeEstimee": 10,
        }
        payload.update(overrides)
        return api.post("/renovations", payload)

    return _make


@pytest.fixture
def make_planification(api):
    def _make(**overrides):
        with_me = api.get("/user").get_json()["user"]["id"]
        payload = {
            "dateCreation": date.today().isoformat(),
            "capaciteExecution": 3,
            "urgencePrise": False,
            "disponibilitePDR": True,
            "utilisateur_id": with_me,
        }
        payload.update(overrides)
        resp = api.post("/planifications", payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["data"]

    return _make
