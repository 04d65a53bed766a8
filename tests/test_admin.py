import warnings

from gmao.config import TestConfig
from gmao.wsgi import create_app


class AdminConfig(TestConfig):
    ADMIN_ENABLED = True


def test_admin_panel_builds_without_deprecations():
    with warnings.catch_warnings():
        warnings.filterwarnings("error", message=".*session.*", category=DeprecationWarning)
        app = create_app(AdminConfig)
    assert "admin" in app.blueprints
    assert "machine" in app.blueprints


def test_create_user_hashes_credentials(api, client):
    resp = api.post("/utilisateurs", {"nom": "marie", "section": "Bobinage", "credentials": "s3cret"})
    assert resp.status_code == 201
    assert "credentials" not in resp.get_json()["data"]
    login = client.post("/api/login", json={"nom": "marie", "password": "s3cret"})
    assert login.status_code == 200
    assert login.get_json()["permissions"] == {}


def test_user_nom_is_unique(api):
    api.post("/utilisateurs", {"nom": "paul", "credentials": "x"})
    resp = api.post("/utilisateurs", {"nom": "paul", "credentials": "y"})
    assert resp.status_code == 422


def test_assign_roles_changes_permissions(api, client):
    user = api.post("/utilisateurs", {"nom": "luc", "credentials": "pw"}).get_json()["data"]
    perms = api.get("/permissions/module/machine").get_json()["data"]
    list_perm = next(p for p in perms if p["action"] == "list")
    role = api.post("/roles", {"nom": "Lecteur", "cout": 12.5, "permissions": [list_perm["id"]]})
    assert role.status_code == 201
    role_id = role.get_json()["data"]["id"]

    resp = api.post(f"/utilisateurs/{user['id']}/roles", {"roles": [role_id]})
    assert resp.status_code == 200
    assert [r["nom"] for r in resp.get_json()["data"]["roles"]] == ["Lecteur"]

    effective = api.get(f"/utilisateurs/{user['id']}/permissions").get_json()["data"]
    assert [p["key"] for p in effective] == ["machine-list"]

    token = client.post("/api/login", json={"nom": "luc", "password": "pw"}).get_json()["token"]
    headers = {"Authorization": f"Bearer {token}"}
    assert client.get("/api/machines", headers=headers).status_code == 200
    assert client.post("/api/machines", json={}, headers=headers).status_code == 403

    users = api.get(f"/roles/{role_id}/users").get_json()["data"]
    assert [u["nom"] for u in users] == ["luc"]


def test_assign_unknown_role(api):
    user = api.post("/utilisateurs", {"nom": "eve", "credentials": "pw"}).get_json()["data"]
    resp = api.post(f"/utilisateurs/{user['id']}/roles", {"roles": [999]})
    assert resp.status_code == 422
    assert "roles" in resp.get_json()["errors"]


def test_role_permissions_assignment(api):
    role = api.post("/roles", {"nom": "Planificateur"}).get_json()["data"]
    ids = [p["id"] for p in api.get("/permissions/module/planification").get_json()["data"]]
    resp = api.post(f"/roles/{role['id']}/permissions", {"permissions": ids})
    assert resp.status_code == 200
    assert len(resp.get_json()["data"]["permissions"]) == 5


def test_admin_role_already_exists(api):
    resp = api.post("/roles/create-admin")
    assert resp.status_code == 422
    assert resp.get_json()["message"] == "Admin role already exists"
    assert resp.get_json()["data"]["nom"] == "Admin"


def test_admin_user_already_exists(api):
    resp = api.post("/utilisateurs/create-admin")
    assert resp.status_code == 422
    assert resp.get_json()["data"]["nom"] == "admin"


def test_generate_crud(api):
    resp = api.post("/permissions/generate-crud", {"module": "Fournisseur"})
    assert resp.status_code == 201
    keys = sorted(p["key"] for p in resp.get_json()["data"])
    assert keys == ["fournisseur-create", "fournisseur-delete", "fournisseur-edit",
                    "fournisseur-list", "fournisseur-view"]
    assert "fournisseur" in api.get("/permissions/modules").get_json()["data"]
    again = api.post("/permissions/generate-crud", {"module": "fournisseur"})
    assert sorted(p["id"] for p in again.get_json()["data"]) == sorted(
        p["id"] for p in resp.get_json()["data"]
    )


def test_generate_crud_rejects_bad_module(api):
    assert api.post("/permissions/generate-crud", {"module": "bad-name"}).status_code == 422


def test_permission_module_cannot_contain_hyphen(api):
    resp = api.post("/permissions", {"module": "a-b", "action": "list"})
    assert resp.status_code == 422
    assert "module" in resp.get_json()["errors"]


def test_duplicate_permission(api):
    assert api.post("/permissions", {"module": "machine", "action": "list"}).status_code == 422


def test_sections_and_responsable(api):
    me = api.get("/user").get_json()["user"]["id"]
    section = api.post("/sections", {"nom": "Bobinage", "type": "Atelier", "responsable_id": me})
    assert section.status_code == 201
    section_id = section.get_json()["data"]["id"]

    user = api.post("/utilisateurs", {"nom": "ali", "credentials": "pw", "section_id": section_id})
    assert user.get_json()["data"]["sectionRelation"]["id"] == section_id

    members = api.get(f"/utilisateurs/section/{section_id}").get_json()["data"]
    assert [u["nom"] for u in members] == ["ali"]
    managed = api.get(f"/sections/responsable/{me}").get_json()["data"]
    assert [s["nom"] for s in managed] == ["Bobinage"]

    assert api.delete(f"/sections/{section_id}").status_code == 200
    assert api.get(f"/utilisateurs/{user.get_json()['data']['id']}").get_json()["data"]["section_id"] is None


def test_prestataire_users(api):
    prestataire = api.post("/prestataires", {"nom": "ElecPro", "contrat": "C-12"}).get_json()["data"]
    me = api.get("/user").get_json()["user"]["id"]
    resp = api.post(f"/prestataires/{prestataire['id']}/users", {"utilisateurs": [me]})
    assert resp.status_code == 200
    assert [u["id"] for u in resp.get_json()["data"]["utilisateurs"]] == [me]
