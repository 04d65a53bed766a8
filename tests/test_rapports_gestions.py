import pytest

from gmao.extensions import db
from gmao.models import GestionAdministrative, Rapport


@pytest.fixture
def renovation_id(make_intervention, make_renovation):
    intervention = make_intervention()
    make_renovation(intervention["id"])
    return intervention["id"]


def _rapport(api, **fields):
    payload = {"dateCreation": "2024-05-01", "contenu": "Travaux réalisés"}
    payload.update(fields)
    return api.post("/rapports", payload)


def _status(api, intervention_id):
    return api.get(f"/interventions/{intervention_id}").get_json()["data"]["statut"]


def test_rapport_needs_a_reference(api):
    resp = _rapport(api)
    assert resp.status_code == 422


def test_rapport_cannot_reference_renovation_and_maintenance(api, renovation_id):
    resp = _rapport(api, renovation_id=renovation_id, maintenance_id=renovation_id)
    assert resp.status_code == 422


def test_rapport_reference_must_exist(api):
    assert _rapport(api, renovation_id=404).status_code == 404
    assert _rapport(api, prestataire_id=404).status_code == 404


def test_default_title(api, renovation_id):
    data = _rapport(api, renovation_id=renovation_id).get_json()["data"]
    assert data["titre"] == f"Rapport - Rénovation #{renovation_id}"
    assert data["intervention_id"] == renovation_id
    assert data["validation"] is False


def test_second_rapport_for_renovation_returns_existing(app, api, renovation_id):
    first = _rapport(api, renovation_id=renovation_id).get_json()["data"]
    resp = _rapport(api, renovation_id=renovation_id, contenu="bis")
    assert resp.status_code == 422
    assert resp.get_json()["data"]["id"] == first["id"]
    with app.app_context():
        assert db.session.query(Rapport).count() == 1


def test_prestataire_rapports(api):
    prestataire = api.post("/prestataires", {"nom": "ElecPro"}).get_json()["data"]
    _rapport(api, prestataire_id=prestataire["id"], titre="Intervention externe")
    _rapport(api, prestataire_id=prestataire["id"], titre="Second passage")
    listed = api.get(f"/rapports/prestataire/{prestataire['id']}").get_json()["data"]
    assert len(listed) == 2
    assert all(r["intervention_id"] is None for r in listed)
    assert len(api.get(f"/prestataires/{prestataire['id']}/rapports").get_json()["data"]) == 2


def test_validate_completes_intervention_once(api, renovation_id):
    rapport = _rapport(api, renovation_id=renovation_id).get_json()["data"]

    resp = api.put(f"/rapports/{rapport['id']}/validate")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["validation"] is True
    assert _status(api, renovation_id) == "COMPLETED"

    again = api.put(f"/rapports/{rapport['id']}/validate")
    assert again.status_code == 422
    assert again.get_json()["message"] == "Rapport is already validated"
    assert _status(api, renovation_id) == "COMPLETED"


def test_validated_at_creation_cascades(api, renovation_id):
    data = _rapport(api, renovation_id=renovation_id, validation=True).get_json()["data"]
    assert data["validation"] is True
    assert _status(api, renovation_id) == "COMPLETED"


def test_validated_rapport_is_immutable(api, renovation_id):
    rapport = _rapport(api, renovation_id=renovation_id).get_json()["data"]
    api.put(f"/rapports/{rapport['id']}/validate")
    assert api.put(f"/rapports/{rapport['id']}", {"contenu": "changé"}).status_code == 422
    assert api.delete(f"/rapports/{rapport['id']}").status_code == 422
    assert api.delete(f"/interventions/{renovation_id}").status_code == 422
    assert api.get(f"/rapports/{rapport['id']}").get_json()["data"]["contenu"] == "Travaux réalisés"


def test_update_unvalidated_rapport(api, renovation_id):
    rapport = _rapport(api, renovation_id=renovation_id).get_json()["data"]
    resp = api.put(f"/rapports/{rapport['id']}", {"contenu": "Version 2"})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["contenu"] == "Version 2"
    assert resp.get_json()["data"]["renovation_id"] == renovation_id


def test_rapport_lookup_by_renovation(api, renovation_id):
    assert api.get(f"/rapports/renovation/{renovation_id}").status_code == 404
    rapport = _rapport(api, renovation_id=renovation_id).get_json()["data"]
    assert api.get(f"/rapports/renovation/{renovation_id}").get_json()["data"]["id"] == rapport["id"]


# ---------------------------------------------------------------------------
# gestion administrative
# ---------------------------------------------------------------------------

@pytest.fixture
def validated_rapport(api, renovation_id):
    rapport = _rapport(api, renovation_id=renovation_id).get_json()["data"]
    api.put(f"/rapports/{rapport['id']}/validate")
    return rapport


def test_gestion_requires_validated_rapport(app, api, renovation_id):
    rapport = _rapport(api, renovation_id=renovation_id).get_json()["data"]
    resp = api.post("/gestions", {"rapport_id": rapport["id"], "commandeAchat": "PO-1"})
    assert resp.status_code == 422
    assert resp.get_json()["message"] == "Rapport must be validated before creating gestion administrative"
    with app.app_context():
        assert db.session.query(GestionAdministrative).count() == 0


def test_gestion_for_missing_rapport(api):
    assert api.post("/gestions", {"rapport_id": 31}).status_code == 404


def test_one_gestion_per_rapport(api, validated_rapport):
    first = api.post("/gestions", {"rapport_id": validated_rapport["id"], "commandeAchat": "PO-1"})
    assert first.status_code == 201
    resp = api.post("/gestions", {"rapport_id": validated_rapport["id"]})
    assert resp.status_code == 422
    assert resp.get_json()["data"]["id"] == first.get_json()["data"]["id"]

    by_rapport = api.get(f"/gestions/rapport/{validated_rapport['id']}").get_json()["data"]
    assert by_rapport["commandeAchat"] == "PO-1"


def test_gestion_validation_requires_documents(api, validated_rapport):
    gestion = api.post("/gestions", {"rapport_id": validated_rapport["id"], "commandeAchat": "PO-1"})
    gestion_id = gestion.get_json()["data"]["id"]

    assert api.put(f"/gestions/{gestion_id}/validate").status_code == 422

    api.put(f"/gestions/{gestion_id}", {"facturation": "FAC-2024-17"})
    resp = api.put(f"/gestions/{gestion_id}/validate")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["validation"] is True

    assert api.put(f"/gestions/{gestion_id}/validate").status_code == 422
    assert api.put(f"/gestions/{gestion_id}", {"facturation": "autre"}).status_code == 422


def test_validated_gestion_is_locked(api, validated_rapport):
    gestion_id = api.post("/gestions", {
        "rapport_id": validated_rapport["id"], "commandeAchat": "PO-9", "facturation": "FAC-9",
        "validation": True,
    }).get_json()["data"]["id"]
    me = api.get("/user").get_json()["user"]["id"]

    resp = api.post(f"/gestions/{gestion_id}/users", {"utilisateurs": [me]})
    assert resp.status_code == 422
    assert resp.get_json()["message"] == "Cannot change users of a validated gestion administrative"

    resp = api.delete(f"/gestions/{gestion_id}")
    assert resp.status_code == 422
    assert api.get(f"/gestions/{gestion_id}").status_code == 200


def test_unvalidated_gestion_can_be_deleted(api, validated_rapport):
    gestion_id = api.post("/gestions", {"rapport_id": validated_rapport["id"]}).get_json()["data"]["id"]
    assert api.delete(f"/gestions/{gestion_id}").status_code == 200
    assert api.get(f"/gestions/{gestion_id}").status_code == 404


def test_gestion_users(api, validated_rapport, make_user):
    make_user("gestion-view")
    users = api.get("/utilisateurs").get_json()["data"]
    ids = [u["id"] for u in users]
    gestion = api.post("/gestions", {"rapport_id": validated_rapport["id"]}).get_json()["data"]
    resp = api.post(f"/gestions/{gestion['id']}/users", {"utilisateurs": ids})
    assert resp.status_code == 200
    assert sorted(u["id"] for u in resp.get_json()["data"]["utilisateurs"]) == sorted(ids)
    assert api.post(f"/gestions/{gestion['id']}/users", {"utilisateurs": [999]}).status_code == 422


def test_validate_requires_permission(make_user, api, renovation_id):
    rapport = _rapport(api, renovation_id=renovation_id).get_json()["data"]
    editor = make_user("rapport-edit", "rapport-view")
    assert editor.put(f"/rapports/{rapport['id']}/validate").status_code == 403
    assert _status(api, renovation_id) == "IN_PROGRESS"
