from datetime import date

from gmao.extensions import db
from gmao.models import ControleQualite, Diagnostic, Renovation


def _status(api, intervention_id):
    return api.get(f"/interventions/{intervention_id}").get_json()["data"]["statut"]


# ---------------------------------------------------------------------------
# diagnostic
# ---------------------------------------------------------------------------

def test_diagnostic_with_line_items(api, make_intervention):
    intervention = make_intervention()
    resp = api.post("/diagnostics", {
        "dateCreation": "2024-03-01",
        "intervention_id": intervention["id"],
        "travaux": ["Démontage", "Rebobinage"],
        "besoins": ["Roulement 6205"],
        "charges": [],
    })
    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["travaux"] == ["Démontage", "Rebobinage"]
    assert data["besoins"] == ["Roulement 6205"]
    assert data["charges"] == []

    by_intervention = api.get(f"/diagnostics/intervention/{intervention['id']}")
    assert by_intervention.get_json()["data"]["id"] == data["id"]


def test_second_diagnostic_returns_existing(app, api, make_intervention):
    intervention = make_intervention()
    body = {"dateCreation": "2024-03-01", "intervention_id": intervention["id"], "travaux": ["A"]}
    first = api.post("/diagnostics", body).get_json()["data"]

    resp = api.post("/diagnostics", dict(body, travaux=["B"]))
    assert resp.status_code == 422
    payload = resp.get_json()
    assert payload["message"] == "A diagnostic already exists for this intervention"
    assert payload["data"]["id"] == first["id"]
    assert payload["data"]["travaux"] == ["A"]
    with app.app_context():
        assert db.session.query(Diagnostic).count() == 1


def test_diagnostic_update_replaces_lines(api, make_intervention):
    intervention = make_intervention()
    created = api.post("/diagnostics", {
        "dateCreation": "2024-03-01", "intervention_id": intervention["id"], "travaux": ["A", "B"],
    }).get_json()["data"]
    resp = api.put(f"/diagnostics/{created['id']}", {"travaux": ["C"]})
    assert resp.get_json()["data"]["travaux"] == ["C"]


def test_diagnostic_for_missing_intervention(api):
    resp = api.post("/diagnostics", {"dateCreation": "2024-03-01", "intervention_id": 77})
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# renovation
# ---------------------------------------------------------------------------

def test_renovation_starts_intervention(api, make_intervention, make_renovation):
    intervention = make_intervention()
    resp = make_renovation(intervention["id"])
    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["cout"] == 1500.5
    assert data["intervention"]["statut"] == "IN_PROGRESS"
    assert _status(api, intervention["id"]) == "IN_PROGRESS"


def test_renovation_on_maintenance_intervention_is_rejected(app, api, make_intervention, make_renovation):
    intervention = make_intervention(typeOperation="Maintenance")
    resp = make_renovation(intervention["id"])
    assert resp.status_code == 422
    assert resp.get_json()["message"] == "This intervention is not of type Rénovation"
    assert _status(api, intervention["id"]) == "PENDING"
    with app.app_context():
        assert db.session.query(Renovation).count() == 0


def test_renovation_type_match_ignores_normalisation(api, make_intervention, make_renovation):
    decomposed = "Re\u0301novation"
    intervention = make_intervention(typeOperation=decomposed)
    assert make_renovation(intervention["id"]).status_code == 201


def test_second_renovation_returns_existing(app, api, make_intervention, make_renovation):
    intervention = make_intervention()
    make_renovation(intervention["id"])
    resp = make_renovation(intervention["id"], objectif="autre")
    assert resp.status_code == 422
    assert resp.get_json()["data"]["objectif"] == "Remise à neuf du bobinage"
    with app.app_context():
        assert db.session.query(Renovation).count() == 1


def test_renovation_on_planned_intervention_keeps_status(api, make_intervention, make_renovation,
                                                          make_planification):
    intervention = make_intervention()
    planification = make_planification()
    api.post(f"/planifications/{planification['id']}/interventions", {"intervention_id": intervention["id"]})
    assert make_renovation(intervention["id"]).status_code == 201
    assert _status(api, intervention["id"]) == "PLANNED"


def test_complete_renovation_updates_machine(api, make_intervention, make_renovation):
    intervention = make_intervention()
    make_renovation(intervention["id"])
    resp = api.put(f"/renovations/{intervention['id']}/complete", {
        "machine_etat": "OPERATIONNEL",
        "machine_valeur": "18000",
        "machine_dateProchaineMaint": "2031-06-30",
    })
    assert resp.status_code == 200
    assert _status(api, intervention["id"]) == "COMPLETED"
    machine = api.get(f"/machines/{intervention['machine_id']}").get_json()["data"]
    assert machine["valeur"] == "18000"
    assert machine["dateProchaineMaint"] == "2031-06-30"


def test_renovation_statistics(api, make_intervention, make_renovation):
    for cost in ("100.00", "250.50"):
        make_renovation(make_intervention()["id"], cout=cost, dureeEstimee=4)
    stats = api.get("/renovations/statistics").get_json()["data"]
    assert stats["total"] == 2
    assert stats["totalCost"] == 350.5
    assert stats["averageDuration"] == 4
    assert stats["byMonth"][0]["count"] == 2
    assert stats["byMonth"][0]["year"] == date.today().year


# ---------------------------------------------------------------------------
# maintenance
# ---------------------------------------------------------------------------

def _maintenance(api, intervention_id, **overrides):
    payload = {
        "intervention_id": intervention_id,
        "typeMaintenance": "Préventive",
        "duree": 3,
        "pieces": ["Roulement", "Joint"],
    }
    payload.update(overrides)
    return api.post("/maintenances", payload)


def test_maintenance_starts_intervention(api, make_intervention):
    intervention = make_intervention(typeOperation="Maintenance")
    resp = _maintenance(api, intervention["id"])
    assert resp.status_code == 201
    assert resp.get_json()["data"]["pieces"] == ["Roulement", "Joint"]
    assert _status(api, intervention["id"]) == "IN_PROGRESS"


def test_maintenance_requires_maintenance_type(api, make_intervention):
    intervention = make_intervention(typeOperation="Rénovation")
    resp = _maintenance(api, intervention["id"])
    assert resp.status_code == 422
    assert resp.get_json()["message"] == "This intervention is not of type Maintenance"


def test_second_maintenance_returns_existing(api, make_intervention):
    intervention = make_intervention(typeOperation="Maintenance")
    _maintenance(api, intervention["id"])
    resp = _maintenance(api, intervention["id"], duree=9)
    assert resp.status_code == 422
    assert resp.get_json()["data"]["duree"] == 3


def test_complete_maintenance_keeps_valeur_when_omitted(api, make_intervention):
    intervention = make_intervention(typeOperation="Maintenance")
    _maintenance(api, intervention["id"])
    resp = api.put(f"/maintenances/{intervention['id']}/complete", {
        "machine_etat": "OPERATIONNEL",
        "machine_dateProchaineMaint": "2030-02-01",
    })
    assert resp.status_code == 200
    assert _status(api, intervention["id"]) == "COMPLETED"
    machine = api.get(f"/machines/{intervention['machine_id']}").get_json()["data"]
    assert machine["valeur"] == "12000"


def test_maintenance_statistics(api, make_intervention):
    _maintenance(api, make_intervention(typeOperation="Maintenance")["id"])
    _maintenance(api, make_intervention(typeOperation="Maintenance")["id"], typeMaintenance="Corrective")
    stats = api.get("/maintenances/statistics").get_json()["data"]
    assert stats["total"] == 2
    assert {row["typeMaintenance"]: row["total"] for row in stats["byType"]} == {
        "Corrective": 1, "Préventive": 1,
    }
    assert len(stats["recent"]) == 2


# ---------------------------------------------------------------------------
# controle qualité
# ---------------------------------------------------------------------------

def test_controle_is_unique_per_intervention(app, api, make_intervention):
    intervention = make_intervention()
    body = {"dateControle": "2024-04-01", "intervention_id": intervention["id"], "conformite": True}
    created = api.post("/controles", body)
    assert created.status_code == 201
    resp = api.post("/controles", body)
    assert resp.status_code == 422
    assert resp.get_json()["data"]["id"] == created.get_json()["data"]["id"]
    with app.app_context():
        assert db.session.query(ControleQualite).count() == 1

    found = api.get(f"/controles/intervention/{intervention['id']}").get_json()["data"]
    assert found["conformite"] is True
