from flask import Blueprint

from .. import dashboard, lifecycle
from ..auth import permission_required
from ..extensions import db
from ..models import Maintenance, Renovation, get_or_404
from .common import dump, load, ok
from .schemas import (
    CompleteMaintenanceIn, CompleteRenovationIn, MaintenanceIn, MaintenanceOut,
    MaintenanceUpdateIn, RenovationIn, RenovationOut, RenovationUpdateIn,
)

bp_renovations = Blueprint("renovations", __name__, url_prefix="/api")


# ---------------------------------------------------------------------------
# renovações
# ---------------------------------------------------------------------------

@bp_renovations.get("/renovations")
@permission_required("renovation-list")
def list_renovations():
    renovations = db.session.query(Renovation).order_by(Renovation.intervention_id.desc()).all()
    return ok(dump(RenovationOut, renovations, many=True))


@bp_renovations.post("/renovations")
@permission_required("renovation-create")
def create_renovation():
    renovation = lifecycle.create_renovation(load(RenovationIn))
    db.session.commit()
    return ok(dump(RenovationOut, renovation), "Renovation created successfully", 201)


@bp_renovations.get("/renovations/<int:intervention_id>")
@permission_required("renovation-view")
def show_renovation(intervention_id):
    return ok(dump(RenovationOut, get_or_404(Renovation, intervention_id, "Renovation")))


@bp_renovations.put("/renovations/<int:intervention_id>")
@permission_required("renovation-edit")
def update_renovation(intervention_id):
    renovation = get_or_404(Renovation, intervention_id, "Renovation")
    lifecycle.update_renovation(renovation, load(RenovationUpdateIn, partial=True))
    db.session.commit()
    return ok(dump(RenovationOut, renovation), "Renovation updated successfully")


@bp_renovations.delete("/renovations/<int:intervention_id>")
@permission_required("renovation-delete")
def delete_renovation(intervention_id):
    lifecycle.delete_detail(get_or_404(Renovation, intervention_id, "Renovation"))
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_renovations.get("/renovations/intervention/<int:intervention_id>")
@permission_required("renovation-view")
def renovation_by_intervention(intervention_id):
    return ok(dump(RenovationOut, get_or_404(Renovation, intervention_id, "Renovation")))


@bp_renovations.put("/renovations/<int:intervention_id>/complete")
@permission_required("renovation-edit")
def complete_renovation(intervention_id):
    renovation = get_or_404(Renovation, intervention_id, "Renovation")
    data = load(CompleteRenovationIn)
    lifecycle.complete_work(
        renovation, data["machine_etat"], data["machine_date_prochaine_maint"], data["machine_valeur"]
    )
    db.session.commit()
    return ok(dump(RenovationOut, renovation), "Renovation completed successfully and machine status updated")


@bp_renovations.get("/renovations/statistics")
@permission_required("renovation-list")
def renovation_statistics():
    return ok(dashboard.renovation_statistics())


# ---------------------------------------------------------------------------
# manutenções
# ---------------------------------------------------------------------------

@bp_renovations.get("/maintenances")
@permission_required("maintenance-list")
def list_maintenances():
    maintenances = db.session.query(Maintenance).order_by(Maintenance.intervention_id.desc()).all()
    return ok(dump(MaintenanceOut, maintenances, many=True))


@bp_renovations.post("/maintenances")
@permission_required("maintenance-create")
def create_maintenance():
    maintenance = lifecycle.create_maintenance(load(MaintenanceIn))
    db.session.commit()
    return ok(dump(MaintenanceOut, maintenance), "Maintenance created successfully", 201)


@bp_renovations.get("/maintenances/<int:intervention_id>")
@permission_required("maintenance-view")
def show_maintenance(intervention_id):
    return ok(dump(MaintenanceOut, get_or_404(Maintenance, intervention_id, "Maintenance")))


@bp_renovations.put("/maintenances/<int:intervention_id>")
@permission_required("maintenance-edit")
def update_maintenance(intervention_id):
    maintenance = get_or_404(Maintenance, intervention_id, "Maintenance")
    lifecycle.update_maintenance(maintenance, load(MaintenanceUpdateIn, partial=True))
    db.session.commit()
    return ok(dump(MaintenanceOut, maintenance), "Maintenance updated successfully")


@bp_renovations.delete("/maintenances/<int:intervention_id>")
@permission_required("maintenance-delete")
def delete_maintenance(intervention_id):
    lifecycle.delete_detail(get_or_404(Maintenance, intervention_id, "Maintenance"))
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_renovations.put("/maintenances/<int:intervention_id>/complete")
@permission_required("maintenance-edit")
def complete_maintenance(intervention_id):
    maintenance = get_or_404(Maintenance, intervention_id, "Maintenance")
    data = load(CompleteMaintenanceIn)
    lifecycle.complete_work(
        maintenance, data["machine_etat"], data["machine_date_prochaine_maint"],
        data.get("machine_valeur"),
    )
    db.session.commit()
    return ok(dump(MaintenanceOut, maintenance), "Maintenance completed successfully and machine status updated")


@bp_renovations.get("/maintenances/statistics")
@permission_required("maintenance-list")
def maintenance_statistics():
    stats = dashboard.maintenance_statistics()
    stats["recent"] = dump(MaintenanceOut, stats["recent"], many=True)
    return ok(stats)
