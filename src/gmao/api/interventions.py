from flask import Blueprint
from marshmallow import ValidationError

from .. import lifecycle
from ..auth import permission_required
from ..extensions import db
from ..models import Intervention, Machine, get_or_404
from ..workflow import STATUSES, COMPLETED
from .common import dump, load, ok
from .schemas import InterventionIn, InterventionOut, InterventionWithMachine

bp_interventions = Blueprint("interventions", __name__, url_prefix="/api")


def _ordered(query):
    return query.order_by(Intervention.date.desc(), Intervention.id.desc()).all()


@bp_interventions.get("/interventions")
@permission_required("intervention-list")
def list_interventions():
    return ok(dump(InterventionWithMachine, _ordered(db.session.query(Intervention)), many=True))


@bp_interventions.post("/interventions")
@permission_required("intervention-create")
def create_intervention():
    intervention = lifecycle.create_intervention(load(InterventionIn))
    db.session.commit()
    return ok(dump(InterventionOut, intervention), "Created successfully", 201)


@bp_interventions.get("/interventions/<int:intervention_id>")
@permission_required("intervention-view")
def show_intervention(intervention_id):
    return ok(dump(InterventionOut, get_or_404(Intervention, intervention_id, "Intervention")))


@bp_interventions.put("/interventions/<int:intervention_id>")
@permission_required("intervention-edit")
def update_intervention(intervention_id):
    intervention = get_or_404(Intervention, intervention_id, "Intervention")
    lifecycle.update_intervention(intervention, load(InterventionIn, partial=True))
    db.session.commit()
    return ok(dump(InterventionOut, intervention), "Updated successfully")


@bp_interventions.delete("/interventions/<int:intervention_id>")
@permission_required("intervention-delete")
def delete_intervention(intervention_id):
    lifecycle.delete_intervention(get_or_404(Intervention, intervention_id, "Intervention"))
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_interventions.get("/interventions/urgent")
@permission_required("intervention-list")
def urgent_interventions():
    query = db.session.query(Intervention).filter(
        Intervention.urgence.is_(True), Intervention.statut != COMPLETED
    )
    return ok(dump(InterventionWithMachine, _ordered(query), many=True))


@bp_interventions.get("/interventions/status/<status>")
@permission_required("intervention-list")
def interventions_by_status(status):
    status = status.upper()
    if status not in STATUSES:
        raise ValidationError({"status": [f"Must be one of: {', '.join(STATUSES)}."]})
    query = db.session.query(Intervention).filter_by(statut=status)
    return ok(dump(InterventionWithMachine, _ordered(query), many=True))


@bp_interventions.get("/interventions/machine/<int:machine_id>")
@permission_required("intervention-list")
def interventions_by_machine(machine_id):
    get_or_404(Machine, machine_id, "Machine")
    query = db.session.query(Intervention).filter_by(machine_id=machine_id)
    return ok(dump(InterventionWithMachine, _ordered(query), many=True))
