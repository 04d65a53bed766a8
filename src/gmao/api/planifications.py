from flask import Blueprint

from .. import lifecycle
from ..auth import permission_required
from ..extensions import db
from ..models import Intervention, Planification, Utilisateur, get_or_404
from .common import dump, load, ok
from .schemas import PlanificationIn, PlanificationInterventionIn, PlanificationOut

bp_planifications = Blueprint("planifications", __name__, url_prefix="/api")


def _planifications(query):
    rows = query.order_by(Planification.date_creation.desc(), Planification.id.desc()).all()
    return dump(PlanificationOut, rows, many=True)


@bp_planifications.get("/planifications")
@permission_required("planification-list")
def list_planifications():
    return ok(_planifications(db.session.query(Planification)))


@bp_planifications.post("/planifications")
@permission_required("planification-create")
def create_planification():
    planification = lifecycle.create_planification(load(PlanificationIn))
    db.session.commit()
    return ok(dump(PlanificationOut, planification), "Created successfully", 201)


@bp_planifications.get("/planifications/<int:planification_id>")
@permission_required("planification-view")
def show_planification(planification_id):
    return ok(dump(PlanificationOut, get_or_404(Planification, planification_id, "Planification")))


@bp_planifications.put("/planifications/<int:planification_id>")
@permission_required("planification-edit")
def update_planification(planification_id):
    planification = get_or_404(Planification, planification_id, "Planification")
    lifecycle.update_planification(planification, load(PlanificationIn, partial=True))
    db.session.commit()
    return ok(dump(PlanificationOut, planification), "Updated successfully")


@bp_planifications.delete("/planifications/<int:planification_id>")
@permission_required("planification-delete")
def delete_planification(planification_id):
    lifecycle.delete_planification(get_or_404(Planification, planification_id, "Planification"))
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_planifications.post("/planifications/<int:planification_id>/interventions")
@permission_required("planification-edit")
def add_intervention(planification_id):
    planification = get_or_404(Planification, planification_id, "Planification")
    intervention_id = load(PlanificationInterventionIn)["intervention_id"]
    lifecycle.add_to_planification(
        planification, get_or_404(Intervention, intervention_id, "Intervention")
    )
    db.session.commit()
    return ok(dump(PlanificationOut, planification), "Intervention added to planification")


@bp_planifications.delete("/planifications/<int:planification_id>/interventions/<int:intervention_id>")
@permission_required("planification-edit")
def remove_intervention(planification_id, intervention_id):
    planification = get_or_404(Planification, planification_id, "Planification")
    lifecycle.remove_from_planification(
        planification, get_or_404(Intervention, intervention_id, "Intervention")
    )
    db.session.commit()
    return ok(dump(PlanificationOut, planification), "Intervention removed from planification")


@bp_planifications.get("/planifications/user/<int:user_id>")
@permission_required("planification-list")
def planifications_by_user(user_id):
    get_or_404(Utilisateur, user_id, "Utilisateur")
    return ok(_planifications(db.session.query(Planification).filter_by(utilisateur_id=user_id)))
