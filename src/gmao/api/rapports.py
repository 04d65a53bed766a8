from flask import Blueprint

from .. import lifecycle
from ..auth import permission_required
from ..errors import NotFound
from ..extensions import db
from ..models import (
    GestionAdministrative, Maintenance, PrestataireExterne, Rapport, Renovation, get_or_404,
)
from .common import dump, load, ok
from .schemas import GestionIn, GestionOut, GestionUpdateIn, RapportIn, RapportOut, UtilisateursIn

bp_rapports = Blueprint("rapports", __name__, url_prefix="/api")


def _rapports(query):
    return dump(RapportOut, query.order_by(Rapport.date_creation.desc(), Rapport.id.desc()).all(), many=True)


# ---------------------------------------------------------------------------
# rapports
# ---------------------------------------------------------------------------

@bp_rapports.get("/rapports")
@permission_required("rapport-list")
def list_rapports():
    return ok(_rapports(db.session.query(Rapport)))


@bp_rapports.post("/rapports")
@permission_required("rapport-create")
def create_rapport():
    rapport = lifecycle.create_rapport(load(RapportIn))
    db.session.commit()
    return ok(dump(RapportOut, rapport), "Rapport created successfully", 201)


@bp_rapports.get("/rapports/<int:rapport_id>")
@permission_required("rapport-view")
def show_rapport(rapport_id):
    return ok(dump(RapportOut, get_or_404(Rapport, rapport_id, "Rapport")))


@bp_rapports.put("/rapports/<int:rapport_id>")
@permission_required("rapport-edit")
def update_rapport(rapport_id):
    rapport = get_or_404(Rapport, rapport_id, "Rapport")
    lifecycle.update_rapport(rapport, load(RapportIn, partial=True))
    db.session.commit()
    return ok(dump(RapportOut, rapport), "Rapport updated successfully")


@bp_rapports.delete("/rapports/<int:rapport_id>")
@permission_required("rapport-delete")
def delete_rapport(rapport_id):
    lifecycle.delete_rapport(get_or_404(Rapport, rapport_id, "Rapport"))
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_rapports.put("/rapports/<int:rapport_id>/validate")
@permission_required("rapport-validate")
def validate_rapport(rapport_id):
    rapport = get_or_404(Rapport, rapport_id, "Rapport")
    lifecycle.validate_rapport(rapport)
    db.session.commit()
    return ok(dump(RapportOut, rapport), "Rapport validated successfully")


@bp_rapports.get("/rapports/renovation/<int:renovation_id>")
@permission_required("rapport-view")
def rapport_by_renovation(renovation_id):
    rapport = get_or_404(Renovation, renovation_id, "Renovation").rapport
    if rapport is None:
        raise NotFound("No rapport found for this intervention")
    return ok(dump(RapportOut, rapport))


@bp_rapports.get("/rapports/maintenance/<int:maintenance_id>")
@permission_required("rapport-view")
def rapport_by_maintenance(maintenance_id):
    rapport = get_or_404(Maintenance, maintenance_id, "Maintenance").rapport
    if rapport is None:
        raise NotFound("No rapport found for this intervention")
    return ok(dump(RapportOut, rapport))


@bp_rapports.get("/rapports/prestataire/<int:prestataire_id>")
@permission_required("rapport-list")
def rapports_by_prestataire(prestataire_id):
    get_or_404(PrestataireExterne, prestataire_id, "Prestataire")
    return ok(_rapports(db.session.query(Rapport).filter_by(prestataire_id=prestataire_id)))


# ---------------------------------------------------------------------------
# gestão administrativa
# ---------------------------------------------------------------------------

@bp_rapports.get("/gestions")
@permission_required("gestion-list")
def list_gestions():
    gestions = db.session.query(GestionAdministrative).order_by(GestionAdministrative.id.desc()).all()
    return ok(dump(GestionOut, gestions, many=True))


@bp_rapports.post("/gestions")
@permission_required("gestion-create")
def create_gestion():
    gestion = lifecycle.create_gestion(load(GestionIn))
    db.session.commit()
    return ok(dump(GestionOut, gestion), "Created successfully", 201)


@bp_rapports.get("/gestions/<int:gestion_id>")
@permission_required("gestion-view")
def show_gestion(gestion_id):
    return ok(dump(GestionOut, get_or_404(GestionAdministrative, gestion_id, "Gestion")))


@bp_rapports.put("/gestions/<int:gestion_id>")
@permission_required("gestion-edit")
def update_gestion(gestion_id):
    gestion = get_or_404(GestionAdministrative, gestion_id, "Gestion")
    lifecycle.update_gestion(gestion, load(GestionUpdateIn, partial=True))
    db.session.commit()
    return ok(dump(GestionOut, gestion), "Updated successfully")


@bp_rapports.delete("/gestions/<int:gestion_id>")
@permission_required("gestion-delete")
def delete_gestion(gestion_id):
    lifecycle.delete_gestion(get_or_404(GestionAdministrative, gestion_id, "Gestion"))
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_rapports.put("/gestions/<int:gestion_id>/validate")
@permission_required("gestion-validate")
def validate_gestion(gestion_id):
    gestion = get_or_404(GestionAdministrative, gestion_id, "Gestion")
    lifecycle.validate_gestion(gestion)
    db.session.commit()
    return ok(dump(GestionOut, gestion), "Gestion administrative validated successfully")


@bp_rapports.post("/gestions/<int:gestion_id>/users")
@permission_required("gestion-edit")
def assign_gestion_users(gestion_id):
    gestion = get_or_404(GestionAdministrative, gestion_id, "Gestion")
    lifecycle.set_gestion_users(gestion, load(UtilisateursIn)["utilisateurs"])
    db.session.commit()
    return ok(dump(GestionOut, gestion), "Users assigned successfully")


@bp_rapports.get("/gestions/rapport/<int:rapport_id>")
@permission_required("gestion-view")
def gestion_by_rapport(rapport_id):
    gestion = get_or_404(Rapport, rapport_id, "Rapport").gestion
    if gestion is None:
        raise NotFound("No gestion administrative found for this rapport")
    return ok(dump(GestionOut, gestion))
