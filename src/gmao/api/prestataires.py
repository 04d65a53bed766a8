from flask import Blueprint

from ..auth import permission_required
from ..errors import Conflict
from ..extensions import db
from ..models import PrestataireExterne, Rapport, Utilisateur, get_all, get_or_404
from .common import dump, load, ok
from .schemas import PrestataireIn, PrestataireOut, RapportOut, UtilisateursIn

bp_prestataires = Blueprint("prestataires", __name__, url_prefix="/api")


def _apply(prestataire, data):
    for key in ("nom", "contrat", "rapport_operation"):
        if key in data:
            setattr(prestataire, key, data[key])
    if data.get("utilisateurs") is not None:
        prestataire.utilisateurs = get_all(Utilisateur, data["utilisateurs"], "utilisateurs")


@bp_prestataires.get("/prestataires")
@permission_required("prestataire-list")
def list_prestataires():
    rows = db.session.query(PrestataireExterne).order_by(PrestataireExterne.nom).all()
    return ok(dump(PrestataireOut, rows, many=True))


@bp_prestataires.post("/prestataires")
@permission_required("prestataire-create")
def create_prestataire():
    prestataire = PrestataireExterne()
    _apply(prestataire, load(PrestataireIn))
    db.session.add(prestataire)
    db.session.commit()
    return ok(dump(PrestataireOut, prestataire), "Created successfully", 201)


@bp_prestataires.get("/prestataires/<int:prestataire_id>")
@permission_required("prestataire-view")
def show_prestataire(prestataire_id):
    return ok(dump(PrestataireOut, get_or_404(PrestataireExterne, prestataire_id, "Prestataire")))


@bp_prestataires.put("/prestataires/<int:prestataire_id>")
@permission_required("prestataire-edit")
def update_prestataire(prestataire_id):
    prestataire = get_or_404(PrestataireExterne, prestataire_id, "Prestataire")
    _apply(prestataire, load(PrestataireIn, partial=True))
    db.session.commit()
    return ok(dump(PrestataireOut, prestataire), "Updated successfully")


@bp_prestataires.delete("/prestataires/<int:prestataire_id>")
@permission_required("prestataire-delete")
def delete_prestataire(prestataire_id):
    prestataire = get_or_404(PrestataireExterne, prestataire_id, "Prestataire")
    if prestataire.rapports:
        raise Conflict("Cannot delete a prestataire that still has rapports")
    db.session.delete(prestataire)
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_prestataires.get("/prestataires/<int:prestataire_id>/rapports")
@permission_required("prestataire-view")
def prestataire_rapports(prestataire_id):
    get_or_404(PrestataireExterne, prestataire_id, "Prestataire")
    rapports = (
        db.session.query(Rapport)
        .filter_by(prestataire_id=prestataire_id)
        .order_by(Rapport.date_creation.desc())
        .all()
    )
    return ok(dump(RapportOut, rapports, many=True))


@bp_prestataires.post("/prestataires/<int:prestataire_id>/users")
@permission_required("prestataire-edit")
def assign_prestataire_users(prestataire_id):
    prestataire = get_or_404(PrestataireExterne, prestataire_id, "Prestataire")
    prestataire.utilisateurs = get_all(Utilisateur, load(UtilisateursIn)["utilisateurs"], "utilisateurs")
    db.session.commit()
    return ok(dump(PrestataireOut, prestataire), "Users assigned successfully")
