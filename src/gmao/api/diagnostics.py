from flask import Blueprint

from .. import lifecycle
from ..auth import permission_required
from ..errors import NotFound
from ..extensions import db
from ..models import ControleQualite, Diagnostic, get_or_404
from .common import dump, load, ok
from .schemas import ControleIn, ControleOut, ControleUpdateIn, DiagnosticIn, DiagnosticOut

bp_diagnostics = Blueprint("diagnostics", __name__, url_prefix="/api")


# ---------------------------------------------------------------------------
# diagnósticos
# ---------------------------------------------------------------------------

@bp_diagnostics.get("/diagnostics")
@permission_required("diagnostic-list")
def list_diagnostics():
    diagnostics = db.session.query(Diagnostic).order_by(Diagnostic.date_creation.desc()).all()
    return ok(dump(DiagnosticOut, diagnostics, many=True))


@bp_diagnostics.post("/diagnostics")
@permission_required("diagnostic-create")
def create_diagnostic():
    diagnostic = lifecycle.create_diagnostic(load(DiagnosticIn))
    db.session.commit()
    return ok(dump(DiagnosticOut, diagnostic), "Diagnostic created successfully", 201)


@bp_diagnostics.get("/diagnostics/<int:diagnostic_id>")
@permission_required("diagnostic-view")
def show_diagnostic(diagnostic_id):
    return ok(dump(DiagnosticOut, get_or_404(Diagnostic, diagnostic_id, "Diagnostic")))


@bp_diagnostics.put("/diagnostics/<int:diagnostic_id>")
@permission_required("diagnostic-edit")
def update_diagnostic(diagnostic_id):
    diagnostic = get_or_404(Diagnostic, diagnostic_id, "Diagnostic")
    data = load(DiagnosticIn, partial=True)
    # a intervenção do diagnóstico é fixa
    data.pop("intervention_id", None)
    lifecycle.update_diagnostic(diagnostic, data)
    db.session.commit()
    return ok(dump(DiagnosticOut, diagnostic), "Diagnostic updated successfully")


@bp_diagnostics.delete("/diagnostics/<int:diagnostic_id>")
@permission_required("diagnostic-delete")
def delete_diagnostic(diagnostic_id):
    db.session.delete(get_or_404(Diagnostic, diagnostic_id, "Diagnostic"))
    db.session.commit()
    return ok(None, "Diagnostic deleted successfully")


@bp_diagnostics.get("/diagnostics/intervention/<int:intervention_id>")
@permission_required("diagnostic-view")
def diagnostic_by_intervention(intervention_id):
    diagnostic = db.session.query(Diagnostic).filter_by(intervention_id=intervention_id).first()
    if diagnostic is None:
        raise NotFound("No diagnostic found for this intervention")
    return ok(dump(DiagnosticOut, diagnostic))


# ---------------------------------------------------------------------------
# controles de qualidade
# ---------------------------------------------------------------------------

@bp_diagnostics.get("/controles")
@permission_required("controle-list")
def list_controles():
    controles = db.session.query(ControleQualite).order_by(ControleQualite.date_controle.desc()).all()
    return ok(dump(ControleOut, controles, many=True))


@bp_diagnostics.post("/controles")
@permission_required("controle-create")
def create_controle():
    controle = lifecycle.create_controle(load(ControleIn))
    db.session.commit()
    return ok(dump(ControleOut, controle), "Created successfully", 201)


@bp_diagnostics.get("/controles/<int:controle_id>")
@permission_required("controle-view")
def show_controle(controle_id):
    return ok(dump(ControleOut, get_or_404(ControleQualite, controle_id, "Controle")))


@bp_diagnostics.put("/controles/<int:controle_id>")
@permission_required("controle-edit")
def update_controle(controle_id):
    controle = get_or_404(ControleQualite, controle_id, "Controle")
    lifecycle.update_controle(controle, load(ControleUpdateIn, partial=True))
    db.session.commit()
    return ok(dump(ControleOut, controle), "Updated successfully")


@bp_diagnostics.delete("/controles/<int:controle_id>")
@permission_required("controle-delete")
def delete_controle(controle_id):
    db.session.delete(get_or_404(ControleQualite, controle_id, "Controle"))
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_diagnostics.get("/controles/intervention/<int:intervention_id>")
@permission_required("controle-view")
def controle_by_intervention(intervention_id):
    controle = db.session.query(ControleQualite).filter_by(intervention_id=intervention_id).first()
    if controle is None:
        raise NotFound("No quality control found for this intervention")
    return ok(dump(ControleOut, controle))
