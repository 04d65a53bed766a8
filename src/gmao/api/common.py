from flask import jsonify, request

from ..errors import DuplicateRecord
from ..extensions import db
from ..models import (
    ControleQualite, Diagnostic, GestionAdministrative, Maintenance, Rapport, Renovation, Role,
    Utilisateur,
)
from .schemas import (
    ControleOut, DiagnosticOut, GestionOut, MaintenanceOut, RapportOut, RenovationOut, RoleOut,
    UtilisateurOut,
)

# schema usado para devolver o registro existente num conflito de duplicata
DUPLICATE_SCHEMAS = {
    Diagnostic: DiagnosticOut,
    ControleQualite: ControleOut,
    Renovation: RenovationOut,
    Maintenance: MaintenanceOut,
    Rapport: RapportOut,
    GestionAdministrative: GestionOut,
    Role: RoleOut,
    Utilisateur: UtilisateurOut,
}


def ok(data=None, message=None, status=200):
    body = {"data": data}
    if message:
        body["message"] = message
    return jsonify(body), status


def load(schema_cls, partial=False):
    return schema_cls().load(request.get_json(silent=True) or {}, partial=partial)


def dump(schema_cls, obj, many=False):
    return schema_cls(many=many).dump(obj)


def register_api_handlers(app):
    @app.errorhandler(DuplicateRecord)
    def handle_duplicate(err):
        db.session.rollback()
        schema_cls = DUPLICATE_SCHEMAS.get(type(err.record))
        data = schema_cls().dump(err.record) if schema_cls else None
        return jsonify({"message": err.message, "data": data}), err.status_code
