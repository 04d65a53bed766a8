import logging

from flask import Flask
from flask_admin import Admin
from flask_admin.contrib.sqla import ModelView
from flask_admin.theme import Bootstrap4Theme

from .config import Config
from .errors import register_error_handlers
from .extensions import db, migrate, cors
from .models import (
    Machine, Intervention, Diagnostic, Renovation, Maintenance, ControleQualite, Rapport,
    GestionAdministrative, Planification, Section, Utilisateur, Role, Permission,
    PrestataireExterne,
)
from .api.common import register_api_handlers
from .api.auth import bp_auth
from .api.machines import bp_machines
from .api.interventions import bp_interventions
from .api.diagnostics import bp_diagnostics
from .api.renovations import bp_renovations
from .api.rapports import bp_rapports
from .api.planifications import bp_planifications
from .api.utilisateurs import bp_utilisateurs
from .api.roles import bp_roles
from .api.prestataires import bp_prestataires
from .api.dashboard import bp_dashboard

BLUEPRINTS = (
    bp_auth, bp_machines, bp_interventions, bp_diagnostics, bp_renovations, bp_rapports,
    bp_planifications, bp_utilisateurs, bp_roles, bp_prestataires, bp_dashboard,
)
ADMIN_MODELS = (
    Machine, Intervention, Diagnostic, Renovation, Maintenance, ControleQualite, Rapport,
    GestionAdministrative, Planification, Section, Utilisateur, Role, Permission,
    PrestataireExterne,
)


class UtilisateurView(ModelView):
    # hash e token não aparecem no painel
    column_exclude_list = ("credentials", "api_token")
    form_excluded_columns = ("credentials", "api_token")


def init_admin(app):
    admin = Admin(app, name="GMAO", theme=Bootstrap4Theme())
    for model in ADMIN_MODELS:
        view_cls = UtilisateurView if model is Utilisateur else ModelView
        admin.add_view(view_cls(model, db))
    return admin


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cors.init_app(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})
    db.init_app(app)
    migrate.init_app(app, db)

    for bp in BLUEPRINTS:
        app.register_blueprint(bp)
    register_error_handlers(app)
    register_api_handlers(app)

    if app.config["ADMIN_ENABLED"]:
        init_admin(app)

    @app.get("/health")
    def health(): return {"status": "ok"}
    return app


app = create_app()
