from sqlalchemy import CheckConstraint, UniqueConstraint
from werkzeug.security import generate_password_hash, check_password_hash

from marshmallow import ValidationError

from .errors import NotFound
from .extensions import db
from .workflow import STATUSES, PENDING

MACHINE_ETATS = ("OPERATIONNEL", "EN_MAINTENANCE", "HORS_SERVICE")
TYPE_RENOVATION = "Rénovation"
TYPE_MAINTENANCE = "Maintenance"


def get_or_404(model, ident, label=None):
    obj = db.session.get(model, ident)
    if obj is None:
        raise NotFound(f"{label or model.__name__} not found")
    return obj


def get_all(model, ids, field):
    """Carrega os registros pelos ids; ids inexistentes viram erro de validação do campo."""
    ids = list(dict.fromkeys(ids or []))
    if not ids:
        return []
    found = {obj.id: obj for obj in db.session.query(model).filter(model.id.in_(ids))}
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationError({field: [f"Unknown ids: {missing}"]})
    return [found[i] for i in ids]


def _in(column, values):
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


# tabelas de associação (many-to-many)
intervention_utilisateurs = db.Table(
    "INTERVENTIONS_UTILISATEURS",
    db.Column("intervention_id", db.Integer, db.ForeignKey("INTERVENTIONS.id"), primary_key=True),
    db.Column("utilisateur_id", db.Integer, db.ForeignKey("UTILISATEURS.id"), primary_key=True),
)

planification_interventions = db.Table(
    "PLANIFICATIONS_INTERVENTIONS",
    db.Column("planification_id", db.Integer, db.ForeignKey("PLANIFICATIONS.id"), primary_key=True),
    db.Column("intervention_id", db.Integer, db.ForeignKey("INTERVENTIONS.id"), primary_key=True),
)

utilisateur_roles = db.Table(
    "UTILISATEURS_ROLES",
    db.Column("utilisateur_id", db.Integer, db.ForeignKey("UTILISATEURS.id"), primary_key=True),
    db.Column("role_id", db.Integer, db.ForeignKey("ROLES.id"), primary_key=True),
)

role_permissions = db.Table(
    "ROLES_PERMISSIONS",
    db.Column("role_id", db.Integer, db.ForeignKey("ROLES.id"), primary_key=True),
    db.Column("permission_id", db.Integer, db.ForeignKey("PERMISSIONS.id"), primary_key=True),
)

utilisateur_prestataires = db.Table(
    "UTILISATEURS_PRESTATAIRES",
    db.Column("utilisateur_id", db.Integer, db.ForeignKey("UTILISATEURS.id"), primary_key=True),
    db.Column("prestataire_id", db.Integer, db.ForeignKey("PRESTATAIRES.id"), primary_key=True),
)

utilisateur_gestions = db.Table(
    "UTILISATEURS_GESTIONS",
    db.Column("utilisateur_id", db.Integer, db.ForeignKey("UTILISATEURS.id"), primary_key=True),
    db.Column("gestion_id", db.Integer, db.ForeignKey("GESTIONS.id"), primary_key=True),
)


class Machine(db.Model):
    __tablename__ = "MACHINES"
    __table_args__ = (CheckConstraint(_in("etat", MACHINE_ETATS), name="ck_machine_etat"),)

    id = db.Column(db.Integer, primary_key=True)
    nom = db.Column(db.String(255), nullable=False)
    etat = db.Column(db.String(30), nullable=False, default="OPERATIONNEL")
    valeur = db.Column(db.String(100), nullable=False)
    type = db.Column(db.String(100))
    date_prochaine_maint = db.Column(db.Date)

    interventions = db.relationship(
        "Intervention", back_populates="machine", order_by="Intervention.date.desc()"
    )


class Intervention(db.Model):
    __tablename__ = "INTERVENTIONS"
    __table_args__ = (CheckConstraint(_in("statut", STATUSES), name="ck_intervention_statut"),)

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False)
    description = db.Column(db.Text, nullable=False)
    type_operation = db.Column(db.String(100), nullable=False)
    statut = db.Column(db.String(20), nullable=False, default=PENDING)
    urgence = db.Column(db.Boolean, nullable=False, default=False)
    observation = db.Column(db.Text)
    machine_id = db.Column(db.Integer, db.ForeignKey("MACHINES.id"), nullable=False)

    machine = db.relationship("Machine", back_populates="interventions")
    utilisateurs = db.relationship(
        "Utilisateur", secondary=intervention_utilisateurs, back_populates="interventions"
    )
    planifications = db.relationship(
        "Planification", secondary=planification_interventions, back_populates="interventions"
    )
    diagnostic = db.relationship(
        "Diagnostic", back_populates="intervention", uselist=False, cascade="all, delete-orphan"
    )
    controle_qualite = db.relationship(
        "ControleQualite", back_populates="intervention", uselist=False, cascade="all, delete-orphan"
    )
    renovation = db.relationship(
        "Renovation", back_populates="intervention", uselist=False, cascade="all, delete-orphan"
    )
    maintenance = db.relationship(
        "Maintenance", back_populates="intervention", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def rapport(self):
        detail = self.renovation or self.maintenance
        return detail.rapport if detail else None


class Diagnostic(db.Model):
    __tablename__ = "DIAGNOSTICS"

    id = db.Column(db.Integer, primary_key=True)
    date_creation = db.Column(db.Date, nullable=False)
    intervention_id = db.Column(
        db.Integer, db.ForeignKey("INTERVENTIONS.id"), nullable=False, unique=True
    )

    intervention = db.relationship("Intervention", back_populates="diagnostic")
    travaux = db.relationship(
        "TravailRequis", cascade="all, delete-orphan", order_by="TravailRequis.id"
    )
    besoins = db.relationship(
        "BesoinPDR", cascade="all, delete-orphan", order_by="BesoinPDR.id"
    )
    charges = db.relationship(
        "ChargeRealisee", cascade="all, delete-orphan", order_by="ChargeRealisee.id"
    )


class TravailRequis(db.Model):
    __tablename__ = "DIAGNOSTIC_TRAVAUX"
    id = db.Column(db.Integer, primary_key=True)
    diagnostic_id = db.Column(db.Integer, db.ForeignKey("DIAGNOSTICS.id"), nullable=False)
    travail = db.Column(db.String(255), nullable=False)


class BesoinPDR(db.Model):
    __tablename__ = "DIAGNOSTIC_BESOINS_PDR"
    id = db.Column(db.Integer, primary_key=True)
    diagnostic_id = db.Column(db.Integer, db.ForeignKey("DIAGNOSTICS.id"), nullable=False)
    besoin = db.Column(db.String(255), nullable=False)


class ChargeRealisee(db.Model):
    __tablename__ = "DIAGNOSTIC_CHARGES"
    id = db.Column(db.Integer, primary_key=True)
    diagnostic_id = db.Column(db.Integer, db.ForeignKey("DIAGNOSTICS.id"), nullable=False)
    charge = db.Column(db.String(255), nullable=False)


class Renovation(db.Model):
    __tablename__ = "RENOVATIONS"

    intervention_id = db.Column(db.Integer, db.ForeignKey("INTERVENTIONS.id"), primary_key=True)
    disponibilite_pdr = db.Column(db.Boolean, nullable=False, default=False)
    objectif = db.Column(db.Text, nullable=False)
    cout = db.Column(db.Numeric(12, 2), nullable=False)
    duree_estimee = db.Column(db.Integer, nullable=False)

    intervention = db.relationship("Intervention", back_populates="renovation")
    rapport = db.relationship("Rapport", back_populates="renovation", uselist=False)


class Maintenance(db.Model):
    __tablename__ = "MAINTENANCES"

    intervention_id = db.Column(db.Integer, db.ForeignKey("INTERVENTIONS.id"), primary_key=True)
    type_maintenance = db.Column(db.String(100), nullable=False)
    duree = db.Column(db.Integer, nullable=False)

    intervention = db.relationship("Intervention", back_populates="maintenance")
    pieces = db.relationship(
        "MaintenancePiece", cascade="all, delete-orphan", order_by="MaintenancePiece.id"
    )
    rapport = db.relationship("Rapport", back_populates="maintenance", uselist=False)


class MaintenancePiece(db.Model):
    __tablename__ = "MAINTENANCE_PIECES"
    id = db.Column(db.Integer, primary_key=True)
    maintenance_id = db.Column(
        db.Integer, db.ForeignKey("MAINTENANCES.intervention_id"), nullable=False
    )
    piece = db.Column(db.String(255), nullable=False)


class ControleQualite(db.Model):
    __tablename__ = "CONTROLES_QUALITE"

    id = db.Column(db.Integer, primary_key=True)
    date_controle = db.Column(db.Date, nullable=False)
    intervention_id = db.Column(
        db.Integer, db.ForeignKey("INTERVENTIONS.id"), nullable=False, unique=True
    )
    resultats_essais = db.Column(db.Text)
    analyse_vibratoire = db.Column(db.Text)
    conformite = db.Column(db.Boolean, nullable=False, default=False)
    actions_correctives = db.Column(db.Text)

    intervention = db.relationship("Intervention", back_populates="controle_qualite")


class Rapport(db.Model):
    __tablename__ = "RAPPORTS"

    id = db.Column(db.Integer, primary_key=True)
    titre = db.Column(db.String(255))
    date_creation = db.Column(db.Date, nullable=False)
    contenu = db.Column(db.Text, nullable=False)
    validation = db.Column(db.Boolean, nullable=False, default=False)
    renovation_id = db.Column(
        db.Integer, db.ForeignKey("RENOVATIONS.intervention_id"), unique=True
    )
    maintenance_id = db.Column(
        db.Integer, db.ForeignKey("MAINTENANCES.intervention_id"), unique=True
    )
    prestataire_id = db.Column(db.Integer, db.ForeignKey("PRESTATAIRES.id"))

    renovation = db.relationship("Renovation", back_populates="rapport")
    maintenance = db.relationship("Maintenance", back_populates="rapport")
    prestataire = db.relationship("PrestataireExterne", back_populates="rapports")
    gestion = db.relationship("GestionAdministrative", back_populates="rapport", uselist=False)

    @property
    def intervention(self):
        """Intervenção de origem (via renovação ou manutenção); None para prestador externo."""
        detail = self.renovation or self.maintenance
        return detail.intervention if detail else None


class GestionAdministrative(db.Model):
    __tablename__ = "GESTIONS"

    id = db.Column(db.Integer, primary_key=True)
    commande_achat = db.Column(db.Text)
    facturation = db.Column(db.Text)
    validation = db.Column(db.Boolean, nullable=False, default=False)
    rapport_id = db.Column(db.Integer, db.ForeignKey("RAPPORTS.id"), nullable=False, unique=True)

    rapport = db.relationship("Rapport", back_populates="gestion")
    utilisateurs = db.relationship(
        "Utilisateur", secondary=utilisateur_gestions, back_populates="gestions"
    )


class Planification(db.Model):
    __tablename__ = "PLANIFICATIONS"

    id = db.Column(db.Integer, primary_key=True)
    date_creation = db.Column(db.Date, nullable=False)
    capacite_execution = db.Column(db.Integer, nullable=False)
    urgence_prise = db.Column(db.Boolean, nullable=False, default=False)
    disponibilite_pdr = db.Column(db.Boolean, nullable=False, default=False)
    utilisateur_id = db.Column(db.Integer, db.ForeignKey("UTILISATEURS.id"), nullable=False)

    utilisateur = db.relationship("Utilisateur", back_populates="planifications")
    interventions = db.relationship(
        "Intervention", secondary=planification_interventions, back_populates="planifications"
    )


class Section(db.Model):
    __tablename__ = "SECTIONS"

    id = db.Column(db.Integer, primary_key=True)
    nom = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(100), nullable=False)
    responsable_id = db.Column(
        db.Integer,
        db.ForeignKey("UTILISATEURS.id", use_alter=True, name="fk_section_responsable"),
    )

    responsable = db.relationship("Utilisateur", foreign_keys=[responsable_id])
    utilisateurs = db.relationship(
        "Utilisateur", back_populates="section_rel", foreign_keys="Utilisateur.section_id"
    )


class Utilisateur(db.Model):
    __tablename__ = "UTILISATEURS"

    id = db.Column(db.Integer, primary_key=True)
    nom = db.Column(db.String(255), nullable=False, unique=True)
    section = db.Column(db.String(255))
    credentials = db.Column(db.String(255), nullable=False)
    section_id = db.Column(db.Integer, db.ForeignKey("SECTIONS.id"))
    api_token = db.Column(db.String(80), unique=True, index=True)

    section_rel = db.relationship(
        "Section", back_populates="utilisateurs", foreign_keys=[section_id]
    )
    roles = db.relationship("Role", secondary=utilisateur_roles, back_populates="utilisateurs")
    interventions = db.relationship(
        "Intervention", secondary=intervention_utilisateurs, back_populates="utilisateurs"
    )
    planifications = db.relationship("Planification", back_populates="utilisateur")
    prestataires = db.relationship(
        "PrestataireExterne", secondary=utilisateur_prestataires, back_populates="utilisateurs"
    )
    gestions = db.relationship(
        "GestionAdministrative", secondary=utilisateur_gestions, back_populates="utilisateurs"
    )

    def set_password(self, password):
        self.credentials = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.credentials, password)


class Role(db.Model):
    __tablename__ = "ROLES"

    id = db.Column(db.Integer, primary_key=True)
    nom = db.Column(db.String(255), nullable=False, unique=True)
    cout = db.Column(db.Float, nullable=False, default=0)

    permissions = db.relationship(
        "Permission", secondary=role_permissions, back_populates="roles"
    )
    utilisateurs = db.relationship(
        "Utilisateur", secondary=utilisateur_roles, back_populates="roles"
    )


class Permission(db.Model):
    __tablename__ = "PERMISSIONS"
    __table_args__ = (UniqueConstraint("module", "action", name="uq_permission_module_action"),)

    id = db.Column(db.Integer, primary_key=True)
    module = db.Column(db.String(100), nullable=False)
    action = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(255))

    roles = db.relationship("Role", secondary=role_permissions, back_populates="permissions")

    @property
    def key(self):
        return f"{self.module}-{self.action}"


class PrestataireExterne(db.Model):
    __tablename__ = "PRESTATAIRES"

    id = db.Column(db.Integer, primary_key=True)
    nom = db.Column(db.String(255), nullable=False)
    contrat = db.Column(db.Text)
    rapport_operation = db.Column(db.Text)

    utilisateurs = db.relationship(
        "Utilisateur", secondary=utilisateur_prestataires, back_populates="prestataires"
    )
    rapports = db.relationship("Rapport", back_populates="prestataire")
