from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates

from ..models import MACHINE_ETATS
from ..permissions import parse_permission_key
from ..workflow import STATUSES


class BaseSchema(Schema):
    class Meta:
        unknown = EXCLUDE


def _ids(**kwargs):
    return fields.List(fields.Int(), **kwargs)


def _lines(**kwargs):
    return fields.List(fields.Str(validate=validate.Length(min=1, max=255)), **kwargs)


def _text(**kwargs):
    return fields.Str(allow_none=True, **kwargs)


# ---------------------------------------------------------------------------
# entrada (load)
# ---------------------------------------------------------------------------

class LoginIn(BaseSchema):
    nom = fields.Str(required=True, validate=validate.Length(min=1))
    password = fields.Str(required=True, validate=validate.Length(min=1))


class CheckPermissionsIn(BaseSchema):
    permissions = fields.List(fields.Str(), required=True)


class MachineIn(BaseSchema):
    nom = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    etat = fields.Str(required=True, validate=validate.OneOf(MACHINE_ETATS))
    valeur = fields.Str(required=True, validate=validate.Length(max=100))
    type = _text(validate=validate.Length(max=100))
    date_prochaine_maint = fields.Date(data_key="dateProchaineMaint", allow_none=True)


class MachineStatusIn(BaseSchema):
    etat = fields.Str(required=True, validate=validate.OneOf(MACHINE_ETATS))
    date_prochaine_maint = fields.Date(data_key="dateProchaineMaint", required=True)


class InterventionIn(BaseSchema):
    date = fields.Date(required=True)
    description = fields.Str(required=True, validate=validate.Length(min=1))
    type_operation = fields.Str(
        data_key="typeOperation", required=True, validate=validate.Length(min=1, max=100)
    )
    statut = fields.Str(validate=validate.OneOf(STATUSES))
    urgence = fields.Bool(load_default=False)
    observation = _text()
    machine_id = fields.Int(required=True)
    utilisateurs = _ids()


class DiagnosticIn(BaseSchema):
    date_creation = fields.Date(data_key="dateCreation", required=True)
    intervention_id = fields.Int(required=True)
    travaux = _lines()
    besoins = _lines()
    charges = _lines()


class RenovationIn(BaseSchema):
    intervention_id = fields.Int(required=True)
    disponibilite_pdr = fields.Bool(data_key="disponibilitePDR", required=True)
    objectif = fields.Str(required=True, validate=validate.Length(min=1))
    cout = fields.Decimal(required=True, places=2, validate=validate.Range(min=0))
    duree_estimee = fields.Int(data_key="dureeEstimee", required=True, validate=validate.Range(min=0))


class RenovationUpdateIn(RenovationIn):
    class Meta(BaseSchema.Meta):
        exclude = ("intervention_id",)


class MaintenanceIn(BaseSchema):
    intervention_id = fields.Int(required=True)
    type_maintenance = fields.Str(
        data_key="typeMaintenance", required=True, validate=validate.Length(min=1, max=100)
    )
    duree = fields.Int(required=True, validate=validate.Range(min=0))
    pieces = _lines(allow_none=True)


class MaintenanceUpdateIn(MaintenanceIn):
    class Meta(BaseSchema.Meta):
        exclude = ("intervention_id",)


class CompleteRenovationIn(BaseSchema):
    machine_etat = fields.Str(required=True, validate=validate.OneOf(MACHINE_ETATS))
    machine_valeur = fields.Str(required=True, validate=validate.Length(max=100))
    machine_date_prochaine_maint = fields.Date(data_key="machine_dateProchaineMaint", required=True)


class CompleteMaintenanceIn(CompleteRenovationIn):
    machine_valeur = fields.Str(validate=validate.Length(max=100))


class ControleIn(BaseSchema):
    date_controle = fields.Date(data_key="dateControle", required=True)
    intervention_id = fields.Int(required=True)
    resultats_essais = _text(data_key="resultatsEssais")
    analyse_vibratoire = _text(data_key="analyseVibratoire")
    conformite = fields.Bool(load_default=False)
    actions_correctives = _text(data_key="actionsCorrectives")


class ControleUpdateIn(ControleIn):
    class Meta(BaseSchema.Meta):
        exclude = ("intervention_id",)


class RapportIn(BaseSchema):
    titre = _text(validate=validate.Length(max=255))
    date_creation = fields.Date(data_key="dateCreation", required=True)
    contenu = fields.Str(required=True, validate=validate.Length(min=1))
    validation = fields.Bool(load_default=False)
    renovation_id = fields.Int(allow_none=True)
    maintenance_id = fields.Int(allow_none=True)
    prestataire_id = fields.Int(allow_none=True)


class GestionIn(BaseSchema):
    commande_achat = _text(data_key="commandeAchat")
    facturation = _text()
    validation = fields.Bool(load_default=False)
    rapport_id = fields.Int(required=True)
    utilisateurs = _ids(allow_none=True)


class GestionUpdateIn(GestionIn):
    class Meta(BaseSchema.Meta):
        exclude = ("rapport_id",)


class PlanificationIn(BaseSchema):
    date_creation = fields.Date(data_key="dateCreation", required=True)
    capacite_execution = fields.Int(
        data_key="capaciteExecution", required=True, validate=validate.Range(min=0)
    )
    urgence_prise = fields.Bool(data_key="urgencePrise", load_default=False)
    disponibilite_pdr = fields.Bool(data_key="disponibilitePDR", load_default=False)
    utilisateur_id = fields.Int(required=True)
    interventions = _ids(allow_none=True)


class PlanificationInterventionIn(BaseSchema):
    intervention_id = fields.Int(required=True)


class UtilisateurIn(BaseSchema):
    nom = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    section = _text(validate=validate.Length(max=255))
    credentials = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    section_id = fields.Int(allow_none=True)
    roles = _ids(allow_none=True)


class SectionIn(BaseSchema):
    nom = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    type = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    responsable_id = fields.Int(allow_none=True)


class RoleIn(BaseSchema):
    nom = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    cout = fields.Float(load_default=0)
    permissions = _ids(allow_none=True)


class PermissionIn(BaseSchema):
    module = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    action = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    description = _text(validate=validate.Length(max=255))

    @validates("module")
    def validate_module(self, value, **kwargs):
        if "-" in value:
            raise ValidationError("The module name cannot contain '-'.")

    @validates("action")
    def validate_action(self, value, **kwargs):
        try:
            parse_permission_key(f"module-{value}")
        except ValueError:
            raise ValidationError("Invalid action name.")


class GenerateCrudIn(BaseSchema):
    module = fields.Str(required=True, validate=validate.Length(min=1, max=100))


class PrestataireIn(BaseSchema):
    nom = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    contrat = _text()
    rapport_operation = _text(data_key="rapportOperation")
    utilisateurs = _ids(allow_none=True)


UtilisateursIn = BaseSchema.from_dict({"utilisateurs": _ids(required=True)}, name="UtilisateursIn")
RolesIn = BaseSchema.from_dict({"roles": _ids(required=True)}, name="RolesIn")
PermissionsIn = BaseSchema.from_dict({"permissions": _ids(required=True)}, name="PermissionsIn")


# ---------------------------------------------------------------------------
# saída (dump)
# ---------------------------------------------------------------------------

class PermissionOut(Schema):
    id = fields.Int()
    module = fields.Str()
    action = fields.Str()
    description = fields.Str()
    key = fields.Str()


class RoleBrief(Schema):
    id = fields.Int()
    nom = fields.Str()
    cout = fields.Float()


class RoleWithPermissions(RoleBrief):
    permissions = fields.Nested(PermissionOut, many=True)


class UtilisateurBrief(Schema):
    id = fields.Int()
    nom = fields.Str()
    section = fields.Str()
    section_id = fields.Int()


class SectionBrief(Schema):
    id = fields.Int()
    nom = fields.Str()
    type = fields.Str()
    responsable_id = fields.Int()


class MachineBrief(Schema):
    id = fields.Int()
    nom = fields.Str()
    etat = fields.Str()
    valeur = fields.Str()
    type = fields.Str()
    date_prochaine_maint = fields.Date(data_key="dateProchaineMaint")


class InterventionBrief(Schema):
    id = fields.Int()
    date = fields.Date()
    description = fields.Str()
    type_operation = fields.Str(data_key="typeOperation")
    statut = fields.Str()
    urgence = fields.Bool()
    observation = fields.Str()
    machine_id = fields.Int()


class InterventionWithMachine(InterventionBrief):
    machine = fields.Nested(MachineBrief)


class DiagnosticBrief(Schema):
    id = fields.Int()
    date_creation = fields.Date(data_key="dateCreation")
    intervention_id = fields.Int()
    travaux = fields.Pluck("TravailOut", "travail", many=True)
    besoins = fields.Pluck("BesoinOut", "besoin", many=True)
    charges = fields.Pluck("ChargeOut", "charge", many=True)


class TravailOut(Schema):
    travail = fields.Str()


class BesoinOut(Schema):
    besoin = fields.Str()


class ChargeOut(Schema):
    charge = fields.Str()


class PieceOut(Schema):
    piece = fields.Str()


class ControleBrief(Schema):
    id = fields.Int()
    date_controle = fields.Date(data_key="dateControle")
    intervention_id = fields.Int()
    resultats_essais = fields.Str(data_key="resultatsEssais")
    analyse_vibratoire = fields.Str(data_key="analyseVibratoire")
    conformite = fields.Bool()
    actions_correctives = fields.Str(data_key="actionsCorrectives")


class GestionBrief(Schema):
    id = fields.Int()
    commande_achat = fields.Str(data_key="commandeAchat")
    facturation = fields.Str()
    validation = fields.Bool()
    rapport_id = fields.Int()


class PrestataireBrief(Schema):
    id = fields.Int()
    nom = fields.Str()
    contrat = fields.Str()
    rapport_operation = fields.Str(data_key="rapportOperation")


class RapportBrief(Schema):
    id = fields.Int()
    titre = fields.Str()
    date_creation = fields.Date(data_key="dateCreation")
    contenu = fields.Str()
    validation = fields.Bool()
    renovation_id = fields.Int()
    maintenance_id = fields.Int()
    prestataire_id = fields.Int()
    intervention_id = fields.Method("get_intervention_id")

    def get_intervention_id(self, obj):
        intervention = obj.intervention
        return intervention.id if intervention else None


class RenovationBrief(Schema):
    intervention_id = fields.Int()
    disponibilite_pdr = fields.Bool(data_key="disponibilitePDR")
    objectif = fields.Str()
    cout = fields.Float()
    duree_estimee = fields.Int(data_key="dureeEstimee")


class MaintenanceBrief(Schema):
    intervention_id = fields.Int()
    type_maintenance = fields.Str(data_key="typeMaintenance")
    duree = fields.Int()
    pieces = fields.Pluck(PieceOut, "piece", many=True)


class MachineOut(MachineBrief):
    interventions = fields.Nested(InterventionBrief, many=True)


class InterventionOut(InterventionBrief):
    machine = fields.Nested(MachineBrief)
    utilisateurs = fields.Nested(UtilisateurBrief, many=True)
    diagnostic = fields.Nested(DiagnosticBrief, allow_none=True)
    controle_qualite = fields.Nested(ControleBrief, data_key="controleQualite", allow_none=True)
    renovation = fields.Nested(RenovationBrief, allow_none=True)
    maintenance = fields.Nested(MaintenanceBrief, allow_none=True)
    planifications = fields.Pluck("PlanificationBrief", "id", many=True)


class DiagnosticOut(DiagnosticBrief):
    intervention = fields.Nested(InterventionWithMachine)


class ControleOut(ControleBrief):
    intervention = fields.Nested(InterventionWithMachine)


class RenovationOut(RenovationBrief):
    intervention = fields.Nested(InterventionWithMachine)
    rapport = fields.Nested(RapportBrief, allow_none=True)


class MaintenanceOut(MaintenanceBrief):
    intervention = fields.Nested(InterventionWithMachine)
    rapport = fields.Nested(RapportBrief, allow_none=True)


class RapportOut(RapportBrief):
    renovation = fields.Nested(RenovationBrief, allow_none=True)
    maintenance = fields.Nested(MaintenanceBrief, allow_none=True)
    prestataire = fields.Nested(PrestataireBrief, allow_none=True)
    intervention = fields.Nested(InterventionWithMachine, allow_none=True)
    gestion = fields.Nested(GestionBrief, data_key="gestionAdministrative", allow_none=True)


class GestionOut(GestionBrief):
    rapport = fields.Nested(RapportOut, exclude=("gestion",))
    utilisateurs = fields.Nested(UtilisateurBrief, many=True)


class PlanificationBrief(Schema):
    id = fields.Int()
    date_creation = fields.Date(data_key="dateCreation")
    capacite_execution = fields.Int(data_key="capaciteExecution")
    urgence_prise = fields.Bool(data_key="urgencePrise")
    disponibilite_pdr = fields.Bool(data_key="disponibilitePDR")
    utilisateur_id = fields.Int()


class PlanificationOut(PlanificationBrief):
    utilisateur = fields.Nested(UtilisateurBrief)
    interventions = fields.Nested(InterventionWithMachine, many=True)


class SectionOut(SectionBrief):
    responsable = fields.Nested(UtilisateurBrief, allow_none=True)
    utilisateurs = fields.Nested(UtilisateurBrief, many=True)


class UtilisateurOut(UtilisateurBrief):
    section_relation = fields.Nested(SectionBrief, attribute="section_rel", data_key="sectionRelation",
                                     allow_none=True)
    roles = fields.Nested(RoleWithPermissions, many=True)
    prestataires = fields.Nested(PrestataireBrief, many=True)
    planifications = fields.Nested(PlanificationBrief, many=True)


class RoleOut(RoleWithPermissions):
    utilisateurs = fields.Nested(UtilisateurBrief, many=True)


class PermissionWithRoles(PermissionOut):
    roles = fields.Nested(RoleBrief, many=True)


class PrestataireOut(PrestataireBrief):
    utilisateurs = fields.Nested(UtilisateurBrief, many=True)
    rapports = fields.Nested(RapportBrief, many=True)
