"""
Coordenador do ciclo de vida das intervenções.

Cada operação roda dentro da sessão da requisição: valida as pré-condições
antes de qualquer escrita, faz flush e deixa o commit para a view. Mudanças de
status passam sempre pelo workflow (eventos PLAN/UNPLAN/START/COMPLETE/CANCEL).
"""
import logging
import unicodedata

from marshmallow import ValidationError

from . import workflow
from .errors import Conflict, DuplicateRecord
from .extensions import db
from .models import (
    BesoinPDR, ChargeRealisee, ControleQualite, Diagnostic, GestionAdministrative,
    Intervention, Machine, Maintenance, MaintenancePiece, Planification,
    PrestataireExterne, Rapport, Renovation, TravailRequis, Utilisateur,
    TYPE_MAINTENANCE, TYPE_RENOVATION, get_all, get_or_404,
)

logger = logging.getLogger(__name__)


def _normalize(value):
    return unicodedata.normalize("NFC", (value or "").strip()).casefold()


def is_type(intervention, type_operation):
    return _normalize(intervention.type_operation) == _normalize(type_operation)


def _assign(obj, data, *names):
    for name in names:
        if name in data:
            setattr(obj, name, data[name])


# ---------------------------------------------------------------------------
# máquinas e intervenções
# ---------------------------------------------------------------------------

def delete_machine(machine):
    if machine.interventions:
        raise Conflict("Cannot delete a machine that still has interventions")
    db.session.delete(machine)
    db.session.flush()


def update_machine_status(machine, etat, date_prochaine_maint):
    machine.etat = etat
    machine.date_prochaine_maint = date_prochaine_maint
    db.session.flush()
    return machine


def create_intervention(data):
    statut = data.get("statut", workflow.INITIAL_STATUS)
    if statut != workflow.INITIAL_STATUS:
        # toda intervenção nasce PENDING; o resto vem dos eventos
        raise ValidationError({"statut": [f"New interventions must be {workflow.INITIAL_STATUS}."]})

    machine = get_or_404(Machine, data["machine_id"], "Machine")
    intervention = Intervention(
        date=data["date"],
        description=data["description"],
        type_operation=data["type_operation"],
        statut=workflow.INITIAL_STATUS,
        urgence=data.get("urgence", False),
        observation=data.get("observation"),
        machine=machine,
    )
    intervention.utilisateurs = get_all(Utilisateur, data.get("utilisateurs"), "utilisateurs")
    db.session.add(intervention)
    db.session.flush()
    logger.info("intervention %s created on machine %s", intervention.id, machine.id)
    return intervention


def update_intervention(intervention, data):
    statut = data.get("statut")
    if statut is not None and statut != intervention.statut:
        if statut != workflow.CANCELLED:
            raise Conflict("Status changes go through the intervention workflow")
        cancel_intervention(intervention)

    new_type = data.get("type_operation")
    if new_type is not None and not is_type(intervention, new_type):
        if intervention.renovation is not None or intervention.maintenance is not None:
            raise Conflict("Cannot change the type of an intervention that already has work records")

    if "machine_id" in data and data["machine_id"] != intervention.machine_id:
        intervention.machine = get_or_404(Machine, data["machine_id"], "Machine")
    _assign(intervention, data, "date", "description", "type_operation", "urgence", "observation")
    if "utilisateurs" in data:
        intervention.utilisateurs = get_all(Utilisateur, data["utilisateurs"], "utilisateurs")
    db.session.flush()
    return intervention


def cancel_intervention(intervention):
    workflow.apply(intervention, workflow.CANCEL)
    db.session.flush()
    return intervention


def delete_intervention(intervention):
    rapport = intervention.rapport
    if rapport is not None:
        if rapport.validation:
            raise Conflict("Cannot delete an intervention with a validated rapport")
        if rapport.gestion is not None:
            db.session.delete(rapport.gestion)
        db.session.delete(rapport)
    db.session.delete(intervention)
    db.session.flush()


# ---------------------------------------------------------------------------
# diagnóstico e controle de qualidade
# ---------------------------------------------------------------------------

def _set_diagnostic_lines(diagnostic, data):
    if "travaux" in data:
        diagnostic.travaux = [TravailRequis(travail=t) for t in data["travaux"] or []]
    if "besoins" in data:
        diagnostic.besoins = [BesoinPDR(besoin=b) for b in data["besoins"] or []]
    if "charges" in data:
        diagnostic.charges = [ChargeRealisee(charge=c) for c in data["charges"] or []]


def create_diagnostic(data):
    existing = Diagnostic.query.filter_by(intervention_id=data["intervention_id"]).first()
    if existing is not None:
        raise DuplicateRecord("A diagnostic already exists for this intervention", existing)

    intervention = get_or_404(Intervention, data["intervention_id"], "Intervention")
    diagnostic = Diagnostic(date_creation=data["date_creation"], intervention=intervention)
    _set_diagnostic_lines(diagnostic, data)
    db.session.add(diagnostic)
    db.session.flush()
    return diagnostic


def update_diagnostic(diagnostic, data):
    if "date_creation" in data:
        diagnostic.date_creation = data["date_creation"]
    _set_diagnostic_lines(diagnostic, data)
    db.session.flush()
    return diagnostic


def create_controle(data):
    existing = ControleQualite.query.filter_by(intervention_id=data["intervention_id"]).first()
    if existing is not None:
        raise DuplicateRecord("A quality control already exists for this intervention", existing)

    intervention = get_or_404(Intervention, data["intervention_id"], "Intervention")
    controle = ControleQualite(intervention=intervention)
    _assign(controle, data, "date_controle", "resultats_essais", "analyse_vibratoire",
            "conformite", "actions_correctives")
    db.session.add(controle)
    db.session.flush()
    return controle


def update_controle(controle, data):
    _assign(controle, data, "date_controle", "resultats_essais", "analyse_vibratoire",
            "conformite", "actions_correctives")
    db.session.flush()
    return controle


# ---------------------------------------------------------------------------
# renovação e manutenção
# ---------------------------------------------------------------------------

def _start_detail(model, label, type_operation, intervention_id):
    """Pré-condições comuns de renovação/manutenção; devolve a intervenção."""
    existing = db.session.get(model, intervention_id)
    if existing is not None:
        raise DuplicateRecord(f"A {label} already exists for this intervention", existing)

    intervention = get_or_404(Intervention, intervention_id, "Intervention")
    if not is_type(intervention, type_operation):
        raise Conflict(f"This intervention is not of type {type_operation}")
    if intervention.renovation is not None or intervention.maintenance is not None:
        raise Conflict("This intervention already has a renovation or a maintenance")
    return intervention


def create_renovation(data):
    intervention = _start_detail(Renovation, "renovation", TYPE_RENOVATION, data["intervention_id"])
    renovation = Renovation(intervention=intervention)
    _assign(renovation, data, "disponibilite_pdr", "objectif", "cout", "duree_estimee")
    db.session.add(renovation)
    workflow.fire(intervention, workflow.START)
    db.session.flush()
    return renovation


def update_renovation(renovation, data):
    _assign(renovation, data, "disponibilite_pdr", "objectif", "cout", "duree_estimee")
    db.session.flush()
    return renovation


def _set_pieces(maintenance, pieces):
    maintenance.pieces = [MaintenancePiece(piece=p) for p in pieces or []]


def create_maintenance(data):
    intervention = _start_detail(Maintenance, "maintenance", TYPE_MAINTENANCE, data["intervention_id"])
    maintenance = Maintenance(intervention=intervention)
    _assign(maintenance, data, "type_maintenance", "duree")
    _set_pieces(maintenance, data.get("pieces"))
    db.session.add(maintenance)
    workflow.fire(intervention, workflow.START)
    db.session.flush()
    return maintenance


def update_maintenance(maintenance, data):
    _assign(maintenance, data, "type_maintenance", "duree")
    if "pieces" in data:
        _set_pieces(maintenance, data["pieces"])
    db.session.flush()
    return maintenance


def delete_detail(detail):
    """Remove renovação/manutenção (e o rapport ainda não validado)."""
    rapport = detail.rapport
    if rapport is not None:
        if rapport.validation:
            raise Conflict("Cannot delete work with a validated rapport")
        if rapport.gestion is not None:
            db.session.delete(rapport.gestion)
        db.session.delete(rapport)
    db.session.delete(detail)
    db.session.flush()


def complete_work(detail, etat, date_prochaine_maint, valeur=None):
    """Conclui a renovação/manutenção: intervenção COMPLETED e máquina atualizada."""
    intervention = detail.intervention
    workflow.apply(intervention, workflow.COMPLETE)
    machine = intervention.machine
    machine.etat = etat
    if valeur is not None:
        machine.valeur = valeur
    machine.date_prochaine_maint = date_prochaine_maint
    db.session.flush()
    return detail


# ---------------------------------------------------------------------------
# rapports
# ---------------------------------------------------------------------------

def _rapport_refs(data):
    renovation = maintenance = prestataire = None
    if data.get("renovation_id") is not None:
        renovation = get_or_404(Renovation, data["renovation_id"], "Renovation")
    if data.get("maintenance_id") is not None:
        maintenance = get_or_404(Maintenance, data["maintenance_id"], "Maintenance")
    if data.get("prestataire_id") is not None:
        prestataire = get_or_404(PrestataireExterne, data["prestataire_id"], "Prestataire")
    return renovation, maintenance, prestataire


def _check_rapport_slots(renovation, maintenance, current=None):
    for detail in (renovation, maintenance):
        if detail is not None and detail.rapport is not None and detail.rapport is not current:
            raise DuplicateRecord("A rapport already exists for this intervention", detail.rapport)


def create_rapport(data):
    if all(data.get(k) is None for k in ("renovation_id", "maintenance_id", "prestataire_id")):
        raise Conflict("A rapport needs a renovation, a maintenance or a prestataire")
    if data.get("renovation_id") is not None and data.get("maintenance_id") is not None:
        raise Conflict("A rapport cannot reference both a renovation and a maintenance")

    renovation, maintenance, prestataire = _rapport_refs(data)
    _check_rapport_slots(renovation, maintenance)

    rapport = Rapport(
        titre=data.get("titre"),
        date_creation=data["date_creation"],
        contenu=data["contenu"],
        validation=False,
        renovation=renovation,
        maintenance=maintenance,
        prestataire=prestataire,
    )
    intervention = rapport.intervention
    if not rapport.titre and intervention is not None:
        rapport.titre = f"Rapport - {intervention.type_operation} #{intervention.id}"
    db.session.add(rapport)
    db.session.flush()

    if data.get("validation"):
        validate_rapport(rapport)
    return rapport


def update_rapport(rapport, data):
    if rapport.validation:
        raise Conflict("Cannot update a validated rapport")

    refs = {k: data.get(k, getattr(rapport, k)) for k in ("renovation_id", "maintenance_id", "prestataire_id")}
    if all(v is None for v in refs.values()):
        raise Conflict("A rapport needs a renovation, a maintenance or a prestataire")
    if refs["renovation_id"] is not None and refs["maintenance_id"] is not None:
        raise Conflict("A rapport cannot reference both a renovation and a maintenance")

    renovation, maintenance, prestataire = _rapport_refs(refs)
    _check_rapport_slots(renovation, maintenance, current=rapport)
    rapport.renovation = renovation
    rapport.maintenance = maintenance
    rapport.prestataire = prestataire
    _assign(rapport, data, "titre", "date_creation", "contenu")
    db.session.flush()

    if data.get("validation"):
        validate_rapport(rapport)
    return rapport


def validate_rapport(rapport):
    if rapport.validation:
        raise Conflict("Rapport is already validated")
    rapport.validation = True
    intervention = rapport.intervention
    if intervention is not None:
        workflow.apply(intervention, workflow.COMPLETE)
    db.session.flush()
    logger.info("rapport %s validated", rapport.id)
    return rapport


def delete_rapport(rapport):
    if rapport.validation:
        raise Conflict("Cannot delete a validated rapport")
    if rapport.gestion is not None:
        db.session.delete(rapport.gestion)
    db.session.delete(rapport)
    db.session.flush()


# ---------------------------------------------------------------------------
# gestão administrativa
# ---------------------------------------------------------------------------

def create_gestion(data):
    rapport = get_or_404(Rapport, data["rapport_id"], "Rapport")
    if not rapport.validation:
        raise Conflict("Rapport must be validated before creating gestion administrative")
    if rapport.gestion is not None:
        raise DuplicateRecord("A gestion administrative already exists for this rapport", rapport.gestion)

    gestion = GestionAdministrative(
        commande_achat=data.get("commande_achat"),
        facturation=data.get("facturation"),
        validation=False,
        rapport=rapport,
    )
    gestion.utilisateurs = get_all(Utilisateur, data.get("utilisateurs"), "utilisateurs")
    db.session.add(gestion)
    db.session.flush()

    if data.get("validation"):
        validate_gestion(gestion)
    return gestion


def update_gestion(gestion, data):
    if gestion.validation:
        raise Conflict("Cannot update a validated gestion administrative")
    _assign(gestion, data, "commande_achat", "facturation")
    if data.get("utilisateurs") is not None:
        gestion.utilisateurs = get_all(Utilisateur, data["utilisateurs"], "utilisateurs")
    db.session.flush()

    if data.get("validation"):
        validate_gestion(gestion)
    return gestion


def delete_gestion(gestion):
    if gestion.validation:
        raise Conflict("Cannot delete a validated gestion administrative")
    db.session.delete(gestion)
    db.session.flush()


def validate_gestion(gestion):
    if gestion.validation:
        raise Conflict("Gestion administrative is already validated")
    if not (gestion.commande_achat or "").strip() or not (gestion.facturation or "").strip():
        raise Conflict("Commande d'achat and facturation are required to validate")
    gestion.validation = True
    db.session.flush()
    logger.info("gestion %s validated", gestion.id)
    return gestion


def set_gestion_users(gestion, utilisateur_ids):
    if gestion.validation:
        raise Conflict("Cannot change users of a validated gestion administrative")
    gestion.utilisateurs = get_all(Utilisateur, utilisateur_ids, "utilisateurs")
    db.session.flush()
    return gestion


# ---------------------------------------------------------------------------
# planificação
# ---------------------------------------------------------------------------

def add_to_planification(planification, intervention):
    if intervention in planification.interventions:
        raise Conflict("Intervention is already in this planification")
    planification.interventions.append(intervention)
    workflow.fire(intervention, workflow.PLAN)
    db.session.flush()
    return planification


def remove_from_planification(planification, intervention):
    if intervention not in planification.interventions:
        raise Conflict("Intervention is not in this planification")
    planification.interventions.remove(intervention)
    workflow.fire(intervention, workflow.UNPLAN)
    db.session.flush()
    return planification


def sync_planification(planification, intervention_ids):
    wanted = get_all(Intervention, intervention_ids, "interventions")
    current = list(planification.interventions)
    for intervention in current:
        if intervention not in wanted:
            remove_from_planification(planification, intervention)
    for intervention in wanted:
        if intervention not in planification.interventions:
            add_to_planification(planification, intervention)
    return planification


def create_planification(data):
    responsable = get_or_404(Utilisateur, data["utilisateur_id"], "Utilisateur")
    planification = Planification(utilisateur=responsable)
    _assign(planification, data, "date_creation", "capacite_execution", "urgence_prise",
            "disponibilite_pdr")
    db.session.add(planification)
    db.session.flush()
    if data.get("interventions"):
        sync_planification(planification, data["interventions"])
    return planification


def update_planification(planification, data):
    if "utilisateur_id" in data and data["utilisateur_id"] != planification.utilisateur_id:
        planification.utilisateur = get_or_404(Utilisateur, data["utilisateur_id"], "Utilisateur")
    _assign(planification, data, "date_creation", "capacite_execution", "urgence_prise",
            "disponibilite_pdr")
    db.session.flush()
    if data.get("interventions") is not None:
        sync_planification(planification, data["interventions"])
    return planification


def delete_planification(planification):
    for intervention in list(planification.interventions):
        remove_from_planification(planification, intervention)
    db.session.delete(planification)
    db.session.flush()
