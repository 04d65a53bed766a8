from flask import Blueprint, current_app

from ..auth import permission_required
from ..errors import Conflict, DuplicateRecord
from ..extensions import db
from ..models import Role, Section, Utilisateur, get_all, get_or_404
from ..permissions import ensure_admin_user
from .common import dump, load, ok
from .schemas import (
    PermissionOut, RolesIn, SectionIn, SectionOut, UtilisateurIn, UtilisateurOut,
)

bp_utilisateurs = Blueprint("utilisateurs", __name__, url_prefix="/api")


def _check_unique_nom(nom, current=None):
    other = db.session.query(Utilisateur).filter_by(nom=nom).first()
    if other is not None and other is not current:
        raise Conflict("The nom has already been taken.")


def _apply_utilisateur(user, data):
    for key in ("nom", "section"):
        if key in data:
            setattr(user, key, data[key])
    if "section_id" in data:
        user.section_rel = (
            get_or_404(Section, data["section_id"], "Section") if data["section_id"] is not None else None
        )
    if data.get("credentials"):
        user.set_password(data["credentials"])
    if data.get("roles") is not None:
        user.roles = get_all(Role, data["roles"], "roles")


# ---------------------------------------------------------------------------
# utilisateurs
# ---------------------------------------------------------------------------

@bp_utilisateurs.get("/utilisateurs")
@permission_required("utilisateur-list")
def list_utilisateurs():
    users = db.session.query(Utilisateur).order_by(Utilisateur.nom).all()
    return ok(dump(UtilisateurOut, users, many=True))


@bp_utilisateurs.post("/utilisateurs")
@permission_required("utilisateur-create")
def create_utilisateur():
    data = load(UtilisateurIn)
    _check_unique_nom(data["nom"])
    user = Utilisateur()
    _apply_utilisateur(user, data)
    db.session.add(user)
    db.session.commit()
    return ok(dump(UtilisateurOut, user), "Created successfully", 201)


@bp_utilisateurs.get("/utilisateurs/<int:user_id>")
@permission_required("utilisateur-view")
def show_utilisateur(user_id):
    return ok(dump(UtilisateurOut, get_or_404(Utilisateur, user_id, "Utilisateur")))


@bp_utilisateurs.put("/utilisateurs/<int:user_id>")
@permission_required("utilisateur-edit")
def update_utilisateur(user_id):
    user = get_or_404(Utilisateur, user_id, "Utilisateur")
    data = load(UtilisateurIn, partial=True)
    if "nom" in data:
        _check_unique_nom(data["nom"], current=user)
    _apply_utilisateur(user, data)
    db.session.commit()
    return ok(dump(UtilisateurOut, user), "Updated successfully")


@bp_utilisateurs.delete("/utilisateurs/<int:user_id>")
@permission_required("utilisateur-delete")
def delete_utilisateur(user_id):
    user = get_or_404(Utilisateur, user_id, "Utilisateur")
    if user.planifications:
        raise Conflict("Cannot delete a user responsible for planifications")
    for section in db.session.query(Section).filter_by(responsable_id=user.id):
        section.responsable = None
    db.session.delete(user)
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_utilisateurs.get("/utilisateurs/section/<int:section_id>")
@permission_required("utilisateur-list")
def utilisateurs_by_section(section_id):
    get_or_404(Section, section_id, "Section")
    users = db.session.query(Utilisateur).filter_by(section_id=section_id).order_by(Utilisateur.nom).all()
    return ok(dump(UtilisateurOut, users, many=True))


@bp_utilisateurs.get("/utilisateurs/<int:user_id>/permissions")
@permission_required("utilisateur-view")
def utilisateur_permissions(user_id):
    user = get_or_404(Utilisateur, user_id, "Utilisateur")
    unique = {perm.id: perm for role in user.roles for perm in role.permissions}
    return ok(dump(PermissionOut, [unique[k] for k in sorted(unique)], many=True))


@bp_utilisateurs.post("/utilisateurs/<int:user_id>/roles")
@permission_required("utilisateur-manage-roles")
def assign_roles(user_id):
    user = get_or_404(Utilisateur, user_id, "Utilisateur")
    user.roles = get_all(Role, load(RolesIn)["roles"], "roles")
    db.session.commit()
    return ok(dump(UtilisateurOut, user), "Roles assigned successfully")


@bp_utilisateurs.post("/utilisateurs/create-admin")
@permission_required("admin-roles")
def create_admin():
    cfg = current_app.config
    user, created = ensure_admin_user(cfg["SEED_ADMIN_NAME"], cfg["SEED_ADMIN_PASSWORD"])
    if not created:
        raise DuplicateRecord("Admin user already exists", user)
    db.session.commit()
    return ok(dump(UtilisateurOut, user), "Admin user created successfully", 201)


# ---------------------------------------------------------------------------
# sections
# ---------------------------------------------------------------------------

def _apply_section(section, data):
    for key in ("nom", "type"):
        if key in data:
            setattr(section, key, data[key])
    if "responsable_id" in data:
        section.responsable = (
            get_or_404(Utilisateur, data["responsable_id"], "Utilisateur")
            if data["responsable_id"] is not None else None
        )


@bp_utilisateurs.get("/sections")
@permission_required("section-list")
def list_sections():
    sections = db.session.query(Section).order_by(Section.nom).all()
    return ok(dump(SectionOut, sections, many=True))


@bp_utilisateurs.post("/sections")
@permission_required("section-create")
def create_section():
    section = Section()
    _apply_section(section, load(SectionIn))
    db.session.add(section)
    db.session.commit()
    return ok(dump(SectionOut, section), "Section created successfully", 201)


@bp_utilisateurs.get("/sections/<int:section_id>")
@permission_required("section-view")
def show_section(section_id):
    return ok(dump(SectionOut, get_or_404(Section, section_id, "Section")))


@bp_utilisateurs.put("/sections/<int:section_id>")
@permission_required("section-edit")
def update_section(section_id):
    section = get_or_404(Section, section_id, "Section")
    _apply_section(section, load(SectionIn, partial=True))
    db.session.commit()
    return ok(dump(SectionOut, section), "Section updated successfully")


@bp_utilisateurs.delete("/sections/<int:section_id>")
@permission_required("section-delete")
def delete_section(section_id):
    section = get_or_404(Section, section_id, "Section")
    for user in list(section.utilisateurs):
        user.section_rel = None
    db.session.delete(section)
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_utilisateurs.get("/sections/responsable/<int:responsable_id>")
@permission_required("section-list")
def sections_by_responsable(responsable_id):
    get_or_404(Utilisateur, responsable_id, "Utilisateur")
    sections = db.session.query(Section).filter_by(responsable_id=responsable_id).order_by(Section.nom).all()
    return ok(dump(SectionOut, sections, many=True))
