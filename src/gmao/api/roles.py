import logging

from flask import Blueprint

from ..auth import permission_required
from ..errors import Conflict, DuplicateRecord
from ..extensions import db
from ..models import Permission, Role, get_all, get_or_404
from ..permissions import ADMIN_ROLE, ensure_admin_role, generate_crud_permissions
from .common import dump, load, ok
from .schemas import (
    GenerateCrudIn, PermissionIn, PermissionOut, PermissionWithRoles, PermissionsIn, RoleIn,
    RoleOut, UtilisateurBrief,
)

logger = logging.getLogger(__name__)

bp_roles = Blueprint("roles", __name__, url_prefix="/api")


def _check_unique_role(nom, current=None):
    other = db.session.query(Role).filter_by(nom=nom).first()
    if other is not None and other is not current:
        raise Conflict("The nom has already been taken.")


# ---------------------------------------------------------------------------
# roles
# ---------------------------------------------------------------------------

@bp_roles.get("/roles")
@permission_required("admin-roles")
def list_roles():
    return ok(dump(RoleOut, db.session.query(Role).order_by(Role.nom).all(), many=True))


@bp_roles.post("/roles")
@permission_required("admin-roles")
def create_role():
    data = load(RoleIn)
    _check_unique_role(data["nom"])
    role = Role(nom=data["nom"], cout=data["cout"])
    role.permissions = get_all(Permission, data.get("permissions"), "permissions")
    db.session.add(role)
    db.session.commit()
    return ok(dump(RoleOut, role), "Role created successfully", 201)


@bp_roles.get("/roles/<int:role_id>")
@permission_required("admin-roles")
def show_role(role_id):
    return ok(dump(RoleOut, get_or_404(Role, role_id, "Role")))


@bp_roles.put("/roles/<int:role_id>")
@permission_required("admin-roles")
def update_role(role_id):
    role = get_or_404(Role, role_id, "Role")
    data = load(RoleIn, partial=True)
    if "nom" in data:
        _check_unique_role(data["nom"], current=role)
        role.nom = data["nom"]
    if "cout" in data:
        role.cout = data["cout"]
    if data.get("permissions") is not None:
        role.permissions = get_all(Permission, data["permissions"], "permissions")
    db.session.commit()
    return ok(dump(RoleOut, role), "Role updated successfully")


@bp_roles.delete("/roles/<int:role_id>")
@permission_required("admin-roles")
def delete_role(role_id):
    db.session.delete(get_or_404(Role, role_id, "Role"))
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_roles.get("/roles/<int:role_id>/users")
@permission_required("admin-roles")
def role_users(role_id):
    return ok(dump(UtilisateurBrief, get_or_404(Role, role_id, "Role").utilisateurs, many=True))


@bp_roles.post("/roles/<int:role_id>/permissions")
@permission_required("admin-roles")
def assign_permissions(role_id):
    role = get_or_404(Role, role_id, "Role")
    role.permissions = get_all(Permission, load(PermissionsIn)["permissions"], "permissions")
    db.session.commit()
    logger.info("role %s now holds %d permissions", role.id, len(role.permissions))
    return ok(dump(RoleOut, role), "Permissions assigned successfully")


@bp_roles.post("/roles/create-admin")
@permission_required("admin-roles")
def create_admin_role():
    existing = db.session.query(Role).filter_by(nom=ADMIN_ROLE).first()
    if existing is not None:
        raise DuplicateRecord("Admin role already exists", existing)
    role, _ = ensure_admin_role()
    db.session.commit()
    return ok(dump(RoleOut, role), "Admin role created successfully", 201)


# ---------------------------------------------------------------------------
# permissions
# ---------------------------------------------------------------------------

def _check_unique_permission(module, action, current=None):
    other = db.session.query(Permission).filter_by(module=module, action=action).first()
    if other is not None and other is not current:
        raise Conflict(f"Permission {module}-{action} already exists")


@bp_roles.get("/permissions")
@permission_required("admin-permissions")
def list_permissions():
    perms = db.session.query(Permission).order_by(Permission.module, Permission.action).all()
    return ok(dump(PermissionWithRoles, perms, many=True))


@bp_roles.post("/permissions")
@permission_required("admin-permissions")
def create_permission():
    data = load(PermissionIn)
    _check_unique_permission(data["module"], data["action"])
    perm = Permission(**data)
    db.session.add(perm)
    db.session.commit()
    return ok(dump(PermissionWithRoles, perm), "Created successfully", 201)


@bp_roles.get("/permissions/<int:permission_id>")
@permission_required("admin-permissions")
def show_permission(permission_id):
    return ok(dump(PermissionWithRoles, get_or_404(Permission, permission_id, "Permission")))


@bp_roles.put("/permissions/<int:permission_id>")
@permission_required("admin-permissions")
def update_permission(permission_id):
    perm = get_or_404(Permission, permission_id, "Permission")
    data = load(PermissionIn, partial=True)
    _check_unique_permission(data.get("module", perm.module), data.get("action", perm.action), current=perm)
    for key, value in data.items():
        setattr(perm, key, value)
    db.session.commit()
    return ok(dump(PermissionWithRoles, perm), "Updated successfully")


@bp_roles.delete("/permissions/<int:permission_id>")
@permission_required("admin-permissions")
def delete_permission(permission_id):
    db.session.delete(get_or_404(Permission, permission_id, "Permission"))
    db.session.commit()
    return ok(None, "Deleted successfully")


@bp_roles.get("/permissions/modules")
@permission_required("admin-permissions")
def permission_modules():
    rows = db.session.query(Permission.module).distinct().order_by(Permission.module).all()
    return ok([module for (module,) in rows])


@bp_roles.get("/permissions/module/<module>")
@permission_required("admin-permissions")
def permissions_by_module(module):
    perms = db.session.query(Permission).filter_by(module=module).order_by(Permission.action).all()
    return ok(dump(PermissionOut, perms, many=True))


@bp_roles.post("/permissions/generate-crud")
@permission_required("admin-permissions")
def generate_crud():
    module = load(GenerateCrudIn)["module"]
    try:
        perms = generate_crud_permissions(module)
    except ValueError as exc:
        raise Conflict(str(exc))
    db.session.commit()
    return ok(dump(PermissionOut, perms, many=True), "CRUD permissions generated successfully", 201)
