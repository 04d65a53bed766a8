"""
Registro de permissões.

Uma permissão é identificada pela chave "{module}-{action}". O módulo nunca
contém hífen; a ação pode conter (ex.: "utilisateur-manage-roles").
"""
import re

from .extensions import db
from .models import Permission, Role, Utilisateur

ADMIN_ROLE = "Admin"
CRUD_ACTIONS = ("list", "create", "edit", "view", "delete")

PERMISSION_CATALOG = {
    "machine": CRUD_ACTIONS,
    "intervention": CRUD_ACTIONS,
    "diagnostic": CRUD_ACTIONS,
    "controle": CRUD_ACTIONS,
    "renovation": CRUD_ACTIONS,
    "maintenance": CRUD_ACTIONS,
    "rapport": CRUD_ACTIONS + ("validate",),
    "planification": CRUD_ACTIONS,
    "utilisateur": CRUD_ACTIONS + ("manage-roles",),
    "section": CRUD_ACTIONS,
    "prestataire": CRUD_ACTIONS,
    "gestion": CRUD_ACTIONS + ("validate",),
    "admin": ("roles", "permissions"),
}

_MODULE_RE = re.compile(r"^[a-z][a-z0-9_]*$")
_ACTION_RE = re.compile(r"^[a-z][a-z0-9_]*(-[a-z][a-z0-9_]*)*$")


def permission_key(module, action):
    return f"{module}-{action}"


def parse_permission_key(key):
    """Separa a chave em (module, action); ValueError se o formato for inválido."""
    module, sep, action = (key or "").partition("-")
    if not sep or not _MODULE_RE.match(module) or not _ACTION_RE.match(action):
        raise ValueError(f"Invalid permission key: {key!r}")
    return module, action


def catalog_keys():
    return {permission_key(m, a) for m, actions in PERMISSION_CATALOG.items() for a in actions}


def is_catalogued(key):
    module, action = parse_permission_key(key)
    return action in PERMISSION_CATALOG.get(module, ())


def permission_keys(user):
    """União das permissões de todos os papéis do usuário."""
    if user is None:
        return set()
    return {perm.key for role in user.roles for perm in role.permissions}


def permission_map(user):
    return {key: True for key in sorted(permission_keys(user))}


def has_permission(user, key):
    parse_permission_key(key)
    return key in permission_keys(user)


def get_or_create_permission(module, action, description=None):
    perm = Permission.query.filter_by(module=module, action=action).first()
    if perm is None:
        perm = Permission(
            module=module,
            action=action,
            description=description or f"Can {action} {module}",
        )
        db.session.add(perm)
        db.session.flush()
    return perm


def generate_crud_permissions(module):
    """Cria (se faltarem) as cinco permissões CRUD do módulo."""
    module = (module or "").strip().lower()
    if not _MODULE_RE.match(module):
        raise ValueError(f"Invalid module name: {module!r}")
    return [get_or_create_permission(module, action) for action in CRUD_ACTIONS]


def ensure_catalog():
    return [
        get_or_create_permission(module, action)
        for module, actions in PERMISSION_CATALOG.items()
        for action in actions
    ]


def ensure_admin_role():
    """Papel Admin com todas as permissões cadastradas; devolve (role, criado)."""
    role = Role.query.filter_by(nom=ADMIN_ROLE).first()
    created = role is None
    if created:
        role = Role(nom=ADMIN_ROLE, cout=0)
        db.session.add(role)
    role.permissions = Permission.query.order_by(Permission.id).all()
    db.session.flush()
    return role, created


def ensure_admin_user(nom, password, section="Administration"):
    user = Utilisateur.query.filter_by(nom=nom).first()
    if user is not None:
        return user, False
    role, _ = ensure_admin_role()
    user = Utilisateur(nom=nom, section=section)
    user.set_password(password)
    user.roles = [role]
    db.session.add(user)
    db.session.flush()
    return user, True
