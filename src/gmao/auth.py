"""
Guarda de autorização.

O token Bearer (string aleatória guardada em Utilisateur.api_token) identifica
o usuário; cada view declara a permissão exigida via decorator, verificada
antes de qualquer acesso ao domínio.
"""
import logging
import secrets
import string
from functools import wraps

from flask import current_app, g, request

from .errors import Forbidden, Unauthorized
from .extensions import db
from .models import Utilisateur
from .permissions import has_permission, is_catalogued

logger = logging.getLogger(__name__)

TOKEN_ALPHABET = string.ascii_letters + string.digits
LOGIN = "@login"
PUBLIC = "@public"


def generate_token(length=None):
    length = length or current_app.config["API_TOKEN_LENGTH"]
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def _bearer_token():
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def current_user():
    if "principal" not in g:
        token = _bearer_token()
        g.principal = (
            db.session.query(Utilisateur).filter_by(api_token=token).first() if token else None
        )
    return g.principal


def _authenticated():
    user = current_user()
    if user is None:
        raise Unauthorized("Unauthorized - User not authenticated")
    return user


def public(view):
    view.guard = PUBLIC
    return view


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        _authenticated()
        return view(*args, **kwargs)

    wrapper.guard = LOGIN
    return wrapper


def permission_required(key):
    if not is_catalogued(key):
        raise ValueError(f"Permission {key!r} is not in the permission catalog")

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = _authenticated()
            if not has_permission(user, key):
                logger.warning("user %s denied %s on %s", user.id, key, request.path)
                raise Forbidden("Forbidden - Insufficient permissions")
            return view(*args, **kwargs)

        wrapper.guard = key
        return wrapper

    return decorator


def route_permissions(app):
    """Tabela endpoint -> guarda declarada (chave, LOGIN, PUBLIC ou None)."""
    return {
        rule.endpoint: getattr(app.view_functions[rule.endpoint], "guard", None)
        for rule in app.url_map.iter_rules()
    }
