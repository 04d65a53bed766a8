import logging

from flask import Blueprint, jsonify

from ..auth import current_user, generate_token, login_required, public
from ..errors import Unauthorized
from ..extensions import db
from ..models import Utilisateur
from ..permissions import permission_keys, permission_map
from .common import dump, load
from .schemas import CheckPermissionsIn, LoginIn, UtilisateurOut

logger = logging.getLogger(__name__)

bp_auth = Blueprint("auth", __name__, url_prefix="/api")


@bp_auth.post("/login")
@public
def login():
    data = load(LoginIn)
    user = db.session.query(Utilisateur).filter_by(nom=data["nom"]).first()
    if user is None or not user.check_password(data["password"]):
        logger.info("failed login for %r", data["nom"])
        raise Unauthorized("The provided credentials are incorrect.")

    user.api_token = generate_token()
    db.session.commit()
    logger.info("user %s logged in", user.id)
    return jsonify({
        "user": dump(UtilisateurOut, user),
        "token": user.api_token,
        "token_type": "Bearer",
        "permissions": permission_map(user),
        "message": "Login successful",
    })


@bp_auth.post("/logout")
@login_required
def logout():
    user = current_user()
    user.api_token = None
    db.session.commit()
    return jsonify({"message": "Successfully logged out"})


@bp_auth.get("/user")
@login_required
def me():
    user = current_user()
    return jsonify({"user": dump(UtilisateurOut, user), "permissions": permission_map(user)})


@bp_auth.post("/check-permissions")
@login_required
def check_permissions():
    data = load(CheckPermissionsIn)
    granted = permission_keys(current_user())
    return jsonify({"permissions": {key: key in granted for key in data["permissions"]}})
