import logging

from flask import jsonify
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from .extensions import db
from .workflow import TransitionError

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500

    def __init__(self, message, data=None, errors=None):
        super().__init__(message)
        self.message = message
        self.data = data
        self.errors = errors

    def to_dict(self):
        body = {"message": self.message}
        if self.errors is not None:
            body["errors"] = self.errors
        if self.data is not None:
            body["data"] = self.data
        return body


class Unauthorized(ApiError):
    status_code = 401


class Forbidden(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    """Regra de domínio violada (duplicado, estado inválido, registro imutável)."""
    status_code = 422


class DuplicateRecord(Conflict):
    """Já existe um registro filho; o existente volta no campo data."""

    def __init__(self, message, record):
        super().__init__(message)
        self.record = record


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(err):
        db.session.rollback()
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(err):
        db.session.rollback()
        return jsonify({"message": "The given data was invalid.", "errors": err.messages}), 422

    @app.errorhandler(TransitionError)
    def handle_transition_error(err):
        db.session.rollback()
        return jsonify({"message": str(err)}), 422

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err):
        # a constraint única é o sinal definitivo de duplicata
        db.session.rollback()
        logger.warning("integrity error: %s", err.orig)
        return jsonify({"message": "The record conflicts with an existing one."}), 422

    @app.errorhandler(HTTPException)
    def handle_http_exception(err):
        db.session.rollback()
        return jsonify({"message": err.description}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        db.session.rollback()
        logger.exception("unexpected error")
        return jsonify({"message": "An unexpected error occurred."}), 500
