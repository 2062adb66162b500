"""Typed request failures.

Services raise an ``ApiError`` subclass carrying a stable tag, an HTTP
status and any details the client needs to self-correct (for example the
expected vs received question index). A single app-level handler renders
them as ``{"error": tag, **details}``.
"""

from flask import current_app, jsonify


class ApiError(Exception):
    status = 400

    def __init__(self, tag, status=None, **details):
        super().__init__(tag)
        self.tag = tag
        if status is not None:
            self.status = status
        self.details = details

    def to_dict(self):
        payload = {'error': self.tag}
        payload.update(self.details)
        return payload


class AuthError(ApiError):
    status = 401


class ForbiddenError(ApiError):
    status = 403


class NotFoundError(ApiError):
    status = 404


class SessionStateError(ApiError):
    status = 400


class CatalogIntegrityError(ApiError):
    """Catalog data is broken (e.g. no correct option); never a client mistake."""

    status = 500


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(exc):
        if exc.status >= 500:
            current_app.logger.error(f"[api-error] tag={exc.tag} status={exc.status} details={exc.details}")
        return jsonify(exc.to_dict()), exc.status
