# Overview: Error taxonomy shared by services, routes and the CLI.

"""
Service errors carry a message plus an optional ``details`` dict. Routes map
each class to an HTTP status through ``register_error_handlers``; the CLI
prints the message.

- NotFoundError: referenced entity missing (or owned by another business)
- InvalidStateError: operation not allowed in the entity's current state
- ValidationError: malformed input
- ConflictError: uniqueness rule (duplicate name, username, ...)
- TransportError: the database was unreachable or rejected the write
- AuthError / PermissionDeniedError: authentication and role gating
"""

from __future__ import annotations

from flask import jsonify, request
from werkzeug.exceptions import HTTPException


class ServiceError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": str(self)}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(ServiceError):
    status_code = 404


class InvalidStateError(ServiceError):
    status_code = 409


class ValidationError(ServiceError, ValueError):
    """400-level input problem."""

    status_code = 400


class ConflictError(ServiceError, ValueError):
    """409-level business rule conflict (e.g., duplicate category name)."""

    status_code = 409


class TransportError(ServiceError):
    """The underlying store is unreachable or refused the write."""

    status_code = 503


class AuthError(ServiceError):
    status_code = 401


class PermissionDeniedError(ServiceError):
    status_code = 403


class PartialCompletionWarning(UserWarning):
    """An order completed but some line items could not be reconciled."""


def register_error_handlers(app) -> None:
    @app.errorhandler(ServiceError)
    def _handle_service_error(exc: ServiceError):
        if isinstance(exc, TransportError):
            app.logger.error("Database unavailable: %s", exc)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500
