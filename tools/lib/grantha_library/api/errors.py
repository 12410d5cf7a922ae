"""Translation of library errors to JSON responses."""

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, NotFound

from grantha_library.exceptions import (
    AuthenticationError,
    NotFoundError,
    SchemaValidationError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def register_error_handlers(app: Flask) -> None:
    """Registers JSON error handlers on an application."""

    @app.errorhandler(NotFoundError)
    def handle_not_found(error: NotFoundError):
        return jsonify({'error': str(error)}), 404

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        body = {'error': str(error)}
        if error.required:
            body['required'] = error.required
        if isinstance(error, SchemaValidationError):
            body['details'] = error.errors
        return jsonify(body), 400

    @app.errorhandler(AuthenticationError)
    def handle_authentication_error(error: AuthenticationError):
        return jsonify({'error': str(error)}), 401

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        if isinstance(error, NotFound):
            return jsonify({'error': 'Route not found'}), 404
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.exception("Unhandled error")
        return jsonify({'error': str(error) or 'Internal server error'}), 500
